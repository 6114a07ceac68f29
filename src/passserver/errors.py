"""Exception types raised by the secret cache and mapped by the API layer."""


class PassServerError(Exception):
    """Base class for all pass-server errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PassServerError):
    """A request is missing a required field. Never reaches the cache."""


class NotFoundError(PassServerError):
    """A well-formed lookup names a secret absent from the current snapshot."""


class UnavailableError(PassServerError):
    """The store could not be discovered, read or encrypted during a rebuild."""
