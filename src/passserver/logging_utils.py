"""Logging utilities with redaction and request correlation.

Provides:
- Redaction of ASCII-armored PGP blocks so ciphertext never reaches log output
- Structured logging helpers
- Request ID context management
"""

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Any

# Context variable for request ID (thread-safe and async-safe)
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Complete armored blocks, e.g. an encrypted index or secret
ARMORED_BLOCK_PATTERN = re.compile(
    r"-----BEGIN PGP ([A-Z ]+)-----.*?-----END PGP \1-----",
    re.DOTALL,
)

# Pattern for Authorization header values
AUTH_HEADER_PATTERN = re.compile(
    r"(Authorization[:\s]+)((?:Bearer|Basic|Token)\s+)?([^\s,;]+)",
    re.IGNORECASE,
)


def redact_secrets(text: str | None) -> str:
    """Redact armored ciphertext and auth headers from text.

    Args:
        text: Text that may contain armored blocks

    Returns:
        Text with armored blocks and authorization values redacted
    """
    if text is None:
        return ""

    if not isinstance(text, str):
        text = str(text)

    text = ARMORED_BLOCK_PATTERN.sub("***ARMORED***", text)
    text = AUTH_HEADER_PATTERN.sub(r"\1***REDACTED***", text)

    return text


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID (generates one if not provided)

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())

    _request_id_var.set(request_id)
    return request_id


def get_request_id() -> str | None:
    """Get the request ID for the current context."""
    return _request_id_var.get()


def clear_request_id() -> None:
    """Clear the request ID from the current context."""
    _request_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **kwargs: Any,
) -> None:
    """Log a message with structured context (request_id, store, etc.).

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, logging.ERROR, etc.)
        message: Log message
        **kwargs: Additional structured fields to include
    """
    parts = [message]

    request_id = get_request_id()
    if request_id:
        parts.append(f"request_id={request_id}")

    for key, value in kwargs.items():
        safe_value = redact_secrets(str(value))
        parts.append(f"{key}={safe_value}")

    logger.log(level, " | ".join(parts))


def log_info(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log an info message with structured context."""
    log_with_context(logger, logging.INFO, message, **kwargs)


def log_warning(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log a warning message with structured context."""
    log_with_context(logger, logging.WARNING, message, **kwargs)


def log_error(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log an error message with structured context."""
    log_with_context(logger, logging.ERROR, message, **kwargs)


def log_debug(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log a debug message with structured context."""
    log_with_context(logger, logging.DEBUG, message, **kwargs)
