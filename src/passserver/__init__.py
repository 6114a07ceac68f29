"""Read-only network API over a pass-style GPG password store."""

__version__ = "1.0.0"
