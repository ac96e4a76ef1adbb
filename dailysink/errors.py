"""DailySink error kinds."""
from __future__ import annotations


class InvalidFormat(ValueError):
    """Raised when a filename or date format cannot be used for rotation."""


class AppendError(OSError):
    """Raised when a batch cannot be appended to the active log file."""
