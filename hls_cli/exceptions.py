"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class HlsCliError(Exception):
    """Base exception for all application-specific errors."""


class InvalidParameters(HlsCliError):
    """Raised when a source URL or workspace cannot be used for a task."""


class DuplicateTask(HlsCliError):
    """Raised when attaching a source URL that already has a live workflow."""


class CacheAccessFailed(HlsCliError):
    """
    Raised when the on-disk task cache cannot be read, written or removed.

    The underlying filesystem or serialization error is kept in ``cause``.
    """

    def __init__(self, cause: BaseException, message: str | None = None):
        self.cause = cause
        super().__init__(message or f"Cache access failed: {cause}")


class TransferFailed(HlsCliError):
    """Raised when a network transfer fails and is not recovered."""

    def __init__(self, cause: BaseException | None = None, message: str | None = None):
        self.cause = cause
        if message is None:
            message = f"Transfer failed: {cause}" if cause else "Transfer failed."
        super().__init__(message)


class LogicError(HlsCliError):
    """Raised when a workflow step is invoked out of order."""


class PlaylistInvalid(HlsCliError):
    """Raised when a playlist yields no usable media segments."""


class ConfigurationError(HlsCliError):
    """Raised for issues related to configuration loading or validation."""
