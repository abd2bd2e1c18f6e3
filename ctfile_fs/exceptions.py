"""
Error taxonomy for ctfile_fs.

Every error raised by the package derives from CTFileError. The concrete
classes also inherit the matching builtin (FileNotFoundError, PermissionError,
ConnectionError, ...) so callers that only know the builtins keep working.

The ``retryable`` class attribute is what RetryExecutor checks to decide
whether an attempt may be repeated.
"""


class CTFileError(Exception):
    """Base class for all ctfile_fs errors."""

    retryable = False

    def __init__(self, message: str, path: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.operation = operation

    def __str__(self) -> str:
        return self.message

    def with_context(self, path: str | None = None, operation: str | None = None) -> "CTFileError":
        """Fill in path/operation if they are not set yet. Returns self."""
        if self.path is None and path is not None:
            self.path = path
        if self.operation is None and operation is not None:
            self.operation = operation
        return self


class NotFoundError(CTFileError, FileNotFoundError):
    """A path segment (or remote object) does not exist."""


class ParentNotFoundError(NotFoundError):
    """The parent folder of a write target is missing and auto-create is off."""


class KindMismatchError(CTFileError):
    """A path resolved to a file where a directory was expected, or vice versa."""

    def __init__(self, message: str, path: str | None = None, expected=None, actual=None):
        super().__init__(message, path=path)
        self.expected = expected
        self.actual = actual


class TargetExistsError(CTFileError, FileExistsError):
    """The destination of a write already exists."""


class ProtocolError(CTFileError):
    """The remote API answered with an unexpected or malformed payload."""


class RemoteAPIError(CTFileError):
    """The remote API rejected the request with an application error code."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        path: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, path=path, operation=operation)
        self.code = code


class TransientNetworkError(CTFileError, ConnectionError):
    """Connection failure, timeout or temporary server-side error."""

    retryable = True


class RateLimitedError(TransientNetworkError):
    """The server asked us to slow down (HTTP 429)."""

    def __init__(self, message: str, retry_after: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class AuthFailureError(CTFileError, PermissionError):
    """Invalid or expired session token."""


class PermissionDeniedError(CTFileError, PermissionError):
    """The session is valid but may not touch this object."""
