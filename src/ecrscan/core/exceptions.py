"""Custom exceptions for ecrscan."""

import asyncio

from ecrscan.models.base import ErrorKind


class EcrScanError(Exception):
    """Base exception for all ecrscan errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RepositoryNotFoundError(EcrScanError):
    """Raised when a repository (or an image in it) does not exist."""

    def __init__(
        self,
        message: str,
        repository: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.repository = repository


class UnauthorizedError(EcrScanError):
    """Raised when the credentials lack permission for an operation."""

    pass


class UnsupportedScanLevelError(EcrScanError):
    """Raised when a repository is configured for neither basic nor enhanced scanning."""

    def __init__(
        self,
        message: str,
        repository: str | None = None,
        scan_type: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.repository = repository
        self.scan_type = scan_type


class ThrottledError(EcrScanError):
    """Raised when the upstream API rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class TransientError(EcrScanError):
    """Raised when a network operation fails in a way worth retrying."""

    pass


class ScanNotFoundError(EcrScanError):
    """Raised when an image has no scan results."""

    pass


class MalformedFindingError(EcrScanError):
    """Raised when a single finding record cannot be parsed."""

    pass


class ConfigurationError(EcrScanError):
    """Raised when configuration is invalid."""

    pass


_KINDS: list[tuple[type[BaseException], ErrorKind]] = [
    (RepositoryNotFoundError, ErrorKind.NOT_FOUND),
    (ScanNotFoundError, ErrorKind.NOT_FOUND),
    (UnauthorizedError, ErrorKind.UNAUTHORIZED),
    (UnsupportedScanLevelError, ErrorKind.UNSUPPORTED_SCAN_LEVEL),
    (ThrottledError, ErrorKind.THROTTLED),
    (TransientError, ErrorKind.TRANSIENT),
    (MalformedFindingError, ErrorKind.MALFORMED_FINDING),
    (asyncio.TimeoutError, ErrorKind.TRANSIENT),
    (TimeoutError, ErrorKind.TRANSIENT),
    (ConnectionError, ErrorKind.TRANSIENT),
]


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by an upstream call to an error kind."""
    for exc_type, kind in _KINDS:
        if isinstance(exc, exc_type):
            return kind
    # Plain OSError subclasses not listed above are socket level failures
    if isinstance(exc, OSError):
        return ErrorKind.TRANSIENT
    return ErrorKind.ERROR
