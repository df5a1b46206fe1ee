"""Core module - configuration, logging, and interfaces."""

from ecrscan.core.config import Settings, get_settings
from ecrscan.core.exceptions import (
    EcrScanError,
    RepositoryNotFoundError,
    UnauthorizedError,
    UnsupportedScanLevelError,
    ThrottledError,
    TransientError,
    ScanNotFoundError,
    MalformedFindingError,
    classify_error,
)
from ecrscan.core.interfaces import IRegistryClient

__all__ = [
    "Settings",
    "get_settings",
    "EcrScanError",
    "RepositoryNotFoundError",
    "UnauthorizedError",
    "UnsupportedScanLevelError",
    "ThrottledError",
    "TransientError",
    "ScanNotFoundError",
    "MalformedFindingError",
    "classify_error",
    "IRegistryClient",
]
