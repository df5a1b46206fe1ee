"""Pydantic data models for ecrscan."""

from ecrscan.models.base import (
    BaseSchema,
    ErrorKind,
    FetchError,
    FetchState,
    Page,
    ScanLevel,
    Severity,
)
from ecrscan.models.repository import ImageRef, Repository, RepositoryMode
from ecrscan.models.finding import (
    CSV_COLUMNS,
    BasicRawFinding,
    EnhancedRawFinding,
    Finding,
    FindingAttribute,
    RawFinding,
    VulnerablePackage,
)
from ecrscan.models.result import (
    FetchResult,
    collect_failures,
    collect_findings,
    collect_images,
)

__all__ = [
    # Base
    "BaseSchema",
    "ErrorKind",
    "FetchState",
    "Page",
    "ScanLevel",
    "Severity",
    # Repository
    "ImageRef",
    "Repository",
    "RepositoryMode",
    # Findings
    "CSV_COLUMNS",
    "BasicRawFinding",
    "EnhancedRawFinding",
    "Finding",
    "FindingAttribute",
    "RawFinding",
    "VulnerablePackage",
    # Results
    "FetchError",
    "FetchResult",
    "collect_failures",
    "collect_findings",
    "collect_images",
]
