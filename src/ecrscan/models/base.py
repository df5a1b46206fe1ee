"""Base models and enums."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )


class ScanLevel(str, Enum):
    """Repository scan level."""

    BASIC = "Basic"
    ENHANCED = "Enhanced"


class Severity(str, Enum):
    """Unified finding severity levels."""

    INFORMATIONAL = "Informational"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"
    UNDEFINED = "Undefined"


class FetchState(str, Enum):
    """Repository fetch state."""

    PENDING = "pending"
    LISTING_IMAGES = "listing_images"
    FETCHING_FINDINGS = "fetching_findings"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Classification of upstream failures."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    UNSUPPORTED_SCAN_LEVEL = "unsupported_scan_level"
    THROTTLED = "throttled"
    TRANSIENT = "transient"
    MALFORMED_FINDING = "malformed_finding"
    ERROR = "error"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.THROTTLED, ErrorKind.TRANSIENT)


class FetchError(BaseSchema):
    """Why a repository fetch failed."""

    kind: ErrorKind
    reason: str


class Page(BaseModel):
    """One page of upstream records plus its continuation cursor."""

    records: list[Any] = Field(default_factory=list)
    next_token: str | None = None
