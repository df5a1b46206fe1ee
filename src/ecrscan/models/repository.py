"""Repository and image reference models."""

from datetime import datetime

from pydantic import ConfigDict, Field

from ecrscan.models.base import BaseSchema, FetchError, ScanLevel, Severity


class RepositoryMode(BaseSchema):
    """Which repositories to target: every repository, or a single named one."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None

    @classmethod
    def all(cls) -> "RepositoryMode":
        return cls()

    @classmethod
    def named(cls, name: str) -> "RepositoryMode":
        return cls(name=name)

    @property
    def is_all(self) -> bool:
        return self.name is None


class Repository(BaseSchema):
    """A target repository with its resolved scan level."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    scan_level: ScanLevel | None = None
    scan_type: str | None = None
    # Set when the scan configuration lookup itself failed
    resolution_error: FetchError | None = None

    @property
    def is_resolved(self) -> bool:
        return self.scan_level is not None


class ImageRef(BaseSchema):
    """An image in a repository, with its scan summary."""

    repository: str = Field(min_length=1)
    image_digest: str = Field(min_length=1)
    image_tags: list[str] = Field(default_factory=list)
    artifact_media_type: str | None = None
    scan_status: str | None = None
    image_scan_completed_at: datetime | None = None
    vulnerability_source_updated_at: datetime | None = None
    severity_counts: dict[Severity, int] | None = None

    @property
    def has_scan_summary(self) -> bool:
        return self.severity_counts is not None or self.image_scan_completed_at is not None

    @property
    def total_findings(self) -> int:
        return sum((self.severity_counts or {}).values())

    @property
    def has_findings(self) -> bool:
        """True when the summary reports findings, or reports a scan without counts."""
        if self.severity_counts is None:
            return self.image_scan_completed_at is not None
        return self.total_findings > 0

    def count(self, severity: Severity) -> int:
        return (self.severity_counts or {}).get(severity, 0)
