"""Per-repository fetch outcome models."""

from datetime import datetime

from pydantic import Field

from ecrscan.models.base import BaseSchema, FetchError, FetchState, ScanLevel
from ecrscan.models.finding import Finding
from ecrscan.models.repository import ImageRef


class FetchResult(BaseSchema):
    """Outcome of fetching one repository."""

    repository: str
    scan_level: ScanLevel | None = None
    state: FetchState = FetchState.PENDING
    findings: list[Finding] = Field(default_factory=list)
    images: list[ImageRef] = Field(default_factory=list)
    images_scanned: int = 0
    error: FetchError | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == FetchState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state == FetchState.FAILED

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


def collect_findings(results: list[FetchResult]) -> list[Finding]:
    """Findings of all successful repositories, in result order."""
    return [finding for result in results if result.succeeded for finding in result.findings]


def collect_images(results: list[FetchResult]) -> list[ImageRef]:
    """Images of all successful repositories, in result order."""
    return [image for result in results if result.succeeded for image in result.images]


def collect_failures(results: list[FetchResult]) -> list[FetchResult]:
    """Failed repositories, in result order."""
    return [result for result in results if result.failed]
