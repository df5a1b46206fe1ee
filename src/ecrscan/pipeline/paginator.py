"""Cursor-based pagination over the registry API."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from ecrscan.core.interfaces import IRegistryClient
from ecrscan.models import ImageRef, Page, ScanLevel
from ecrscan.pipeline.normalizer import normalize_severity


class CursorPaginator(ABC):
    """
    Lazy, finite, non-restartable sequence of pages.

    Each call to :meth:`next_page` performs exactly one upstream request with
    the cursor returned by the previous page. If the request raises, the
    cursor is left untouched and the error propagates as-is, so the caller
    can classify it and call :meth:`next_page` again to retry the same page.
    The sequence ends when a page comes back without a cursor.
    """

    records_key: str = ""

    def __init__(self) -> None:
        self._next_token: str | None = None
        self._exhausted = False
        self.pages_fetched = 0

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @abstractmethod
    async def _request(self, next_token: str | None) -> dict[str, Any]:
        """Fetch the raw response for one page."""
        ...

    def _records(self, response: dict[str, Any]) -> list[Any]:
        return list(response.get(self.records_key) or [])

    async def next_page(self) -> Page | None:
        """Fetch the next page, or return None once the sequence is exhausted."""
        if self._exhausted:
            return None

        response = await self._request(self._next_token)
        self.pages_fetched += 1

        next_token = response.get("nextToken") or None
        self._next_token = next_token
        if next_token is None:
            self._exhausted = True

        return Page(records=self._records(response), next_token=next_token)

    def __aiter__(self) -> "CursorPaginator":
        return self

    async def __anext__(self) -> Page:
        page = await self.next_page()
        if page is None:
            raise StopAsyncIteration
        return page


class RepositoryPaginator(CursorPaginator):
    """Pages through the repositories of the registry."""

    records_key = "repositories"

    def __init__(self, client: IRegistryClient, names: list[str] | None = None) -> None:
        super().__init__()
        self.client = client
        self.names = names

    async def _request(self, next_token: str | None) -> dict[str, Any]:
        return await self.client.list_repositories(next_token=next_token, names=self.names)


class ImagePaginator(CursorPaginator):
    """Pages through the images of one repository."""

    records_key = "imageDetails"

    def __init__(self, client: IRegistryClient, repository: str) -> None:
        super().__init__()
        self.client = client
        self.repository = repository

    async def _request(self, next_token: str | None) -> dict[str, Any]:
        return await self.client.list_images(self.repository, next_token=next_token)


class FindingPaginator(CursorPaginator):
    """Pages through the scan findings of one image."""

    def __init__(
        self,
        client: IRegistryClient,
        repository: str,
        image_digest: str,
        scan_level: ScanLevel,
    ) -> None:
        super().__init__()
        self.client = client
        self.repository = repository
        self.image_digest = image_digest
        self.scan_level = scan_level

    async def _request(self, next_token: str | None) -> dict[str, Any]:
        return await self.client.get_findings(
            self.repository,
            self.image_digest,
            next_token=next_token,
        )

    def _records(self, response: dict[str, Any]) -> list[Any]:
        findings = response.get("imageScanFindings") or {}
        key = "findings" if self.scan_level == ScanLevel.BASIC else "enhancedFindings"
        return list(findings.get(key) or [])


def image_ref_from_api(repository: str, detail: dict[str, Any]) -> ImageRef | None:
    """Build an ImageRef from an ``imageDetails`` entry; None when it has no digest."""
    digest = detail.get("imageDigest")
    if not digest:
        return None

    summary = detail.get("imageScanFindingsSummary")
    counts = None
    completed_at = updated_at = None
    if summary:
        completed_at = _as_datetime(summary.get("imageScanCompletedAt"))
        updated_at = _as_datetime(summary.get("vulnerabilitySourceUpdatedAt"))
        raw_counts = summary.get("findingSeverityCounts")
        if raw_counts is not None:
            counts = {}
            for name, count in raw_counts.items():
                # Both vocabularies share everything but UNDEFINED / UNTRIAGED
                level = ScanLevel.ENHANCED if name.upper() == "UNTRIAGED" else ScanLevel.BASIC
                severity = normalize_severity(level, name)
                counts[severity] = counts.get(severity, 0) + int(count or 0)

    return ImageRef(
        repository=detail.get("repositoryName") or repository,
        image_digest=digest,
        image_tags=list(detail.get("imageTags") or []),
        artifact_media_type=detail.get("artifactMediaType"),
        scan_status=(detail.get("imageScanStatus") or {}).get("status"),
        image_scan_completed_at=completed_at,
        vulnerability_source_updated_at=updated_at,
        severity_counts=counts,
    )


def _as_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
