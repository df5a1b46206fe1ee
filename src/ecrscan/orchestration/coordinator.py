"""Fetch coordinator for aggregating findings across repositories."""

import asyncio
from datetime import datetime, timezone

from ecrscan.core.config import Settings, get_settings
from ecrscan.core.exceptions import (
    ScanNotFoundError,
    UnsupportedScanLevelError,
    classify_error,
)
from ecrscan.core.interfaces import IRegistryClient
from ecrscan.core.logging import get_logger
from ecrscan.infrastructure.retry import RetryPolicy
from ecrscan.models import (
    FetchError,
    FetchResult,
    FetchState,
    Finding,
    ImageRef,
    Repository,
    ScanLevel,
)
from ecrscan.pipeline.normalizer import normalize_finding
from ecrscan.pipeline.paginator import FindingPaginator, ImagePaginator, image_ref_from_api


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FetchCoordinator:
    """
    Fetches and normalizes findings for many repositories concurrently.

    At most ``max_concurrent`` repositories are in flight at once. Each
    repository task owns its own result; results are merged only once all
    tasks finish, in the order the repositories were given. A failing
    repository is reported as a failed FetchResult and never affects its
    siblings.
    """

    def __init__(
        self,
        client: IRegistryClient,
        settings: Settings | None = None,
        retry: RetryPolicy | None = None,
        max_concurrent: int | None = None,
    ) -> None:
        self.logger = get_logger("coordinator")
        self.client = client
        self.settings = settings or get_settings()
        self.retry = retry or RetryPolicy.from_settings(self.settings)
        self.max_concurrent = max_concurrent or self.settings.max_concurrent_repositories
        self.in_flight = 0
        self.peak_in_flight = 0

    async def fetch_all(
        self,
        repositories: list[Repository],
        include_findings: bool = True,
    ) -> list[FetchResult]:
        """Fetch every repository; one result per repository, in input order."""
        started_at = _now()
        semaphore = asyncio.Semaphore(self.max_concurrent)

        self.logger.info(
            "fetch_started",
            repositories=len(repositories),
            max_concurrent=self.max_concurrent,
            include_findings=include_findings,
        )

        tasks = [
            self._fetch_bounded(semaphore, repository, include_findings)
            for repository in repositories
        ]
        results = list(await asyncio.gather(*tasks))

        self.logger.info(
            "fetch_completed",
            repositories=len(results),
            succeeded=sum(1 for r in results if r.succeeded),
            failed=sum(1 for r in results if r.failed),
            findings=sum(len(r.findings) for r in results),
            peak_in_flight=self.peak_in_flight,
            duration=(_now() - started_at).total_seconds(),
        )
        return results

    async def _fetch_bounded(
        self,
        semaphore: asyncio.Semaphore,
        repository: Repository,
        include_findings: bool,
    ) -> FetchResult:
        async with semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await self.fetch_repository(repository, include_findings)
            finally:
                self.in_flight -= 1

    async def fetch_repository(
        self,
        repository: Repository,
        include_findings: bool = True,
    ) -> FetchResult:
        """Fetch one repository. Failures are captured in the result, not raised."""
        result = FetchResult(
            repository=repository.name,
            scan_level=repository.scan_level,
            state=FetchState.PENDING,
            started_at=_now(),
        )

        if repository.resolution_error is not None:
            result.state = FetchState.FAILED
            result.error = repository.resolution_error
            result.completed_at = _now()
            self.logger.error(
                "repository_fetch_failed",
                repository=repository.name,
                kind=result.error.kind.value,
                error=result.error.reason,
            )
            return result

        try:
            if repository.scan_level is None:
                raise UnsupportedScanLevelError(
                    f"Unsupported scan type: {repository.scan_type or 'unknown'}",
                    repository=repository.name,
                    scan_type=repository.scan_type,
                )

            result.state = FetchState.LISTING_IMAGES
            images = await self._list_images(repository.name)
            result.images = images
            result.images_scanned = sum(1 for image in images if image.has_scan_summary)

            if include_findings:
                result.state = FetchState.FETCHING_FINDINGS
                findings: list[Finding] = []
                for image in images:
                    if not image.has_findings:
                        continue
                    findings.extend(
                        await self._fetch_findings(repository.name, image, repository.scan_level)
                    )
                result.findings = findings

            result.state = FetchState.SUCCEEDED
            self.logger.info(
                "repository_fetch_completed",
                repository=repository.name,
                scan_level=repository.scan_level.value,
                images=len(images),
                images_scanned=result.images_scanned,
                findings=len(result.findings),
            )

        except asyncio.CancelledError:
            raise
        except Exception as e:
            kind = classify_error(e)
            result.state = FetchState.FAILED
            result.findings = []
            result.error = FetchError(kind=kind, reason=str(e) or type(e).__name__)
            self.logger.error(
                "repository_fetch_failed",
                repository=repository.name,
                kind=kind.value,
                error=str(e),
            )

        finally:
            result.completed_at = _now()

        return result

    async def _list_images(self, repository: str) -> list[ImageRef]:
        """List images in listing order, keeping only reportable artifact types."""
        allowed = set(self.settings.artifact_media_types)
        paginator = ImagePaginator(self.client, repository)
        images: list[ImageRef] = []

        while True:
            page = await self.retry.call(paginator.next_page, operation="list_images")
            if page is None:
                break
            for detail in page.records:
                image = image_ref_from_api(repository, detail)
                if image is None:
                    continue
                media_type = image.artifact_media_type
                if allowed and media_type and media_type not in allowed:
                    self.logger.debug(
                        "image_skipped",
                        repository=repository,
                        digest=image.image_digest,
                        media_type=media_type,
                    )
                    continue
                images.append(image)

        return images

    async def _fetch_findings(
        self,
        repository: str,
        image: ImageRef,
        scan_level: ScanLevel,
    ) -> list[Finding]:
        """Page through one image's findings, normalizing each page as it arrives."""
        paginator = FindingPaginator(self.client, repository, image.image_digest, scan_level)
        findings: list[Finding] = []

        try:
            while True:
                page = await self.retry.call(paginator.next_page, operation="get_findings")
                if page is None:
                    break
                for record in page.records:
                    findings.append(
                        normalize_finding(scan_level, record, repository, image.image_digest)
                    )
        except ScanNotFoundError:
            self.logger.info(
                "image_scan_not_found",
                repository=repository,
                digest=image.image_digest,
            )
            return []

        self.logger.debug(
            "image_findings_fetched",
            repository=repository,
            digest=image.image_digest,
            pages=paginator.pages_fetched,
            findings=len(findings),
        )
        return findings
