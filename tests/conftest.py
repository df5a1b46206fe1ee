"""Pytest configuration and fixtures."""

import asyncio
from typing import Any

import pytest
import structlog

from ecrscan.core.config import DOCKER_IMAGE_CONFIG_MEDIA_TYPE, Settings
from ecrscan.core.exceptions import RepositoryNotFoundError
from ecrscan.core.interfaces import IRegistryClient
from ecrscan.infrastructure.retry import RetryPolicy


class FakeRegistryClient(IRegistryClient):
    """
    In-memory registry.

    ``repositories`` maps names to scan types, ``images`` maps a repository to
    its ``imageDetails`` entries and ``findings`` maps ``(repository, digest)``
    to a list of pages of raw finding records. ``fail()`` queues exceptions
    raised by the next calls of an operation for a key.
    """

    def __init__(
        self,
        repositories: dict[str, str | None] | None = None,
        images: dict[str, list[dict[str, Any]]] | None = None,
        findings: dict[tuple[str, str], list[list[Any]]] | None = None,
        repository_pages: list[list[str]] | None = None,
        page_size: int = 2,
        delay: float = 0.0,
    ) -> None:
        self.repositories = repositories or {}
        self.images = images or {}
        self.findings = findings or {}
        self.repository_pages = repository_pages
        self.page_size = page_size
        self.delay = delay
        self.errors: dict[tuple[str, str], list[BaseException]] = {}
        self.calls: list[tuple[str, str, str | None]] = []
        self.active = 0
        self.peak_active = 0

    def fail(self, operation: str, key: str, *errors: BaseException) -> None:
        self.errors.setdefault((operation, key), []).extend(errors)

    def calls_to(self, operation: str, key: str | None = None) -> list[tuple[str, str, str | None]]:
        return [c for c in self.calls if c[0] == operation and (key is None or c[1] == key)]

    async def _enter(self, operation: str, key: str, next_token: str | None = None) -> None:
        self.calls.append((operation, key, next_token))
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            pending = self.errors.get((operation, key))
            if pending:
                raise pending.pop(0)
        finally:
            self.active -= 1

    def _slice(self, items: list[Any], next_token: str | None) -> tuple[list[Any], str | None]:
        start = int(next_token or 0)
        end = start + self.page_size
        return items[start:end], (str(end) if end < len(items) else None)

    async def list_repositories(
        self,
        next_token: str | None = None,
        names: list[str] | None = None,
    ) -> dict[str, Any]:
        await self._enter("list_repositories", ",".join(names) if names else "*", next_token)
        if names:
            missing = [n for n in names if n not in self.repositories]
            if missing:
                raise RepositoryNotFoundError(f"Repository {missing[0]} not found")
            return {"repositories": [{"repositoryName": n} for n in names]}

        if self.repository_pages is not None:
            index = int(next_token or 0)
            page = self.repository_pages[index]
            token = str(index + 1) if index + 1 < len(self.repository_pages) else None
        else:
            page, token = self._slice(list(self.repositories), next_token)
        response: dict[str, Any] = {"repositories": [{"repositoryName": n} for n in page]}
        if token:
            response["nextToken"] = token
        return response

    async def get_scan_types(self, names: list[str]) -> dict[str, str | None]:
        await self._enter("get_scan_types", "*")
        return {name: self.repositories.get(name) for name in names}

    async def list_images(self, repository: str, next_token: str | None = None) -> dict[str, Any]:
        await self._enter("list_images", repository, next_token)
        if repository not in self.repositories:
            raise RepositoryNotFoundError(f"Repository {repository} not found")
        page, token = self._slice(self.images.get(repository, []), next_token)
        response: dict[str, Any] = {"imageDetails": page}
        if token:
            response["nextToken"] = token
        return response

    async def get_findings(
        self,
        repository: str,
        image_digest: str,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        await self._enter("get_findings", f"{repository}@{image_digest}", next_token)
        pages = self.findings.get((repository, image_digest), [[]])
        index = int(next_token or 0)
        key = "enhancedFindings" if self.repositories.get(repository) == "ENHANCED" else "findings"
        response: dict[str, Any] = {"imageScanFindings": {key: pages[index]}}
        if index + 1 < len(pages):
            response["nextToken"] = str(index + 1)
        return response


class SleepRecorder:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def image_detail(
    digest: str,
    counts: dict[str, int] | None = None,
    tags: list[str] | None = None,
    media_type: str | None = DOCKER_IMAGE_CONFIG_MEDIA_TYPE,
    scanned: bool = True,
) -> dict[str, Any]:
    """An ``imageDetails`` entry as returned by describe_images."""
    detail: dict[str, Any] = {"imageDigest": digest, "imageTags": tags or []}
    if media_type:
        detail["artifactMediaType"] = media_type
    if scanned:
        detail["imageScanStatus"] = {"status": "COMPLETE"}
        detail["imageScanFindingsSummary"] = {
            "imageScanCompletedAt": "2024-03-01T12:00:00+00:00",
            "vulnerabilitySourceUpdatedAt": "2024-02-28T08:30:00+00:00",
            "findingSeverityCounts": counts if counts is not None else {"HIGH": 1},
        }
    return detail


def basic_finding(
    name: str = "CVE-2023-0001",
    severity: str = "HIGH",
    package: str = "openssl",
    version: str = "1.1.1",
    description: str = "Buffer overflow in openssl",
    cve: str | None = None,
) -> dict[str, Any]:
    attributes = [
        {"key": "package_version", "value": version},
        {"key": "package_name", "value": package},
        {"key": "CVSS2_SCORE", "value": "5.0"},
    ]
    if cve:
        attributes.append({"key": "CVE", "value": cve})
    return {
        "name": name,
        "description": description,
        "uri": f"https://security-tracker.debian.org/tracker/{name}",
        "severity": severity,
        "attributes": attributes,
    }


def enhanced_finding(
    arn: str = "arn:aws:inspector2:us-east-1:123456789012:finding/abc",
    severity: str = "UNTRIAGED",
    fix_available: Any = "YES",
    score: float | None = 7.5,
    packages: list[tuple[str, str]] | None = None,
    description: str = "Use after free in libxml2",
) -> dict[str, Any]:
    finding: dict[str, Any] = {
        "findingArn": arn,
        "awsAccountId": "123456789012",
        "description": description,
        "title": "CVE-2024-1234 - libxml2",
        "severity": severity,
        "status": "ACTIVE",
        "type": "PACKAGE_VULNERABILITY",
        "fixAvailable": fix_available,
        "packageVulnerabilityDetails": {
            "vulnerabilityId": "CVE-2024-1234",
            "source": "NVD",
            "vulnerablePackages": [
                {"name": name, "version": version, "fixedInVersion": "2.0.0"}
                for name, version in (packages or [("libxml2", "2.9.14")])
            ],
        },
        "remediation": {"recommendation": {"text": "Upgrade libxml2"}},
    }
    if score is not None:
        finding["scoreDetails"] = {"cvss": {"score": score, "version": "3.1"}}
    return finding


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep structlog configuration from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        max_concurrent_repositories=3,
        throttle_max_retries=3,
        transient_max_retries=2,
        backoff_base_seconds=0.5,
        backoff_max_seconds=4.0,
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retry(settings: Settings, sleeper: SleepRecorder) -> RetryPolicy:
    """Retry policy that does not actually sleep."""
    return RetryPolicy(
        throttle_max_retries=settings.throttle_max_retries,
        transient_max_retries=settings.transient_max_retries,
        base_delay=settings.backoff_base_seconds,
        max_delay=settings.backoff_max_seconds,
        sleep=sleeper,
    )
