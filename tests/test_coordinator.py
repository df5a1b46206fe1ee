"""Tests for the fetch coordinator."""

import asyncio

import pytest

from conftest import FakeRegistryClient, basic_finding, enhanced_finding, image_detail
from ecrscan.core.exceptions import (
    ScanNotFoundError,
    ThrottledError,
    TransientError,
    UnauthorizedError,
)
from ecrscan.models import (
    ErrorKind,
    FetchError,
    FetchState,
    Repository,
    ScanLevel,
    Severity,
    collect_findings,
)
from ecrscan.orchestration.coordinator import FetchCoordinator

DIGEST_1 = "sha256:" + "1" * 64
DIGEST_2 = "sha256:" + "2" * 64
DIGEST_3 = "sha256:" + "3" * 64


def basic(name: str) -> Repository:
    return Repository(name=name, scan_level=ScanLevel.BASIC, scan_type="BASIC")


def enhanced(name: str) -> Repository:
    return Repository(name=name, scan_level=ScanLevel.ENHANCED, scan_type="ENHANCED")


@pytest.fixture
def coordinator_for(settings, retry):
    def factory(client: FakeRegistryClient, **kwargs) -> FetchCoordinator:
        return FetchCoordinator(client, settings=settings, retry=retry, **kwargs)

    return factory


@pytest.mark.asyncio
async def test_basic_and_enhanced_repositories(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"app1": "BASIC", "app2": "ENHANCED"},
        images={"app1": [image_detail(DIGEST_1)], "app2": [image_detail(DIGEST_2)]},
        findings={
            ("app1", DIGEST_1): [[basic_finding()]],
            ("app2", DIGEST_2): [[enhanced_finding()]],
        },
    )

    results = await coordinator_for(client).fetch_all([basic("app1"), enhanced("app2")])

    assert [r.state for r in results] == [FetchState.SUCCEEDED, FetchState.SUCCEEDED]
    first, second = collect_findings(results)
    assert (first.repository, first.scan_level, first.severity) == (
        "app1",
        ScanLevel.BASIC,
        Severity.HIGH,
    )
    assert first.identifier == "CVE-2023-0001"
    assert (second.repository, second.scan_level, second.severity) == (
        "app2",
        ScanLevel.ENHANCED,
        Severity.UNDEFINED,
    )
    assert second.fix_available is True
    assert second.score == 7.5


@pytest.mark.asyncio
async def test_unauthorized_repository_does_not_affect_siblings(coordinator_for, sleeper) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC", "b": "BASIC", "c": "BASIC"},
        images={name: [image_detail(DIGEST_1)] for name in ["a", "b", "c"]},
        findings={(name, DIGEST_1): [[basic_finding()]] for name in ["a", "b", "c"]},
    )
    client.fail("list_images", "b", UnauthorizedError("AccessDenied"))

    results = await coordinator_for(client).fetch_all([basic("a"), basic("b"), basic("c")])

    assert [r.repository for r in results] == ["a", "b", "c"]
    assert [r.succeeded for r in results] == [True, False, True]
    assert results[1].error.kind == ErrorKind.UNAUTHORIZED
    assert results[1].findings == []
    assert [f.repository for f in collect_findings(results)] == ["a", "c"]
    # Unauthorized is never retried
    assert len(client.calls_to("list_images", "b")) == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_throttling_is_retried_with_growing_backoff(coordinator_for, sleeper) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC"},
        images={"a": [image_detail(DIGEST_1)]},
        findings={("a", DIGEST_1): [[basic_finding()]]},
    )
    client.fail("get_findings", f"a@{DIGEST_1}", *[ThrottledError("Rate exceeded")] * 3)

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.succeeded
    assert len(result.findings) == 1
    assert len(client.calls_to("get_findings")) == 4
    assert len(sleeper.delays) == 3
    assert sleeper.delays == sorted(sleeper.delays)
    assert sleeper.delays[0] < sleeper.delays[-1]


@pytest.mark.asyncio
async def test_throttling_beyond_retry_limit_fails_the_repository(
    coordinator_for, settings, sleeper
) -> None:
    client = FakeRegistryClient(repositories={"a": "BASIC"}, images={"a": []})
    client.fail("list_images", "a", *[ThrottledError("Rate exceeded")] * 10)

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.failed
    assert result.error.kind == ErrorKind.THROTTLED
    assert len(client.calls_to("list_images")) == settings.throttle_max_retries + 1
    assert all(delay <= settings.backoff_max_seconds * 1.1 for delay in sleeper.delays)


@pytest.mark.asyncio
async def test_transient_errors_have_their_own_bound(coordinator_for, settings) -> None:
    client = FakeRegistryClient(repositories={"a": "BASIC"}, images={"a": []})
    client.fail("list_images", "a", *[TransientError("connection reset")] * 5)

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.error.kind == ErrorKind.TRANSIENT
    assert len(client.calls_to("list_images")) == settings.transient_max_retries + 1


@pytest.mark.asyncio
async def test_transient_error_recovers(coordinator_for) -> None:
    client = FakeRegistryClient(repositories={"a": "BASIC"}, images={"a": []})
    client.fail("list_images", "a", ConnectionResetError("reset by peer"))

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.succeeded
    assert len(client.calls_to("list_images")) == 2


@pytest.mark.asyncio
async def test_unsupported_scan_level_fails_without_calls(coordinator_for) -> None:
    client = FakeRegistryClient(repositories={"manual": "MANUAL"})
    repository = Repository(name="manual", scan_level=None, scan_type="MANUAL")

    (result,) = await coordinator_for(client).fetch_all([repository])

    assert result.failed
    assert result.error.kind == ErrorKind.UNSUPPORTED_SCAN_LEVEL
    assert "MANUAL" in result.error.reason
    assert client.calls == []


@pytest.mark.asyncio
async def test_concurrency_is_bounded(coordinator_for) -> None:
    names = [f"repo-{i}" for i in range(10)]
    client = FakeRegistryClient(
        repositories={name: "BASIC" for name in names},
        images={name: [image_detail(DIGEST_1)] for name in names},
        findings={(name, DIGEST_1): [[basic_finding()]] for name in names},
        delay=0.01,
    )
    coordinator = coordinator_for(client, max_concurrent=3)

    results = await coordinator.fetch_all([basic(name) for name in names])

    assert all(r.succeeded for r in results)
    assert coordinator.peak_in_flight == 3
    assert client.peak_active <= 3
    assert coordinator.in_flight == 0


@pytest.mark.asyncio
async def test_results_keep_input_order(coordinator_for) -> None:
    names = ["zeta", "alpha", "mu", "beta"]
    client = FakeRegistryClient(
        repositories={name: "BASIC" for name in names},
        images={name: [image_detail(DIGEST_1)] for name in names},
        findings={(name, DIGEST_1): [[basic_finding(name=f"CVE-{name}")]] for name in names},
    )

    results = await coordinator_for(client).fetch_all([basic(name) for name in names])

    assert [r.repository for r in results] == names
    assert [f.identifier for f in collect_findings(results)] == [f"CVE-{n}" for n in names]


@pytest.mark.asyncio
async def test_findings_keep_page_and_image_order(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC"},
        images={"a": [image_detail(DIGEST_1), image_detail(DIGEST_2)]},
        findings={
            ("a", DIGEST_1): [
                [basic_finding(name="CVE-1"), basic_finding(name="CVE-2")],
                [basic_finding(name="CVE-3")],
            ],
            ("a", DIGEST_2): [[basic_finding(name="CVE-4")]],
        },
    )

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert [f.identifier for f in result.findings] == ["CVE-1", "CVE-2", "CVE-3", "CVE-4"]
    assert [f.image_digest for f in result.findings] == [DIGEST_1] * 3 + [DIGEST_2]


@pytest.mark.asyncio
async def test_images_without_findings_are_not_queried(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC"},
        images={
            "a": [
                image_detail(DIGEST_1),
                image_detail(DIGEST_2, counts={}),
                image_detail(DIGEST_3, scanned=False),
                image_detail("sha256:helm", media_type="application/vnd.cncf.helm.config.v1+json"),
            ]
        },
        findings={("a", DIGEST_1): [[basic_finding()]]},
    )

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.succeeded
    assert [image.image_digest for image in result.images] == [DIGEST_1, DIGEST_2, DIGEST_3]
    assert result.images_scanned == 2
    assert [c[1] for c in client.calls_to("get_findings")] == [f"a@{DIGEST_1}"]


@pytest.mark.asyncio
async def test_missing_scan_skips_the_image(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC"},
        images={"a": [image_detail(DIGEST_1), image_detail(DIGEST_2)]},
        findings={("a", DIGEST_2): [[basic_finding(name="CVE-kept")]]},
    )
    client.fail("get_findings", f"a@{DIGEST_1}", ScanNotFoundError("no scan"))

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.succeeded
    assert [f.identifier for f in result.findings] == ["CVE-kept"]


@pytest.mark.asyncio
async def test_malformed_finding_does_not_fail_the_repository(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "ENHANCED"},
        images={"a": [image_detail(DIGEST_1)]},
        findings={("a", DIGEST_1): [[enhanced_finding(), {"findingArn": 5, "severity": []}]]},
    )

    (result,) = await coordinator_for(client).fetch_all([enhanced("a")])

    assert result.succeeded
    assert len(result.findings) == 2
    assert result.findings[1].severity == Severity.UNDEFINED


@pytest.mark.asyncio
async def test_summary_mode_skips_findings(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC"},
        images={"a": [image_detail(DIGEST_1)]},
        findings={("a", DIGEST_1): [[basic_finding()]]},
    )

    (result,) = await coordinator_for(client).fetch_all([basic("a")], include_findings=False)

    assert result.succeeded
    assert result.findings == []
    assert len(result.images) == 1
    assert client.calls_to("get_findings") == []


@pytest.mark.asyncio
async def test_empty_repository_succeeds(coordinator_for) -> None:
    client = FakeRegistryClient(repositories={"a": "BASIC"})

    (result,) = await coordinator_for(client).fetch_all([basic("a")])

    assert result.succeeded
    assert result.findings == []
    assert result.completed_at is not None
    assert result.duration_seconds >= 0


@pytest.mark.asyncio
async def test_cancellation_propagates(coordinator_for) -> None:
    client = FakeRegistryClient(
        repositories={"a": "BASIC", "b": "BASIC"},
        images={"a": [], "b": []},
        delay=10,
    )
    coordinator = coordinator_for(client)

    task = asyncio.create_task(coordinator.fetch_all([basic("a"), basic("b")]))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert coordinator.in_flight == 0


@pytest.mark.asyncio
async def test_resolution_error_is_reported_with_its_kind(coordinator_for) -> None:
    client = FakeRegistryClient(repositories={"a": "BASIC"})
    error = FetchError(kind=ErrorKind.UNAUTHORIZED, reason="not allowed to read scan configuration")
    repository = Repository(name="a", resolution_error=error)

    (result,) = await coordinator_for(client).fetch_all([repository])

    assert result.failed
    assert result.error == error
    assert result.completed_at is not None
    assert client.calls == []
