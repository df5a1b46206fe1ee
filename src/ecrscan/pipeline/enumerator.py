"""Repository discovery and scan level resolution."""

import asyncio

from ecrscan.core.exceptions import RepositoryNotFoundError, classify_error
from ecrscan.core.interfaces import IRegistryClient
from ecrscan.core.logging import get_logger
from ecrscan.infrastructure.retry import RetryPolicy
from ecrscan.models import FetchError, Repository, RepositoryMode, ScanLevel
from ecrscan.pipeline.paginator import RepositoryPaginator

SCAN_LEVELS: dict[str, ScanLevel] = {
    "BASIC": ScanLevel.BASIC,
    "ENHANCED": ScanLevel.ENHANCED,
}


class RepositoryEnumerator:
    """Lists target repositories and resolves each one's scan level."""

    def __init__(self, client: IRegistryClient, retry: RetryPolicy | None = None) -> None:
        self.client = client
        self.retry = retry or RetryPolicy.from_settings()
        self.logger = get_logger("enumerator")

    async def enumerate(self, mode: RepositoryMode) -> list[Repository]:
        """
        Return the target repositories in listing order.

        Raises:
            RepositoryNotFoundError: the named repository does not exist
        """
        names = await self._list_names(mode)
        if not names:
            return []

        try:
            scan_types = await self.retry.call(
                self.client.get_scan_types, names, operation="get_scan_types"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Every repository stays unresolved and fails with this error
            error = FetchError(kind=classify_error(e), reason=str(e) or type(e).__name__)
            self.logger.warning(
                "scan_configuration_unavailable",
                kind=error.kind.value,
                error=error.reason,
            )
            return [Repository(name=name, resolution_error=error) for name in names]

        repositories = [self._resolve(name, scan_types.get(name)) for name in names]
        self.logger.info(
            "repositories_enumerated",
            total=len(repositories),
            unresolved=sum(1 for r in repositories if not r.is_resolved),
        )
        return repositories

    async def _list_names(self, mode: RepositoryMode) -> list[str]:
        paginator = RepositoryPaginator(
            self.client,
            names=None if mode.is_all else [mode.name],
        )
        names: list[str] = []
        seen: set[str] = set()

        try:
            while True:
                page = await self.retry.call(paginator.next_page, operation="list_repositories")
                if page is None:
                    break
                for record in page.records:
                    name = record.get("repositoryName")
                    if not name:
                        self.logger.warning("repository_name_missing", record=record)
                        continue
                    if name in seen:
                        continue
                    seen.add(name)
                    names.append(name)
        except RepositoryNotFoundError as e:
            if e.repository is None:
                e.repository = mode.name
            raise

        if not mode.is_all and mode.name not in seen:
            raise RepositoryNotFoundError(
                f"Repository '{mode.name}' not found",
                repository=mode.name,
            )
        if not mode.is_all:
            return [mode.name]
        return names

    def _resolve(self, name: str, scan_type: str | None) -> Repository:
        scan_level = SCAN_LEVELS.get((scan_type or "").upper())
        if scan_level is None:
            self.logger.warning("scan_level_unsupported", repository=name, scan_type=scan_type)
        return Repository(name=name, scan_level=scan_level, scan_type=scan_type)
