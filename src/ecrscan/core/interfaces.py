"""Abstract interface for the upstream registry API."""

from abc import ABC, abstractmethod
from typing import Any


class IRegistryClient(ABC):
    """
    Async view of the container registry API.

    Implementations return ECR-shaped response dictionaries and raise the
    exceptions from ``ecrscan.core.exceptions`` so callers can classify
    failures. Instances are shared by concurrent fetch tasks and must be
    safe for concurrent use.
    """

    @abstractmethod
    async def list_repositories(
        self,
        next_token: str | None = None,
        names: list[str] | None = None,
    ) -> dict[str, Any]:
        """Return one page of ``{"repositories": [...], "nextToken": ...}``."""
        ...

    @abstractmethod
    async def get_scan_types(self, names: list[str]) -> dict[str, str | None]:
        """Return the configured scan type (``BASIC``, ``ENHANCED``, ...) per repository."""
        ...

    @abstractmethod
    async def list_images(
        self,
        repository: str,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        """Return one page of ``{"imageDetails": [...], "nextToken": ...}``."""
        ...

    @abstractmethod
    async def get_findings(
        self,
        repository: str,
        image_digest: str,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        """Return one page of ``{"imageScanFindings": {...}, "nextToken": ...}``."""
        ...
