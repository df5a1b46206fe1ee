"""Amazon ECR registry client backed by boto3."""

import asyncio
from typing import Any, Callable

import boto3
from aiolimiter import AsyncLimiter
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from ecrscan.core.config import Settings, get_settings
from ecrscan.core.exceptions import (
    ConfigurationError,
    EcrScanError,
    RepositoryNotFoundError,
    ScanNotFoundError,
    ThrottledError,
    TransientError,
    UnauthorizedError,
)
from ecrscan.core.interfaces import IRegistryClient
from ecrscan.core.logging import get_logger

THROTTLING_CODES = {
    "ThrottlingException",
    "ThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "LimitExceededException",
    "SlowDown",
}
UNAUTHORIZED_CODES = {
    "AccessDeniedException",
    "AccessDenied",
    "UnauthorizedOperation",
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "ExpiredTokenException",
    "InvalidClientTokenId",
}
NOT_FOUND_CODES = {
    "RepositoryNotFoundException",
    "ImageNotFoundException",
}
TRANSIENT_CODES = {
    "ServerException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalFailure",
    "InternalServerError",
    "RequestTimeout",
    "RequestTimeoutException",
}

# Scan frequencies under which the enhanced scanner produces findings
ENHANCED_SCAN_FREQUENCIES = {"SCAN_ON_PUSH", "CONTINUOUS_SCAN"}


def translate_error(exc: Exception, repository: str | None = None) -> Exception:
    """Map a botocore exception onto the ecrscan error taxonomy."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message") or str(exc)
        details = {"code": code}
        if code in THROTTLING_CODES:
            return ThrottledError(message, details=details)
        if code in UNAUTHORIZED_CODES:
            return UnauthorizedError(message, details=details)
        if code in NOT_FOUND_CODES:
            return RepositoryNotFoundError(message, repository=repository, details=details)
        if code == "ScanNotFoundException":
            return ScanNotFoundError(message, details=details)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in TRANSIENT_CODES or status >= 500:
            return TransientError(message, details=details)
        return EcrScanError(message, details=details)
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return UnauthorizedError(str(exc))
    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return TransientError(str(exc))
    if isinstance(exc, BotoCoreError):
        return EcrScanError(str(exc))
    return exc


class EcrRegistryClient(IRegistryClient):
    """
    Async adapter over a boto3 ECR client.

    boto3 clients are thread-safe, so one client is shared and each call runs
    in a worker thread. Calls are paced by a token bucket limiter. botocore's
    own retries are disabled; retry decisions belong to the caller.
    """

    def __init__(
        self,
        client: Any | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.logger = get_logger("ecr_client")
        self._client = client or self._create_client()
        self._limiter = AsyncLimiter(self.settings.api_requests_per_second, 1.0)

    def _create_client(self) -> Any:
        config = Config(
            retries={"total_max_attempts": 1, "mode": "standard"},
            max_pool_connections=max(10, self.settings.max_concurrent_repositories * 2),
        )
        try:
            session = boto3.Session(
                profile_name=self.settings.aws_profile,
                region_name=self.settings.aws_region,
            )
            return session.client("ecr", config=config)
        except BotoCoreError as e:
            # Missing region, unknown profile, broken shared config
            raise ConfigurationError(f"Cannot create ECR client: {e}") from e

    async def _call(
        self,
        operation: str,
        repository: str | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        method: Callable[..., dict[str, Any]] = getattr(self._client, operation)
        async with self._limiter:
            try:
                return await asyncio.to_thread(method, **params)
            except (ClientError, BotoCoreError) as e:
                translated = translate_error(e, repository)
                self.logger.debug(
                    "ecr_call_failed",
                    operation=operation,
                    repository=repository,
                    error=str(e),
                    kind=type(translated).__name__,
                )
                raise translated from e

    async def list_repositories(
        self,
        next_token: str | None = None,
        names: list[str] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if names:
            params["repositoryNames"] = names
        else:
            params["maxResults"] = self.settings.page_size
        if next_token:
            params["nextToken"] = next_token
        repository = names[0] if names and len(names) == 1 else None
        return await self._call("describe_repositories", repository=repository, **params)

    async def get_scan_types(self, names: list[str]) -> dict[str, str | None]:
        """
        Resolve the scan type of each repository.

        Under a BASIC registry configuration every repository is scanned with
        basic scanning. Under ENHANCED, only repositories whose scan frequency
        is scan-on-push or continuous get enhanced findings; the others report
        their frequency (e.g. ``MANUAL``), which is not a supported level.
        """
        registry = await self._call("get_registry_scanning_configuration")
        registry_type = (registry.get("scanningConfiguration") or {}).get("scanType", "BASIC")
        if registry_type != "ENHANCED":
            return {name: registry_type for name in names}

        scan_types: dict[str, str | None] = {name: None for name in names}
        # The batch API accepts at most 25 names per call
        for i in range(0, len(names), 25):
            batch = names[i : i + 25]
            response = await self._call(
                "batch_get_repository_scanning_configuration",
                repositoryNames=batch,
            )
            for config in response.get("scanningConfigurations", []):
                frequency = config.get("scanFrequency")
                scan_types[config["repositoryName"]] = (
                    "ENHANCED" if frequency in ENHANCED_SCAN_FREQUENCIES else frequency
                )
        return scan_types

    async def list_images(
        self,
        repository: str,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "repositoryName": repository,
            "maxResults": self.settings.page_size,
        }
        if next_token:
            params["nextToken"] = next_token
        return await self._call("describe_images", repository=repository, **params)

    async def get_findings(
        self,
        repository: str,
        image_digest: str,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "repositoryName": repository,
            "imageId": {"imageDigest": image_digest},
            "maxResults": min(self.settings.page_size, 1000),
        }
        if next_token:
            params["nextToken"] = next_token
        return await self._call("describe_image_scan_findings", repository=repository, **params)
