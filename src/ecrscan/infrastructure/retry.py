"""Retry with exponential backoff for upstream calls."""

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from ecrscan.core.config import Settings, get_settings
from ecrscan.core.exceptions import ThrottledError, classify_error
from ecrscan.core.logging import get_logger
from ecrscan.models.base import ErrorKind

T = TypeVar("T")


class RetryPolicy:
    """
    Retries a coroutine according to how its failure is classified.

    Throttling errors back off exponentially (base * 2**(attempt-1), capped,
    with up to 10% jitter) for at most ``throttle_max_retries`` retries.
    Transient errors are retried at most ``transient_max_retries`` times.
    Every other error is raised immediately.
    """

    def __init__(
        self,
        throttle_max_retries: int = 5,
        transient_max_retries: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 20.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.throttle_max_retries = throttle_max_retries
        self.transient_max_retries = transient_max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self.logger = get_logger("retry")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            throttle_max_retries=settings.throttle_max_retries,
            transient_max_retries=settings.transient_max_retries,
            base_delay=settings.backoff_base_seconds,
            max_delay=settings.backoff_max_seconds,
        )

    def max_retries(self, kind: ErrorKind) -> int:
        if kind == ErrorKind.THROTTLED:
            return self.throttle_max_retries
        if kind == ErrorKind.TRANSIENT:
            return self.transient_max_retries
        return 0

    def backoff(self, attempt: int, exc: BaseException | None = None) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** max(0, attempt - 1)))
        if isinstance(exc, ThrottledError) and exc.retry_after:
            delay = max(delay, min(self.max_delay, exc.retry_after))
        return delay + random.uniform(0, delay * 0.1)

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        operation: str = "",
        **kwargs: Any,
    ) -> T:
        """Await ``func(*args, **kwargs)``, retrying retryable failures."""
        retries: dict[ErrorKind, int] = {}
        while True:
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                kind = classify_error(e)
                attempt = retries.get(kind, 0) + 1
                if attempt > self.max_retries(kind):
                    raise
                retries[kind] = attempt
                delay = self.backoff(attempt, e) if kind == ErrorKind.THROTTLED else self.base_delay
                self.logger.warning(
                    "upstream_call_retry",
                    operation=operation or getattr(func, "__name__", "call"),
                    kind=kind.value,
                    attempt=attempt,
                    delay=round(delay, 3),
                    error=str(e),
                )
                await self._sleep(delay)
