"""
Bounded exponential-backoff retry for single network round trips.

[RetryingInvoker][cfgsync.core.retry.RetryingInvoker] wraps one outbound
operation (an HTTP request, or starting the push connection) and retries it
only when the failure is transient according to
[is_transient()][cfgsync.core.retry.is_transient]. Client errors (4xx),
decode errors, and protocol violations surface immediately.

With the default [RetryConfig][cfgsync.core.retry.RetryConfig] an operation
is attempted at most four times, sleeping 2, 4, and 8 seconds between
attempts.

Examples:
    ```python
    invoker = RetryingInvoker()

    async def login() -> dict[str, Any]:
        async with session.post(url, json=body) as resp:
            resp.raise_for_status()
            return await resp.json()

    data = await invoker.execute(login, name="login")
    ```

See Also:
    [TokenAcquirer][cfgsync.sync.token.TokenAcquirer],
    [SettingsFetcher][cfgsync.sync.settings.SettingsFetcher],
    [ChangeChannel][cfgsync.sync.channel.ChangeChannel]: The three callers,
        which share one invoker per coordinator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from typing import TypeVar

import aiohttp
from pydantic import BaseModel, Field

from .exceptions import ConnectivityError
from .logger import Logger


T = TypeVar("T")


class RetryConfig(BaseModel):
    """Retry strategy for transient failures.

    Note:
        The delay before retry *k* (``k = 1..max_retries``) is
        ``delay_unit * backoff_base ** k``. With the defaults that is
        2, 4, and 8 seconds. ``delay_unit`` exists so tests and
        latency-sensitive hosts can scale the schedule down.

    See Also:
        [SyncConfig][cfgsync.sync.configs.SyncConfig]: Parent configuration
            that embeds this model.
    """

    max_retries: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    backoff_base: float = Field(default=2.0, ge=1.0, description="Exponential backoff base")
    delay_unit: float = Field(default=1.0, ge=0.0, description="Seconds per backoff unit")


def is_transient(exc: BaseException) -> bool:
    """Return whether *exc* is a failure that a retry may resolve.

    Transient: [ConnectivityError][cfgsync.core.exceptions.ConnectivityError],
    connection-level aiohttp errors (refused, reset, server disconnected),
    timeouts, and HTTP responses with status 408 or 5xx. Everything else,
    including other 4xx responses, is definitive.
    """
    if isinstance(exc, ConnectivityError):
        return True
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status == HTTPStatus.REQUEST_TIMEOUT or exc.status >= 500
    return isinstance(exc, aiohttp.ClientConnectionError | aiohttp.ClientPayloadError | TimeoutError)


class RetryingInvoker:
    """Resilience decorator around one network round trip.

    Stateless between calls: a single instance can be shared by several
    components and used concurrently.

    See Also:
        [RetryConfig][cfgsync.core.retry.RetryConfig]: The backoff schedule.
        [is_transient()][cfgsync.core.retry.is_transient]: The failure
            classification.
    """

    def __init__(self, config: RetryConfig | None = None, *, logger: Logger | None = None) -> None:
        self._config = config or RetryConfig()
        self._logger = logger or Logger("cfgsync.retry")

    @property
    def config(self) -> RetryConfig:
        """The retry configuration (read-only)."""
        return self._config

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first one."""
        return self._config.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number *retry* (1-based)."""
        return float(self._config.delay_unit * self._config.backoff_base**retry)

    async def execute(self, operation: Callable[[], Awaitable[T]], *, name: str = "operation") -> T:
        """Run *operation*, retrying transient failures with backoff.

        Args:
            operation: Zero-argument coroutine factory. It is called once
                per attempt, so each attempt gets a fresh request.
            name: Label used in log events.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The last transient error once retries are exhausted,
                or the first non-transient error immediately.
        """
        retry = 0
        while True:
            try:
                return await operation()
            except Exception as e:  # Intentionally broad: classified below, re-raised otherwise
                if not is_transient(e):
                    raise
                if retry >= self._config.max_retries:
                    self._logger.warning(
                        "retry_exhausted",
                        operation=name,
                        attempts=retry + 1,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise
                retry += 1
                delay = self.delay_for(retry)
                self._logger.debug(
                    "retry_scheduled",
                    operation=name,
                    attempt=retry,
                    delay_s=delay,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)
