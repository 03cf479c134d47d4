"""
Orchestration of loads, reloads, and the push channel for one scope.

[SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator] is the only
component a host talks to. It owns the current
[SettingsSnapshot][cfgsync.models.settings.SettingsSnapshot], serializes
loads, filters change notifications against its scope, and signals reload
observers after every matching reload.

Each load builds a new snapshot from nothing and publishes it with a single
reference assignment: keys removed remotely disappear locally, and readers
see either the previous snapshot or the new one, never a mix.

Nothing raised inside the engine escapes
[load()][cfgsync.sync.coordinator.SyncCoordinator.load]: an unreachable
service yields an empty snapshot and a logged error, never an exception in
the host's configuration path.

Examples:
    ```python
    coordinator = SyncCoordinator.from_yaml("config/cfgsync.yaml")
    unsubscribe = coordinator.on_reload(lambda: print("settings changed"))

    async with coordinator:
        timeout = coordinator.snapshot.get("Database:Timeout")
        ...
    ```

See Also:
    [SyncConfig][cfgsync.sync.configs.SyncConfig]: The configuration model.
    [TokenAcquirer][cfgsync.sync.token.TokenAcquirer],
    [SettingsFetcher][cfgsync.sync.settings.SettingsFetcher],
    [ChangeChannel][cfgsync.sync.channel.ChangeChannel]: The collaborators
        driven by each load.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import TYPE_CHECKING, Any, Self

import pydantic

from cfgsync.core.exceptions import AuthenticationError, ConfigurationError
from cfgsync.core.logger import Logger
from cfgsync.core.metrics import LOAD_DURATION_SECONDS, SNAPSHOT_SIZE, SYNC_COUNTER
from cfgsync.core.retry import RetryingInvoker
from cfgsync.core.yaml import load_yaml
from cfgsync.models import ChangeEvent, ConnectionState, SettingsSnapshot

from .channel import ChangeChannel
from .configs import SyncConfig
from .settings import SettingsFetcher
from .token import TokenAcquirer


if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path
    from types import TracebackType

    from cfgsync.models import Scope

    ReloadHandler = Callable[[], Any]


class SyncCoordinator:
    """Keeps a local settings snapshot in step with the remote service.

    Args:
        config: Validated client configuration.
        logger: Diagnostic sink, handed down to every component. Defaults
            to ``Logger("cfgsync.coordinator")``.
        invoker: Retry policy shared by login, settings, and channel.
            Built from ``config.retry`` when omitted.
        acquirer: Token source. Built from *config* when omitted.
        fetcher: Settings source. Built from *config* when omitted.
        channel: Push channel. Built from *config* when omitted and
            ``config.reload_on_change`` is set; ignored otherwise.

    Note:
        Push reload requires ``reload_on_change``. Without it no channel
        is ever created, so no connection or task is held.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        logger: Logger | None = None,
        invoker: RetryingInvoker | None = None,
        acquirer: TokenAcquirer | None = None,
        fetcher: SettingsFetcher | None = None,
        channel: ChangeChannel | None = None,
    ) -> None:
        self._config = config
        self._scope = config.scope
        base_logger = logger or Logger("cfgsync.coordinator")
        self._logger = base_logger.bind(
            application=self._scope.application, environment=self._scope.environment
        )
        self._invoker = invoker or RetryingInvoker(config.retry, logger=self._logger)
        self._acquirer = acquirer or TokenAcquirer(
            invoker=self._invoker,
            logger=self._logger,
            max_response_size=config.max_response_size,
        )
        self._fetcher = fetcher or SettingsFetcher(
            invoker=self._invoker,
            logger=self._logger,
            max_response_size=config.max_response_size,
        )

        self._channel: ChangeChannel | None = None
        if config.reload_on_change:
            self._channel = channel or ChangeChannel(
                config.backchannel_url,
                self._on_push_event,
                config=config.channel,
                invoker=self._invoker,
                logger=self._logger,
                application=self._scope.application,
            )

        self._snapshot = SettingsSnapshot.empty()
        self._reload_handlers: list[ReloadHandler] = []
        self._lock = asyncio.Lock()
        self._last_error: BaseException | None = None
        self._last_loaded_at: float | None = None
        self._closed = False

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create a coordinator from a configuration dictionary.

        Args:
            data: Configuration parsed into
                [SyncConfig][cfgsync.sync.configs.SyncConfig].
            **kwargs: Additional keyword arguments passed to the constructor.

        Raises:
            ConfigurationError: If *data* is not a valid configuration.
        """
        try:
            config = SyncConfig(**data)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid cfgsync configuration: {e}") from e
        return cls(config, **kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Create a coordinator from a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is not a valid configuration.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SyncConfig:
        """The client configuration (read-only)."""
        return self._config

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def snapshot(self) -> SettingsSnapshot:
        """The settings installed by the most recent load."""
        return self._snapshot

    @property
    def last_error(self) -> BaseException | None:
        """Why the most recent load produced no settings, or ``None``."""
        return self._last_error

    @property
    def last_loaded_at(self) -> float | None:
        """Unix time at which the most recent load finished."""
        return self._last_loaded_at

    @property
    def channel_state(self) -> ConnectionState:
        if self._channel is None:
            return ConnectionState.ABSENT
        return self._channel.state

    # -------------------------------------------------------------------------
    # Reload observers
    # -------------------------------------------------------------------------

    def on_reload(self, handler: ReloadHandler) -> Callable[[], None]:
        """Register *handler* to run after every scope-matching reload.

        The handler runs whether or not that reload succeeded; a failed
        reload leaves an empty
        [snapshot][cfgsync.sync.coordinator.SyncCoordinator.snapshot] and
        sets [last_error][cfgsync.sync.coordinator.SyncCoordinator.last_error],
        which the handler can check. A plain
        [load()][cfgsync.sync.coordinator.SyncCoordinator.load] does not
        run it.

        The handler takes no arguments and may be a plain function or a
        coroutine function. Exceptions it raises are logged and do not
        affect other handlers.

        Returns:
            A callable that unregisters the handler. Calling it twice is
            harmless.
        """
        self._reload_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._reload_handlers:
                self._reload_handlers.remove(handler)

        return unsubscribe

    async def _notify_reload(self) -> None:
        for handler in list(self._reload_handlers):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # Intentionally broad: one observer must not break the others
                self._logger.error(
                    "reload_handler_failed",
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    error_type=type(e).__name__,
                )

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> bool:
        """Replace the snapshot with the current remote settings.

        Runs login and the settings query, installs whatever they produced
        (an empty snapshot on any failure), then makes sure the push
        channel is open when push reload is enabled and the coordinator has
        not been closed. Concurrent calls are serialized.

        Returns:
            Whether a token was obtained and the settings were installed.
            ``False`` means the snapshot is now empty and
            [last_error][cfgsync.sync.coordinator.SyncCoordinator.last_error]
            says why.
        """
        async with self._lock:
            loaded = await self._load_snapshot()

        if self._channel is None:
            self._logger.debug("channel_disabled")
        elif self._closed:
            self._logger.debug("channel_skipped", reason="closed")
        else:
            await self._channel.ensure_open()
        return loaded

    async def _load_snapshot(self) -> bool:
        self._logger.info("load_started", url=self._config.url)
        started = time.monotonic()
        snapshot = SettingsSnapshot.empty()
        error: BaseException | None = None

        try:
            token = await self._acquirer.acquire(
                self._config.credentials, self._config.url, self._config.timeout
            )
            if token is None:
                error = AuthenticationError("no usable access token")
            else:
                settings = await self._fetcher.fetch(
                    token, self._scope, self._config.url, self._config.timeout
                )
                snapshot = SettingsSnapshot.from_settings(settings)
        except Exception as e:  # Intentionally broad: load() absorbs every failure
            error = e
            snapshot = SettingsSnapshot.empty()

        self._snapshot = snapshot
        self._last_error = error
        self._last_loaded_at = time.time()

        duration = time.monotonic() - started
        LOAD_DURATION_SECONDS.labels(application=self._scope.application).observe(duration)
        SNAPSHOT_SIZE.labels(application=self._scope.application).set(len(snapshot))
        self._logger.debug("load_timing", duration_s=round(duration, 4))

        if error is not None:
            SYNC_COUNTER.labels(application=self._scope.application, name="loads_failed").inc()
            self._logger.error(
                "load_failed", error=str(error) or type(error).__name__, error_type=type(error).__name__
            )
            return False

        SYNC_COUNTER.labels(application=self._scope.application, name="loads_success").inc()
        self._logger.info("load_completed", count=len(snapshot))
        return True

    # -------------------------------------------------------------------------
    # Change events
    # -------------------------------------------------------------------------

    async def on_change_event(self, application: str, environment: str | None = None) -> bool:
        """Reload if a change to (*application*, *environment*) concerns this client.

        Matching events trigger a full load followed by the reload
        observers; other events are ignored.

        Returns:
            Whether a reload ran.
        """
        event = ChangeEvent(application, environment)
        if not self._scope.matches(event):
            SYNC_COUNTER.labels(application=self._scope.application, name="events_ignored").inc()
            self._logger.debug(
                "change_event_ignored",
                event_application=event.application,
                event_environment=event.environment,
            )
            return False

        SYNC_COUNTER.labels(application=self._scope.application, name="reloads").inc()
        await self.load()
        await self._notify_reload()
        return True

    async def _on_push_event(self, event: ChangeEvent) -> None:
        await self.on_change_event(event.application, event.environment)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the push channel for good. The snapshot stays readable.

        Later loads still refresh the snapshot but never reopen the channel.
        """
        self._closed = True
        if self._channel is not None:
            await self._channel.close()

    async def __aenter__(self) -> Self:
        """Run the initial load on context entry."""
        await self.load()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        """Close the push channel on context exit."""
        await self.close()
