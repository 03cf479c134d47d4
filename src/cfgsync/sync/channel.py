"""
Push-notification channel that turns hub messages into change events.

[ChangeChannel][cfgsync.sync.channel.ChangeChannel] owns at most one
[HubConnection][cfgsync.utils.transport.HubConnection] to
``{url}_backchannel``. The first connection attempt goes through the
retrying invoker; once open, drops are handled by the connection's own
reconnect schedule, so callers only need
[ensure_open()][cfgsync.sync.channel.ChangeChannel.ensure_open] on first
use and after the connection has given up.

Examples:
    ```python
    async def on_change(event: ChangeEvent) -> None:
        print(event.application, event.environment)

    channel = ChangeChannel("https://cfg.example.com/_backchannel", on_change)
    await channel.ensure_open()
    ...
    await channel.close()
    ```
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import aiohttp

from cfgsync.core.exceptions import ChannelError
from cfgsync.core.logger import Logger
from cfgsync.core.metrics import CHANNEL_STATE, SYNC_COUNTER
from cfgsync.core.retry import RetryingInvoker
from cfgsync.models import CHANGED_SETTING_TARGET, ChangeEvent, ConnectionState
from cfgsync.utils.protocol import HubProtocolError
from cfgsync.utils.transport import HubConnection

from .configs import ChannelConfig


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ChangeHandler = Callable[[ChangeEvent], Awaitable[Any]]
    ConnectionFactory = Callable[..., HubConnection]


_LIVE_STATES = frozenset(
    {ConnectionState.OPEN, ConnectionState.CONNECTING, ConnectionState.RECONNECTING}
)


class ChangeChannel:
    """At most one live push connection delivering change events.

    Args:
        url: Hub URL, normally
            [SyncConfig.backchannel_url][cfgsync.sync.configs.SyncConfig.backchannel_url].
        handler: Awaited with every well-formed change event.
        config: Transport settings.
        invoker: Retry policy for the first connection attempt.
        logger: Diagnostic sink.
        application: Label for the ``channel_state`` gauge and counters.
        connection_factory: Builds the hub connection; receives *url* and
            the transport keyword arguments. Defaults to
            [HubConnection][cfgsync.utils.transport.HubConnection].
    """

    def __init__(
        self,
        url: str,
        handler: ChangeHandler,
        *,
        config: ChannelConfig | None = None,
        invoker: RetryingInvoker | None = None,
        logger: Logger | None = None,
        application: str = "",
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._url = url
        self._handler = handler
        self._config = config or ChannelConfig()
        self._invoker = invoker or RetryingInvoker()
        self._logger = logger or Logger("cfgsync.channel")
        self._application = application
        self._connection_factory = connection_factory or HubConnection
        self._connection: HubConnection | None = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        """State of the current connection, ``ABSENT`` when there is none."""
        if self._connection is None:
            return ConnectionState.ABSENT
        return self._connection.state

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def closed(self) -> bool:
        """Whether [close()][cfgsync.sync.channel.ChangeChannel.close] has been called."""
        return self._closed

    async def ensure_open(self) -> bool:
        """Open the channel unless a connection is already live.

        A no-op while the state is ``OPEN``, ``CONNECTING``, or
        ``RECONNECTING``. Failures are logged and swallowed; the channel
        stays ``ABSENT`` and the next call tries again. Once the channel
        is closed this returns ``False`` without connecting.

        Returns:
            Whether a live connection exists afterwards.
        """
        if self._closed:
            self._logger.debug("channel_open_skipped", url=self._url, reason="closed")
            return False
        if self.state in _LIVE_STATES:
            return True
        try:
            await self.open()
        except ChannelError as e:
            if self._closed:
                return False
            self._logger.warning("channel_open_failed", url=self._url, error=str(e))
            SYNC_COUNTER.labels(application=self._application, name="channel_open_failed").inc()
            return False
        return True

    async def open(self) -> None:
        """Open the channel, raising on failure.

        Idempotent with respect to live connections: concurrent callers
        are serialized and later ones find the connection already live.

        Raises:
            ChannelError: If every connection attempt failed, or the
                channel has been closed.
        """
        async with self._lock:
            if self._closed:
                raise ChannelError(f"push channel {self._url} is closed")
            if self.state in _LIVE_STATES:
                return

            connection = self._connection_factory(
                self._url,
                keepalive_interval=self._config.keepalive_interval,
                server_timeout=self._config.server_timeout,
                handshake_timeout=self._config.handshake_timeout,
                reconnect_delays=self._config.reconnect_delays,
                on_state_change=self._on_state_change,
            )
            connection.on(CHANGED_SETTING_TARGET, self._on_changed_setting)
            self._connection = connection

            try:
                await self._invoker.execute(connection.start, name="channel_open")
            except (HubProtocolError, aiohttp.ClientError, OSError) as e:
                self._connection = None
                self._on_state_change(ConnectionState.ABSENT)
                raise ChannelError(f"cannot open push channel {self._url}: {e}") from e

            self._logger.info("channel_opened", url=self._url)

    async def close(self) -> None:
        """Tear the connection down for good. Idempotent.

        A closed channel never connects again; an open attempt in flight
        finishes first and its connection is stopped here.
        """
        self._closed = True
        async with self._lock:
            connection, self._connection = self._connection, None
            if connection is None:
                return
            await connection.stop()
            self._logger.info("channel_closed", url=self._url)

    def _on_state_change(self, state: ConnectionState) -> None:
        CHANNEL_STATE.labels(application=self._application).set(int(state))
        self._logger.debug("channel_state_changed", url=self._url, state=state.name)

    async def _on_changed_setting(self, arguments: tuple[Any, ...]) -> None:
        try:
            event = ChangeEvent.from_arguments(arguments)
        except (TypeError, ValueError) as e:
            self._logger.warning("change_event_malformed", arguments=list(arguments), error=str(e))
            return

        self._logger.debug(
            "change_event_received",
            application=event.application,
            environment=event.environment,
        )
        await self._handler(event)
