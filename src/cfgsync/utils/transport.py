"""WebSocket hub connection for the push backchannel.

Provides [HubConnection][cfgsync.utils.transport.HubConnection], an
aiohttp-based SignalR client that negotiates, connects, performs the JSON
protocol handshake, and then dispatches server invocations to registered
handlers until it is stopped.

The connection keeps itself alive: it pings the server every
``keepalive_interval`` seconds and treats ``server_timeout`` seconds of
silence as a lost connection. After an unexpected drop it walks the
``reconnect_delays`` schedule (``RECONNECTING``); success returns it to
``OPEN``, exhaustion leaves it ``ABSENT``.

Note:
    Handlers run as separate tasks so a slow handler never stalls the read
    loop. Handler exceptions are logged and otherwise ignored.

    Errors raised by [start()][cfgsync.utils.transport.HubConnection.start]
    are left unwrapped (aiohttp errors, ``TimeoutError``,
    [HubProtocolError][cfgsync.utils.protocol.HubProtocolError]) so the
    caller can classify them for retry.

See Also:
    [cfgsync.utils.protocol][cfgsync.utils.protocol]: Framing and parsing
        used by this module.
    [ChangeChannel][cfgsync.sync.channel.ChangeChannel]: The only consumer,
        which wraps [start()][cfgsync.utils.transport.HubConnection.start]
        in the retrying invoker.

Examples:
    ```python
    async def on_changed(arguments: tuple[Any, ...]) -> None:
        print("changed:", arguments)

    hub = HubConnection("https://cfg.example.com/_backchannel")
    hub.on("ChangedSetting", on_changed)
    await hub.start()
    ...
    await hub.stop()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, Final

import aiohttp

from cfgsync.models.constants import ConnectionState

from .http import read_bounded_json
from .protocol import (
    WEBSOCKETS_TRANSPORT,
    HubMessage,
    HubProtocolError,
    MessageType,
    NegotiateResponse,
    RecordReader,
    encode_handshake,
    encode_ping,
    negotiate_url,
    parse_handshake_response,
    parse_message,
    websocket_url,
)


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    HubHandler = Callable[[tuple[Any, ...]], Awaitable[None]]


DEFAULT_RECONNECT_DELAYS: Final[tuple[float, ...]] = (0.0, 2.0, 10.0, 30.0)

_MAX_NEGOTIATE_REDIRECTS = 5
_NEGOTIATE_MAX_SIZE = 64 * 1024
_WS_CLOSE_TIMEOUT = 5.0


logger = logging.getLogger("cfgsync.utils.transport")


def _frame_text(msg: aiohttp.WSMessage) -> str:
    if msg.type == aiohttp.WSMsgType.TEXT:
        return str(msg.data)
    try:
        return bytes(msg.data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise HubProtocolError(f"binary frame is not UTF-8: {e}") from e


class HubConnection:
    """Receive-only SignalR hub client over an aiohttp WebSocket.

    Not reusable concurrently: call
    [start()][cfgsync.utils.transport.HubConnection.start] only while the
    connection is ``ABSENT``. A failed start leaves it ``ABSENT`` again, so
    the same instance can be started again.

    Args:
        url: Hub URL (``http(s)://`` or ``ws(s)://``).
        session: Session to use. When omitted the connection creates one
            and closes it once the connection ends.
        headers: Extra headers for negotiate and the WebSocket upgrade.
        keepalive_interval: Seconds between client pings.
        server_timeout: Seconds of silence after which the connection is
            considered lost.
        handshake_timeout: Bound in seconds on negotiate, the WebSocket
            upgrade, and the protocol handshake, each.
        reconnect_delays: Delays in seconds before each reconnect attempt.
        on_state_change: Called synchronously on every state transition.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        headers: Mapping[str, str] | None = None,
        keepalive_interval: float = 15.0,
        server_timeout: float = 30.0,
        handshake_timeout: float = 15.0,
        reconnect_delays: Sequence[float] = DEFAULT_RECONNECT_DELAYS,
        on_state_change: Callable[[ConnectionState], None] | None = None,
    ) -> None:
        self._url = url
        self._session = session
        self._owns_session = False
        self._headers: dict[str, str] = dict(headers or {})
        self._keepalive_interval = keepalive_interval
        self._server_timeout = server_timeout
        self._handshake_timeout = handshake_timeout
        self._reconnect_delays = tuple(reconnect_delays)
        self._on_state_change = on_state_change

        self._handlers: dict[str, list[HubHandler]] = {}
        self._state = ConnectionState.ABSENT
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader = RecordReader()
        self._backlog: list[str] = []
        self._run_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._stopping = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    def on(self, target: str, handler: HubHandler) -> None:
        """Register *handler* for server invocations of *target*.

        Targets are matched case-insensitively. The handler receives the
        invocation arguments as a tuple.
        """
        self._handlers.setdefault(target.lower(), []).append(handler)

    # -- Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Negotiate, connect, and handshake, then start receiving.

        Returns once the connection is ``OPEN``; messages are processed by
        a background task.

        Raises:
            HubProtocolError: If the connection is not ``ABSENT``, or the
                hub rejected negotiation or the handshake.
            aiohttp.ClientError: On HTTP or WebSocket failures.
            TimeoutError: If a step exceeds ``handshake_timeout``.
        """
        if self._state is not ConnectionState.ABSENT:
            raise HubProtocolError(f"cannot start a connection in state {self._state.name}")
        self._stopping = False
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._connect()
        except (Exception, asyncio.CancelledError):
            await self._close_transport()
            await self._release_session()
            self._set_state(ConnectionState.ABSENT)
            raise
        self._set_state(ConnectionState.OPEN)
        self._run_task = asyncio.create_task(self._run(), name=f"hub:{self._url}")

    async def stop(self) -> None:
        """Close the connection and cancel pending handlers.

        Idempotent: safe to call on a connection that never started or has
        already ended.
        """
        self._stopping = True
        task, self._run_task = self._run_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        pending = list(self._handler_tasks)
        for handler_task in pending:
            handler_task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self._close_transport()
        await self._release_session()
        self._set_state(ConnectionState.ABSENT)

    # -- Connection setup ---------------------------------------------------

    async def _connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        session = self._session

        hub_url, negotiation, headers = await self._negotiate(session)
        ws_url = websocket_url(hub_url, negotiation.connection_key or "")
        self._ws = await asyncio.wait_for(
            session.ws_connect(ws_url, headers=headers or None),
            timeout=self._handshake_timeout,
        )
        self._reader = RecordReader()
        self._backlog = []
        await asyncio.wait_for(self._handshake(self._ws), timeout=self._handshake_timeout)
        logger.debug("hub_connected url=%s", hub_url)

    async def _negotiate(
        self, session: aiohttp.ClientSession
    ) -> tuple[str, NegotiateResponse, dict[str, str]]:
        url = self._url
        headers = dict(self._headers)
        timeout = aiohttp.ClientTimeout(total=self._handshake_timeout)

        for _ in range(_MAX_NEGOTIATE_REDIRECTS + 1):
            async with session.post(negotiate_url(url), headers=headers, timeout=timeout) as response:
                response.raise_for_status()
                try:
                    data = await read_bounded_json(response, _NEGOTIATE_MAX_SIZE)
                except ValueError as e:
                    raise HubProtocolError(f"invalid negotiate response: {e}") from e

            negotiation = NegotiateResponse.from_json(data)
            if negotiation.url is None:
                if WEBSOCKETS_TRANSPORT not in negotiation.transports:
                    raise HubProtocolError("hub does not offer the WebSockets transport")
                if negotiation.connection_key is None:
                    raise HubProtocolError("negotiate response has no connection id")
                return url, negotiation, headers

            logger.debug("hub_negotiate_redirect url=%s target=%s", url, negotiation.url)
            url = negotiation.url
            if negotiation.access_token:
                headers["Authorization"] = f"Bearer {negotiation.access_token}"

        raise HubProtocolError(f"more than {_MAX_NEGOTIATE_REDIRECTS} negotiate redirects")

    async def _handshake(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        await ws.send_str(encode_handshake())
        while True:
            msg = await ws.receive()
            if msg.type not in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                raise aiohttp.ServerDisconnectedError("connection closed during handshake")
            records = self._reader.feed(_frame_text(msg))
            if records:
                parse_handshake_response(records[0])
                self._backlog = records[1:]
                return

    # -- Receiving ------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            allow_reconnect = await self._receive_loop()
            await self._close_transport()
            if self._stopping:
                return
            if allow_reconnect and await self._reconnect():
                continue
            self._set_state(ConnectionState.ABSENT)
            await self._release_session()
            logger.info("hub_connection_closed url=%s", self._url)
            return

    async def _receive_loop(self) -> bool:
        """Process messages until the connection ends.

        Returns:
            Whether reconnecting is allowed.
        """
        ws = self._ws
        if ws is None:
            return False
        keepalive = asyncio.create_task(self._keepalive(ws))
        try:
            records, self._backlog = self._backlog, []
            while True:
                for record in records:
                    message = parse_message(record)
                    if message.type == MessageType.INVOCATION:
                        self._dispatch(message)
                    elif message.type == MessageType.CLOSE:
                        logger.info(
                            "hub_close_received url=%s error=%s allow_reconnect=%s",
                            self._url,
                            message.error,
                            message.allow_reconnect,
                        )
                        return message.allow_reconnect

                try:
                    msg = await asyncio.wait_for(ws.receive(), timeout=self._server_timeout)
                except TimeoutError:
                    logger.warning(
                        "hub_server_timeout url=%s timeout=%s", self._url, self._server_timeout
                    )
                    return True
                if msg.type not in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    logger.info("hub_connection_lost url=%s type=%s", self._url, msg.type.name)
                    return True
                records = self._reader.feed(_frame_text(msg))
        except HubProtocolError as e:
            logger.warning("hub_protocol_error url=%s error=%s", self._url, e)
            return True
        finally:
            keepalive.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await keepalive

    async def _keepalive(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        ping = encode_ping()
        while not ws.closed:
            await asyncio.sleep(self._keepalive_interval)
            try:
                await ws.send_str(ping)
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.debug("hub_ping_failed url=%s error=%s", self._url, e)
                return

    def _dispatch(self, message: HubMessage) -> None:
        handlers = self._handlers.get((message.target or "").lower())
        if not handlers:
            logger.debug("hub_invocation_unhandled url=%s target=%s", self._url, message.target)
            return
        for handler in handlers:
            task = asyncio.create_task(self._invoke(handler, message))
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)

    async def _invoke(self, handler: HubHandler, message: HubMessage) -> None:
        try:
            await handler(message.arguments)
        except Exception as e:  # Intentionally broad: handler errors must not stop the connection
            logger.warning(
                "hub_handler_failed url=%s target=%s error=%s error_type=%s",
                self._url,
                message.target,
                e,
                type(e).__name__,
            )

    async def _reconnect(self) -> bool:
        self._set_state(ConnectionState.RECONNECTING)
        for attempt, delay in enumerate(self._reconnect_delays, start=1):
            await asyncio.sleep(delay)
            try:
                await self._connect()
            except (HubProtocolError, aiohttp.ClientError, OSError) as e:
                logger.warning(
                    "hub_reconnect_failed url=%s attempt=%s error=%s", self._url, attempt, e
                )
                await self._close_transport()
                continue
            self._set_state(ConnectionState.OPEN)
            logger.info("hub_reconnected url=%s attempt=%s", self._url, attempt)
            return True
        logger.warning(
            "hub_reconnect_exhausted url=%s attempts=%s", self._url, len(self._reconnect_delays)
        )
        return False

    # -- Helpers --------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    async def _close_transport(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None or ws.closed:
            return
        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during
        # close; broad suppression is intentional for teardown.
        with contextlib.suppress(Exception):
            await asyncio.wait_for(ws.close(), timeout=_WS_CLOSE_TIMEOUT)

    async def _release_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False
