"""SignalR JSON hub protocol framing for the push backchannel.

The configuration service publishes change notifications on a SignalR hub.
This module implements the pure, I/O-free half of that protocol: negotiate
response parsing, the handshake, and the record-separated JSON message
format. [HubConnection][cfgsync.utils.transport.HubConnection] drives it
over an aiohttp WebSocket.

Attributes:
    RECORD_SEPARATOR: Terminator of every JSON record (``0x1E``).
    MessageType: Hub message type codes.
    HubMessage: One decoded hub message.
    NegotiateResponse: Parsed ``/negotiate`` reply.
    RecordReader: Reassembles records split across WebSocket frames.

Note:
    Only the parts of the protocol a receive-only client needs are
    modelled. Stream items, completions, and cancellations are decoded
    but carry no behaviour.

Examples:
    ```python
    reader = RecordReader()
    records = reader.feed('{}\\x1e{"type":1,"target":"ChangedSetting","arguments":["billing"]}\\x1e')
    parse_handshake_response(records[0])
    message = parse_message(records[1])
    message.target     # 'ChangedSetting'
    message.arguments  # ('billing',)
    ```
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Final
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


RECORD_SEPARATOR: Final[str] = "\x1e"

#: Transport name a hub must advertise for this client to connect.
WEBSOCKETS_TRANSPORT: Final[str] = "WebSockets"

#: Negotiate protocol version requested from the server.
NEGOTIATE_VERSION: Final[int] = 1


class HubProtocolError(Exception):
    """The hub sent something this client cannot accept.

    Covers negotiate errors, missing transports, rejected handshakes, and
    malformed records. Never worth retrying against the same server.
    """


class MessageType(IntEnum):
    """Hub message type codes of the JSON hub protocol."""

    INVOCATION = 1
    STREAM_ITEM = 2
    COMPLETION = 3
    STREAM_INVOCATION = 4
    CANCEL_INVOCATION = 5
    PING = 6
    CLOSE = 7


@dataclass(frozen=True, slots=True)
class HubMessage:
    """One decoded hub message.

    Attributes:
        type: Message type code (kept as ``int`` so unknown codes survive).
        target: Invoked method name (invocations only).
        arguments: Invocation arguments (invocations only).
        error: Server-supplied reason (close messages only).
        allow_reconnect: Whether the server permits reconnecting (close
            messages only).
    """

    type: int
    target: str | None = None
    arguments: tuple[Any, ...] = ()
    error: str | None = None
    allow_reconnect: bool = False


@dataclass(frozen=True, slots=True)
class NegotiateResponse:
    """Parsed body of ``POST {hub}/negotiate``.

    A response either redirects (``url`` set, optionally with an
    ``access_token`` for the redirected hub) or describes the connection.
    """

    connection_id: str | None = None
    connection_token: str | None = None
    transports: tuple[str, ...] = ()
    url: str | None = None
    access_token: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.url is not None

    @property
    def connection_key(self) -> str | None:
        """Value of the ``id`` query parameter for the WebSocket URL."""
        return self.connection_token or self.connection_id

    @classmethod
    def from_json(cls, data: Any) -> NegotiateResponse:
        """Parse a negotiate reply.

        Raises:
            HubProtocolError: If the reply is not an object, carries an
                ``error``, or has members of the wrong type.
        """
        if not isinstance(data, dict):
            raise HubProtocolError(f"negotiate response must be an object, got {type(data).__name__}")
        if data.get("error"):
            raise HubProtocolError(f"negotiate failed: {data['error']}")

        transports: list[str] = []
        for entry in data.get("availableTransports") or []:
            if isinstance(entry, dict) and isinstance(entry.get("transport"), str):
                transports.append(entry["transport"])

        fields = {}
        for member, name in (
            ("connectionId", "connection_id"),
            ("connectionToken", "connection_token"),
            ("url", "url"),
            ("accessToken", "access_token"),
        ):
            value = data.get(member)
            if value is not None and not isinstance(value, str):
                raise HubProtocolError(f"negotiate member {member} must be a string")
            fields[name] = value or None

        return cls(transports=tuple(transports), **fields)


class RecordReader:
    """Buffer that splits incoming text into complete protocol records.

    A WebSocket frame may carry several records, and a record may in
    principle span frames; incomplete trailing text is kept until the next
    [feed()][cfgsync.utils.protocol.RecordReader.feed].
    """

    __slots__ = ("_buffer",)

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, data: str) -> list[str]:
        """Append *data* and return every record completed by it."""
        self._buffer += data
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return [record for record in records if record]

    @property
    def pending(self) -> str:
        """Text received after the last complete record."""
        return self._buffer


def encode_record(payload: dict[str, Any]) -> str:
    """Serialize *payload* as one terminated JSON record."""
    return json.dumps(payload, separators=(",", ":")) + RECORD_SEPARATOR


def encode_handshake() -> str:
    """Build the client handshake request for the JSON protocol."""
    return encode_record({"protocol": "json", "version": 1})


def encode_ping() -> str:
    return encode_record({"type": MessageType.PING.value})


def _load_record(record: str) -> dict[str, Any]:
    try:
        data = json.loads(record)
    except json.JSONDecodeError as e:
        raise HubProtocolError(f"invalid JSON record: {e}") from e
    if not isinstance(data, dict):
        raise HubProtocolError(f"record must be an object, got {type(data).__name__}")
    return data


def parse_handshake_response(record: str) -> None:
    """Validate the server's handshake response.

    Raises:
        HubProtocolError: If the record is malformed or the server rejected
            the handshake.
    """
    data = _load_record(record)
    if data.get("error"):
        raise HubProtocolError(f"handshake rejected: {data['error']}")
    if "type" in data:
        raise HubProtocolError("expected a handshake response, got a hub message")


def parse_message(record: str) -> HubMessage:
    """Decode one hub message record.

    Raises:
        HubProtocolError: If the record is malformed.
    """
    data = _load_record(record)
    message_type = data.get("type")
    if isinstance(message_type, bool) or not isinstance(message_type, int):
        raise HubProtocolError("hub message has no integer type")

    if message_type == MessageType.INVOCATION:
        target = data.get("target")
        arguments = data.get("arguments", [])
        if not isinstance(target, str) or not target:
            raise HubProtocolError("invocation has no target")
        if not isinstance(arguments, list):
            raise HubProtocolError("invocation arguments must be a list")
        return HubMessage(type=message_type, target=target, arguments=tuple(arguments))

    if message_type == MessageType.CLOSE:
        error = data.get("error")
        return HubMessage(
            type=message_type,
            error=error if isinstance(error, str) else None,
            allow_reconnect=data.get("allowReconnect") is True,
        )

    return HubMessage(type=message_type)


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def negotiate_url(hub_url: str) -> str:
    """Build the negotiate endpoint for *hub_url*, preserving its query."""
    parts = urlsplit(hub_url)
    path = parts.path.rstrip("/") + "/negotiate"
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("negotiateVersion", str(NEGOTIATE_VERSION)))
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), ""))


def websocket_url(hub_url: str, connection_key: str) -> str:
    """Build the WebSocket URL for *hub_url* and a negotiated connection.

    Raises:
        HubProtocolError: If *hub_url* is not an http(s) or ws(s) URL.
    """
    parts = urlsplit(hub_url)
    schemes = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}
    scheme = schemes.get(parts.scheme.lower())
    if scheme is None:
        raise HubProtocolError(f"unsupported hub URL scheme: {parts.scheme!r}")
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("id", connection_key))
    return urlunsplit((scheme, parts.netloc, parts.path, urlencode(query), ""))
