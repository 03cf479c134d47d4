"""HTTP utilities for cfgsync.

Provides bounded body reading for HTTP responses, to prevent memory
exhaustion from oversized payloads, and the JSON POST round trip shared by
the login and settings calls.

Note:
    This module sits in the ``utils`` layer and depends only on stdlib and
    third-party libraries (``aiohttp``). It is importable from ``sync``
    without violating the dependency DAG.

See Also:
    [TokenAcquirer][cfgsync.sync.token.TokenAcquirer]: Login call that uses
        [post_json][cfgsync.utils.http.post_json].
    [SettingsFetcher][cfgsync.sync.settings.SettingsFetcher]: Settings call
        that uses [post_json][cfgsync.utils.http.post_json].
    [HubConnection][cfgsync.utils.transport.HubConnection]: Negotiate call
        that uses [read_bounded_json][cfgsync.utils.http.read_bounded_json].
"""

from __future__ import annotations

import contextlib
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping


JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class HttpReply:
    """Status, media type, and raw body of a successful response.

    Attributes:
        status: HTTP status code (always 2xx).
        content_type: Media type without parameters, e.g. ``application/json``.
        body: The complete response body.
    """

    status: int
    content_type: str
    body: bytes

    @property
    def is_json(self) -> bool:
        """Whether the server declared a JSON body."""
        return self.content_type == JSON_CONTENT_TYPE

    def json(self) -> Any:
        """Parse the body as JSON.

        Raises:
            ValueError: If the body is empty or not valid JSON.
        """
        if not self.body:
            raise ValueError("Response body is empty")
        return json.loads(self.body)


@contextlib.asynccontextmanager
async def borrow_session(
    session: aiohttp.ClientSession | None,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Yield *session*, or a short-lived session when none is supplied.

    A caller-owned session is never closed here.
    """
    if session is not None:
        yield session
        return
    async with aiohttp.ClientSession() as owned:
        yield owned


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks from the response stream until EOF or the size limit
    is exceeded. Unlike a single ``response.content.read(n)`` call, this
    correctly handles chunked transfer-encoding where a single read may
    return fewer bytes than requested even when more data is available.

    Args:
        response: An aiohttp response whose body has not yet been consumed.
        max_size: Maximum allowed response body size in bytes.

    Returns:
        The complete response body as bytes.

    Raises:
        ValueError: If the response body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Read and parse a JSON response body with size enforcement.

    If the body exceeds ``max_size``, raises ``ValueError`` *before*
    attempting JSON parsing, preventing memory exhaustion from oversized
    payloads.

    Args:
        response: An aiohttp response whose body has not yet been consumed.
        max_size: Maximum allowed response body size in bytes.

    Returns:
        The parsed JSON value (dict, list, str, int, float, bool, or None).

    Raises:
        ValueError: If the response body exceeds *max_size*.
        json.JSONDecodeError: If the body is not valid JSON.
    """
    body = await _read_bounded(response, max_size)
    return json.loads(body)


async def post_json(
    session: aiohttp.ClientSession,
    url: str,
    payload: Any,
    *,
    max_size: int,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,  # noqa: ASYNC109
) -> HttpReply:
    """POST *payload* as JSON and read the bounded response body.

    Performs exactly one round trip, so it can be wrapped in a retrying
    operation.

    Args:
        session: Session used for the request.
        url: Absolute endpoint URL.
        payload: JSON-serializable request body.
        max_size: Maximum allowed response body size in bytes.
        headers: Extra request headers (e.g. ``Authorization``).
        timeout: Total request timeout in seconds, or ``None`` for the
            session default.

    Returns:
        The [HttpReply][cfgsync.utils.http.HttpReply] of a 2xx response.

    Raises:
        aiohttp.ClientResponseError: If the status is not 2xx.
        aiohttp.ClientError: On connection or payload failures.
        TimeoutError: If the request exceeds *timeout*.
        ValueError: If the response body exceeds *max_size*.
    """
    kwargs: dict[str, Any] = {"json": payload}
    if headers:
        kwargs["headers"] = dict(headers)
    if timeout is not None:
        kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

    async with session.post(url, **kwargs) as response:
        response.raise_for_status()
        body = await _read_bounded(response, max_size)
        return HttpReply(status=response.status, content_type=response.content_type, body=body)
