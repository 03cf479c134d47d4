"""
Pytest configuration and shared fixtures for cfgsync tests.

Provides:
- An in-process fake of the configuration service (login, settings, and
  the SignalR backchannel hub) built on ``aiohttp.test_utils.TestServer``
- Configuration factories with zero-delay retry policies
- Isolation from the ambient deployment-environment variable
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from cfgsync.core.retry import RetryConfig
from cfgsync.sync.configs import DEFAULT_ENVIRONMENT_ENV, ChannelConfig, SyncConfig


RS = "\x1e"

VALID_LOGIN = {
    "access_token": "token-123",
    "token_type": "Bearer",
    "expires_in": 3600,
    "refresh_token": "refresh-456",
    "scope": "cfg-svc-read",
}


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def _no_ambient_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's deployment environment out of scope resolution."""
    monkeypatch.delenv(DEFAULT_ENVIRONMENT_ENV, raising=False)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Retry policy with the default attempt count but no waiting."""
    return RetryConfig(delay_unit=0.0)


@pytest.fixture
def make_config(fast_retry: RetryConfig) -> Callable[..., SyncConfig]:
    """Factory for SyncConfig instances with test-friendly defaults."""

    def factory(**overrides: Any) -> SyncConfig:
        data: dict[str, Any] = {
            "url": "https://cfg.example.com",
            "application": "billing",
            "environment": "prod",
            "client_id": "billing-service",
            "client_secret": "s3cret",
            "retry": fast_retry,
            "channel": ChannelConfig(
                keepalive_interval=0.5,
                server_timeout=2.0,
                handshake_timeout=2.0,
                reconnect_delays=[0.0, 0.05],
            ),
        }
        data.update(overrides)
        return SyncConfig(**data)

    return factory


# ============================================================================
# Fake Configuration Service
# ============================================================================


class FakeConfigService:
    """In-process stand-in for the remote configuration service.

    Response behaviour is controlled through plain attributes; every
    request is recorded for assertions.
    """

    def __init__(self) -> None:
        self.base_url = ""

        self.login_status = 200
        self.login_response: Any = dict(VALID_LOGIN)
        self.login_requests: list[Any] = []

        self.settings_status = 200
        self.settings_response: Any = [{"key": "timeout", "value": "30"}]
        self.settings_content_type = "application/json"
        self.settings_requests: list[tuple[Any, str | None]] = []

        self.negotiate_requests = 0
        self.connection_ids: list[str | None] = []
        self.handshakes: list[str] = []
        self.received: list[str] = []
        self.sockets: list[web.WebSocketResponse] = []
        self.hub_connected = asyncio.Event()

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/account/login/client", self._login)
        app.router.add_post("/api/settings", self._settings)
        app.router.add_post("/_backchannel/negotiate", self._negotiate)
        app.router.add_get("/_backchannel", self._hub)
        return app

    @property
    def open_sockets(self) -> list[web.WebSocketResponse]:
        return [ws for ws in self.sockets if not ws.closed]

    async def _login(self, request: web.Request) -> web.Response:
        self.login_requests.append(await request.json())
        if self.login_status != 200:
            return web.json_response({"error": "rejected"}, status=self.login_status)
        return web.json_response(self.login_response)

    async def _settings(self, request: web.Request) -> web.Response:
        self.settings_requests.append((await request.json(), request.headers.get("Authorization")))
        if self.settings_status != 200:
            return web.Response(status=self.settings_status)
        body = self.settings_response
        if not isinstance(body, bytes):
            body = json.dumps(body).encode()
        return web.Response(body=body, content_type=self.settings_content_type)

    async def _negotiate(self, request: web.Request) -> web.Response:
        self.negotiate_requests += 1
        return web.json_response(
            {
                "negotiateVersion": 1,
                "connectionId": f"conn-{self.negotiate_requests}",
                "connectionToken": f"token-{self.negotiate_requests}",
                "availableTransports": [
                    {"transport": "WebSockets", "transferFormats": ["Text", "Binary"]}
                ],
            }
        )

    async def _hub(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connection_ids.append(request.query.get("id"))

        handshake = await ws.receive()
        self.handshakes.append(handshake.data)
        await ws.send_str("{}" + RS)
        self.sockets.append(ws)
        self.hub_connected.set()

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                self.received.append(msg.data)
        return ws

    async def push(self, target: str, *arguments: Any) -> None:
        """Invoke *target* on every connected client."""
        record = json.dumps({"type": 1, "target": target, "arguments": list(arguments)}) + RS
        for ws in self.open_sockets:
            await ws.send_str(record)

    async def close_sockets(self) -> None:
        for ws in self.open_sockets:
            await ws.close()


@pytest.fixture
async def config_service() -> AsyncIterator[FakeConfigService]:
    """Running fake configuration service; ``base_url`` ends with ``/``."""
    service = FakeConfigService()
    server = TestServer(service.app())
    await server.start_server()
    service.base_url = str(server.make_url("/"))
    yield service
    await service.close_sockets()
    await server.close()


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """Poll a predicate until it holds, failing with TimeoutError after 2 s."""
    return _eventually
