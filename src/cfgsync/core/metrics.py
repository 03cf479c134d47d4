"""
Prometheus metrics collection and HTTP exposition.

Defines module-level metric objects (singletons, thread-safe) shared by
every [SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator] in the
process. The coordinator records load outcomes, change-triggered reloads,
and ignored events; the channel reports its connection state.

The ``MetricsServer`` provides an async HTTP endpoint (via aiohttp) for
Prometheus scraping. Configuration is handled through ``MetricsConfig``,
which is embedded in the client's YAML configuration.

Architecture:
    SYNC_INFO:              Static metadata set once at startup.
    SYNC_COUNTER:           Cumulative totals (monotonically increasing).
    CHANNEL_STATE:          Current push connection state (0-3).
    SNAPSHOT_SIZE:          Number of keys in the installed snapshot.
    LOAD_DURATION_SECONDS:  Histogram for load latency percentiles.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    Set ``host`` to ``"0.0.0.0"`` in container environments to allow
    external scraping. The endpoint is only started when ``enabled``
    is True.
    """

    enabled: bool = Field(default=False, description="Enable metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Sync Metrics
#
# counter names (label "name"):
#   loads_success, loads_failed, reloads, events_ignored, channel_open_failed
# ---------------------------------------------------------------------------

SYNC_INFO = Info(
    "cfgsync",
    "Settings sync client information",
)

SYNC_COUNTER = Counter(
    "cfgsync_counter",
    "Settings sync counter values (cumulative totals)",
    ["application", "name"],
)

CHANNEL_STATE = Gauge(
    "cfgsync_channel_state",
    "Push channel state (0=absent, 1=connecting, 2=open, 3=reconnecting)",
    ["application"],
)

SNAPSHOT_SIZE = Gauge(
    "cfgsync_snapshot_size",
    "Number of settings in the installed snapshot",
    ["application"],
)

LOAD_DURATION_SECONDS = Histogram(
    "cfgsync_load_duration_seconds",
    "Duration of a full settings load in seconds",
    ["application"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible /metrics endpoint.

    The endpoint path is configurable via ``MetricsConfig.path``.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Whether the HTTP listener is bound."""
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for Prometheus scrape requests.

        Returns immediately (no-op) if metrics are disabled in the
        configuration.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Stop the HTTP server and release resources.

        Idempotent: safe to call if the server was never started or
        has already been stopped.
        """
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        """Serve the latest Prometheus metrics in exposition format."""
        output = generate_latest()
        return web.Response(
            body=output,
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(
    config: MetricsConfig | None = None,
) -> MetricsServer:
    """Create and start a metrics server.

    Args:
        config: Metrics configuration. Uses defaults if not provided.

    Returns:
        A MetricsServer instance. Caller should call ``stop()`` during
        shutdown to release the bound port.
    """
    config = config or MetricsConfig()
    server = MetricsServer(config)
    await server.start()
    return server
