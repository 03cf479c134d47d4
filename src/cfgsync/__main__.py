"""CLI entry point for the cfgsync client.

Loads a client configuration, synchronizes its settings once, and either
exits (``--once``) or keeps the push channel open, logging every reload,
until interrupted.

Examples:
    ```bash
    python -m cfgsync --once
    python -m cfgsync --config config/cfgsync.yaml --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from cfgsync.core import start_metrics_server
from cfgsync.core.exceptions import ConfigurationError
from cfgsync.core.logger import Logger, StructuredFormatter
from cfgsync.core.metrics import SYNC_INFO
from cfgsync.sync import SyncCoordinator


DEFAULT_CONFIG = Path("config") / "cfgsync.yaml"

logger = Logger("cli")


def _log_snapshot(coordinator: SyncCoordinator) -> None:
    # Values may hold secrets; only keys are logged.
    snapshot = coordinator.snapshot
    logger.info("snapshot", count=len(snapshot), keys=",".join(sorted(snapshot)))


async def run_client(coordinator: SyncCoordinator, *, once: bool) -> int:
    """Run the client in one-shot or continuous mode.

    In one-shot mode, a single load runs and the process exits. In
    continuous mode, a Prometheus metrics server is started (when enabled)
    and the client runs until a shutdown signal is received.

    Returns:
        Exit code: 0 for success, 1 when one-shot mode loaded nothing.
    """
    if once:
        loaded = await coordinator.load()
        _log_snapshot(coordinator)
        await coordinator.close()
        if not loaded:
            logger.error("sync_failed", error=str(coordinator.last_error))
            return 1
        logger.info("sync_completed", count=len(coordinator.snapshot))
        return 0

    metrics_config = coordinator.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        SYNC_INFO.info(
            {
                "application": coordinator.scope.application,
                "environment": coordinator.scope.environment or "",
                "url": coordinator.config.url,
            }
        )
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    shutdown = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        shutdown.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    def on_reload() -> None:
        logger.info("settings_reloaded", count=len(coordinator.snapshot))
        _log_snapshot(coordinator)

    unsubscribe = coordinator.on_reload(on_reload)
    try:
        async with coordinator:
            _log_snapshot(coordinator)
            await shutdown.wait()
        return 0
    finally:
        unsubscribe()
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the client runner."""
    parser = argparse.ArgumentParser(
        prog="cfgsync",
        description="Remote settings sync client",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Client config path (default: {DEFAULT_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Load once and exit (default: keep the push channel open)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in utils -- is unified as
    ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point: parse args, build the coordinator, and run it."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        coordinator = SyncCoordinator.from_yaml(args.config)
    except (FileNotFoundError, ConfigurationError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return 1

    try:
        return await run_client(coordinator, once=args.once)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
