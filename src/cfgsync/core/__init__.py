"""Core layer providing the shared infrastructure of the sync engine.

Sits between ``cfgsync.models`` and ``cfgsync.sync`` in the dependency DAG
and is depended upon by every sync component.

Attributes:
    RetryingInvoker: Bounded exponential-backoff retry for transient
        network failures. See [RetryingInvoker][cfgsync.core.retry.RetryingInvoker].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][cfgsync.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint for metrics exposition.
        See [MetricsServer][cfgsync.core.metrics.MetricsServer].
    YAML: Safe YAML loading with ``yaml.safe_load()`` to prevent code execution.
        See [load_yaml()][cfgsync.core.yaml.load_yaml].

Examples:
    ```python
    from cfgsync.core import Logger, RetryingInvoker

    invoker = RetryingInvoker(logger=Logger("cfgsync.retry"))
    ```

See Also:
    [cfgsync.models][cfgsync.models]: Pure dataclass models consumed by this layer.
    [cfgsync.sync][cfgsync.sync]: Sync components that depend on this layer.
"""

from .exceptions import (
    AuthenticationError,
    CfgSyncError,
    ChannelError,
    ConfigurationError,
    ConnectivityError,
    ProtocolError,
    RequestTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CHANNEL_STATE,
    LOAD_DURATION_SECONDS,
    SNAPSHOT_SIZE,
    SYNC_COUNTER,
    SYNC_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .retry import RetryConfig, RetryingInvoker, is_transient
from .yaml import load_yaml


__all__ = [
    "CHANNEL_STATE",
    "LOAD_DURATION_SECONDS",
    "SNAPSHOT_SIZE",
    "SYNC_COUNTER",
    "SYNC_INFO",
    "AuthenticationError",
    "CfgSyncError",
    "ChannelError",
    "ConfigurationError",
    "ConnectivityError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "ProtocolError",
    "RequestTimeoutError",
    "RetryConfig",
    "RetryingInvoker",
    "StructuredFormatter",
    "format_kv_pairs",
    "is_transient",
    "load_yaml",
    "start_metrics_server",
]
