r"""cfgsync -- Remote settings synchronization client.

Keeps a local key-value settings snapshot consistent with a remote
configuration service for one (application, environment) scope:
client-credentials login, resilient settings fetch, and a push channel that
triggers a reload whenever a matching setting changes.

Architecture follows a layered DAG where imports flow strictly downward:

```text
               sync           Coordinator, login, fetch, push channel
             /      \
          core      utils     Retry, logging, metrics | HTTP, hub transport
             \      /
              models          Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Exceptions, retry policy, logging, metrics, YAML loading.
    utils: Bounded HTTP helpers and the SignalR WebSocket transport.
    sync: The components a host embeds.

Note:
    For lightweight usage, import directly from subpackages::

        from cfgsync.sync import SyncCoordinator
        from cfgsync.models import Scope

    Top-level imports (``from cfgsync import SyncCoordinator``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("cfgsync")

__all__ = [
    "AccessToken",
    "CfgSyncError",
    "ChangeChannel",
    "ChangeEvent",
    "ConfigurationError",
    "ConnectionState",
    "Credentials",
    "Logger",
    "RetryingInvoker",
    "Scope",
    "SettingsFetcher",
    "SettingsSnapshot",
    "SyncConfig",
    "SyncCoordinator",
    "TokenAcquirer",
    "resolve_environment",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "CfgSyncError": ("cfgsync.core", "CfgSyncError"),
    "ConfigurationError": ("cfgsync.core", "ConfigurationError"),
    "Logger": ("cfgsync.core", "Logger"),
    "RetryingInvoker": ("cfgsync.core", "RetryingInvoker"),
    "AccessToken": ("cfgsync.models", "AccessToken"),
    "ChangeEvent": ("cfgsync.models", "ChangeEvent"),
    "ConnectionState": ("cfgsync.models", "ConnectionState"),
    "Credentials": ("cfgsync.models", "Credentials"),
    "Scope": ("cfgsync.models", "Scope"),
    "SettingsSnapshot": ("cfgsync.models", "SettingsSnapshot"),
    "resolve_environment": ("cfgsync.models", "resolve_environment"),
    "ChangeChannel": ("cfgsync.sync", "ChangeChannel"),
    "SettingsFetcher": ("cfgsync.sync", "SettingsFetcher"),
    "SyncConfig": ("cfgsync.sync", "SyncConfig"),
    "SyncCoordinator": ("cfgsync.sync", "SyncCoordinator"),
    "TokenAcquirer": ("cfgsync.sync", "TokenAcquirer"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'cfgsync' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
