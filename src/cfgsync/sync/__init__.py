"""Settings synchronization: login, fetch, push channel, and orchestration.

The sync layer sits at the top of the dependency DAG and composes the
lower layers into the client a host embeds.

Attributes:
    SyncCoordinator: Owns the snapshot and drives loads and reloads.
        See [SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator].
    SyncConfig: Validated client configuration (pydantic).
    ChannelConfig: Push channel transport settings.
    TokenAcquirer: Client-credentials login returning a token or ``None``.
    SettingsFetcher: Authenticated settings query.
    ChangeChannel: Push connection delivering change events.

Examples:
    ```python
    from cfgsync.sync import SyncCoordinator

    coordinator = SyncCoordinator.from_dict({
        "url": "https://cfg.example.com",
        "application": "billing",
        "client_id": "billing-service",
        "client_secret": "s3cret",
    })
    await coordinator.load()
    coordinator.snapshot
    ```
"""

from .channel import ChangeChannel
from .configs import ChannelConfig, SyncConfig
from .coordinator import SyncCoordinator
from .settings import SettingsFetcher
from .token import TokenAcquirer


__all__ = [
    "ChangeChannel",
    "ChannelConfig",
    "SettingsFetcher",
    "SyncConfig",
    "SyncCoordinator",
    "TokenAcquirer",
]
