"""Shared constants for the models layer.

Defines the wire contract of the remote configuration service (endpoint
paths, token requirements, push message names) and the connection state
enumeration shared by the transport and sync layers. Placing them here
avoids circular dependencies between the models, utils, and sync layers.

See Also:
    [cfgsync.sync.token][]: Uses [LOGIN_PATH][cfgsync.models.constants.LOGIN_PATH]
        and the token requirements.
    [cfgsync.sync.settings][]: Uses [SETTINGS_PATH][cfgsync.models.constants.SETTINGS_PATH].
    [cfgsync.sync.channel][]: Uses [BACKCHANNEL_PATH][cfgsync.models.constants.BACKCHANNEL_PATH]
        and [CHANGED_SETTING_TARGET][cfgsync.models.constants.CHANGED_SETTING_TARGET].
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


#: Client-credentials login endpoint, relative to the service base URL.
LOGIN_PATH: Final[str] = "api/account/login/client"

#: Settings query endpoint, relative to the service base URL.
SETTINGS_PATH: Final[str] = "api/settings"

#: Push-notification hub, appended directly to the service base URL.
BACKCHANNEL_PATH: Final[str] = "_backchannel"

#: Hub method invoked by the server whenever a setting changes.
CHANGED_SETTING_TARGET: Final[str] = "ChangedSetting"

#: Capability marker an access token must carry to read settings.
REQUIRED_TOKEN_SCOPE: Final[str] = "cfg-svc-read"

#: The only token type accepted from the login endpoint.
BEARER_TOKEN_TYPE: Final[str] = "Bearer"

#: Upper bound for application, environment, and credential strings.
MAX_NAME_LENGTH: Final[int] = 64


class ConnectionState(IntEnum):
    """Lifecycle of the push-notification connection.

    The integer values double as the ``channel_state`` Prometheus gauge
    reading.

    Attributes:
        ABSENT: No connection exists (never opened, closed, or given up).
        CONNECTING: The first connection attempt is in progress.
        OPEN: The connection is established and receiving messages.
        RECONNECTING: The connection dropped and automatic reconnection
            is in progress.

    Note:
        Transitions: ``ABSENT -> CONNECTING -> OPEN -> RECONNECTING ->
        OPEN | ABSENT``. A failed first attempt goes straight back to
        ``ABSENT``.
    """

    ABSENT = 0
    CONNECTING = 1
    OPEN = 2
    RECONNECTING = 3
