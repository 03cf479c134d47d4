"""Pure frozen dataclasses with zero I/O for scopes, credentials, tokens, and settings.

The models layer is the foundation of the dependency DAG. It has **no
dependencies** on any other cfgsync package -- only the Python standard
library. Every model uses ``@dataclass(frozen=True, slots=True)`` (or an
equivalent read-only mapping) and validates in ``__post_init__`` so invalid
instances never escape the constructor.

Attributes:
    Scope: The (application, environment) pair a client tracks, with the
        change-event matching rule.
    ChangeEvent: Push notification that a setting changed.
    resolve_environment: Explicit-over-ambient environment defaulting.
    Credentials: Client id/secret presented to the login endpoint.
    AccessToken: Parsed login response with validity rules.
    Setting: One remote ``{key, value}`` pair.
    SettingsSnapshot: Immutable mapping installed as the local view.
    ConnectionState: Push connection lifecycle enumeration.

See Also:
    [cfgsync.sync][]: Components that produce and consume these models.
"""

from .constants import (
    BACKCHANNEL_PATH,
    BEARER_TOKEN_TYPE,
    CHANGED_SETTING_TARGET,
    LOGIN_PATH,
    MAX_NAME_LENGTH,
    REQUIRED_TOKEN_SCOPE,
    SETTINGS_PATH,
    ConnectionState,
)
from .credentials import Credentials
from .scope import ChangeEvent, Scope, resolve_environment
from .settings import Setting, SettingsSnapshot
from .token import AccessToken


__all__ = [
    "BACKCHANNEL_PATH",
    "BEARER_TOKEN_TYPE",
    "CHANGED_SETTING_TARGET",
    "LOGIN_PATH",
    "MAX_NAME_LENGTH",
    "REQUIRED_TOKEN_SCOPE",
    "SETTINGS_PATH",
    "AccessToken",
    "ChangeEvent",
    "ConnectionState",
    "Credentials",
    "Scope",
    "Setting",
    "SettingsSnapshot",
    "resolve_environment",
]
