"""cfgsync exception hierarchy.

Provides typed exceptions for all error categories so the sync engine can
distinguish transient failures (worth retrying) from definitive ones, and
so ``CancelledError`` can propagate untouched through broad error
boundaries.

Exception hierarchy:

```text
CfgSyncError (base -- never raised directly)
├── ConfigurationError      -- invalid options, missing keys, bad YAML
├── ConnectivityError        -- transient: timeouts, 5xx, connection resets
│   └── RequestTimeoutError  -- a request or handshake timed out
├── AuthenticationError      -- no usable access token could be obtained
├── ProtocolError            -- malformed payload or hub protocol violation
└── ChannelError             -- push channel could not be established
```

See Also:
    [RetryingInvoker][cfgsync.core.retry.RetryingInvoker]: Retries
        [ConnectivityError][cfgsync.core.exceptions.ConnectivityError] and
        the equivalent aiohttp failures.
    [SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator]: Absorbs
        every [CfgSyncError][cfgsync.core.exceptions.CfgSyncError] raised
        during a load.
"""

from __future__ import annotations


class CfgSyncError(Exception):
    """Base exception for all cfgsync errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(CfgSyncError):
    """Invalid or missing configuration (YAML, env vars, constructor options).

    Raised before any network activity and never retried.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(CfgSyncError):
    """Transient network failure: unreachable host, reset, 5xx response.

    Callers may retry after a backoff.

    Attributes:
        status: HTTP status code when the failure came from a response,
            otherwise ``None``.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RequestTimeoutError(ConnectivityError):
    """A request, connection attempt, or handshake timed out."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationError(CfgSyncError):
    """The login endpoint did not yield a usable access token.

    Covers rejected credentials and tokens that fail validation (wrong
    type, non-positive lifetime, missing capability).
    """


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(CfgSyncError):
    """Malformed response body, unexpected message, or failed hub handshake."""


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------


class ChannelError(CfgSyncError):
    """The push-notification channel could not be established.

    The engine degrades to pull-only behaviour: explicit loads keep
    working and retry opening the channel.
    """
