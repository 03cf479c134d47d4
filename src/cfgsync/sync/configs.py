"""Configuration models for the settings sync client.

[SyncConfig][cfgsync.sync.configs.SyncConfig] is the complete, validated
configuration surface of one client: where the service lives, which
scope to track, how to authenticate, and how the network layers behave.
Invalid configuration raises at construction, before any network
activity.

See Also:
    [SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator]: The
        component that consumes this configuration.
    [RetryConfig][cfgsync.core.retry.RetryConfig],
    [MetricsConfig][cfgsync.core.metrics.MetricsConfig]: Embedded models
        owned by the core layer.

Examples:
    ```yaml
    url: https://cfg.example.com
    application: billing
    environment: prod
    client_id: billing-service
    client_secret: s3cret
    reload_on_change: true
    timeout: 10
    retry:
      max_retries: 3
    channel:
      keepalive_interval: 15
    ```
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from cfgsync.core.metrics import MetricsConfig
from cfgsync.core.retry import RetryConfig
from cfgsync.models import (
    BACKCHANNEL_PATH,
    MAX_NAME_LENGTH,
    Credentials,
    Scope,
    resolve_environment,
)


DEFAULT_URL = "https://localhost:7145/"
DEFAULT_ENVIRONMENT_ENV = "CFGSYNC_ENVIRONMENT"


class ChannelConfig(BaseModel):
    """Push channel transport settings.

    Note:
        ``server_timeout`` must exceed ``keepalive_interval``, otherwise a
        healthy but quiet server would be declared lost between pings.
    """

    keepalive_interval: float = Field(default=15.0, gt=0.0, description="Seconds between client pings")
    server_timeout: float = Field(default=30.0, gt=0.0, description="Silence before the connection is lost")
    handshake_timeout: float = Field(default=15.0, gt=0.0, description="Bound on each connection step")
    reconnect_delays: list[float] = Field(
        default_factory=lambda: [0.0, 2.0, 10.0, 30.0],
        max_length=20,
        description="Delays before each automatic reconnect attempt",
    )

    @field_validator("reconnect_delays")
    @classmethod
    def _validate_reconnect_delays(cls, v: list[float]) -> list[float]:
        if any(delay < 0 for delay in v):
            raise ValueError("reconnect_delays must not contain negative values")
        return v

    @model_validator(mode="after")
    def _validate_timeouts(self) -> ChannelConfig:
        if self.server_timeout <= self.keepalive_interval:
            msg = (
                f"server_timeout ({self.server_timeout}) "
                f"must exceed keepalive_interval ({self.keepalive_interval})"
            )
            raise ValueError(msg)
        return self


class SyncConfig(BaseModel):
    """Configuration of one settings sync client.

    Attributes:
        url: Base URL of the configuration service, normalized to end
            with ``/``.
        application: Application whose settings are tracked.
        environment: Environment to track. When unset, it is taken from
            the variable named by ``environment_env`` at construction; when
            that is unset too, every environment of the application is
            tracked.
        environment_env: Name of the ambient deployment-environment variable.
        client_id: Client identifier for the login endpoint.
        client_secret: Client secret for the login endpoint.
        reload_on_change: Open the push channel and reload on matching
            change notifications.
        timeout: Per-request timeout in seconds (``None`` = aiohttp default).
        max_response_size: Upper bound on any response body, in bytes.
        retry: Backoff policy for transient failures.
        channel: Push channel transport settings.
        metrics: Prometheus endpoint settings (command-line runner only).
    """

    url: str = Field(default=DEFAULT_URL, description="Configuration service base URL")
    application: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    environment: str | None = Field(default=None, max_length=MAX_NAME_LENGTH)
    environment_env: str = Field(default=DEFAULT_ENVIRONMENT_ENV, min_length=1)
    client_id: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    client_secret: SecretStr | None = Field(default=None)
    reload_on_change: bool = Field(default=False, description="Reload on push notifications")
    timeout: float | None = Field(default=None, gt=0.0, description="Per-request timeout in seconds")
    max_response_size: int = Field(default=5 * 1024 * 1024, ge=1024, description="Max body bytes")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        uri = uri_reference(v.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("http", "https")
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be http or https") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query or uri.fragment:
            raise ValueError("url must not contain a query string or fragment")

        url = uri.unsplit()
        return url if url.endswith("/") else f"{url}/"

    @field_validator("application", "client_id", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("environment", mode="before")
    @classmethod
    def _empty_environment_is_none(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("client_secret")
    @classmethod
    def _validate_secret_length(cls, v: SecretStr | None) -> SecretStr | None:
        if v is not None and len(v.get_secret_value()) > MAX_NAME_LENGTH:
            raise ValueError(f"client_secret must be at most {MAX_NAME_LENGTH} characters")
        return v

    @model_validator(mode="after")
    def _resolve_environment(self) -> SyncConfig:
        ambient = (os.environ.get(self.environment_env) or "").strip()
        environment = resolve_environment(self.environment, ambient)
        if environment is not None and len(environment) > MAX_NAME_LENGTH:
            msg = (
                f"{self.environment_env} must be at most {MAX_NAME_LENGTH} characters, "
                f"got {len(environment)}"
            )
            raise ValueError(msg)
        self.environment = environment
        return self

    # -- Derived values -------------------------------------------------------

    @property
    def scope(self) -> Scope:
        """The (application, environment) pair this client tracks."""
        return Scope(self.application, self.environment)

    @property
    def credentials(self) -> Credentials:
        secret = self.client_secret.get_secret_value() if self.client_secret else None
        return Credentials(self.client_id, secret)

    @property
    def backchannel_url(self) -> str:
        """Push hub URL: ``{url}_backchannel``."""
        return f"{self.url}{BACKCHANNEL_PATH}"
