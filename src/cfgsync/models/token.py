"""
Bearer access token returned by the client-credentials login.

[AccessToken][cfgsync.models.token.AccessToken] parses the login response
without judging it; [is_valid][cfgsync.models.token.AccessToken.is_valid]
decides whether the token may be used to read settings. Parsing and
validation are kept apart so callers can log *why* a token was refused.

Examples:
    ```python
    token = AccessToken.from_response({
        "access_token": "abc",
        "token_type": "Bearer",
        "expires_in": 3600,
        "scope": "cfg-svc-read",
    })
    token.is_valid  # True
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_instance
from .constants import BEARER_TOKEN_TYPE, REQUIRED_TOKEN_SCOPE


def _parse_scope(raw: Any) -> frozenset[str]:
    """Normalize an OAuth ``scope`` value (space-delimited string or list)."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset(raw.split())
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        return frozenset(raw)
    raise TypeError(f"scope must be a str or list of str, got {type(raw).__name__}")


@dataclass(frozen=True, slots=True)
class AccessToken:
    """A short-lived token owned by a single load.

    Attributes:
        value: The opaque bearer credential sent in ``Authorization``.
        token_type: Token type reported by the server.
        expires_in: Lifetime in seconds reported by the server.
        scope: Capabilities granted to the token.
        refresh_token: Refresh token, unused by this client.
    """

    value: str = field(repr=False)
    token_type: str
    expires_in: int
    scope: frozenset[str] = field(default_factory=frozenset)
    refresh_token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        validate_instance(self.value, str, "value")
        validate_instance(self.token_type, str, "token_type")
        if isinstance(self.expires_in, bool) or not isinstance(self.expires_in, int):
            raise TypeError(f"expires_in must be an int, got {type(self.expires_in).__name__}")
        validate_instance(self.scope, frozenset, "scope")

    @classmethod
    def from_response(cls, data: Any) -> AccessToken:
        """Parse the JSON body of a successful login response.

        Args:
            data: Decoded JSON document with ``access_token``,
                ``token_type``, ``expires_in``, ``refresh_token``, and
                ``scope`` members. Missing members take empty defaults.

        Raises:
            TypeError: If the document is not an object or a member has
                the wrong type.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"login response must be an object, got {type(data).__name__}")
        refresh_token = data.get("refresh_token")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise TypeError("refresh_token must be a str")
        return cls(
            value=data.get("access_token") or "",
            token_type=data.get("token_type") or "",
            expires_in=data.get("expires_in") or 0,
            scope=_parse_scope(data.get("scope")),
            refresh_token=refresh_token,
        )

    @property
    def is_valid(self) -> bool:
        """Whether the token can be used to read settings.

        Requires a non-empty value, the ``Bearer`` type, a positive
        lifetime, and the ``cfg-svc-read`` capability.
        """
        return (
            bool(self.value)
            and self.token_type == BEARER_TOKEN_TYPE
            and self.expires_in > 0
            and REQUIRED_TOKEN_SCOPE in self.scope
        )

    def authorization_header(self) -> dict[str, str]:
        """Build the ``Authorization`` header carrying this token."""
        return {"Authorization": f"{BEARER_TOKEN_TYPE} {self.value}"}
