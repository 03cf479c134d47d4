"""Client credentials presented to the login endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field

from ._validation import validate_max_length, validate_optional_str, validate_str_not_empty
from .constants import MAX_NAME_LENGTH


@dataclass(frozen=True, slots=True)
class Credentials:
    """Immutable client id/secret pair.

    The secret is excluded from ``repr`` so credentials can be logged or
    shown in tracebacks without leaking it.

    Attributes:
        client_id: Client identifier registered with the service (1-64 characters).
        client_secret: Optional client secret (at most 64 characters).

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If *client_id* is empty or a field is too long.
    """

    client_id: str
    client_secret: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        validate_str_not_empty(self.client_id, "client_id")
        validate_max_length(self.client_id, MAX_NAME_LENGTH, "client_id")
        validate_optional_str(self.client_secret, MAX_NAME_LENGTH, "client_secret")

    def to_login_body(self) -> dict[str, str | None]:
        """Serialize as the camel-cased login request body."""
        return {"clientId": self.client_id, "clientSecret": self.client_secret}
