"""
Settings scope, change notifications, and environment resolution.

A [Scope][cfgsync.models.scope.Scope] identifies which remote settings a
client tracks: an application name plus an optional environment. The
server broadcasts a [ChangeEvent][cfgsync.models.scope.ChangeEvent] for
every changed setting across all applications, so each client filters
events against its own scope before reloading.

Examples:
    ```python
    scope = Scope("billing", "prod")
    scope.matches(ChangeEvent("billing", "prod"))     # True
    scope.matches(ChangeEvent("billing", "staging"))  # False

    Scope("billing").matches(ChangeEvent("billing", "staging"))  # True
    ```
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ._validation import (
    validate_max_length,
    validate_optional_str,
    validate_str_no_null,
    validate_str_not_empty,
)
from .constants import MAX_NAME_LENGTH


def resolve_environment(explicit: str | None, ambient: str | None) -> str | None:
    """Pick the effective environment name for a client.

    An explicitly configured environment always wins. Without one, the
    ambient deployment environment (typically read from an environment
    variable) is used. Empty strings count as absent on both sides.

    Args:
        explicit: Environment from the client configuration.
        ambient: Environment advertised by the deployment.

    Returns:
        The effective environment, or ``None`` to track every environment
        of the application.
    """
    if explicit:
        return explicit
    if ambient:
        return ambient
    return None


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Notification that a setting changed for an application/environment.

    Attributes:
        application: Application whose setting changed.
        environment: Environment of the changed setting, or ``None`` when
            the setting is environment-independent.

    Raises:
        TypeError: If *application* is not a string or *environment* is
            neither a string nor ``None``.
    """

    application: str
    environment: str | None = None

    def __post_init__(self) -> None:
        validate_str_no_null(self.application, "application")
        if self.environment is not None:
            validate_str_no_null(self.environment, "environment")

    @classmethod
    def from_arguments(cls, arguments: Sequence[Any]) -> ChangeEvent:
        """Build an event from the argument list of a push invocation.

        The server sends ``[application]`` or ``[application, environment]``
        where *environment* may be ``null``.

        Raises:
            ValueError: If the argument list is empty or too long.
            TypeError: If an argument has the wrong type.
        """
        if not 1 <= len(arguments) <= 2:
            raise ValueError(f"expected 1 or 2 arguments, got {len(arguments)}")
        environment = arguments[1] if len(arguments) == 2 else None
        return cls(application=arguments[0], environment=environment)


@dataclass(frozen=True, slots=True)
class Scope:
    """The (application, environment) pair a client keeps in sync.

    Attributes:
        application: Application name (1-64 characters).
        environment: Environment name (at most 64 characters), or ``None``
            to act as a wildcard over every environment of the application.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If *application* is empty or a field is too long.
    """

    application: str
    environment: str | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.application, "application")
        validate_max_length(self.application, MAX_NAME_LENGTH, "application")
        validate_optional_str(self.environment, MAX_NAME_LENGTH, "environment")

    def matches(self, event: ChangeEvent) -> bool:
        """Return whether *event* concerns settings tracked by this scope.

        The application must match exactly. The environment must match
        exactly unless this scope has no environment, in which case every
        environment of the application matches.
        """
        if event.application != self.application:
            return False
        return self.environment is None or self.environment == event.environment

    def to_request_body(self) -> dict[str, str | None]:
        """Serialize the scope as the settings endpoint request body."""
        return {"application": self.application, "environment": self.environment}
