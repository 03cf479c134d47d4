"""
Remote settings and the immutable local snapshot built from them.

[Setting][cfgsync.models.settings.Setting] is one ``{key, value}`` pair from
the settings endpoint. [SettingsSnapshot][cfgsync.models.settings.SettingsSnapshot]
is the read-only mapping handed to the host; a new snapshot is built for
every load and swapped in whole, so readers never see a partially updated
view and keys deleted remotely never survive locally.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ._validation import validate_str_no_null


@dataclass(frozen=True, slots=True)
class Setting:
    """A single remote setting.

    Attributes:
        key: Setting key, e.g. ``"Database:Timeout"``.
        value: Setting value, or ``None`` when the setting has no value.
    """

    key: str
    value: str | None = None

    def __post_init__(self) -> None:
        validate_str_no_null(self.key, "key")
        if self.value is not None:
            validate_str_no_null(self.value, "value")

    @classmethod
    def from_json(cls, item: Any) -> Setting:
        """Parse one element of the settings endpoint response.

        Property names are matched case-insensitively because the service
        may serialize them as ``key``/``value`` or ``Key``/``Value``. A
        missing ``value`` is treated as ``None``.

        Raises:
            TypeError: If *item* is not an object, or the key or value has
                the wrong type.
            ValueError: If the object has no key.
        """
        if not isinstance(item, Mapping):
            raise TypeError(f"setting must be an object, got {type(item).__name__}")
        folded = {str(name).lower(): value for name, value in item.items()}
        if "key" not in folded:
            raise ValueError("setting has no key")
        return cls(key=folded["key"], value=folded.get("value"))


class SettingsSnapshot(Mapping[str, str | None]):
    """Immutable mapping from setting key to value.

    Behaves like a read-only ``dict``. Equality compares against any
    ``Mapping``, so a snapshot equals the plain ``dict`` with the same items.

    Examples:
        ```python
        snapshot = SettingsSnapshot.from_settings([Setting("timeout", "30")])
        snapshot["timeout"]   # '30'
        snapshot == {"timeout": "30"}  # True
        ```
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, str | None] | None = None) -> None:
        self._data: Mapping[str, str | None] = MappingProxyType(dict(data or {}))

    @classmethod
    def empty(cls) -> SettingsSnapshot:
        """Return a snapshot with no settings."""
        return cls()

    @classmethod
    def from_settings(cls, settings: Iterable[Setting]) -> SettingsSnapshot:
        """Build a snapshot from settings returned by the service.

        Raises:
            ValueError: If the same key appears more than once.
        """
        data: dict[str, str | None] = {}
        for setting in settings:
            if setting.key in data:
                raise ValueError(f"duplicate setting key: {setting.key!r}")
            data[setting.key] = setting.value
        return cls(data)

    def __getitem__(self, key: str) -> str | None:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"SettingsSnapshot({dict(self._data)!r})"
