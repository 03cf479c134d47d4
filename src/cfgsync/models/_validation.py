"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used exclusively by
``__post_init__`` methods in sibling model modules to enforce runtime
type constraints, null-byte safety, and length limits.
"""

from __future__ import annotations

from typing import Any


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def validate_max_length(value: str, max_length: int, name: str) -> None:
    """Raise ``ValueError`` if *value* is longer than *max_length* characters."""
    if len(value) > max_length:
        raise ValueError(f"{name} must be at most {max_length} characters, got {len(value)}")


def validate_optional_str(value: Any, max_length: int, name: str) -> None:
    """Validate a ``str | None`` field: ``None`` passes, strings are length-checked."""
    if value is None:
        return
    validate_str_no_null(value, name)
    validate_max_length(value, max_length, name)
