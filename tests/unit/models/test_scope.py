"""Tests for cfgsync.models.scope: Scope, ChangeEvent, and resolve_environment."""

from __future__ import annotations

import pytest

from cfgsync.models.scope import ChangeEvent, Scope, resolve_environment


# =============================================================================
# resolve_environment
# =============================================================================


class TestResolveEnvironment:
    @pytest.mark.parametrize(
        ("explicit", "ambient", "expected"),
        [
            ("prod", "staging", "prod"),
            ("prod", None, "prod"),
            (None, "staging", "staging"),
            ("", "staging", "staging"),
            (None, None, None),
            ("", "", None),
        ],
    )
    def test_explicit_over_ambient(
        self, explicit: str | None, ambient: str | None, expected: str | None
    ) -> None:
        assert resolve_environment(explicit, ambient) == expected


# =============================================================================
# ChangeEvent
# =============================================================================


class TestChangeEvent:
    def test_defaults(self) -> None:
        event = ChangeEvent("billing")
        assert event.environment is None

    def test_frozen(self) -> None:
        event = ChangeEvent("billing", "prod")
        with pytest.raises(AttributeError):
            event.application = "other"  # type: ignore[misc]

    def test_application_must_be_str(self) -> None:
        with pytest.raises(TypeError):
            ChangeEvent(42)  # type: ignore[arg-type]

    def test_environment_must_be_str_or_none(self) -> None:
        with pytest.raises(TypeError):
            ChangeEvent("billing", 1)  # type: ignore[arg-type]

    def test_from_one_argument(self) -> None:
        assert ChangeEvent.from_arguments(["billing"]) == ChangeEvent("billing", None)

    def test_from_two_arguments(self) -> None:
        assert ChangeEvent.from_arguments(("billing", "prod")) == ChangeEvent("billing", "prod")

    def test_from_null_environment(self) -> None:
        assert ChangeEvent.from_arguments(["billing", None]) == ChangeEvent("billing")

    @pytest.mark.parametrize("arguments", [[], ["a", "b", "c"]])
    def test_wrong_argument_count(self, arguments: list[str]) -> None:
        with pytest.raises(ValueError, match="expected 1 or 2 arguments"):
            ChangeEvent.from_arguments(arguments)

    def test_wrong_argument_type(self) -> None:
        with pytest.raises(TypeError):
            ChangeEvent.from_arguments([{"application": "billing"}])


# =============================================================================
# Scope
# =============================================================================


class TestScopeConstruction:
    def test_application_required(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            Scope("")

    def test_application_max_length(self) -> None:
        Scope("a" * 64)
        with pytest.raises(ValueError):
            Scope("a" * 65)

    def test_environment_max_length(self) -> None:
        with pytest.raises(ValueError):
            Scope("billing", "e" * 65)

    def test_to_request_body(self) -> None:
        assert Scope("billing", "prod").to_request_body() == {
            "application": "billing",
            "environment": "prod",
        }
        assert Scope("billing").to_request_body() == {"application": "billing", "environment": None}


class TestScopeMatches:
    @pytest.mark.parametrize(
        ("scope", "event", "expected"),
        [
            (Scope("billing", "prod"), ChangeEvent("billing", "prod"), True),
            (Scope("billing", "prod"), ChangeEvent("billing", "staging"), False),
            (Scope("billing", "prod"), ChangeEvent("billing", None), False),
            (Scope("billing", "prod"), ChangeEvent("orders", "prod"), False),
            (Scope("billing"), ChangeEvent("billing", "staging"), True),
            (Scope("billing"), ChangeEvent("billing", None), True),
            (Scope("billing"), ChangeEvent("orders", None), False),
        ],
    )
    def test_matching_rule(self, scope: Scope, event: ChangeEvent, expected: bool) -> None:
        assert scope.matches(event) is expected

    def test_application_match_is_case_sensitive(self) -> None:
        assert Scope("billing").matches(ChangeEvent("Billing")) is False
