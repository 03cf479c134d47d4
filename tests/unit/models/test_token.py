"""Tests for cfgsync.models.token.AccessToken."""

from __future__ import annotations

from typing import Any

import pytest

from cfgsync.models.token import AccessToken


VALID = {
    "access_token": "abc",
    "token_type": "Bearer",
    "expires_in": 3600,
    "refresh_token": "refresh",
    "scope": "cfg-svc-read",
}


def _token(**overrides: Any) -> AccessToken:
    return AccessToken.from_response({**VALID, **overrides})


class TestFromResponse:
    def test_parses_fields(self) -> None:
        token = AccessToken.from_response(VALID)

        assert token.value == "abc"
        assert token.token_type == "Bearer"
        assert token.expires_in == 3600
        assert token.refresh_token == "refresh"
        assert token.scope == frozenset({"cfg-svc-read"})

    def test_space_delimited_scope(self) -> None:
        assert _token(scope="openid cfg-svc-read").scope == frozenset({"openid", "cfg-svc-read"})

    def test_list_scope(self) -> None:
        assert _token(scope=["cfg-svc-read", "other"]).scope == frozenset({"cfg-svc-read", "other"})

    def test_missing_members_default_to_empty(self) -> None:
        token = AccessToken.from_response({})

        assert token.value == ""
        assert token.token_type == ""
        assert token.expires_in == 0
        assert token.scope == frozenset()
        assert token.is_valid is False

    @pytest.mark.parametrize("data", [[], "token", None, 42])
    def test_non_object_rejected(self, data: Any) -> None:
        with pytest.raises(TypeError, match="login response must be an object"):
            AccessToken.from_response(data)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"access_token": 1},
            {"expires_in": "3600"},
            {"expires_in": True},
            {"scope": 5},
            {"scope": ["ok", 1]},
            {"refresh_token": 7},
        ],
    )
    def test_wrong_member_types_rejected(self, overrides: dict[str, Any]) -> None:
        with pytest.raises(TypeError):
            _token(**overrides)

    def test_value_not_in_repr(self) -> None:
        assert "abc" not in repr(_token())


class TestIsValid:
    def test_valid(self) -> None:
        assert _token().is_valid is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"access_token": ""},
            {"token_type": "MAC"},
            {"token_type": "bearer"},
            {"expires_in": 0},
            {"expires_in": -5},
            {"scope": "other"},
            {"scope": None},
        ],
    )
    def test_invalid(self, overrides: dict[str, Any]) -> None:
        assert _token(**overrides).is_valid is False


class TestAuthorizationHeader:
    def test_bearer_header(self) -> None:
        assert _token().authorization_header() == {"Authorization": "Bearer abc"}
