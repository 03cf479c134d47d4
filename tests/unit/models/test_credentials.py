"""Tests for cfgsync.models.credentials.Credentials."""

from __future__ import annotations

import pytest

from cfgsync.models.credentials import Credentials


class TestCredentials:
    def test_to_login_body(self) -> None:
        creds = Credentials("billing-service", "s3cret")
        assert creds.to_login_body() == {"clientId": "billing-service", "clientSecret": "s3cret"}

    def test_secret_optional(self) -> None:
        assert Credentials("billing-service").to_login_body()["clientSecret"] is None

    def test_secret_not_in_repr(self) -> None:
        assert "s3cret" not in repr(Credentials("billing-service", "s3cret"))

    def test_client_id_required(self) -> None:
        with pytest.raises(ValueError):
            Credentials("")

    def test_lengths_bounded(self) -> None:
        with pytest.raises(ValueError):
            Credentials("c" * 65)
        with pytest.raises(ValueError):
            Credentials("client", "s" * 65)

    def test_wrong_types(self) -> None:
        with pytest.raises(TypeError):
            Credentials(None)  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            Credentials("client", 123)  # type: ignore[arg-type]
