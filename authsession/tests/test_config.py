"""Tests for settings loading and configuration checks."""

import pytest
from pydantic import ValidationError

from authsession.config import Settings, validate_configuration

from conftest import TEST_ACCESS_SECRET, make_settings


def test_defaults():
    settings = make_settings()

    assert settings.JWT_ALGORITHM == "HS256"
    assert settings.access_token_ttl.total_seconds() == 15 * 60
    assert settings.refresh_token_ttl.days == 7
    assert settings.ROTATE_REFRESH_TOKENS is False
    assert settings.STORE_BACKEND == "memory"
    assert settings.allowed_origins_list == []


def test_secrets_required(monkeypatch):
    monkeypatch.delenv("ACCESS_TOKEN_SECRET", raising=False)
    monkeypatch.delenv("REFRESH_TOKEN_SECRET", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_secrets_loaded_from_environment(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", "a" * 32)
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", "b" * 32)
    monkeypatch.setenv("REFRESH_TOKEN_EXPIRY_DAYS", "30")

    settings = Settings(_env_file=None)

    assert settings.ACCESS_TOKEN_SECRET == "a" * 32
    assert settings.refresh_token_ttl.days == 30


def test_secrets_must_differ():
    with pytest.raises(ValidationError):
        make_settings(REFRESH_TOKEN_SECRET=TEST_ACCESS_SECRET)


def test_short_secret_rejected():
    with pytest.raises(ValidationError):
        make_settings(ACCESS_TOKEN_SECRET="too-short")


@pytest.mark.parametrize("algorithm", ["HS256", "HS384", "HS512"])
def test_hmac_algorithms_accepted(algorithm):
    assert make_settings(JWT_ALGORITHM=algorithm).JWT_ALGORITHM == algorithm


@pytest.mark.parametrize("algorithm", ["RS256", "none", "hs256"])
def test_other_algorithms_rejected(algorithm):
    with pytest.raises(ValidationError):
        make_settings(JWT_ALGORITHM=algorithm)


def test_store_backend_normalized():
    assert make_settings(STORE_BACKEND=" SQL ").STORE_BACKEND == "sql"
    with pytest.raises(ValidationError):
        make_settings(STORE_BACKEND="redis")


def test_allowed_origins_list():
    settings = make_settings(ALLOWED_ORIGINS="http://a.example, http://b.example ,")
    assert settings.allowed_origins_list == ["http://a.example", "http://b.example"]


class TestValidateConfiguration:

    def test_default_settings_are_valid(self):
        status = validate_configuration(make_settings())

        assert status["valid"] is True
        assert status["errors"] == []
        assert any("in-memory" in w for w in status["warnings"])

    def test_refresh_interval_must_undercut_access_ttl(self):
        status = validate_configuration(
            make_settings(ACCESS_TOKEN_EXPIRY_MINUTES=5, CLIENT_REFRESH_INTERVAL_SECONDS=300)
        )

        assert status["valid"] is False
        assert len(status["errors"]) == 1

    def test_thin_refresh_margin_warns(self):
        status = validate_configuration(
            make_settings(ACCESS_TOKEN_EXPIRY_MINUTES=5, CLIENT_REFRESH_INTERVAL_SECONDS=290)
        )

        assert status["valid"] is True
        assert any("margin" in w for w in status["warnings"])

    def test_rotation_warns(self):
        status = validate_configuration(make_settings(ROTATE_REFRESH_TOKENS=True))
        assert any("rotation" in w for w in status["warnings"])
