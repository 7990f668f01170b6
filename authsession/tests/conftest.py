"""Shared fixtures for the session service tests."""

import pytest
from fastapi.testclient import TestClient

from authsession.auth.guard import AuthorizationGuard
from authsession.auth.issuer import SessionIssuer
from authsession.auth.password import hash_password
from authsession.auth.refresher import TokenRefresher
from authsession.auth.store import InMemoryCredentialStore
from authsession.auth.tokens import TokenCodec
from authsession.config import Settings
from authsession.main import create_app
from authsession.models import Principal, Role

TEST_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
TEST_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
TEST_ROUNDS = 4


def make_settings(**overrides) -> Settings:
    """Build settings without reading the environment's .env file."""
    values = {
        "ACCESS_TOKEN_SECRET": TEST_ACCESS_SECRET,
        "REFRESH_TOKEN_SECRET": TEST_REFRESH_SECRET,
        "BCRYPT_ROUNDS": TEST_ROUNDS,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def codec(settings):
    return TokenCodec(settings)


@pytest.fixture
def issuer(store, codec, settings):
    return SessionIssuer(store, codec, settings)


@pytest.fixture
def refresher(store, codec, settings):
    return TokenRefresher(store, codec, settings)


@pytest.fixture
def guard(codec):
    return AuthorizationGuard(codec)


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin(store):
    """An admin principal inserted directly into the store (password 'admin-pass')."""
    principal = Principal(
        name="Root",
        email="root@example.com",
        password_hash=hash_password("admin-pass", rounds=TEST_ROUNDS),
        role=Role.ADMIN,
    )
    return store.insert_principal(principal)
