"""Tests for registration, login and logout."""

import threading
from unittest.mock import patch

import pytest

from authsession.auth.issuer import MAX_PASSWORD_BYTES, SessionIssuer
from authsession.auth.store import InMemoryCredentialStore
from authsession.auth.tokens import TokenCodec
from authsession.models import ErrorKind, Role

from conftest import make_settings


def register_ann(issuer):
    return issuer.register("Ann", "ann@example.com", "pw123456")


class TestRegister:

    def test_register_success(self, issuer, store):
        result = register_ann(issuer)

        assert result.success is True
        assert result.message == "Registration successful"
        assert result.user.email == "ann@example.com"
        assert result.user.role is Role.USER
        assert store.find_principal_by_email("ann@example.com") is not None

    def test_response_never_carries_password_hash(self, issuer):
        body = register_ann(issuer).to_body()

        assert "password" not in str(body)
        assert "password_hash" not in body["user"]
        assert "accessToken" not in body

    def test_password_is_hashed_in_store(self, issuer, store):
        register_ann(issuer)
        stored = store.find_principal_by_email("ann@example.com")

        assert stored.password_hash != "pw123456"
        assert stored.password_hash.startswith("$2")

    @pytest.mark.parametrize("name,email,password", [
        ("", "ann@example.com", "pw123456"),
        ("   ", "ann@example.com", "pw123456"),
        ("Ann", "", "pw123456"),
        ("Ann", "ann@example.com", ""),
    ])
    def test_missing_fields(self, issuer, name, email, password):
        result = issuer.register(name, email, password)

        assert result.success is False
        assert result.error is ErrorKind.VALIDATION_ERROR
        assert result.message == "Missing required fields"

    def test_invalid_email(self, issuer):
        result = issuer.register("Ann", "not-an-email", "pw123456")

        assert result.error is ErrorKind.VALIDATION_ERROR
        assert result.message == "Invalid email address"

    def test_overlong_password(self, issuer):
        result = issuer.register("Ann", "ann@example.com", "x" * (MAX_PASSWORD_BYTES + 1))
        assert result.error is ErrorKind.VALIDATION_ERROR

    def test_duplicate_email(self, issuer):
        register_ann(issuer)
        result = issuer.register("Other Ann", "ann@example.com", "different-pw")

        assert result.success is False
        assert result.error is ErrorKind.DUPLICATE_EMAIL
        assert result.message == "Email already registered"

    def test_email_is_case_sensitive(self, issuer):
        register_ann(issuer)
        assert issuer.register("Ann", "Ann@example.com", "pw123456").success is True

    def test_concurrent_registrations_one_wins(self, store, codec):
        # Skip the pre-check so both threads reach the store insert
        issuer = SessionIssuer(store, codec, make_settings())
        barrier = threading.Barrier(2)
        results = []

        def register():
            barrier.wait()
            results.append(register_ann(issuer))

        with patch.object(store, "find_principal_by_email", return_value=None):
            threads = [threading.Thread(target=register) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert [r.success for r in results].count(True) == 1
        assert [r.error for r in results].count(ErrorKind.DUPLICATE_EMAIL) == 1
        assert len(store.list_principals()) == 1

    def test_unexpected_store_failure(self, issuer, store):
        with patch.object(store, "insert_principal", side_effect=RuntimeError("disk gone")):
            result = register_ann(issuer)

        assert result.success is False
        assert result.error is ErrorKind.UNEXPECTED_FAILURE
        assert result.message == "Error during registration"


class TestLogin:

    def test_login_success(self, issuer, codec, store):
        register_ann(issuer)
        result = issuer.login("ann@example.com", "pw123456")

        assert result.success is True
        assert result.message == "Login successful"
        assert result.user.email == "ann@example.com"

        access = codec.verify_access_token(result.accessToken)
        refresh = codec.verify_refresh_token(result.refreshToken)
        assert access["userId"] == result.user.id
        assert access["role"] == "user"
        assert refresh["userId"] == result.user.id

        record = store.find_renewal_record_by_token(result.refreshToken)
        assert record.principal_id == result.user.id
        assert int(record.expires_at.timestamp()) == refresh["exp"]

    def test_each_login_creates_a_record(self, issuer, store):
        register_ann(issuer)
        first = issuer.login("ann@example.com", "pw123456")
        second = issuer.login("ann@example.com", "pw123456")

        assert first.refreshToken != second.refreshToken
        assert store.find_renewal_record_by_token(first.refreshToken) is not None
        assert store.find_renewal_record_by_token(second.refreshToken) is not None

    def test_wrong_password_and_unknown_email_are_indistinguishable(self, issuer):
        register_ann(issuer)
        wrong_password = issuer.login("ann@example.com", "nope")
        unknown_email = issuer.login("bob@example.com", "pw123456")

        assert wrong_password.error is ErrorKind.INVALID_CREDENTIALS
        assert unknown_email.to_body() == wrong_password.to_body()
        assert unknown_email.error == wrong_password.error

    def test_unknown_email_still_spends_hash_time(self, issuer):
        with patch("authsession.auth.issuer.dummy_verify", return_value=False) as dummy:
            issuer.login("bob@example.com", "pw123456")
        dummy.assert_called_once()

    @pytest.mark.parametrize("email,password", [("", "pw"), ("ann@example.com", "")])
    def test_missing_fields(self, issuer, email, password):
        result = issuer.login(email, password)

        assert result.error is ErrorKind.VALIDATION_ERROR
        assert result.message == "Email and password required"

    def test_admin_role_in_access_token(self, issuer, codec, admin):
        result = issuer.login("root@example.com", "admin-pass")
        assert codec.verify_access_token(result.accessToken)["role"] == "admin"


class TestLogout:

    def test_logout_revokes_record(self, issuer, store):
        register_ann(issuer)
        token = issuer.login("ann@example.com", "pw123456").refreshToken

        result = issuer.logout(token)

        assert result.success is True
        assert result.message == "Logged out successfully"
        assert store.find_renewal_record_by_token(token) is None

    def test_second_logout_fails(self, issuer):
        register_ann(issuer)
        token = issuer.login("ann@example.com", "pw123456").refreshToken
        issuer.logout(token)

        result = issuer.logout(token)

        assert result.success is False
        assert result.error is ErrorKind.INVALID_TOKEN

    def test_logout_unknown_token(self, issuer):
        assert issuer.logout("never-issued").error is ErrorKind.INVALID_TOKEN

    def test_logout_requires_token(self, issuer):
        result = issuer.logout("")
        assert result.error is ErrorKind.VALIDATION_ERROR
        assert result.message == "Refresh token required"

    def test_logout_all(self, issuer, store):
        user = register_ann(issuer).user
        tokens = [issuer.login("ann@example.com", "pw123456").refreshToken for _ in range(3)]

        result = issuer.logout_all(user.id)

        assert result.success is True
        assert result.revoked == 3
        assert all(store.find_renewal_record_by_token(t) is None for t in tokens)


class TestProfile:

    def test_profile(self, issuer):
        user = register_ann(issuer).user
        result = issuer.get_profile(user.id)

        assert result.success is True
        assert result.user == user

    def test_profile_unknown_principal(self, issuer):
        result = issuer.get_profile("missing")

        assert result.error is ErrorKind.USER_NOT_FOUND
        assert result.message == "User not found"


def test_issuer_with_separate_store_instances_do_not_share_state():
    settings = make_settings()
    codec = TokenCodec(settings)
    first = SessionIssuer(InMemoryCredentialStore(), codec, settings)
    second = SessionIssuer(InMemoryCredentialStore(), codec, settings)

    register_ann(first)
    assert register_ann(second).success is True
