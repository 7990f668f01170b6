"""Tests for bearer extraction and role checks."""

from datetime import timedelta

import pytest

from authsession.auth.guard import extract_bearer
from authsession.auth.tokens import issue_token
from authsession.models import Role, utcnow

from conftest import TEST_ACCESS_SECRET, TEST_REFRESH_SECRET


@pytest.mark.parametrize("header,expected", [
    ("Bearer abc", "abc"),
    ("Bearer a.b.c", "a.b.c"),
    ("bearer abc", None),
    ("BEARER abc", None),
    ("Bearerabc", None),
    ("Basic abc", None),
    ("Bearer ", None),
    ("", None),
    (None, None),
])
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected


class TestCheckAuth:

    def test_valid_token(self, guard, codec):
        token = codec.issue_access_token("u1", Role.USER)
        auth = guard.check_auth(f"Bearer {token}")

        assert auth.isAuthenticated is True
        assert auth.userId == "u1"
        assert auth.userRole == "user"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer garbage", "Token abc"])
    def test_unauthenticated(self, guard, header):
        auth = guard.check_auth(header)

        assert auth.isAuthenticated is False
        assert auth.userId is None
        assert auth.userRole is None

    def test_refresh_token_rejected(self, guard, codec):
        token = codec.issue_refresh_token("u1").token
        assert guard.check_auth(f"Bearer {token}").isAuthenticated is False

    def test_expired_token(self, guard):
        token = issue_token(
            {"userId": "u1", "role": "user"},
            TEST_ACCESS_SECRET,
            timedelta(minutes=15),
            issued_at=utcnow() - timedelta(minutes=20),
        )
        assert guard.check_auth(f"Bearer {token}").isAuthenticated is False

    def test_token_signed_with_refresh_key(self, guard):
        token = issue_token({"userId": "u1", "role": "admin"}, TEST_REFRESH_SECRET, timedelta(minutes=15))
        assert guard.check_auth(f"Bearer {token}").isAuthenticated is False


class TestRequireRole:

    def test_admin_has_admin(self, guard, codec):
        header = f"Bearer {codec.issue_access_token('a1', Role.ADMIN)}"
        check = guard.require_role(header, "admin")

        assert check.isAuthenticated is True
        assert check.hasRequiredRole is True
        assert check.userRole == "admin"

    def test_user_lacks_admin(self, guard, codec):
        header = f"Bearer {codec.issue_access_token('u1', Role.USER)}"
        check = guard.require_role(header, "admin")

        assert check.isAuthenticated is True
        assert check.hasRequiredRole is False

    def test_enum_role_accepted(self, guard, codec):
        header = f"Bearer {codec.issue_access_token('a1', Role.ADMIN)}"
        assert guard.require_role(header, Role.ADMIN).hasRequiredRole is True

    def test_no_required_role(self, guard, codec):
        header = f"Bearer {codec.issue_access_token('a1', Role.ADMIN)}"
        check = guard.require_role(header, None)

        assert check.isAuthenticated is True
        assert check.hasRequiredRole is False

    @pytest.mark.parametrize("header", [None, "Bearer garbage"])
    def test_unauthenticated(self, guard, header):
        check = guard.require_role(header, "admin")

        assert check.isAuthenticated is False
        assert check.hasRequiredRole is False

    def test_role_match_is_case_sensitive(self, guard, codec):
        header = f"Bearer {codec.issue_access_token('a1', Role.ADMIN)}"
        assert guard.require_role(header, "Admin").hasRequiredRole is False
