"""
Session Issuer
==============

Registration, login and logout over the credential store.

Every public method returns an ``AuthResult``; no exception escapes to the
routing layer. Expected failures are ``SessionError`` subclasses converted
to failure results, anything else is logged and reported as an unexpected
failure with a generic per-operation message.
"""

import logging

from ..config import Settings
from ..models import AuthResult, EmailCheck, ErrorKind, Principal, RenewalCredentialRecord
from .errors import (
    MSG_INVALID_EMAIL,
    DuplicateEmailError,
    InputValidationError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    SessionError,
    UserNotFoundError,
)
from .password import dummy_verify, hash_password, verify_password
from .store import CredentialStore
from .tokens import TokenCodec

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class SessionIssuer:
    """Creates principals and mints / revokes token pairs."""

    def __init__(self, store: CredentialStore, codec: TokenCodec, settings: Settings):
        self._store = store
        self._codec = codec
        self._settings = settings

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, name: str, email: str, password: str) -> AuthResult:
        """
        Register a new principal with the default ``user`` role.

        Returns:
            AuthResult with ``user`` (no password hash) on success, or a
            ValidationError / DuplicateEmail failure.
        """
        try:
            if not (name or "").strip() or not email or not password:
                raise InputValidationError()
            _check_email(email)
            _check_password(password)

            if self._store.find_principal_by_email(email) is not None:
                raise DuplicateEmailError()

            principal = Principal(
                name=name,
                email=email,
                password_hash=hash_password(password, rounds=self._settings.BCRYPT_ROUNDS),
            )
            # The store re-checks the email atomically for concurrent registrations
            self._store.insert_principal(principal)

            logger.info("Registered principal", extra={"user_id": principal.id})
            return AuthResult.ok("Registration successful", user=principal.public())

        except SessionError as e:
            logger.info(f"Registration rejected: {e.kind.value}")
            return e.to_result()
        except Exception:
            logger.exception("Registration error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Error during registration")

    # =========================================================================
    # Login
    # =========================================================================

    def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password and issue a token pair.

        Unknown email and wrong password fail identically.
        """
        try:
            if not email or not password:
                raise InputValidationError("Email and password required")

            principal = self._store.find_principal_by_email(email)
            if principal is None:
                dummy_verify(password, rounds=self._settings.BCRYPT_ROUNDS)
                raise InvalidCredentialsError()

            if not verify_password(password, principal.password_hash):
                raise InvalidCredentialsError()

            access_token = self._codec.issue_access_token(principal.id, principal.role)
            refresh = self._codec.issue_refresh_token(principal.id)
            self._store.insert_renewal_record(
                RenewalCredentialRecord(
                    principal_id=principal.id,
                    token=refresh.token,
                    expires_at=refresh.expires_at,
                )
            )

            logger.info("Login succeeded", extra={"user_id": principal.id})
            return AuthResult.ok(
                "Login successful",
                accessToken=access_token,
                refreshToken=refresh.token,
                user=principal.public(),
            )

        except SessionError as e:
            logger.info(f"Login rejected: {e.kind.value}")
            return e.to_result()
        except Exception:
            logger.exception("Login error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Error during login")

    # =========================================================================
    # Logout
    # =========================================================================

    def logout(self, refresh_token: str) -> AuthResult:
        """
        Revoke one refresh token.

        Fails with InvalidToken when no record exists, including on a second
        logout with the same token.
        """
        try:
            if not refresh_token:
                raise InputValidationError("Refresh token required")
            if not self._store.delete_renewal_record(refresh_token):
                raise InvalidRefreshTokenError()

            logger.info("Refresh token revoked")
            return AuthResult.ok("Logged out successfully")

        except SessionError as e:
            logger.info(f"Logout rejected: {e.kind.value}")
            return e.to_result()
        except Exception:
            logger.exception("Logout error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Error during logout")

    def logout_all(self, principal_id: str) -> AuthResult:
        """Revoke every refresh token held by ``principal_id``."""
        try:
            if not principal_id:
                raise InputValidationError()
            revoked = self._store.delete_all_renewal_records_for_principal(principal_id)
            logger.info(
                "Revoked all refresh tokens",
                extra={"user_id": principal_id, "revoked": revoked},
            )
            return AuthResult.ok("Logged out from all sessions", revoked=revoked)

        except SessionError as e:
            return e.to_result()
        except Exception:
            logger.exception("Logout-all error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Error during logout")

    # =========================================================================
    # Profile
    # =========================================================================

    def get_profile(self, principal_id: str) -> AuthResult:
        """Return the stored principal for an already-authenticated caller."""
        try:
            principal = self._store.find_principal_by_id(principal_id) if principal_id else None
            if principal is None:
                raise UserNotFoundError()
            return AuthResult.ok("Profile retrieved successfully", user=principal.public())

        except SessionError as e:
            return e.to_result()
        except Exception:
            logger.exception("Get profile error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Server error")


def _check_email(email: str) -> None:
    try:
        EmailCheck(email=email)
    except ValueError as e:
        raise InputValidationError(MSG_INVALID_EMAIL) from e


def _check_password(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InputValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
