"""
Token Refresher
===============

Exchanges a refresh token for a new access token.

A refresh token is accepted only when all of the following hold:

1. Signature and ``exp`` verify under the refresh-token key
2. A store record exists for the exact token string
3. The record's own ``expires_at`` has not passed

Any failure among these yields the same InvalidToken result.

By default the refresh token is not rotated: the presented token and its
record stay valid until logout or expiry. With ``ROTATE_REFRESH_TOKENS``
enabled, each successful refresh also returns a new refresh token and
revokes the presented one.
"""

import logging

from ..config import Settings
from ..models import AuthResult, ErrorKind, RenewalCredentialRecord
from .errors import (
    InputValidationError,
    InvalidRefreshTokenError,
    SessionError,
    UserNotFoundError,
)
from .store import CredentialStore
from .tokens import TokenCodec

logger = logging.getLogger(__name__)


class TokenRefresher:

    def __init__(self, store: CredentialStore, codec: TokenCodec, settings: Settings):
        self._store = store
        self._codec = codec
        self._rotate = settings.ROTATE_REFRESH_TOKENS

    def refresh(self, refresh_token: str) -> AuthResult:
        try:
            if not refresh_token:
                raise InputValidationError("Refresh token required")

            claims = self._codec.verify_refresh_token(refresh_token)
            if claims is None:
                raise InvalidRefreshTokenError()

            record = self._store.find_renewal_record_by_token(refresh_token)
            if record is None or record.is_expired():
                raise InvalidRefreshTokenError()

            principal = self._store.find_principal_by_id(claims["userId"])
            if principal is None:
                raise UserNotFoundError()

            access_token = self._codec.issue_access_token(principal.id, principal.role)

            if not self._rotate:
                return AuthResult.ok("Token refreshed successfully", accessToken=access_token)

            issued = self._codec.issue_refresh_token(principal.id)
            replaced = self._store.replace_renewal_record(
                refresh_token,
                RenewalCredentialRecord(
                    principal_id=principal.id,
                    token=issued.token,
                    expires_at=issued.expires_at,
                ),
            )
            if not replaced:
                # Lost a race with logout or a concurrent refresh of the same token
                raise InvalidRefreshTokenError()

            logger.debug("Rotated refresh token", extra={"user_id": principal.id})
            return AuthResult.ok(
                "Token refreshed successfully",
                accessToken=access_token,
                refreshToken=issued.token,
            )

        except SessionError as e:
            logger.info(f"Refresh rejected: {e.kind.value}")
            return e.to_result()
        except Exception:
            logger.exception("Token refresh error")
            return AuthResult.fail(ErrorKind.UNEXPECTED_FAILURE, "Error refreshing token")
