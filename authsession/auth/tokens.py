"""
JWT Token Codec Module
======================

Handles creation and verification of the two token classes issued by the
service:

- Access tokens: short-lived, stateless, verified by signature and expiry only
- Refresh tokens: long-lived, additionally backed by a revocable store record

Each class is signed with its own HMAC secret. Verification failures of any
kind (malformed, bad signature, expired, wrong algorithm) collapse into a
single ``None`` result; the reason is only ever logged at DEBUG.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import InvalidTokenError

from ..config import Settings
from ..models import Role

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class TokenCodecError(Exception):
    """Raised when a token cannot be created"""
    pass


# =============================================================================
# Generic Codec
# =============================================================================

def token_expiry(issued_at: datetime, ttl: timedelta) -> datetime:
    """Expiry instant written to ``exp``: ``issued_at + ttl`` rounded up to the second."""
    expires_at = issued_at + ttl
    if expires_at.microsecond:
        expires_at = expires_at.replace(microsecond=0) + timedelta(seconds=1)
    return expires_at


def issue_token(
    claims: Dict[str, Any],
    secret_key: str,
    ttl: timedelta,
    algorithm: str = "HS256",
    issued_at: Optional[datetime] = None,
) -> str:
    """
    Sign a token carrying ``claims`` that expires ``ttl`` after issuance.

    JWT times are whole seconds: ``iat`` is rounded down and ``exp`` up, so
    the token verifies for at least ``ttl`` after ``issued_at``.

    Args:
        claims: Claims to include. ``exp`` and ``iat`` are set here.
        secret_key: HMAC signing secret
        ttl: Token lifetime, must be positive
        algorithm: HMAC algorithm
        issued_at: Issuance instant (defaults to now)

    Returns:
        Encoded JWT string

    Raises:
        TokenCodecError: If the token cannot be created
    """
    if ttl <= timedelta(0):
        raise TokenCodecError("Token ttl must be positive")
    if not secret_key:
        raise TokenCodecError("Signing key not configured")

    payload = claims.copy()
    now = issued_at or datetime.now(timezone.utc)
    payload.update({
        "iat": now.replace(microsecond=0),
        "exp": token_expiry(now, ttl),
    })

    try:
        return jwt.encode(payload, secret_key, algorithm=algorithm)
    except Exception as e:
        logger.error(f"Failed to encode token: {e}", exc_info=True)
        raise TokenCodecError(f"Failed to encode token: {e}") from e


def verify_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a token.

    Returns:
        Decoded claims (including ``exp`` and ``iat``) if the signature and
        expiry are valid, None otherwise.
    """
    if not token or not secret_key:
        return None

    try:
        return jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require": ["exp", "iat"],
            },
        )
    except InvalidTokenError as e:
        logger.debug(f"Token rejected: {type(e).__name__}")
        return None


# =============================================================================
# Access / Refresh Token Codec
# =============================================================================

@dataclass(frozen=True)
class IssuedToken:
    token: str
    token_id: str
    expires_at: datetime


class TokenCodec:
    """Binds the generic codec to the configured keys and lifetimes."""

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def access_ttl(self) -> timedelta:
        return self._settings.access_token_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._settings.refresh_token_ttl

    def issue_access_token(self, principal_id: str, role: Role) -> str:
        return issue_token(
            {"userId": principal_id, "role": Role(role).value},
            self._settings.ACCESS_TOKEN_SECRET,
            self.access_ttl,
            algorithm=self._settings.JWT_ALGORITHM,
        )

    def issue_refresh_token(self, principal_id: str) -> IssuedToken:
        """
        Issue a refresh token with a unique token id.

        The returned ``expires_at`` equals the token's own ``exp`` claim so
        the store record and token expire together.
        """
        now = datetime.now(timezone.utc)
        token_id = str(uuid.uuid4())
        token = issue_token(
            {"userId": principal_id, "tokenId": token_id},
            self._settings.REFRESH_TOKEN_SECRET,
            self.refresh_ttl,
            algorithm=self._settings.JWT_ALGORITHM,
            issued_at=now,
        )
        return IssuedToken(token=token, token_id=token_id, expires_at=token_expiry(now, self.refresh_ttl))

    def verify_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        claims = verify_token(
            token,
            self._settings.ACCESS_TOKEN_SECRET,
            algorithm=self._settings.JWT_ALGORITHM,
        )
        if not claims or not claims.get("userId") or not claims.get("role"):
            return None
        return claims

    def verify_refresh_token(self, token: str) -> Optional[Dict[str, Any]]:
        claims = verify_token(
            token,
            self._settings.REFRESH_TOKEN_SECRET,
            algorithm=self._settings.JWT_ALGORITHM,
        )
        if not claims or not claims.get("userId") or not claims.get("tokenId"):
            return None
        return claims


__all__ = [
    "TokenCodecError",
    "token_expiry",
    "issue_token",
    "verify_token",
    "IssuedToken",
    "TokenCodec",
]
