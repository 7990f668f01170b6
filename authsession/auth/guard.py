"""
Authorization Guard
===================

Extracts the bearer access token from an Authorization header and turns it
into an authentication verdict and, optionally, a role-match verdict.

Access tokens are verified by signature and expiry only; there is no store
lookup, so a guard check is pure CPU work and safe from any number of
concurrent request handlers. Verification failures carry no reason.
"""

import logging
from typing import Optional

from ..models import AuthCheck, RoleCheck
from .tokens import TokenCodec

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    Only the exact, case-sensitive prefix ``"Bearer "`` is accepted.

    Returns:
        The remainder of the header, or None for any other shape
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):]
    return token or None


class AuthorizationGuard:

    def __init__(self, codec: TokenCodec):
        self._codec = codec

    def check_auth(self, authorization: Optional[str]) -> AuthCheck:
        token = extract_bearer(authorization)
        if token is None:
            return AuthCheck(isAuthenticated=False)

        claims = self._codec.verify_access_token(token)
        if claims is None:
            return AuthCheck(isAuthenticated=False)

        return AuthCheck(
            isAuthenticated=True,
            userId=claims["userId"],
            userRole=claims["role"],
        )

    def require_role(self, authorization: Optional[str], required_role: Optional[str]) -> RoleCheck:
        """
        Check authentication and compare the token's role claim to ``required_role``.

        ``hasRequiredRole`` is False whenever the caller is not authenticated
        or no role was requested; otherwise it is an exact string match.
        """
        auth = self.check_auth(authorization)
        if not auth.isAuthenticated or not required_role:
            return RoleCheck(**auth.model_dump(), hasRequiredRole=False)

        required = getattr(required_role, "value", required_role)
        return RoleCheck(**auth.model_dump(), hasRequiredRole=auth.userRole == required)


__all__ = ["BEARER_PREFIX", "extract_bearer", "AuthorizationGuard"]
