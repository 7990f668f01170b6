"""
Authentication Package

Server-side session lifecycle for the service.

Modules:
- store / sql_store: credential store contract and its backends
- password: bcrypt password hashing
- tokens: signing and verification of access and refresh tokens
- issuer: register, login, logout
- refresher: refresh-token exchange
- guard: bearer extraction and role checks
- errors: failure taxonomy and status mapping
- routes: FastAPI routers exposing the above

The session flow:
1. Client registers via /auth/register
2. Client logs in via /auth/login and receives an access and a refresh token
3. Client sends the access token as "Bearer <token>" on protected requests
4. Before the access token expires, client exchanges the refresh token
   at /auth/refresh-token for a new access token
5. /auth/logout deletes the refresh token's record, revoking it
"""

from .guard import AuthorizationGuard, extract_bearer
from .issuer import SessionIssuer
from .refresher import TokenRefresher
from .routes import admin_router, auth_router, protected_router
from .store import CredentialStore, InMemoryCredentialStore, build_store
from .tokens import TokenCodec

__all__ = [
    "AuthorizationGuard",
    "extract_bearer",
    "SessionIssuer",
    "TokenRefresher",
    "CredentialStore",
    "InMemoryCredentialStore",
    "build_store",
    "TokenCodec",
    "auth_router",
    "protected_router",
    "admin_router",
]
