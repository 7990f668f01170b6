"""
Authentication routes.

Thin HTTP adapter over the session core. Each handler passes already-parsed
body fields to the issuer or refresher and renders the returned result,
choosing the status code from the result's error kind. Handlers are plain
``def`` so FastAPI runs them in its threadpool and bcrypt never blocks the
event loop.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..models import AuthCheck, AuthResult, LoginRequest, RefreshRequest, RegisterRequest, Role
from .errors import status_for
from .guard import AuthorizationGuard
from .issuer import SessionIssuer
from .refresher import TokenRefresher
from .store import CredentialStore

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)

protected_router = APIRouter(
    prefix="/protected",
    tags=["protected"],
)

admin_router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


# =============================================================================
# Dependencies
# =============================================================================

def get_issuer(request: Request) -> SessionIssuer:
    return request.app.state.issuer


def get_refresher(request: Request) -> TokenRefresher:
    return request.app.state.refresher


def get_guard(request: Request) -> AuthorizationGuard:
    return request.app.state.guard


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_current_auth(
    authorization: Optional[str] = Header(None),
    guard: AuthorizationGuard = Depends(get_guard),
) -> AuthCheck:
    """
    FastAPI dependency requiring a valid access token.

    Raises:
        HTTPException: 401 if the header is missing, malformed, or the token
            does not verify
    """
    auth = guard.check_auth(authorization)
    if not auth.isAuthenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


def require_admin(
    authorization: Optional[str] = Header(None),
    guard: AuthorizationGuard = Depends(get_guard),
) -> AuthCheck:
    """FastAPI dependency requiring a valid access token with the admin role."""
    check = guard.require_role(authorization, Role.ADMIN.value)
    if not check.isAuthenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not check.hasRequiredRole:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return check


def _render(result: AuthResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(result, success_status),
        content=result.to_body(),
    )


# =============================================================================
# Session Endpoints
# =============================================================================

@auth_router.post("/register")
def register(body: RegisterRequest, issuer: SessionIssuer = Depends(get_issuer)):
    """Create a principal. 201 on success, 400 on bad input or duplicate email."""
    result = issuer.register(body.name, body.email, body.password)
    return _render(result, success_status=status.HTTP_201_CREATED)


@auth_router.post("/login")
def login(body: LoginRequest, issuer: SessionIssuer = Depends(get_issuer)):
    """Exchange email and password for an access token and a refresh token."""
    return _render(issuer.login(body.email, body.password))


@auth_router.post("/logout")
def logout(body: RefreshRequest, issuer: SessionIssuer = Depends(get_issuer)):
    """Revoke the presented refresh token."""
    return _render(issuer.logout(body.refreshToken))


@auth_router.post("/refresh-token")
def refresh_token(body: RefreshRequest, refresher: TokenRefresher = Depends(get_refresher)):
    """Exchange a live refresh token for a new access token."""
    return _render(refresher.refresh(body.refreshToken))


@auth_router.post("/logout-all")
def logout_all(
    auth: AuthCheck = Depends(get_current_auth),
    issuer: SessionIssuer = Depends(get_issuer),
):
    """Revoke every refresh token of the authenticated principal."""
    return _render(issuer.logout_all(auth.userId))


# =============================================================================
# Protected Endpoints
# =============================================================================

@protected_router.get("/user-profile")
def user_profile(
    auth: AuthCheck = Depends(get_current_auth),
    issuer: SessionIssuer = Depends(get_issuer),
):
    """Return the authenticated principal without its password hash."""
    return _render(issuer.get_profile(auth.userId))


@admin_router.get("/users")
def list_users(
    _admin: AuthCheck = Depends(require_admin),
    store: CredentialStore = Depends(get_store),
):
    """List all principals. Admin only."""
    users = [p.public().model_dump(mode="json") for p in store.list_principals()]
    return {"success": True, "message": "Users retrieved successfully", "users": users}


__all__ = [
    "auth_router",
    "protected_router",
    "admin_router",
    "get_current_auth",
    "require_admin",
]
