"""
FastAPI Application Factory
===========================

Entry point for the session service. Wires the credential store, token
codec, issuer, refresher and guard together and mounts the HTTP routes.

Routers:
    - /auth/*       : register, login, logout, refresh-token, logout-all
    - /protected/*  : user-profile (requires a valid access token)
    - /admin/*      : principal listing (requires the admin role)
    - /health       : Health check endpoint

Environment Variables Required:
    - ACCESS_TOKEN_SECRET: Secret for signing access tokens
    - REFRESH_TOKEN_SECRET: Secret for signing refresh tokens

Running the Service:
    Development:
        uvicorn authsession.main:create_app --factory --reload --port 8080

    Production:
        uvicorn authsession.main:create_app --factory --host 0.0.0.0 --port 8080 --workers 4
        (with STORE_BACKEND=sql so every worker shares one credential store)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth.guard import AuthorizationGuard
from .auth.issuer import SessionIssuer
from .auth.refresher import TokenRefresher
from .auth.routes import admin_router, auth_router, protected_router
from .auth.store import CredentialStore, build_store
from .auth.tokens import TokenCodec
from .config import Settings, get_settings, validate_configuration
from .models import HealthResponse

SERVICE_NAME = "authsession"
SERVICE_VERSION = "1.0.0"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: log configuration warnings and sweep expired refresh records.
    Shutdown: release store resources.
    """
    logger = logging.getLogger("authsession.main")
    settings: Settings = app.state.settings
    store = app.state.store

    status = validate_configuration(settings)
    for warning in status["warnings"]:
        logger.warning(warning)

    purged = store.purge_expired_renewal_records()
    logger.info(
        "Session service started",
        extra={
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "store_backend": settings.STORE_BACKEND,
            "purged_refresh_records": purged,
        },
    )

    yield

    logger.info("Shutting down session service")
    dispose = getattr(store, "dispose", None)
    if dispose:
        dispose()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use (defaults to environment via get_settings)
        store: Credential store to use (defaults to the configured backend)

    Returns:
        FastAPI: Configured application instance

    Raises:
        ValueError: If the configuration is not valid to run with
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("authsession.main")

    status = validate_configuration(settings)
    if not status["valid"]:
        raise ValueError("; ".join(status["errors"]))

    store = store if store is not None else build_store(settings)
    codec = TokenCodec(settings)

    app = FastAPI(
        title="Session Service",
        description="Credential issuance, refresh, revocation and role checks",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.issuer = SessionIssuer(store, codec, settings)
    app.state.refresher = TokenRefresher(store, codec, settings)
    app.state.guard = AuthorizationGuard(codec)

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(auth_router)
    app.include_router(protected_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            store=settings.STORE_BACKEND,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Malformed request body", extra={"path": request.url.path})
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Malformed request body"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {exc}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Server error"},
        )

    logger.info("Application created", extra={"store_backend": settings.STORE_BACKEND})
    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "authsession.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
