"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the session service.

Models are organized by functional area:
- Domain records owned by the credential store (principals, refresh records)
- Token claim sets
- Operation results returned by the issuer and refresher
- Request bodies and guard verdicts used at the HTTP boundary
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# Enumerations
# ============================================================================

class Role(str, Enum):
    """Principal roles. Every registered principal starts as USER."""
    ADMIN = "admin"
    USER = "user"


class ErrorKind(str, Enum):
    """Failure categories surfaced by issuer and refresher operations."""
    VALIDATION_ERROR = "ValidationError"
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_TOKEN = "InvalidToken"
    USER_NOT_FOUND = "UserNotFound"
    UNEXPECTED_FAILURE = "UnexpectedFailure"


# ============================================================================
# Store Records
# ============================================================================

class PublicPrincipal(BaseModel):
    """Principal as returned to callers. Never carries the password hash."""
    id: str = Field(..., description="Unique principal identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address (unique, case-sensitive)")
    role: Role = Field(..., description="Principal role")
    createdAt: datetime = Field(..., description="Creation timestamp")
    updatedAt: datetime = Field(..., description="Last update timestamp")


class Principal(BaseModel):
    """A registered user as held by the credential store."""
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    password_hash: str = Field(..., repr=False)
    role: Role = Role.USER
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public(self) -> PublicPrincipal:
        return PublicPrincipal(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            createdAt=self.created_at,
            updatedAt=self.updated_at,
        )


class RenewalCredentialRecord(BaseModel):
    """Server-side record that makes a refresh token valid and revocable."""
    id: str = Field(default_factory=new_id)
    principal_id: str
    token: str = Field(..., repr=False)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())


# ============================================================================
# Token Claims
# ============================================================================

class AccessClaims(BaseModel):
    """Claims carried by an access token."""
    model_config = ConfigDict(extra="allow")

    userId: str
    role: Role
    exp: int
    iat: int


class RenewalClaims(BaseModel):
    """Claims carried by a refresh token."""
    model_config = ConfigDict(extra="allow")

    userId: str
    tokenId: str
    exp: int
    iat: int


# ============================================================================
# Operation Results
# ============================================================================

class AuthResult(BaseModel):
    """
    Result of an issuer or refresher operation.

    ``error`` is used by the routing layer to pick a status code and is not
    part of the response body.
    """
    success: bool
    message: str
    error: Optional[ErrorKind] = None
    accessToken: Optional[str] = None
    refreshToken: Optional[str] = None
    user: Optional[PublicPrincipal] = None
    revoked: Optional[int] = None

    @classmethod
    def ok(cls, message: str, **payload) -> "AuthResult":
        return cls(success=True, message=message, **payload)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "AuthResult":
        return cls(success=False, message=message, error=kind)

    def to_body(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True, exclude={"error"})


# ============================================================================
# Guard Verdicts
# ============================================================================

class AuthCheck(BaseModel):
    """Outcome of checking a bearer header."""
    isAuthenticated: bool
    userId: Optional[str] = None
    userRole: Optional[str] = None


class RoleCheck(AuthCheck):
    """AuthCheck plus the role-match verdict."""
    hasRequiredRole: bool = False


# ============================================================================
# Request Models
# ============================================================================

class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    name: str = Field(default="", description="Display name")
    email: str = Field(default="", description="Email address")
    password: str = Field(default="", description="Plain-text password")


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: str = Field(default="", description="Email address")
    password: str = Field(default="", description="Plain-text password")


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh-token and POST /auth/logout."""
    refreshToken: str = Field(default="", description="Refresh token issued at login")


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    store: str = Field(..., description="Credential store backend")


class EmailCheck(BaseModel):
    """Used to validate email syntax at registration."""
    email: EmailStr
