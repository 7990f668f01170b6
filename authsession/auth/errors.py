"""
Session error taxonomy.

Every failure the issuer or refresher can report is a SessionError subclass
carrying a stable, user-visible message. Credential and refresh-token
failures deliberately share one message each so callers cannot tell which
sub-check failed.
"""

from ..models import AuthResult, ErrorKind


MSG_MISSING_FIELDS = "Missing required fields"
MSG_INVALID_EMAIL = "Invalid email address"
MSG_DUPLICATE_EMAIL = "Email already registered"
MSG_INVALID_CREDENTIALS = "Invalid email or password"
MSG_INVALID_REFRESH_TOKEN = "Invalid refresh token"
MSG_USER_NOT_FOUND = "User not found"


class SessionError(Exception):
    """Base exception for session lifecycle failures"""
    kind: ErrorKind = ErrorKind.UNEXPECTED_FAILURE
    default_message: str = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_result(self) -> AuthResult:
        return AuthResult.fail(self.kind, self.message)


class InputValidationError(SessionError):
    """Missing or malformed input (caller's fault)"""
    kind = ErrorKind.VALIDATION_ERROR
    default_message = MSG_MISSING_FIELDS


class DuplicateEmailError(SessionError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = MSG_DUPLICATE_EMAIL


class InvalidCredentialsError(SessionError):
    """Unknown email or wrong password; the two are indistinguishable"""
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = MSG_INVALID_CREDENTIALS


class InvalidRefreshTokenError(SessionError):
    """Malformed, expired, forged or revoked refresh token"""
    kind = ErrorKind.INVALID_TOKEN
    default_message = MSG_INVALID_REFRESH_TOKEN


class UserNotFoundError(SessionError):
    kind = ErrorKind.USER_NOT_FOUND
    default_message = MSG_USER_NOT_FOUND


class UnexpectedFailureError(SessionError):
    kind = ErrorKind.UNEXPECTED_FAILURE


# Transport status for each failure kind
STATUS_BY_KIND = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.DUPLICATE_EMAIL: 400,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.UNEXPECTED_FAILURE: 500,
}


def status_for(result: AuthResult, success_status: int = 200) -> int:
    """Map a result to the HTTP status the routing layer should send."""
    if result.success:
        return success_status
    return STATUS_BY_KIND.get(result.error, 500)


__all__ = [
    "SessionError",
    "InputValidationError",
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "InvalidRefreshTokenError",
    "UserNotFoundError",
    "UnexpectedFailureError",
    "STATUS_BY_KIND",
    "status_for",
]
