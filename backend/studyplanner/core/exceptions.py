"""
Custom exception classes for unified error handling.

Errors coming back from Supabase (auth or PostgREST) are duck-typed objects
carrying ``message`` and sometimes ``code``. They are converted into one of the
application error kinds below exactly once, by ``classify_error``.
"""

from enum import Enum

from fastapi import HTTPException, status

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."

REFRESH_TOKEN_ERROR_MESSAGES = (
    "invalid refresh token",
    "refresh token not found",
    "refresh_token_not_found",
)
REFRESH_TOKEN_ERROR_CODES = ("refresh_token_not_found", "invalid_refresh_token")


class ErrorKind(str, Enum):
    SESSION_EXPIRED = "session_expired"
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    INVALID_INPUT = "invalid_input"
    AUTHENTICATION = "authentication"


class AppBaseError(Exception):
    """Base exception for all application errors."""
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class SessionExpiredError(AppBaseError):
    """Raised when the stored session can no longer be renewed."""
    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE, detail: str | None = None):
        super().__init__(message=message, detail=detail)


class TransientBackendError(AppBaseError):
    """Raised when a query fails, times out, or returns a malformed response."""
    kind = ErrorKind.TRANSIENT


class ConfigurationError(AppBaseError):
    """Raised at startup when the backend endpoint or key is missing."""
    kind = ErrorKind.CONFIGURATION


class InvalidInputError(AppBaseError):
    """Raised when a payload is rejected before any remote call is made."""
    kind = ErrorKind.INVALID_INPUT


class AuthenticationError(AppBaseError):
    """Raised when sign-in or sign-up is rejected by the auth provider."""
    kind = ErrorKind.AUTHENTICATION


# ── Classification ───────────────────────────────────────

def error_message(error: object) -> str:
    """Best-effort human message from an arbitrary backend error."""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or type(error).__name__


def is_refresh_token_error(error: object) -> bool:
    """True when the error means the session must be discarded."""
    if error is None:
        return False
    message = (getattr(error, "message", None) or "")
    code = (getattr(error, "code", None) or "")
    message = message.lower() if isinstance(message, str) else ""
    code = code.lower() if isinstance(code, str) else ""

    return (
        any(m in message for m in REFRESH_TOKEN_ERROR_MESSAGES)
        or code in REFRESH_TOKEN_ERROR_CODES
    )


def classify_error(error: BaseException, operation: str | None = None) -> AppBaseError:
    """Convert any exception raised by the backend into an application error.

    Args:
        error: The raw exception.
        operation: Human label used in the generic failure message,
            e.g. "add homework".
    """
    if isinstance(error, AppBaseError):
        return error

    detail = error_message(error)
    if is_refresh_token_error(error):
        return SessionExpiredError(detail=detail)

    if isinstance(error, TimeoutError):
        message = f"Failed to {operation}: request timed out" if operation else "Request timed out"
        return TransientBackendError(message, detail=detail)

    message = f"Failed to {operation}: {detail}" if operation else detail
    return TransientBackendError(message, detail=detail)


# ── Utility: convert to HTTPException ────────────────────

_STATUS_BY_KIND = {
    ErrorKind.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.TRANSIENT: status.HTTP_502_BAD_GATEWAY,
}


def app_error_to_http(error: AppBaseError, status_code: int | None = None) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code or _STATUS_BY_KIND[error.kind],
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
