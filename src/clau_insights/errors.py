"""
CLAU insights error types and the user-facing message table.
"""

from typing import Any, Optional

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again to continue."
POLICY_REFUSAL_MESSAGE = (
    "I cannot provide information about potentially harmful or illegal topics. "
    "Please ask about legitimate financial matters instead."
)
GENERIC_RETRY_MESSAGE = "I'm sorry, but I encountered an error. Please try again later."


class ClauError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class HttpError(ClauError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, code: str = "http_error",
                 details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)
        self.status_code = status_code


class AuthError(HttpError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(401, message, code="auth_error", details=details)


class PolicyError(HttpError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(403, message, code="policy_refusal", details=details)


class RateLimitError(HttpError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(429, message, code="rate_limited", details=details)


class ServerError(HttpError):
    def __init__(self, status_code: int, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(status_code, message, code="server_error", details=details)


class TransportError(ClauError):
    """Connection refused, timed out, or a stream that dropped before completing."""

    def __init__(self, message: str):
        super().__init__("transport_error", message)


class OwnershipError(ClauError):
    """A response carried a user id other than the local session's."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("ownership_mismatch", message, details)


class SessionError(ClauError):
    def __init__(self, message: str, code: str = "session_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


def is_rejection(exc: BaseException) -> bool:
    """An expired credential ends a request outright; it never triggers the fallback call."""
    return isinstance(exc, AuthError)


def user_message_for(exc: BaseException) -> str:
    """Map any failure to the text shown in the transcript."""
    if isinstance(exc, AuthError):
        return SESSION_EXPIRED_MESSAGE
    if isinstance(exc, PolicyError):
        # The backend's own refusal text wins when it sent one.
        server_message = (exc.details or {}).get("message")
        return server_message or POLICY_REFUSAL_MESSAGE
    return GENERIC_RETRY_MESSAGE
