"""Error taxonomy shared by services and the HTTP layer.

Every failure a caller can observe carries a stable ``code`` so clients do
not have to pattern-match on message text.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    CONFIGURATION = "CONFIGURATION"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"


class MintingAppError(Exception):
    """Base class for expected application errors."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        """Serialize the error for an HTTP response body."""
        return {
            "error": self.message,
            "code": self.code.value,
            "retryable": self.retryable,
        }


class InvalidRequest(MintingAppError):
    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class Unauthorized(MintingAppError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class SessionNotFound(MintingAppError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found")
        self.session_id = session_id


class AlreadyFinalized(MintingAppError):
    code = ErrorCode.ALREADY_FINALIZED
    status_code = 409


class InvalidTransition(MintingAppError):
    code = ErrorCode.INVALID_TRANSITION
    status_code = 409


class PayloadTooLarge(MintingAppError):
    code = ErrorCode.PAYLOAD_TOO_LARGE
    status_code = 413


class InsufficientBalance(MintingAppError):
    code = ErrorCode.INSUFFICIENT_BALANCE
    status_code = 402


class ConfigurationError(MintingAppError):
    code = ErrorCode.CONFIGURATION
    status_code = 500


class UpstreamFailure(MintingAppError):
    """An external service (store, RPC, pinning) failed the request."""

    code = ErrorCode.UPSTREAM_FAILURE
    status_code = 500

    def __init__(self, service: str, message: str) -> None:
        super().__init__(message)
        self.service = service

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["service"] = self.service
        return payload


class UpstreamTimeout(UpstreamFailure):
    """An external call exceeded its deadline; safe to retry reads."""

    code = ErrorCode.UPSTREAM_TIMEOUT
    status_code = 503
    retryable = True

    def __init__(self, service: str, timeout: float) -> None:
        super().__init__(service, f"{service} did not respond within {timeout:g}s")
        self.timeout = timeout
