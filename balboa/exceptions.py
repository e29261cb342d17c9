"""Balboa client exceptions mapped to a closed set of error codes.

Every failure that reaches a caller of the client is one of the
BalboaError subclasses below. The low-level exception that triggered it,
if any, is kept on ``cause`` (and chained via ``__cause__``).
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_CONFIG = "INVALID_CONFIG"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"


class BalboaError(Exception):
    """Base exception for verification client errors."""

    code: ErrorCode = ErrorCode.VERIFICATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class InvalidConfigError(BalboaError):
    """Malformed ClientConfig. Raised at construction, never retried."""

    code = ErrorCode.INVALID_CONFIG

    @classmethod
    def missing(cls, field: str) -> "InvalidConfigError":
        return cls(f"{field} is required")

    @classmethod
    def invalid(cls, field: str, reason: str) -> "InvalidConfigError":
        return cls(f"{field} {reason}")


class ApiError(BalboaError):
    """The service answered with a client error or a malformed body."""

    code = ErrorCode.API_ERROR

    @classmethod
    def from_status(cls, status_code: int, detail: str) -> "ApiError":
        if status_code == 404:
            return SessionNotFoundError(
                f"API error: {status_code} {detail}", status_code=status_code
            )
        return cls(f"API error: {status_code} {detail}", status_code=status_code)

    @classmethod
    def malformed(cls, reason: str, cause: Optional[BaseException] = None) -> "ApiError":
        return cls(f"Malformed response: {reason}", cause=cause)

    @classmethod
    def completed_without_result(cls) -> "ApiError":
        return cls("Verification completed without result")


class SessionNotFoundError(ApiError):
    """The service does not know the requested session (HTTP 404)."""

    code = ErrorCode.SESSION_NOT_FOUND


class NetworkError(BalboaError):
    """Transport-level failure after the retry budget was exhausted."""

    code = ErrorCode.NETWORK_ERROR

    @classmethod
    def exhausted(
        cls,
        attempts: int,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> "NetworkError":
        if status_code is not None:
            last = f"HTTP {status_code}"
        elif cause is not None:
            last = f"{type(cause).__name__}: {cause}"
        else:
            last = "unknown error"
        return cls(
            f"Network error after {attempts} attempts: {last}",
            status_code=status_code,
            cause=cause,
        )


class VerificationFailedError(BalboaError):
    """The service marked the session failed. Terminal."""

    code = ErrorCode.VERIFICATION_FAILED

    def __init__(
        self,
        reason: str = "Verification failed",
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.reason = reason
        super().__init__(reason, status_code=status_code, cause=cause)


class VerificationTimeoutError(BalboaError):
    """Deadline or attempt budget exhausted while the session was pending."""

    code = ErrorCode.TIMEOUT

    @classmethod
    def budget_exhausted(cls, attempts: int, elapsed: float) -> "VerificationTimeoutError":
        return cls(
            f"Verification timeout after {attempts} polls ({elapsed:.1f}s elapsed)"
        )


class VerificationCancelledError(BalboaError):
    """The caller signalled cancellation while polling."""

    code = ErrorCode.CANCELLED
