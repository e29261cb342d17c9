"""Balboa voice verification client.

Opens verification sessions against the Balboa service, polls them to a
terminal state with bounded backoff, and reports progress and a
normalized outcome to the caller.
"""

from .client import VerificationClient
from .config import ClientConfig
from .errors import (
    RETRY_POLICY,
    get_error_message,
    is_balboa_error,
    is_retryable,
    normalize_error,
)
from .exceptions import (
    ApiError,
    BalboaError,
    ErrorCode,
    InvalidConfigError,
    NetworkError,
    SessionNotFoundError,
    VerificationCancelledError,
    VerificationFailedError,
    VerificationTimeoutError,
)
from .models import (
    CallResult,
    SessionStatus,
    StatusResponse,
    VerificationDetails,
    VerificationOptions,
    VerificationResult,
    VerificationSession,
)
from .progress import ProgressChannel, ProgressNotifier, ProgressStage

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "BalboaError",
    "CallResult",
    "ClientConfig",
    "ErrorCode",
    "InvalidConfigError",
    "NetworkError",
    "ProgressChannel",
    "ProgressNotifier",
    "ProgressStage",
    "RETRY_POLICY",
    "SessionNotFoundError",
    "SessionStatus",
    "StatusResponse",
    "VerificationCancelledError",
    "VerificationClient",
    "VerificationDetails",
    "VerificationFailedError",
    "VerificationOptions",
    "VerificationResult",
    "VerificationSession",
    "VerificationTimeoutError",
    "get_error_message",
    "is_balboa_error",
    "is_retryable",
    "normalize_error",
]
