"""Error normalization and retry policy helpers."""

import asyncio
import json
import logging
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from .exceptions import (
    ApiError,
    BalboaError,
    ErrorCode,
    NetworkError,
    VerificationFailedError,
    VerificationTimeoutError,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often a caller may re-run a verification after a given error."""

    max_retries: int
    base_delay_ms: int


RETRY_POLICY: dict[ErrorCode, RetryPolicy] = {
    ErrorCode.NETWORK_ERROR: RetryPolicy(max_retries=3, base_delay_ms=1000),
    ErrorCode.API_ERROR: RetryPolicy(max_retries=2, base_delay_ms=2000),
    ErrorCode.TIMEOUT: RetryPolicy(max_retries=1, base_delay_ms=5000),
    ErrorCode.VERIFICATION_FAILED: RetryPolicy(max_retries=0, base_delay_ms=0),
    ErrorCode.INVALID_CONFIG: RetryPolicy(max_retries=0, base_delay_ms=0),
    ErrorCode.CANCELLED: RetryPolicy(max_retries=0, base_delay_ms=0),
    ErrorCode.SESSION_NOT_FOUND: RetryPolicy(max_retries=0, base_delay_ms=0),
}


def normalize_error(exc: BaseException) -> BalboaError:
    """Collapse any failure into a BalboaError, keeping the original as cause."""
    if isinstance(exc, BalboaError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"Request timed out: {exc}", cause=exc)
    if isinstance(exc, httpx.TransportError):
        return NetworkError(f"Connection failed: {exc}", cause=exc)
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return VerificationTimeoutError("Verification timeout", cause=exc)
    if isinstance(exc, (ValidationError, json.JSONDecodeError)):
        return ApiError.malformed(str(exc).splitlines()[0], cause=exc)
    message = str(exc) or type(exc).__name__
    log.debug(f"Normalizing unexpected {type(exc).__name__}: {message}")
    return VerificationFailedError(f"Verification failed: {message}", cause=exc)


def is_balboa_error(exc: object) -> bool:
    return isinstance(exc, BalboaError)


def get_error_message(exc: object) -> str:
    """Extract a display message from an error of any kind."""
    if isinstance(exc, BalboaError):
        return exc.message
    if isinstance(exc, BaseException):
        return str(exc) or type(exc).__name__
    if isinstance(exc, str):
        return exc
    return "An unknown error occurred"


def is_retryable(exc: BaseException) -> bool:
    """Whether re-running the verification could succeed."""
    error = normalize_error(exc)
    policy = RETRY_POLICY.get(error.code)
    return policy is not None and policy.max_retries > 0
