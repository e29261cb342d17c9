"""Configuration for the Balboa verification client.

Environment-based defaults plus the immutable, validated ClientConfig that
every VerificationClient is constructed from.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import InvalidConfigError

# =============================================================================
# Remote Service
# =============================================================================

# Base URL of the verification service (paths like /verify are appended)
BALBOA_BASE_URL = os.getenv("BALBOA_BASE_URL", "http://localhost:3000/api")

# API key sent as a bearer token (optional)
BALBOA_API_KEY = os.getenv("BALBOA_API_KEY", "")

# Deployment environment tag: "sandbox" or "production"
BALBOA_ENVIRONMENT = os.getenv("BALBOA_ENVIRONMENT", "production")

# =============================================================================
# Timing and Retry
# =============================================================================

# Wall-clock budget for a whole verification (milliseconds)
BALBOA_TIMEOUT_MS = int(os.getenv("BALBOA_TIMEOUT_MS", "30000"))

# Additional attempts the transport makes on 5xx / network failures
BALBOA_RETRIES = int(os.getenv("BALBOA_RETRIES", "3"))

# Upper bound on status polls per verification
BALBOA_MAX_POLL_ATTEMPTS = int(os.getenv("BALBOA_MAX_POLL_ATTEMPTS", "30"))

# =============================================================================
# Webhook
# =============================================================================

# Shared secret for inbound webhook signatures (empty disables the check)
BALBOA_WEBHOOK_SECRET = os.getenv("BALBOA_WEBHOOK_SECRET", "")

# =============================================================================
# Logging
# =============================================================================

BALBOA_LOG_LEVEL = os.getenv("BALBOA_LOG_LEVEL", "INFO")

# =============================================================================
# Validation bounds
# =============================================================================

MIN_TIMEOUT_MS: int = 1000
MAX_RETRIES: int = 10
ENVIRONMENTS: frozenset[str] = frozenset({"sandbox", "production"})


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration, validated at construction.

    Attributes:
        base_url: Base URL of the verification service.
        api_key: Optional bearer token.
        timeout_ms: Wall-clock budget for one verification.
        retries: Additional transport attempts on 5xx / network errors.
        environment: "sandbox" or "production".
        max_poll_attempts: Upper bound on status polls.
        request_timeout_ms: Per-HTTP-request timeout.
        backoff_base_ms: First transport retry delay (doubles per attempt).
        backoff_cap_ms: Ceiling for transport retry delay.
        poll_interval_ms: First inter-poll delay.
        poll_backoff_factor: Growth factor of the inter-poll delay.
        poll_interval_cap_ms: Ceiling for the inter-poll delay.
    """

    base_url: str
    api_key: Optional[str] = None
    timeout_ms: int = 30000
    retries: int = 3
    environment: str = "production"
    max_poll_attempts: int = 30
    request_timeout_ms: int = 10000
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 10000
    poll_interval_ms: int = 1000
    poll_backoff_factor: float = 1.5
    poll_interval_cap_ms: int = 5000

    def __post_init__(self) -> None:
        if not self.base_url:
            raise InvalidConfigError.missing("base_url")
        if not self.base_url.startswith(("http://", "https://")):
            raise InvalidConfigError.invalid(
                "base_url", "must start with http:// or https://"
            )
        if self.timeout_ms < MIN_TIMEOUT_MS:
            raise InvalidConfigError.invalid(
                "timeout_ms", f"must be at least {MIN_TIMEOUT_MS}ms (got {self.timeout_ms})"
            )
        if not 0 <= self.retries <= MAX_RETRIES:
            raise InvalidConfigError.invalid(
                "retries", f"must be between 0 and {MAX_RETRIES} (got {self.retries})"
            )
        if self.environment not in ENVIRONMENTS:
            raise InvalidConfigError.invalid(
                "environment", f"must be one of {sorted(ENVIRONMENTS)}"
            )
        if self.max_poll_attempts < 1:
            raise InvalidConfigError.invalid("max_poll_attempts", "must be at least 1")
        if self.request_timeout_ms <= 0:
            raise InvalidConfigError.invalid("request_timeout_ms", "must be positive")
        for name in ("backoff_base_ms", "backoff_cap_ms", "poll_interval_ms", "poll_interval_cap_ms"):
            if getattr(self, name) < 0:
                raise InvalidConfigError.invalid(name, "must not be negative")
        if self.poll_backoff_factor < 1.0:
            raise InvalidConfigError.invalid("poll_backoff_factor", "must be at least 1.0")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Build a config from BALBOA_* environment defaults.

        Keyword overrides take precedence over the environment.
        """
        values = dict(
            base_url=BALBOA_BASE_URL,
            api_key=BALBOA_API_KEY or None,
            timeout_ms=BALBOA_TIMEOUT_MS,
            retries=BALBOA_RETRIES,
            environment=BALBOA_ENVIRONMENT,
            max_poll_attempts=BALBOA_MAX_POLL_ATTEMPTS,
        )
        values.update(overrides)
        return cls(**values)
