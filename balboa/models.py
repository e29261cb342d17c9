"""Wire models for the verification service API.

The service speaks camelCase JSON; Python attributes are snake_case and
the alias generator maps between them. Models can be populated with
either spelling.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Session
# =============================================================================


class SessionStatus(str, Enum):
    """Lifecycle state of a verification session."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.PENDING


class VerificationDetails(_WireModel):
    """Per-signal scores the service may attach to a result."""

    phrase_accuracy: Optional[float] = None
    voice_match: Optional[float] = None
    fingerprint_valid: Optional[bool] = None
    liveness_score: Optional[float] = None
    audio_quality: Optional[float] = None
    background_noise: Optional[float] = None


class VerificationResult(_WireModel):
    """Outcome of a completed session."""

    model_config = ConfigDict(frozen=True)

    verified: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    details: Optional[VerificationDetails] = None
    processing_time: Optional[float] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None


class VerificationSession(_WireModel):
    """Local, read-only copy of a server-side session."""

    id: str = Field(..., min_length=1)
    status: SessionStatus
    result: Optional[VerificationResult] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    email: Optional[str] = None
    customer_data: Optional[dict[str, Any]] = None
    risk_level: Optional[float] = None
    vapi_call_id: Optional[str] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None


class StatusResponse(_WireModel):
    """Body of GET /verify/{id}/status.

    The result may arrive nested under ``result`` or flattened onto the
    top level (``verified``, ``confidence``, ``details``).
    """

    status: SessionStatus
    verified: Optional[bool] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    error: Optional[str] = None
    details: Optional[VerificationDetails] = None
    result: Optional[VerificationResult] = None

    def extract_result(self, session_id: Optional[str] = None) -> Optional[VerificationResult]:
        """Return the result carried by this response, or None if absent."""
        if self.result is not None:
            if session_id and self.result.session_id is None:
                return self.result.model_copy(update={"session_id": session_id})
            return self.result
        if self.verified is None or self.confidence is None:
            return None
        return VerificationResult(
            verified=self.verified,
            confidence=self.confidence,
            details=self.details,
            session_id=session_id,
        )


# =============================================================================
# Requests
# =============================================================================


class VerificationOptions(_WireModel):
    """Caller-supplied identity and context for one verification.

    At least one of ``email`` or ``transaction_id`` must be given. The
    timeout / attempt overrides and the progress callback are local only
    and never sent to the service.
    """

    model_config = ConfigDict(extra="forbid")

    email: Optional[str] = None
    transaction_id: Optional[str] = None
    customer_data: Optional[dict[str, Any]] = None
    risk_level: Optional[float] = Field(None, ge=0, le=100)
    timeout_ms: Optional[int] = Field(None, ge=1000)
    max_attempts: Optional[int] = Field(None, ge=1)
    on_progress: Optional[Callable[[Any], None]] = Field(None, exclude=True)

    @model_validator(mode="after")
    def _require_identity(self) -> "VerificationOptions":
        if not self.email and not self.transaction_id:
            raise ValueError("either email or transaction_id is required")
        return self

    def to_create_request(self) -> "CreateVerificationRequest":
        return CreateVerificationRequest(
            email=self.email,
            transaction_id=self.transaction_id,
            customer_data=self.customer_data,
            risk_level=self.risk_level,
        )


class CreateVerificationRequest(_WireModel):
    """Body of POST /verify."""

    email: Optional[str] = None
    transaction_id: Optional[str] = None
    customer_data: Optional[dict[str, Any]] = None
    risk_level: Optional[float] = None


class CallResult(_WireModel):
    """Outcome of the voice call, submitted to the service for grading."""

    call_id: str = Field(..., min_length=1)
    recording: str = Field(..., min_length=1)
    transcript: str = Field(..., min_length=1)
    summary: Optional[str] = None
