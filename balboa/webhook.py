"""Inbound webhook receiver for voice agent events.

The voice agent posts events like::

    {"event": "question.completed", "timestamp": "...",
     "data": {"email": "...", "answer": "...", "conversation_id": "..."}}

signed with a hex HMAC-SHA256 of the raw body in ``X-Balboa-Signature``.
When a secret is configured, a missing or wrong signature is rejected
with 401 before the body is parsed.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Balboa-Signature"

COMPLETION_EVENTS: frozenset[str] = frozenset({
    "question.completed",
    "scenario.completed",
    "conversation.ended",
})
ERROR_EVENT = "agent.error"


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time check of a hex signature against the body."""
    if not signature:
        return False
    try:
        provided = bytes.fromhex(signature.strip())
    except ValueError:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return hmac.compare_digest(provided, expected)


class WebhookData(BaseModel):
    """Event payload. Unknown agent fields are kept."""

    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    answer: Optional[str] = None
    question: Optional[str] = None
    scenario: Optional[str] = None
    agent_id: Optional[str] = None
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class WebhookEvent(BaseModel):
    """Signed event envelope posted by the voice agent."""

    event: str = Field(..., min_length=1)
    timestamp: str = Field(..., min_length=1)
    data: WebhookData = Field(default_factory=WebhookData)

    @property
    def is_completion(self) -> bool:
        return self.event in COMPLETION_EVENTS


WebhookHandler = Callable[[WebhookEvent], Awaitable[Any]]


def create_webhook_router(
    secret: str = "",
    handler: Optional[WebhookHandler] = None,
    path: str = "/webhook/verify",
) -> APIRouter:
    """Build a FastAPI router that validates and dispatches webhook events.

    Args:
        secret: Shared signing secret. Empty disables signature checks
            (development mode).
        handler: Optional coroutine awaited with each accepted event.
        path: Route path.
    """
    router = APIRouter()

    @router.post(path)
    async def receive_webhook(request: Request) -> dict:
        body = await request.body()

        if secret:
            signature = request.headers.get(SIGNATURE_HEADER)
            if not verify_signature(body, signature, secret):
                client = request.client.host if request.client else "unknown"
                log.warning(f"Rejected webhook with missing or invalid signature from {client}")
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            event = WebhookEvent.model_validate(json.loads(body))
        except (ValueError, ValidationError) as e:
            raise HTTPException(
                status_code=400, detail="Missing required fields: event, timestamp"
            ) from e

        if event.is_completion and not (event.data.email and event.data.answer):
            raise HTTPException(
                status_code=400, detail="Missing required fields: email and answer"
            )

        if event.event == ERROR_EVENT:
            log.error(
                f"Agent error: agent={event.data.agent_id} "
                f"conversation={event.data.conversation_id} error={event.data.error}"
            )
        elif event.is_completion:
            log.info(
                f"Voice verification event {event.event} for {event.data.email} "
                f"(conversation={event.data.conversation_id})"
            )
        else:
            log.debug(f"Event type {event.event} - not processing")

        if handler is not None:
            await handler(event)

        return {
            "success": True,
            "message": f"Event {event.event} processed successfully",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return router
