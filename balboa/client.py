"""Verification client for the Balboa voice verification service.

Drives one verification end to end:

1. POST /verify to open a session (progress: starting -> calling)
2. poll GET /verify/{id}/status until terminal (progress: processing)
3. return the result (progress: completed) or raise a normalized
   BalboaError (progress: failed)

The wall-clock budget starts before the session is opened, so a slow
initiation counts against it. A single client can run many verifications
concurrently; it only holds the immutable config and a pooled HTTP client.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from .config import ClientConfig
from .errors import normalize_error
from .exceptions import ApiError, SessionNotFoundError
from .models import (
    CallResult,
    StatusResponse,
    VerificationOptions,
    VerificationResult,
    VerificationSession,
)
from .poller import CompletionPoller
from .progress import ProgressChannel, ProgressNotifier, ProgressStage
from .transport import Transport

log = logging.getLogger(__name__)


def _parse(model, response: httpx.Response, what: str):
    try:
        return model.model_validate(response.json())
    except ValidationError as e:
        raise ApiError.malformed(f"{what}: {str(e).splitlines()[0]}", cause=e) from e
    except ValueError as e:
        raise ApiError.malformed(f"{what}: body is not JSON", cause=e) from e


class VerificationClient:
    """Async client for creating and resolving verification sessions.

    Usage:
        config = ClientConfig(base_url="https://api.example.com", api_key="...")
        async with VerificationClient(config) as client:
            result = await client.verify(VerificationOptions(email="a@b.com"))
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._transport = Transport(config, transport=transport)
        self._poller = CompletionPoller(self._transport, config, clock=clock)

    async def __aenter__(self) -> "VerificationClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._transport.close()

    # -------------------------------------------------------------------------
    # Verification flow
    # -------------------------------------------------------------------------

    async def verify(
        self,
        options: VerificationOptions,
        *,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> VerificationResult:
        """Run a verification and return its result.

        Args:
            options: Identity/context plus optional overrides and callback.
            progress: Optional channel that receives every stage.
            cancel: Optional event; setting it stops polling within one interval.

        Raises:
            BalboaError: One of the taxonomy subclasses, with ``cause`` set
                to the underlying exception where there is one.
        """
        notifier = ProgressNotifier(
            callback=options.on_progress,
            channels=[progress] if progress is not None else None,
        )
        started_at = self._clock()
        timeout = (options.timeout_ms or self.config.timeout_ms) / 1000.0

        try:
            notifier.notify(ProgressStage.STARTING)
            session = await self.start_session(options)
            notifier.notify(ProgressStage.CALLING)

            notifier.notify(ProgressStage.PROCESSING)
            result = await self._poller.wait_for_completion(
                session.id,
                timeout=timeout,
                max_attempts=options.max_attempts,
                started_at=started_at,
                cancel=cancel,
            )
        except asyncio.CancelledError:
            notifier.notify(ProgressStage.FAILED)
            raise
        except Exception as e:
            notifier.notify(ProgressStage.FAILED)
            error = normalize_error(e)
            log.info(f"Verification failed [{error.code.value}]: {error.message}")
            if error is e:
                raise
            raise error from e

        notifier.notify(ProgressStage.COMPLETED)
        return result

    async def start_session(self, options: VerificationOptions) -> VerificationSession:
        """Open a verification session (POST /verify)."""
        body = options.to_create_request().to_wire()
        response = await self._transport.post("/verify", json=body)
        session = _parse(VerificationSession, response, "create session")
        log.info(f"Opened verification session {session.id} (status={session.status.value})")
        return session

    async def wait_for_completion(
        self,
        session_id: str,
        *,
        timeout_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> VerificationResult:
        """Poll an existing session until it resolves."""
        timeout = None if timeout_ms is None else timeout_ms / 1000.0
        try:
            return await self._poller.wait_for_completion(
                session_id, timeout=timeout, max_attempts=max_attempts, cancel=cancel
            )
        except Exception as e:
            error = normalize_error(e)
            if error is e:
                raise
            raise error from e

    # -------------------------------------------------------------------------
    # Session queries
    # -------------------------------------------------------------------------

    async def get_status(self, session_id: str) -> StatusResponse:
        """Current status of a session (single request, no polling)."""
        return await self._poller.fetch_status(session_id)

    async def get_session(self, session_id: str) -> Optional[VerificationSession]:
        """Full session record. Returns None if not found."""
        try:
            response = await self._transport.get(f"/verify/{session_id}")
        except SessionNotFoundError:
            return None
        return _parse(VerificationSession, response, f"session {session_id}")

    async def list_sessions(self) -> List[VerificationSession]:
        """All sessions known to the service (admin endpoint)."""
        response = await self._transport.get("/verify/sessions")
        try:
            items = response.json()
        except ValueError as e:
            raise ApiError.malformed("session list: body is not JSON", cause=e) from e
        if not isinstance(items, list):
            raise ApiError.malformed("session list: expected a JSON array")
        try:
            return [VerificationSession.model_validate(item) for item in items]
        except ValidationError as e:
            raise ApiError.malformed(f"session list: {str(e).splitlines()[0]}", cause=e) from e

    async def submit_call_result(self, session_id: str, call: CallResult) -> bool:
        """Hand the voice call outcome to the service for grading."""
        response = await self._transport.post(
            f"/verify/{session_id}/vapi-result", json=call.to_wire()
        )
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError.malformed("call result: body is not JSON", cause=e) from e
        if not isinstance(body, dict):
            raise ApiError.malformed("call result: expected a JSON object")
        return bool(body.get("success", True))
