"""Completion poller for verification sessions.

Polls GET /verify/{id}/status until the session reaches a terminal state,
the wall-clock deadline passes, or the attempt budget runs out. Delays
between polls grow geometrically and are capped:

    delay(n) = min(interval * factor^n, cap)     # 1s, 1.5s, 2.25s, ... 5s

A network failure on one poll is tolerated and costs one attempt; service
errors (4xx, malformed bodies) and a failed session end the loop at once.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from .config import ClientConfig
from .exceptions import (
    ApiError,
    NetworkError,
    VerificationCancelledError,
    VerificationFailedError,
    VerificationTimeoutError,
)
from .models import SessionStatus, StatusResponse, VerificationResult
from .transport import Transport

log = logging.getLogger(__name__)


def poll_delay(attempt: int, interval: float = 1.0, factor: float = 1.5, cap: float = 5.0) -> float:
    """Seconds to wait after poll number ``attempt`` (0-based) came back pending."""
    return min(interval * (factor ** attempt), cap)


class CompletionPoller:
    """Resolves a session id to a VerificationResult within a budget."""

    def __init__(
        self,
        transport: Transport,
        config: ClientConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self._config = config
        self._clock = clock

    def next_delay(self, attempt: int) -> float:
        return poll_delay(
            attempt,
            interval=self._config.poll_interval_ms / 1000.0,
            factor=self._config.poll_backoff_factor,
            cap=self._config.poll_interval_cap_ms / 1000.0,
        )

    async def _wait(self, delay: float, cancel: Optional[asyncio.Event] = None) -> None:
        """Sleep between polls, waking early if ``cancel`` is set."""
        if cancel is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return

    async def fetch_status(self, session_id: str) -> StatusResponse:
        """Single status query. Sent without transport retries."""
        response = await self._transport.get(f"/verify/{session_id}/status", retries=0)
        try:
            return StatusResponse.model_validate(response.json())
        except ValueError as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            reason = str(e).splitlines()[0] if isinstance(e, ValidationError) else "body is not JSON"
            raise ApiError.malformed(f"status for {session_id}: {reason}", cause=e) from e

    async def wait_for_completion(
        self,
        session_id: str,
        *,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        started_at: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> VerificationResult:
        """Poll until the session completes.

        Args:
            session_id: Server-issued session id.
            timeout: Wall-clock budget in seconds (default from config).
            max_attempts: Poll budget (default from config).
            started_at: Monotonic start of the budget; defaults to now.
            cancel: Event that stops polling when set.

        Returns:
            The session's VerificationResult.

        Raises:
            VerificationFailedError: The service marked the session failed.
            ApiError: Client error, malformed body, or completed without result.
            NetworkError: A poll failed at the transport on the last attempt.
            VerificationTimeoutError: Budget exhausted while still pending.
            VerificationCancelledError: ``cancel`` was set.
        """
        timeout = self._config.timeout_seconds if timeout is None else timeout
        max_attempts = self._config.max_poll_attempts if max_attempts is None else max_attempts
        started_at = self._clock() if started_at is None else started_at
        attempts = 0

        while attempts < max_attempts and self._clock() - started_at < timeout:
            if cancel is not None and cancel.is_set():
                raise VerificationCancelledError(f"Verification {session_id} cancelled")

            try:
                status = await self.fetch_status(session_id)
            except NetworkError as e:
                if attempts >= max_attempts - 1:
                    raise
                log.warning(
                    f"Status poll {attempts + 1}/{max_attempts} for {session_id} "
                    f"failed, continuing: {e.message}"
                )
                attempts += 1
                remaining = timeout - (self._clock() - started_at)
                await self._wait(min(self.next_delay(0), max(remaining, 0.0)), cancel)
                continue

            if status.status is SessionStatus.COMPLETED:
                result = status.extract_result(session_id)
                if result is None:
                    raise ApiError.completed_without_result()
                log.info(
                    f"Session {session_id} completed after {attempts + 1} polls: "
                    f"verified={result.verified} confidence={result.confidence}"
                )
                return result

            if status.status is SessionStatus.FAILED:
                reason = status.error or "Verification failed"
                log.info(f"Session {session_id} failed after {attempts + 1} polls: {reason}")
                raise VerificationFailedError(reason)

            attempts += 1
            if attempts >= max_attempts:
                break
            remaining = timeout - (self._clock() - started_at)
            delay = min(self.next_delay(attempts - 1), max(remaining, 0.0))
            log.debug(f"Session {session_id} pending, poll {attempts}, next in {delay:.2f}s")
            await self._wait(delay, cancel)

        if cancel is not None and cancel.is_set():
            raise VerificationCancelledError(f"Verification {session_id} cancelled")
        raise VerificationTimeoutError.budget_exhausted(attempts, self._clock() - started_at)
