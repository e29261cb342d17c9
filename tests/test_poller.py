"""Tests for the completion poller.

Verifies the polling contract: success after N polls with no extra
requests, failure after exactly K polls, bounded timeout, tolerated
network blips, and the capped inter-poll delay schedule.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from balboa.config import ClientConfig
from balboa.exceptions import (
    ApiError,
    NetworkError,
    SessionNotFoundError,
    VerificationCancelledError,
    VerificationFailedError,
    VerificationTimeoutError,
)
from balboa.poller import CompletionPoller, poll_delay
from balboa.transport import Transport
from tests.conftest import COMPLETED_FLAT, COMPLETED_NESTED, PENDING, SESSION_ID, FakeClock


def _make_poller(mock_transport, clock=None, **overrides) -> CompletionPoller:
    values = dict(
        base_url="https://api.test",
        timeout_ms=5000,
        retries=2,
        backoff_base_ms=0,
        poll_interval_ms=0,
    )
    values.update(overrides)
    config = ClientConfig(**values)
    kwargs = {"clock": clock} if clock is not None else {}
    return CompletionPoller(Transport(config, transport=mock_transport), config, **kwargs)


# =============================================================================
# Delay schedule
# =============================================================================


class TestPollDelay:

    def test_follows_one_point_five_growth(self):
        assert poll_delay(0) == 1.0
        assert poll_delay(1) == 1.5
        assert poll_delay(2) == 2.25
        assert poll_delay(3) == 3.375

    def test_non_decreasing_and_capped(self):
        delays = [poll_delay(n) for n in range(30)]
        assert delays == sorted(delays)
        assert max(delays) == 5.0
        assert all(d <= 5.0 for d in delays)


# =============================================================================
# Terminal outcomes
# =============================================================================


class TestTerminalStates:

    @pytest.mark.asyncio
    async def test_completed_after_n_polls_stops_polling(self, mock_transport):
        mock_transport.add_response(200, PENDING).add_response(200, PENDING)
        mock_transport.add_response(200, COMPLETED_FLAT)
        mock_transport.add_response(200, PENDING)  # must never be requested
        poller = _make_poller(mock_transport)

        result = await poller.wait_for_completion(SESSION_ID)

        assert result.verified is True
        assert result.confidence == 0.92
        assert result.session_id == SESSION_ID
        assert result.details.phrase_accuracy == 0.95
        assert mock_transport.call_count == 3
        assert mock_transport.paths() == [f"/verify/{SESSION_ID}/status"] * 3

    @pytest.mark.asyncio
    async def test_accepts_nested_result(self, mock_transport):
        mock_transport.add_response(200, COMPLETED_NESTED)
        poller = _make_poller(mock_transport)

        result = await poller.wait_for_completion(SESSION_ID)

        assert result.confidence == 0.87
        assert result.processing_time == 1840
        assert result.reason == "Answer matched"

    @pytest.mark.asyncio
    async def test_completed_without_result_is_protocol_violation(self, mock_transport):
        mock_transport.add_response(200, {"status": "completed"})
        poller = _make_poller(mock_transport)

        with pytest.raises(ApiError, match="completed without result"):
            await poller.wait_for_completion(SESSION_ID)

        assert mock_transport.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_at_poll_k_raises_with_reason(self, mock_transport):
        mock_transport.add_response(200, PENDING).add_response(200, PENDING)
        mock_transport.add_response(200, {"status": "failed", "error": "Voice mismatch"})
        poller = _make_poller(mock_transport)

        with pytest.raises(VerificationFailedError) as exc_info:
            await poller.wait_for_completion(SESSION_ID)

        assert exc_info.value.reason == "Voice mismatch"
        assert mock_transport.call_count == 3

    @pytest.mark.asyncio
    async def test_failed_without_reason_uses_generic_message(self, mock_transport):
        mock_transport.add_response(200, {"status": "failed"})
        poller = _make_poller(mock_transport)

        with pytest.raises(VerificationFailedError) as exc_info:
            await poller.wait_for_completion(SESSION_ID)

        assert exc_info.value.reason == "Verification failed"

    @pytest.mark.asyncio
    async def test_malformed_body_is_api_error_and_not_retried(self, mock_transport):
        mock_transport.add_response(200, content=b"<html>oops</html>")
        mock_transport.add_response(200, COMPLETED_FLAT)
        poller = _make_poller(mock_transport)

        with pytest.raises(ApiError, match="Malformed response"):
            await poller.wait_for_completion(SESSION_ID)

        assert mock_transport.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_status_is_api_error(self, mock_transport):
        mock_transport.add_response(200, {"status": "exploded"})
        poller = _make_poller(mock_transport)

        with pytest.raises(ApiError):
            await poller.wait_for_completion(SESSION_ID)

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_transport):
        mock_transport.add_response(404, {"error": "Session not found"})
        mock_transport.add_response(200, COMPLETED_FLAT)
        poller = _make_poller(mock_transport)

        with pytest.raises(SessionNotFoundError):
            await poller.wait_for_completion(SESSION_ID)

        assert mock_transport.call_count == 1


# =============================================================================
# Budgets
# =============================================================================


class TestBudgets:

    @pytest.mark.asyncio
    async def test_attempt_budget_bounds_requests(self, mock_transport):
        for _ in range(20):
            mock_transport.add_response(200, PENDING)
        poller = _make_poller(mock_transport)

        with pytest.raises(VerificationTimeoutError):
            await poller.wait_for_completion(SESSION_ID, max_attempts=5)

        assert mock_transport.call_count == 5

    @pytest.mark.asyncio
    async def test_default_attempt_budget_from_config(self, mock_transport):
        for _ in range(20):
            mock_transport.add_response(200, PENDING)
        poller = _make_poller(mock_transport, max_poll_attempts=7)

        with pytest.raises(VerificationTimeoutError):
            await poller.wait_for_completion(SESSION_ID)

        assert mock_transport.call_count == 7

    @pytest.mark.asyncio
    async def test_wall_clock_deadline(self, mock_transport):
        for _ in range(30):
            mock_transport.add_response(200, PENDING)
        clock = FakeClock()
        poller = _make_poller(mock_transport, clock=clock)

        async def advance(delay, cancel=None):
            clock.advance(2.0)

        with patch.object(poller, "_wait", side_effect=advance):
            with pytest.raises(VerificationTimeoutError):
                await poller.wait_for_completion(SESSION_ID, timeout=5.0)

        # polls at t=0, 2, 4; the deadline passes before a fourth
        assert mock_transport.call_count == 3

    @pytest.mark.asyncio
    async def test_deadline_counts_from_started_at(self, mock_transport):
        mock_transport.add_response(200, COMPLETED_FLAT)
        clock = FakeClock()
        poller = _make_poller(mock_transport, clock=clock)
        started_at = clock()
        clock.advance(6.0)

        with pytest.raises(VerificationTimeoutError):
            await poller.wait_for_completion(SESSION_ID, timeout=5.0, started_at=started_at)

        assert mock_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_delays_between_polls(self, mock_transport):
        for _ in range(4):
            mock_transport.add_response(200, PENDING)
        mock_transport.add_response(200, COMPLETED_FLAT)
        poller = _make_poller(mock_transport, poll_interval_ms=1000, timeout_ms=60000)

        with patch.object(poller, "_wait", new_callable=AsyncMock) as wait:
            await poller.wait_for_completion(SESSION_ID)

        delays = [c.args[0] for c in wait.await_args_list]
        assert delays == [1.0, 1.5, 2.25, 3.375]

    @pytest.mark.asyncio
    async def test_no_wait_after_final_pending_poll(self, mock_transport):
        for _ in range(3):
            mock_transport.add_response(200, PENDING)
        poller = _make_poller(mock_transport, poll_interval_ms=1000)

        with patch.object(poller, "_wait", new_callable=AsyncMock) as wait:
            with pytest.raises(VerificationTimeoutError):
                await poller.wait_for_completion(SESSION_ID, max_attempts=3)

        assert wait.await_count == 2


# =============================================================================
# Transient failures and cancellation
# =============================================================================


class TestTransientFailures:

    @pytest.mark.asyncio
    async def test_network_blip_is_tolerated(self, mock_transport):
        mock_transport.add_response(200, PENDING)
        mock_transport.add_error(httpx.ConnectError("Connection reset"))
        mock_transport.add_response(200, COMPLETED_FLAT)
        poller = _make_poller(mock_transport)

        result = await poller.wait_for_completion(SESSION_ID)

        assert result.verified is True
        assert mock_transport.call_count == 3

    @pytest.mark.asyncio
    async def test_status_polls_do_not_use_transport_retries(self, mock_transport):
        mock_transport.add_response(503)
        mock_transport.add_response(200, COMPLETED_FLAT)
        poller = _make_poller(mock_transport, retries=5)

        result = await poller.wait_for_completion(SESSION_ID, max_attempts=2)

        # one failed poll, one successful poll, no hidden transport retries
        assert result.verified is True
        assert mock_transport.call_count == 2

    @pytest.mark.asyncio
    async def test_network_error_on_last_attempt_propagates(self, mock_transport):
        mock_transport.add_response(200, PENDING)
        mock_transport.add_error(httpx.ReadTimeout("Mock timeout"))
        poller = _make_poller(mock_transport)

        with pytest.raises(NetworkError):
            await poller.wait_for_completion(SESSION_ID, max_attempts=2)

        assert mock_transport.call_count == 2

    @pytest.mark.asyncio
    async def test_cancel_before_poll(self, mock_transport):
        mock_transport.add_response(200, PENDING)
        poller = _make_poller(mock_transport)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(VerificationCancelledError):
            await poller.wait_for_completion(SESSION_ID, cancel=cancel)

        assert mock_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_cancel_wakes_wait_early(self, mock_transport):
        for _ in range(5):
            mock_transport.add_response(200, PENDING)
        poller = _make_poller(mock_transport, poll_interval_ms=5000, timeout_ms=60000)
        cancel = asyncio.Event()

        task = asyncio.create_task(poller.wait_for_completion(SESSION_ID, cancel=cancel))
        await asyncio.sleep(0.05)
        cancel.set()

        with pytest.raises(VerificationCancelledError):
            await asyncio.wait_for(task, timeout=1.0)

        assert mock_transport.call_count == 1


class TestResultValidation:

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_is_api_error(self, mock_transport):
        mock_transport.add_response(200, {"status": "completed", "verified": True, "confidence": 1.5})
        poller = _make_poller(mock_transport)

        with pytest.raises(ApiError, match="Malformed response"):
            await poller.wait_for_completion(SESSION_ID)

        assert mock_transport.call_count == 1

    @pytest.mark.asyncio
    async def test_wait_after_network_blip_is_clipped_to_deadline(self, mock_transport):
        mock_transport.add_error(httpx.ConnectError("Connection reset"))
        mock_transport.add_response(200, COMPLETED_FLAT)
        clock = FakeClock()
        poller = _make_poller(mock_transport, clock=clock, poll_interval_ms=5000)
        started_at = clock()
        clock.advance(4.0)

        with patch.object(poller, "_wait", new_callable=AsyncMock) as wait:
            await poller.wait_for_completion(SESSION_ID, timeout=5.0, started_at=started_at)

        assert [c.args[0] for c in wait.await_args_list] == [1.0]
