"""HTTP transport for the verification service.

Wraps a pooled httpx.AsyncClient and performs one logical request with a
bounded retry policy:

- 2xx: returned immediately
- 4xx: ApiError immediately, never retried
- 5xx, timeouts, connection failures: retried with capped exponential
  backoff, then NetworkError
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from .config import ClientConfig
from .exceptions import ApiError, NetworkError

log = logging.getLogger(__name__)


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay in seconds before retry number ``attempt + 1``: base * 2^attempt, capped."""
    return min(base * (2 ** attempt), cap)


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human message from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if body.get(key):
                return str(body[key])[:200]
    return response.text[:200]


class Transport:
    """Issues requests against the service base URL with auth and retry."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the transport.

        Args:
            config: Validated client configuration.
            transport: Optional httpx transport (tests inject a mock here).
        """
        self._config = config
        self.base_url = config.base_url.rstrip("/")

        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"

        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.request_timeout_ms / 1000.0, connect=10.0),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    async def _backoff(self, delay: float) -> None:
        await asyncio.sleep(delay)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
        retries: Optional[int] = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path relative to the base URL (e.g. "/verify").
            json: Optional JSON body.
            headers: Header overrides merged over the defaults.
            retries: Override for the configured retry count.

        Returns:
            The 2xx response.

        Raises:
            ApiError: On any 4xx response.
            NetworkError: When 5xx / network failures outlast the retry budget.
        """
        max_retries = self._config.retries if retries is None else retries
        max_attempts = max_retries + 1
        base = self._config.backoff_base_ms / 1000.0
        cap = self._config.backoff_cap_ms / 1000.0

        last_status: Optional[int] = None
        last_error: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                log.debug(f"{method} {path} (attempt {attempt + 1}/{max_attempts})")
                response = await self._http.request(method, path, json=json, headers=headers)
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = e
                last_status = None
                if attempt < max_retries:
                    delay = backoff_delay(attempt, base, cap)
                    log.warning(
                        f"{method} {path} failed ({type(e).__name__}: {e}), "
                        f"retry {attempt + 1}/{max_retries} in {delay}s"
                    )
                    await self._backoff(delay)
                    continue
                break

            if response.is_success:
                return response

            if response.status_code < 500:
                detail = _error_detail(response)
                log.info(f"{method} {path} returned {response.status_code}: {detail}")
                raise ApiError.from_status(response.status_code, detail)

            last_status = response.status_code
            last_error = None
            if attempt < max_retries:
                delay = backoff_delay(attempt, base, cap)
                log.warning(
                    f"{method} {path} returned {response.status_code}, "
                    f"retry {attempt + 1}/{max_retries} in {delay}s"
                )
                await self._backoff(delay)
                continue
            break

        raise NetworkError.exhausted(
            max_attempts, status_code=last_status, cause=last_error
        ) from last_error

    async def get(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, *, json: Optional[Any] = None, **kwargs) -> httpx.Response:
        return await self.request("POST", path, json=json, **kwargs)
