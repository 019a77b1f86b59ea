"""
HTTP fetching with bounded retry and exponential backoff.

Every failure mode (transport error, timeout, non-2xx status, truncated
body) is retried the same way until the attempt budget runs out, then
surfaces as a single FetchError.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from types import TracebackType

import httpx

from metascout.models.failure import FetchError
from metascout.scrapers.egress import EgressResolver, identity

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3

SleepFunc = Callable[[float], Awaitable[None]]


class FetchClient:
    """
    Fetch page bodies through an injected egress resolver.

    Args:
        egress: Maps a target URL to the URL actually requested
        timeout: Default per-request timeout in seconds
        max_retries: Default number of retries after the first attempt
        jitter: Upper bound of random seconds added to each backoff delay,
            capped at the base delay so delays never shrink between attempts
        min_body_length: Bodies shorter than this count as failures
        client: Optional httpx client for connection reuse
        sleep: Awaitable sleep, replaced in tests to skip real delays
    """

    def __init__(
        self,
        egress: EgressResolver = identity,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        jitter: float = 0.0,
        min_body_length: int = 0,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {jitter}")
        self.egress = egress
        self.timeout = timeout
        self.max_retries = max_retries
        self.jitter = jitter
        self.min_body_length = min_body_length
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
            timeout=timeout,
        )

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def backoff_delay(self, attempt: int) -> float:
        """
        Seconds to wait after failed attempt number ``attempt`` (0-based).

        The jitter added is at most ``2 ** attempt``, so the delay after
        attempt n never exceeds the base delay after attempt n + 1.
        """
        base = float(2**attempt)
        if self.jitter > 0:
            return base + random.uniform(0, min(self.jitter, base))
        return base

    async def fetch(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> str:
        """
        Fetch a URL and return the response body.

        Makes up to ``max_retries + 1`` attempts, sleeping ``2 ** attempt``
        seconds between them.

        Raises:
            FetchError: If every attempt failed
        """
        retries = self.max_retries if max_retries is None else max_retries
        request_timeout = self.timeout if timeout is None else timeout
        last_status: int | None = None
        last_message = "no attempt made"

        for attempt in range(retries + 1):
            effective_url = self.egress(url)
            try:
                response = await self._client.get(effective_url, timeout=request_timeout)
                last_status = response.status_code
                if not response.is_success:
                    last_message = f"HTTP {response.status_code}: {response.reason_phrase}"
                else:
                    body = response.text
                    if len(body) >= self.min_body_length:
                        return body
                    last_message = f"response too short ({len(body)} chars)"
            except httpx.TimeoutException as e:
                last_status = None
                last_message = f"timeout: {e}"
            except httpx.HTTPError as e:
                last_status = None
                last_message = f"{type(e).__name__}: {e}"

            logger.warning(
                "Attempt %d/%d for %s failed: %s", attempt + 1, retries + 1, url, last_message
            )

            rotate = getattr(self.egress, "rotate", None)
            if callable(rotate):
                rotate()

            if attempt < retries:
                await self._sleep(self.backoff_delay(attempt))

        raise FetchError(url, last_status, last_message)
