"""
HTTP document fetcher.

Transport details (timeouts, proxy, retries, user agent) come from
HttpConfig; orchestrators only see fetch(url) -> str | FetchFailed.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from reelindex.config import HttpConfig
from reelindex.scrapers.base import FetchFailed

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class HttpFetcher:
    """
    Time-bounded document fetcher backed by httpx.

    Every request carries the configured timeout so one hung provider
    cannot stall a batch.
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.config = config or HttpConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            follow_redirects=self.config.follow_redirects,
            proxy=self.config.proxy,
            headers={"User-Agent": self.config.user_agent, **(headers or {})},
        )

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay for retry attempt."""
        return min(self.config.backoff_base * (2**attempt), self.config.backoff_max)

    async def fetch(self, url: str) -> str:
        """
        Fetch a document as text.

        Raises:
            FetchFailed: On timeouts, transport errors or HTTP errors once
                retries are exhausted.
        """
        last_error: Optional[FetchFailed] = None

        for attempt in range(self.config.retries + 1):
            try:
                response = await self._client.get(url)
            except httpx.TimeoutException as e:
                last_error = FetchFailed(f"Timed out fetching {url}", url=url, original_error=e)
            except httpx.HTTPError as e:
                last_error = FetchFailed(f"Error fetching {url}: {e}", url=url, original_error=e)
            else:
                if response.is_success:
                    return response.text

                error = FetchFailed(
                    f"HTTP {response.status_code} fetching {url}",
                    url=url,
                    status_code=response.status_code,
                )
                if response.status_code not in RETRYABLE_STATUS:
                    raise error
                last_error = error

            if attempt < self.config.retries:
                delay = self._calculate_backoff(attempt)
                logger.debug(f"{last_error} (attempt {attempt + 1}), retrying in {delay:.2f}s")
                await asyncio.sleep(delay)

        logger.warning(f"Giving up on {url}: {last_error}")
        if last_error:
            raise last_error
        raise FetchFailed(f"Fetching {url} failed after retries", url=url)
