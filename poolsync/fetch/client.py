"""HTTP client for the pool page, with retries on network errors."""
import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from poolsync.config import Config
from poolsync.errors import FetchError
from poolsync.parse.store_payload import extract_store_json

logger = logging.getLogger(__name__)

USER_AGENT = "poolsync/0.1"


class FetchClient:
    """Fetches the pool page and hands back the embedded store JSON."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.client = httpx.AsyncClient(
            timeout=config.TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )
        self.retry_count = 0
        self.last_html: Optional[str] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def _get(self, url: str) -> httpx.Response:
        try:
            return await self.client.get(url)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            self.retry_count += 1
            logger.warning(f"Network error for {url}: {e}")
            raise

    async def fetch_page(self, url: str) -> str:
        """Fetch a page, retrying timeouts and network errors. Non-2xx is fatal."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.MAX_RETRIES),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        )
        try:
            response = await retrying(self._get, url)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise FetchError(f"Could not reach {url}: {cause}", url=url) from cause
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}", url=url) from e

        logger.info(f"GET {url} -> {response.status_code}")
        if response.status_code == 404:
            raise FetchError(f"Pool page not found: {url}", url=url, status_code=404)
        if response.is_error:
            raise FetchError(
                f"Unexpected status {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
            )
        return response.text

    async def fetch_snapshot_json(self, url: Optional[str] = None) -> str:
        """Fetch the pool page and return the raw store JSON text."""
        url = url or self.config.pool_url
        logger.info("Parsing the pool information")
        html_content = await self.fetch_page(url)
        self.last_html = html_content
        return extract_store_json(html_content)
