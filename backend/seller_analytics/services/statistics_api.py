"""Wildberries statistics API client.

Supplies fetch functions for the cache orchestrator. The analytics core
never calls this module itself.
"""
import asyncio
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from ..config import get_settings
from ..core.logging import get_logger


class UpstreamFetchError(Exception):
    """Raised when the statistics API cannot return a report."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StatisticsApiService:
    """Async client for the seller statistics API."""

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None
    ):
        """Initialize the service.

        Args:
            api_key: Seller API token sent in the Authorization header
            http_client: HTTP client (creates default if None)
            max_retries: Attempts per request (settings default if None)
            backoff_seconds: Base of the exponential backoff (settings default if None)
        """
        settings = get_settings()
        self.api_key = api_key
        self.base_url = settings.statistics_api_url
        self.timeout = settings.request_timeout
        self.page_limit = settings.report_page_limit
        self.max_retries = max_retries if max_retries is not None else settings.request_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.retry_backoff_seconds
        )
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _backoff(self, attempt: int) -> None:
        if attempt < self.max_retries - 1:
            await asyncio.sleep(self.backoff_seconds * (2 ** attempt))

    async def _get_with_retry(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        """GET ``url`` with exponential backoff on 429, 5xx and transport errors.

        Raises:
            UpstreamFetchError: On other 4xx responses or when retries run out
        """
        logger = get_logger("statistics_api")
        client = await self._get_client()
        headers = {"Authorization": self.api_key}
        last_error = "no attempts made"
        last_status: Optional[int] = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Fetching: {url} (attempt {attempt + 1}/{self.max_retries})")
                response = await client.get(url, params=params, headers=headers)
            except httpx.TimeoutException as e:
                logger.warning(f"Timeout on {url}: {e}")
                last_error, last_status = f"timeout: {e}", None
                await self._backoff(attempt)
                continue
            except httpx.TransportError as e:
                logger.warning(f"Transport error on {url}: {type(e).__name__}: {e}")
                last_error, last_status = f"{type(e).__name__}: {e}", None
                await self._backoff(attempt)
                continue

            if response.status_code == 200:
                return response

            last_status = response.status_code
            last_error = f"HTTP {response.status_code}"
            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"HTTP {response.status_code} on {url}, retrying")
                await self._backoff(attempt)
                continue

            logger.error(f"HTTP {response.status_code} on {url}")
            raise UpstreamFetchError(f"Request to {url} failed: HTTP {response.status_code}",
                                     status_code=response.status_code)

        logger.error(f"All retries exhausted for {url}")
        raise UpstreamFetchError(f"Request to {url} failed after {self.max_retries} attempts: {last_error}",
                                 status_code=last_status)

    async def fetch_report_page(
        self,
        date_from: Union[date, str],
        date_to: Union[date, str],
        rrdid: int = 0
    ) -> List[Dict[str, Any]]:
        """Fetch one page of the detailed sales report starting after ``rrdid``."""
        url = f"{self.base_url}/supplier/reportDetailByPeriod"
        params = {
            "dateFrom": str(date_from),
            "dateTo": str(date_to),
            "rrdid": rrdid,
            "limit": self.page_limit,
        }
        response = await self._get_with_retry(url, params)
        data = response.json()
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamFetchError(f"Unexpected report payload from {url}: {type(data).__name__}")
        return data

    async def fetch_report_detail(
        self,
        date_from: Union[date, str],
        date_to: Union[date, str]
    ) -> List[Dict[str, Any]]:
        """Fetch the full detailed sales report for a period.

        Pages are requested by the last line's ``rrd_id`` until an empty
        page (or a page without ``rrd_id``) is returned.
        """
        logger = get_logger("statistics_api")
        logger.info(f"Fetching sales report from {date_from} to {date_to}")

        records: List[Dict[str, Any]] = []
        rrdid = 0
        while True:
            page = await self.fetch_report_page(date_from, date_to, rrdid)
            if not page:
                break
            records.extend(page)
            next_rrdid = page[-1].get("rrd_id") or 0
            if not next_rrdid or next_rrdid == rrdid:
                break
            rrdid = next_rrdid

        logger.info(f"Fetched {len(records)} report lines")
        return records

    def report_fetcher(
        self,
        date_from: Union[date, str],
        date_to: Union[date, str]
    ) -> Callable[[], Awaitable[List[Dict[str, Any]]]]:
        """Bind a period into a zero-argument fetch function for CachedFetcher."""
        async def fetch() -> List[Dict[str, Any]]:
            return await self.fetch_report_detail(date_from, date_to)
        return fetch
