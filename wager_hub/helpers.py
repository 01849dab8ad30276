import asyncio
import time
from typing import List

import httpx

from wager_hub.config import settings
from wager_hub.errors import ProviderNotFoundError, RateLimitedError, UpstreamError
from wager_hub.logging_config import get_logger

logger = get_logger(__name__)


class RateLimitedClient:
    """
    httpx client with a sliding one-minute request window.

    A rate limit, local or remote, is reported immediately as RateLimitedError
    rather than waited out; server errors are retried with exponential backoff.
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        rate_limit_per_minute: int | None = None,
        max_retries: int | None = None,
        retry_backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(headers=headers, timeout=10.0, transport=transport)
        self._tokens: List[float] = []
        self.rate_limit_per_minute = rate_limit_per_minute if rate_limit_per_minute is not None else settings.rate_limit_per_minute
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_backoff_seconds = retry_backoff_seconds if retry_backoff_seconds is not None else settings.retry_backoff_seconds

    async def _respect_rate_limit(self) -> bool:
        now = time.time()
        self._tokens = [t for t in self._tokens if now - t < 60]
        if len(self._tokens) >= self.rate_limit_per_minute:
            return False
        self._tokens.append(time.time())
        return True

    async def _request_with_retry(self, method: str, url: str, params: dict | None = None) -> httpx.Response:
        retries = 0
        backoff = self.retry_backoff_seconds
        while True:
            allowed = await self._respect_rate_limit()
            if not allowed:
                raise RateLimitedError("local request budget exhausted, retry next run")
            try:
                response = await self.client.request(method, url, params=params)
            except httpx.RequestError as exc:
                if retries >= self.max_retries:
                    raise UpstreamError(f"match provider request error: {exc}") from exc
                logger.warning("Provider request error url=%s error=%s retry=%s", url, exc, retries + 1)
                await asyncio.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            if response.status_code == 429:
                logger.warning("Provider rate limited url=%s retry_after=%s", url, response.headers.get("Retry-After"))
                raise RateLimitedError()
            if response.status_code >= 500:
                if retries >= self.max_retries:
                    raise UpstreamError(f"match provider returned {response.status_code}")
                await asyncio.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            if response.status_code == 404:
                raise ProviderNotFoundError()
            if response.status_code >= 400:
                raise UpstreamError(f"match provider returned {response.status_code}")
            return response

    async def aclose(self) -> None:
        await self.client.aclose()
