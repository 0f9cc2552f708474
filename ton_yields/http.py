from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

logger = logging.getLogger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """Transport failures, 5xx and 429 are retried; other 4xx answers are final."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, httpx.TransportError)


class HttpClient:
    def __init__(self, timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        limits = httpx.Limits(max_connections=50, max_keepalive_connections=20)
        self._client = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception(is_retryable),
    )
    async def get(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        logger.debug(f"HTTP GET {url} params={params}")
        resp = await self._client.get(url, params=params, headers=headers)
        resp.raise_for_status()
        return resp

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception(is_retryable),
    )
    async def post(self, url: str, json: Optional[Any] = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        logger.debug(f"HTTP POST {url} json_keys={list(json.keys()) if isinstance(json, dict) else None}")
        resp = await self._client.post(url, json=json, headers=headers)
        resp.raise_for_status()
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()
