"""
Shared HTTP plumbing for every upstream source.

Each source gets a bounded timeout, per-call metrics and one failure type
(SourceUnavailableError). A client can be injected so tests run against
httpx.MockTransport; otherwise a short-lived client is opened per call.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx

from config import settings
from infrastructure.api_metrics import api_metrics
from protocols.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class HTTPSource:
    """Base class for JSON-over-HTTP sources"""

    SERVICE = "http"
    BASE_URL = ""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._client = client

    @asynccontextmanager
    async def _session(self):
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Issue a request and return the decoded JSON body or raise SourceUnavailableError."""
        url = self._url(path)
        start = time.time()

        try:
            async with self._session() as client:
                response = await client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException:
            api_metrics.record_call(self.SERVICE, path, "timeout", time.time() - start, "Request timeout")
            raise SourceUnavailableError(self.SERVICE, f"timeout after {self.timeout}s on {path}")
        except httpx.HTTPError as e:
            api_metrics.record_call(self.SERVICE, path, "error", time.time() - start, str(e)[:200])
            raise SourceUnavailableError(self.SERVICE, f"{type(e).__name__} on {path}: {e}")

        elapsed = time.time() - start
        if response.status_code == 429:
            api_metrics.record_call(self.SERVICE, path, "rate_limited", elapsed, status_code=429)
            raise SourceUnavailableError(self.SERVICE, f"rate limited on {path}")
        if response.status_code >= 400:
            api_metrics.record_call(
                self.SERVICE, path, "error", elapsed,
                error_message=response.text[:200], status_code=response.status_code
            )
            raise SourceUnavailableError(self.SERVICE, f"HTTP {response.status_code} on {path}")

        try:
            data = response.json()
        except ValueError:
            api_metrics.record_call(self.SERVICE, path, "error", elapsed, "Malformed JSON", response.status_code)
            raise SourceUnavailableError(self.SERVICE, f"malformed JSON from {path}")

        api_metrics.record_call(self.SERVICE, path, "success", elapsed, status_code=response.status_code)
        return data

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post_json(self, path: str, payload: dict) -> Any:
        return await self._request("POST", path, json=payload)
