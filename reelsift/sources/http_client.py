"""Shared aiohttp client for JSON-speaking sources."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from reelsift import logger
from reelsift.__version__ import __version__
from reelsift.errors import as_source_error
from reelsift.rate_limits import (
    DEFAULT_MIN_INTERVAL_SECONDS,
    WAIT_LOG_THRESHOLD_SECONDS,
    enforce_min_interval,
)
from reelsift.sources.resilience import RETRYABLE_HTTP_STATUSES

DEFAULT_USER_AGENT = f"reelsift/{__version__}"
DEFAULT_MAX_ATTEMPTS = 3


class JsonSourceClient:
    """GET-and-decode client with pacing, bounded concurrency and retries."""

    def __init__(
        self,
        source_id: str,
        timeout: int = 10,
        max_concurrency: int = 3,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.source_id = source_id
        self.timeout = timeout
        self.max_attempts = max(1, int(max_attempts))
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._headers = {"User-Agent": DEFAULT_USER_AGENT, "Accept": "application/json", **(headers or {})}
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch and decode JSON. Final failures surface as SourceError subclasses."""
        try:
            status, data, elapsed_ms = await self._request_with_retries(url, params)
        except Exception as exc:
            raise as_source_error(self.source_id, exc) from exc
        logger.get_logger().api_response(status, data, elapsed_ms)
        return data

    async def _request_with_retries(self, url: str, params: Optional[Dict[str, Any]]) -> tuple[int, Any, float]:
        logger.get_logger().api_request("GET", url, params)
        label = self.source_id.upper()
        request_start = time.time()

        async with self._semaphore:
            session = await self._ensure_session()
            for attempt in range(self.max_attempts):
                await self._enforce_interval(url)
                last_attempt = attempt >= self.max_attempts - 1
                try:
                    async with session.get(url, params=params) as response:
                        if response.status >= 400:
                            text = await response.text()
                            exc = aiohttp.ClientResponseError(
                                request_info=response.request_info,
                                history=response.history,
                                status=response.status,
                                message=text[:200],
                                headers=response.headers,
                            )
                            # Retry only transient server failures and explicit throttling.
                            if not last_attempt and response.status in RETRYABLE_HTTP_STATUSES:
                                delay = self._retry_delay_seconds(attempt=attempt, retry_after=response.headers.get("Retry-After"))
                                logger.get_logger().api_retry(label, attempt + 1, self.max_attempts, delay)
                                await asyncio.sleep(delay)
                                continue
                            raise exc
                        data = await response.json(content_type=None)
                        elapsed_ms = (time.time() - request_start) * 1000
                        return response.status, data, elapsed_ms
                except (asyncio.TimeoutError, aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError):
                    if last_attempt:
                        logger.get_logger().api_failed(label, self.max_attempts)
                        raise
                    delay = 2 ** (attempt + 1)
                    logger.get_logger().api_retry(label, attempt + 1, self.max_attempts, delay)
                    await asyncio.sleep(delay)
        raise RuntimeError("Unreachable retry exit")

    @staticmethod
    def _retry_delay_seconds(*, attempt: int, retry_after: str | None) -> int:
        if retry_after:
            try:
                value = int(float(retry_after))
            except (TypeError, ValueError):
                value = 0
            if value > 0:
                return value
        return 2 ** (attempt + 1)

    async def _enforce_interval(self, url: str) -> None:
        wait = await enforce_min_interval(url, min_interval_seconds=self._min_interval_seconds)
        log = logger.get_logger()
        log.api_wait_debug(self.source_id.upper(), wait)
        if wait > WAIT_LOG_THRESHOLD_SECONDS:
            log.api_wait(self.source_id.upper(), wait)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(headers=self._headers, timeout=timeout)
            return self._session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
