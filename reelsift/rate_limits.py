"""Shared per-host request pacing for source adapters."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from urllib.parse import urlsplit

# Minimum interval between calls to the same host.
DEFAULT_MIN_INTERVAL_SECONDS = 0.5
WAIT_LOG_THRESHOLD_SECONDS = 1.5
RATE_LIMIT_WINDOW_SECONDS = 10.0


# Hosts that publish a request budget per window.
_HOST_REQUEST_LIMITS: dict[str, int] = {
    "yts.mx": 20,
    "yts.lt": 20,
    "yts.am": 20,
}


@dataclass
class _HostBucket:
    lock: asyncio.Lock
    last_request_started: float = 0.0
    request_starts: deque[float] = field(default_factory=deque)


_host_buckets: dict[str, _HostBucket] = {}
_host_buckets_lock = asyncio.Lock()


def normalize_host_key(base_url: str) -> str:
    parts = urlsplit(base_url.strip())
    host = parts.netloc or parts.path
    return host.rstrip("/").lower()


def _resolve_request_limit(host: str) -> int | None:
    return _HOST_REQUEST_LIMITS.get(host)


def _prune_window(bucket: _HostBucket, now: float, window_seconds: float) -> None:
    if window_seconds <= 0:
        bucket.request_starts.clear()
        return
    cutoff = now - window_seconds
    while bucket.request_starts and bucket.request_starts[0] <= cutoff:
        bucket.request_starts.popleft()


async def _get_or_create_bucket(host: str) -> _HostBucket:
    bucket = _host_buckets.get(host)
    if bucket is not None:
        return bucket

    async with _host_buckets_lock:
        bucket = _host_buckets.get(host)
        if bucket is None:
            bucket = _HostBucket(lock=asyncio.Lock())
            _host_buckets[host] = bucket
        return bucket


async def enforce_min_interval(
    base_url: str,
    min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
) -> float:
    """
    Enforce shared per-host spacing.

    Returns the wait time applied (seconds).
    """
    host = normalize_host_key(base_url)
    bucket = await _get_or_create_bucket(host)
    request_limit = _resolve_request_limit(host)
    window_seconds = RATE_LIMIT_WINDOW_SECONDS if request_limit else 0.0
    async with bucket.lock:
        now = time.monotonic()
        effective_min_interval = max(0.0, float(min_interval_seconds))
        min_wait = effective_min_interval - (now - bucket.last_request_started)
        _prune_window(bucket, now, window_seconds)
        window_wait = 0.0
        if request_limit and len(bucket.request_starts) >= request_limit:
            window_wait = bucket.request_starts[0] + window_seconds - now
        wait = max(min_wait, window_wait, 0.0)
        if wait > 0:
            await asyncio.sleep(wait)
            now = time.monotonic()
            _prune_window(bucket, now, window_seconds)
        bucket.last_request_started = now
        if request_limit:
            bucket.request_starts.append(now)
        return wait


def _reset_rate_limits_for_tests() -> None:
    """Test helper to clear shared limiter state."""
    _host_buckets.clear()
