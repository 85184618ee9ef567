"""Error taxonomy for source adapters and configuration."""

from __future__ import annotations

import asyncio
import json

from aiohttp import ClientError, ClientResponseError, ContentTypeError

ERROR_KINDS = ("timeout", "network", "parse", "ratelimit", "unknown")


class InvalidConfig(ValueError):
    """Raised before a search starts when ranking/orchestrator settings are unusable."""


class SourceError(Exception):
    """Base class for per-source failures. Never escapes a search."""

    kind = "unknown"

    def __init__(self, source_id: str, message: str = ""):
        self.source_id = source_id
        detail = message or self.kind
        super().__init__(f"{source_id}: {detail}")


class AdapterTimeout(SourceError):
    kind = "timeout"


class AdapterNetworkError(SourceError):
    kind = "network"


class AdapterParseError(SourceError):
    kind = "parse"


class AdapterRateLimited(SourceError):
    kind = "ratelimit"


class AdapterUnknownError(SourceError):
    kind = "unknown"


_ERRORS_BY_KIND: dict[str, type[SourceError]] = {
    "timeout": AdapterTimeout,
    "network": AdapterNetworkError,
    "parse": AdapterParseError,
    "ratelimit": AdapterRateLimited,
    "unknown": AdapterUnknownError,
}


def classify_error(exc: BaseException) -> str:
    """Map any exception raised by an adapter onto one of ERROR_KINDS."""
    if isinstance(exc, SourceError):
        return exc.kind
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    if isinstance(exc, ClientResponseError):
        if exc.status == 429:
            return "ratelimit"
        if isinstance(exc, ContentTypeError):
            return "parse"
        return "network"
    if isinstance(exc, (ClientError, ConnectionError)):
        return "network"
    if isinstance(exc, (json.JSONDecodeError, ValueError, KeyError, TypeError)):
        return "parse"
    if isinstance(exc, OSError):
        return "network"
    return "unknown"


def as_source_error(source_id: str, exc: BaseException) -> SourceError:
    """Wrap an arbitrary exception in the matching SourceError subclass."""
    if isinstance(exc, SourceError):
        return exc
    error_cls = _ERRORS_BY_KIND[classify_error(exc)]
    message = str(exc) or type(exc).__name__
    return error_cls(source_id, message)
