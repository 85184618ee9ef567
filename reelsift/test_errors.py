from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import aiohttp
import pytest

from reelsift.errors import (
    AdapterNetworkError,
    AdapterParseError,
    AdapterRateLimited,
    AdapterTimeout,
    AdapterUnknownError,
    as_source_error,
    classify_error,
)

_REQUEST_INFO = SimpleNamespace(real_url="https://source.example/api")


def _response_error(status: int) -> aiohttp.ClientResponseError:
    return aiohttp.ClientResponseError(_REQUEST_INFO, (), status=status, message="nope")


@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (AdapterRateLimited("yts", "slow down"), "ratelimit"),
        (asyncio.TimeoutError(), "timeout"),
        (_response_error(429), "ratelimit"),
        (_response_error(503), "network"),
        (aiohttp.ClientConnectionError("refused"), "network"),
        (ConnectionResetError("reset"), "network"),
        (json.JSONDecodeError("Expecting value", "", 0), "parse"),
        (KeyError("streams"), "parse"),
        (TypeError("bad type"), "parse"),
        (OSError("disk"), "network"),
        (RuntimeError("boom"), "unknown"),
    ],
)
def test_classify_error(exc: Exception, kind: str) -> None:
    assert classify_error(exc) == kind


def test_as_source_error_wraps_with_matching_subclass() -> None:
    wrapped = as_source_error("eztv", ValueError("bad body"))

    assert isinstance(wrapped, AdapterParseError)
    assert wrapped.source_id == "eztv"
    assert str(wrapped) == "eztv: bad body"


def test_as_source_error_keeps_existing_source_errors() -> None:
    original = AdapterTimeout("rutor")

    assert as_source_error("other", original) is original
    assert str(original) == "rutor: timeout"


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (_response_error(429), AdapterRateLimited),
        (aiohttp.ClientConnectionError(), AdapterNetworkError),
        (RuntimeError(), AdapterUnknownError),
    ],
)
def test_as_source_error_picks_class(exc: Exception, expected: type) -> None:
    assert type(as_source_error("x", exc)) is expected
