from __future__ import annotations

import pytest

from reelsift.config import SourceConfig
from reelsift.errors import AdapterNetworkError, AdapterParseError
from reelsift.search.types import MediaQuery
from reelsift.sources import yts
from reelsift.sources.yts import YtsAdapter

MATRIX = MediaQuery(external_id="tt0133093", kind="movie", title="The Matrix", year=1999)
HASH_2160 = "A1" * 20
HASH_1080 = "B2" * 20


def _payload(*movies: dict) -> dict:
    return {"status": "ok", "data": {"movie_count": len(movies), "movies": list(movies)}}


def _matrix(imdb_code: str = "tt0133093") -> dict:
    return {
        "title": "The Matrix",
        "title_long": "The Matrix (1999)",
        "year": 1999,
        "imdb_code": imdb_code,
        "torrents": [
            {"hash": HASH_2160, "quality": "2160p", "type": "bluray", "video_codec": "x265", "size_bytes": 2 ** 34, "seeds": 120, "peers": 9},
            {"hash": HASH_1080, "quality": "1080p", "type": "web", "size_bytes": "2147483648", "seeds": "40", "peers": None},
        ],
    }


class _ScriptedClient:
    """Answers by URL prefix; an Exception value is raised instead of returned."""

    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = responses
        self.urls: list[str] = []

    async def get_json(self, url: str, params: dict | None = None) -> object:
        self.urls.append(url)
        for prefix, response in self.responses.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(url)
                return response
        return _payload()

    async def close(self) -> None:
        return None


def test_parse_movies_flattens_torrents() -> None:
    results = yts.parse_movies(_payload(_matrix()), "yts", "tt0133093")

    assert [raw.title for raw in results] == [
        "The Matrix (1999) [2160p] [bluray] [x265] [YTS]",
        "The Matrix (1999) [1080p] [web] [YTS]",
    ]
    assert [raw.content_hash for raw in results] == [HASH_2160.lower(), HASH_1080.lower()]
    assert results[1].size_bytes == 2147483648
    assert results[1].seed_count == 40
    assert results[1].peer_count == 0
    assert results[0].retrieval_uri is not None
    assert results[0].retrieval_uri.startswith("magnet:?xt=urn:btih:")


def test_parse_movies_drops_other_imdb_ids() -> None:
    assert yts.parse_movies(_payload(_matrix("tt9999999")), "yts", "tt0133093") == []
    assert len(yts.parse_movies(_payload(_matrix("tt9999999")), "yts", None)) == 2


def test_parse_movies_handles_empty_data() -> None:
    assert yts.parse_movies({"status": "ok", "data": {"movie_count": 0}}, "yts") == []


def test_parse_movies_rejects_error_status() -> None:
    with pytest.raises(ValueError):
        yts.parse_movies({"status": "error", "status_message": "Invalid"}, "yts")


@pytest.mark.asyncio
async def test_search_stops_at_first_variant_with_results() -> None:
    client = _ScriptedClient({"https://yts.mx/api/v2/list_movies.json?query_term=tt0133093": _payload(_matrix())})
    adapter = YtsAdapter(client=client)

    results = await adapter.search(MATRIX)

    assert len(results) == 2
    assert client.urls == ["https://yts.mx/api/v2/list_movies.json?query_term=tt0133093&limit=50"]


@pytest.mark.asyncio
async def test_search_walks_fallback_variants() -> None:
    client = _ScriptedClient({"https://yts.mx/api/v2/list_movies.json?query_term=The+Matrix+1999": _payload(_matrix())})
    adapter = YtsAdapter(client=client)

    results = await adapter.search(MATRIX)

    assert len(results) == 2
    assert [url.split("query_term=")[1].split("&")[0] for url in client.urls] == ["tt0133093", "The+Matrix+1999"]


@pytest.mark.asyncio
async def test_unreachable_mirror_falls_through_to_next() -> None:
    client = _ScriptedClient(
        {
            "https://yts.mx": AdapterNetworkError("yts", "connection refused"),
            "https://yts.lt/api/v2/list_movies.json?query_term=tt0133093": _payload(_matrix()),
        }
    )
    adapter = YtsAdapter(client=client)

    results = await adapter.search(MATRIX)

    assert len(results) == 2
    assert client.urls[0].startswith("https://yts.mx")
    assert client.urls[1].startswith("https://yts.lt")


@pytest.mark.asyncio
async def test_all_mirrors_down_raises_last_error() -> None:
    client = _ScriptedClient({"https://": AdapterNetworkError("yts", "down")})
    adapter = YtsAdapter(client=client)

    with pytest.raises(AdapterNetworkError):
        await adapter.search(MATRIX)

    assert len(client.urls) == 3


@pytest.mark.asyncio
async def test_parse_failures_do_not_try_other_mirrors() -> None:
    client = _ScriptedClient({"https://yts.mx": AdapterParseError("yts", "bad body")})
    adapter = YtsAdapter(client=client)

    with pytest.raises(AdapterParseError):
        await adapter.search(MATRIX)

    assert len(client.urls) == 1


@pytest.mark.asyncio
async def test_series_queries_are_not_sent() -> None:
    client = _ScriptedClient({})
    adapter = YtsAdapter(client=client)

    series = MediaQuery(external_id="tt0386676", kind="series", title="The Office", season=2, episode=3)

    assert await adapter.search(series) == []
    assert client.urls == []


def test_from_config_overrides_mirrors() -> None:
    adapter = YtsAdapter.from_config("yts", SourceConfig(urls=["https://yts.example/"]))

    assert adapter.mirrors == ["https://yts.example"]
