from __future__ import annotations

import pytest

from reelsift.config import SourceConfig
from reelsift.search.types import MediaQuery
from reelsift.sources import stream_addon
from reelsift.sources.stream_addon import StreamAddonAdapter

MATRIX = MediaQuery(external_id="tt0133093", kind="movie", title="The Matrix", year=1999)
OFFICE = MediaQuery(external_id="tt0386676", kind="series", title="The Office", year=2005, season=2, episode=3)
HASH = "AB" * 20


class _FakeClient:
    def __init__(self, payload: object) -> None:
        self.payload = payload
        self.urls: list[str] = []
        self.closed = False

    async def get_json(self, url: str, params: dict | None = None) -> object:
        self.urls.append(url)
        return self.payload

    async def close(self) -> None:
        self.closed = True


def _stream(title: str, info_hash: str | None = HASH, **extra) -> dict:
    stream = {"name": "Torrentio\n4k", "title": title, **extra}
    if info_hash is not None:
        stream["infoHash"] = info_hash
    return stream


def test_stream_path_for_movie_and_episode() -> None:
    assert stream_addon.stream_path(MATRIX) == "/stream/movie/tt0133093.json"
    assert stream_addon.stream_path(OFFICE) == "/stream/series/tt0386676:2:3.json"
    assert stream_addon.stream_path(MediaQuery(external_id=None, kind="movie", title="Heat")) is None


def test_parse_stream_reads_title_seeds_size_and_hash() -> None:
    raw = stream_addon.parse_stream(
        _stream("The.Matrix.1999.2160p.BluRay.REMUX.HEVC.DV-FGT\n👤 40 💾 60.5 GB ⚙️ ThePirateBay"),
        "torrentio",
    )

    assert raw is not None
    assert raw.title == "The.Matrix.1999.2160p.BluRay.REMUX.HEVC.DV-FGT"
    assert raw.seed_count == 40
    assert raw.size_bytes == int(60.5 * 1024 ** 3)
    assert raw.content_hash == HASH.lower()
    assert raw.source_id == "torrentio"
    assert raw.retrieval_uri is not None
    assert raw.retrieval_uri.startswith(f"magnet:?xt=urn:btih:{HASH.lower()}&dn=")
    assert "tracker.opentrackr.org" in raw.retrieval_uri


def test_hash_falls_back_to_url() -> None:
    stream = _stream("Some.Movie.1080p", info_hash=None, url=f"magnet:?xt=urn:btih:{HASH}")

    assert stream_addon.extract_info_hash(stream) == HASH.lower()


def test_stream_without_hash_is_skipped() -> None:
    assert stream_addon.parse_stream(_stream("Some.Movie.1080p", info_hash=None), "torrentio") is None
    assert stream_addon.parse_stream(_stream("Some.Movie", info_hash="not-a-hash"), "torrentio") is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("👤 12 💾 700 MB", 700 * 1024 ** 2),
        ("💾 1.5 tb", int(1.5 * 1024 ** 4)),
        ("no size here", 0),
    ],
)
def test_parse_size(text: str, expected: int) -> None:
    assert stream_addon.parse_size(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Movie\n👤 5 💾 1 GB ⚙️ 1337x", "1337x"),
        ("Movie [RARBG]", "RARBG"),
        ("Movie", None),
    ],
)
def test_extract_origin(text: str, expected: str | None) -> None:
    assert stream_addon.extract_origin(text) == expected


def test_clean_title_strips_emoji_and_extra_lines() -> None:
    assert stream_addon.clean_title("🎬  The Matrix   1999 \n👤 3") == "The Matrix 1999"


@pytest.mark.asyncio
async def test_search_builds_url_and_parses_streams() -> None:
    client = _FakeClient(
        {
            "streams": [
                _stream("The.Matrix.1999.1080p.BluRay.x264\n👤 0 💾 8 GB ⚙️ YTS"),
                _stream("broken entry", info_hash=None),
            ]
        }
    )
    adapter = StreamAddonAdapter(client=client)

    results = await adapter.search(MATRIX)

    assert client.urls == ["https://torrentio.strem.fun/stream/movie/tt0133093.json"]
    assert [raw.title for raw in results] == ["The.Matrix.1999.1080p.BluRay.x264"]
    assert results[0].seed_count == 0


@pytest.mark.asyncio
async def test_search_without_external_id_makes_no_request() -> None:
    client = _FakeClient({"streams": []})
    adapter = StreamAddonAdapter(client=client)

    assert await adapter.search(MediaQuery(external_id=None, kind="movie", title="Heat")) == []
    assert client.urls == []


@pytest.mark.asyncio
async def test_malformed_payload_is_a_parse_failure() -> None:
    adapter = StreamAddonAdapter(client=_FakeClient({"streams": "nope"}))

    with pytest.raises(ValueError):
        await adapter.search(MATRIX)


@pytest.mark.asyncio
async def test_close_closes_client() -> None:
    client = _FakeClient({})
    await StreamAddonAdapter(client=client).close()

    assert client.closed


def test_from_config_uses_first_url() -> None:
    adapter = StreamAddonAdapter.from_config("torrentio", SourceConfig(urls=["https://addon.example/"], timeout=4))

    assert adapter.base_url == "https://addon.example"
    assert adapter.client.timeout == 4
