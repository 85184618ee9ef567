"""
YTS movie source.

Walks the query variants for the ``yts`` profile against the first mirror
that answers. Results are pinned to the requested IMDb id when one is known,
so a title fallback cannot pull in a different film of the same name.
"""

from __future__ import annotations

from typing import Optional, Sequence

from reelsift import logger
from reelsift.config import SourceConfig
from reelsift.errors import AdapterNetworkError, AdapterTimeout
from reelsift.search.query_builder import build_queries, encode_query, resolve_query_profile
from reelsift.search.types import MediaQuery, QueryVariant, RawResult
from reelsift.sources.http_client import JsonSourceClient
from reelsift.sources.resilience import coerce_int, expect_dict, optional_dict, optional_list_of_dicts
from reelsift.sources.stream_addon import build_magnet_uri

YTS_MIRRORS = ("https://yts.mx", "https://yts.lt", "https://yts.am")
LIST_MOVIES_PATH = "/api/v2/list_movies.json"
PAGE_LIMIT = 50


def format_title(movie: dict, torrent: dict) -> str:
    parts = [str(movie.get("title_long") or movie.get("title") or "").strip()]
    if movie.get("year") and not movie.get("title_long"):
        parts.append(f"({movie['year']})")
    for key in ("quality", "type", "video_codec"):
        value = torrent.get(key)
        if value:
            parts.append(f"[{value}]")
    parts.append("[YTS]")
    return " ".join(part for part in parts if part)


def parse_movies(payload: object, source_id: str, external_id: Optional[str] = None) -> list[RawResult]:
    """Flatten list_movies.json into one RawResult per torrent."""
    body = expect_dict(payload, source_id)
    status = body.get("status")
    if status not in (None, "ok"):
        raise ValueError(f"{source_id} returned status '{status}': {body.get('status_message', '')}")
    data = optional_dict(body, "data", source_id)
    movies = optional_list_of_dicts(data, "movies", f"{source_id}.data")

    results: list[RawResult] = []
    for idx, movie in enumerate(movies):
        imdb_code = movie.get("imdb_code")
        if external_id and imdb_code and str(imdb_code).lower() != external_id.lower():
            continue
        torrents = optional_list_of_dicts(movie, "torrents", f"{source_id}.data.movies[{idx}]")
        for torrent in torrents:
            title = format_title(movie, torrent)
            content_hash = torrent.get("hash")
            raw = RawResult(
                title=title,
                size_bytes=coerce_int(torrent.get("size_bytes")),
                seed_count=coerce_int(torrent.get("seeds")),
                peer_count=coerce_int(torrent.get("peers")),
                source_id=source_id,
                content_hash=content_hash if isinstance(content_hash, str) else None,
            )
            if raw.content_hash:
                raw.retrieval_uri = build_magnet_uri(raw.content_hash, title)
            else:
                raw.retrieval_uri = torrent.get("url") if isinstance(torrent.get("url"), str) else None
            results.append(raw)
    return results


class YtsAdapter:
    """Movie-only adapter for the YTS JSON API."""

    def __init__(
        self,
        source_id: str = "yts",
        mirrors: Sequence[str] = YTS_MIRRORS,
        client: Optional[JsonSourceClient] = None,
    ):
        self.source_id = source_id
        self.mirrors = [mirror.rstrip("/") for mirror in mirrors] or list(YTS_MIRRORS)
        self.profile = resolve_query_profile("yts")
        self.client = client or JsonSourceClient(source_id)

    @classmethod
    def from_config(cls, source_id: str, config: SourceConfig) -> "YtsAdapter":
        client = JsonSourceClient(
            source_id,
            timeout=config.timeout,
            max_concurrency=config.max_concurrency,
            min_interval_seconds=config.min_interval_seconds,
        )
        return cls(source_id=source_id, mirrors=config.urls or YTS_MIRRORS, client=client)

    def _url(self, mirror: str, variant: QueryVariant) -> str:
        return f"{mirror}{LIST_MOVIES_PATH}?query_term={encode_query(variant, self.profile)}&limit={PAGE_LIMIT}"

    async def _search_mirror(self, mirror: str, variants: Sequence[QueryVariant], query: MediaQuery) -> list[RawResult]:
        for variant in variants:
            payload = await self.client.get_json(self._url(mirror, variant))
            results = parse_movies(payload, self.source_id, query.external_id)
            logger.get_logger().debug(
                f"{self.source_id}: '{variant.query}' ({variant.description}) -> {len(results)} torrents"
            )
            if results:
                return results
        return []

    async def search(self, query: MediaQuery) -> list[RawResult]:
        if query.is_series:
            return []

        variants = build_queries(query, self.profile)
        last_error: Exception | None = None
        for mirror in self.mirrors:
            try:
                return await self._search_mirror(mirror, variants, query)
            except (AdapterNetworkError, AdapterTimeout) as e:
                # Mirror unreachable; the next one may answer.
                logger.get_logger().debug(f"{self.source_id}: mirror {mirror} failed ({e}); trying next")
                last_error = e
        if last_error is None:
            return []
        raise last_error

    async def close(self) -> None:
        await self.client.close()
