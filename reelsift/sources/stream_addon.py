"""
Backup source: a stream-addon meta-aggregator keyed by IMDb id.

The addon answers ``/stream/{movie|series}/{id}.json`` with a ``streams``
list. Each stream carries a multi-line title: the release name on the first
line, then seeders, size and the upstream tracker marked with emoji.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Optional
from urllib.parse import quote

from reelsift import logger
from reelsift.config import SourceConfig
from reelsift.search.types import MediaQuery, RawResult, normalize_content_hash
from reelsift.sources.http_client import JsonSourceClient
from reelsift.sources.resilience import expect_dict, optional_list_of_dicts

DEFAULT_BASE_URL = "https://torrentio.strem.fun"

MAGNET_TRACKERS = (
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.demonii.com:1337/announce",
    "udp://tracker.openbittorrent.com:6969/announce",
    "udp://open.tracker.cl:1337/announce",
    "udp://tracker.torrent.eu.org:451/announce",
)

_SIZE_UNITS = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3, "TB": 1024 ** 4}

_SEEDS_RE = re.compile(r"👤\s*(\d+)")
_SIZE_RE = re.compile(r"([\d.]+)\s*(KB|MB|GB|TB)\b", re.IGNORECASE)
_ORIGIN_RE = re.compile(r"⚙️?\s*([^\n]+?)\s*$", re.MULTILINE)
_BRACKET_ORIGIN_RE = re.compile(r"\[([A-Za-z0-9 ._-]+)\]\s*$")
_HASH_IN_URL_RE = re.compile(r"(?:btih:|/)([a-fA-F0-9]{40})(?![a-fA-F0-9])")
_EMOJI_RE = re.compile(r"[🎬📺👤💾🔊⚡⚙]️?")


def stream_path(query: MediaQuery) -> Optional[str]:
    """Path for a query, or None when it has no IMDb id to look up."""
    if not query.external_id:
        return None
    media_id = query.external_id
    if query.is_series and query.season is not None:
        media_id = f"{media_id}:{query.season}:{query.episode if query.episode is not None else 1}"
    kind = "series" if query.is_series else "movie"
    return f"/stream/{kind}/{quote(media_id, safe=':')}.json"


def extract_info_hash(stream: dict) -> Optional[str]:
    info_hash = stream.get("infoHash")
    content_hash = normalize_content_hash(info_hash) if isinstance(info_hash, str) else None
    if content_hash:
        return content_hash
    url = stream.get("url")
    if isinstance(url, str):
        match = _HASH_IN_URL_RE.search(url)
        if match:
            return match.group(1).lower()
    return None


def extract_seeds(text: str) -> int:
    match = _SEEDS_RE.search(text)
    return int(match.group(1)) if match else 0


def parse_size(text: str) -> int:
    match = _SIZE_RE.search(text)
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return int(value * _SIZE_UNITS[match.group(2).upper()])


def extract_origin(text: str) -> Optional[str]:
    """Upstream tracker named in the stream title, if any."""
    for line in text.splitlines():
        if "⚙" in line:
            match = _ORIGIN_RE.search(line)
            if match:
                return match.group(1).strip() or None
    match = _BRACKET_ORIGIN_RE.search(text)
    return match.group(1).strip() if match else None


def clean_title(text: str) -> str:
    first_line = text.strip().splitlines()[0] if text.strip() else ""
    return " ".join(_EMOJI_RE.sub("", first_line).split())


def build_magnet_uri(content_hash: str, title: str) -> str:
    trackers = "".join(f"&tr={quote(tracker, safe='')}" for tracker in MAGNET_TRACKERS)
    return f"magnet:?xt=urn:btih:{content_hash}&dn={quote(title)}{trackers}"


def parse_stream(stream: dict, source_id: str) -> Optional[RawResult]:
    """One stream entry to a RawResult. Entries without a usable hash or title are skipped."""
    text = stream.get("title") or stream.get("name") or ""
    if not isinstance(text, str):
        return None
    content_hash = extract_info_hash(stream)
    title = clean_title(text)
    if not content_hash or not title:
        return None
    return RawResult(
        title=title,
        size_bytes=parse_size(text),
        seed_count=extract_seeds(text),
        peer_count=0,
        source_id=source_id,
        content_hash=content_hash,
        retrieval_uri=build_magnet_uri(content_hash, title),
    )


class StreamAddonAdapter:
    """Adapter for the stream-addon aggregator, used as the backup source."""

    def __init__(
        self,
        source_id: str = "torrentio",
        base_url: str = DEFAULT_BASE_URL,
        client: Optional[JsonSourceClient] = None,
    ):
        self.source_id = source_id
        self.base_url = base_url.rstrip("/")
        self.client = client or JsonSourceClient(source_id)

    @classmethod
    def from_config(cls, source_id: str, config: SourceConfig) -> "StreamAddonAdapter":
        client = JsonSourceClient(
            source_id,
            timeout=config.timeout,
            max_concurrency=config.max_concurrency,
            min_interval_seconds=config.min_interval_seconds,
        )
        base_url = config.urls[0] if config.urls else DEFAULT_BASE_URL
        return cls(source_id=source_id, base_url=base_url, client=client)

    async def search(self, query: MediaQuery) -> list[RawResult]:
        path = stream_path(query)
        if path is None:
            logger.get_logger().debug(f"{self.source_id}: no IMDb id for '{query.label()}', skipping")
            return []

        payload = expect_dict(await self.client.get_json(f"{self.base_url}{path}"), self.source_id)
        streams = optional_list_of_dicts(payload, "streams", self.source_id)

        results: list[RawResult] = []
        origins: Counter[str] = Counter()
        for stream in streams:
            raw = parse_stream(stream, self.source_id)
            if raw is None:
                continue
            results.append(raw)
            origins[extract_origin(stream.get("title") or "") or "unknown"] += 1

        if origins:
            breakdown = ", ".join(f"{name} {count}" for name, count in origins.most_common())
            logger.get_logger().debug(f"{self.source_id}: {len(results)} streams ({breakdown})")
        return results

    async def close(self) -> None:
        await self.client.close()
