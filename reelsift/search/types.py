"""Shared data structures for the search pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

MEDIA_KINDS = ("movie", "series")
QUERY_TIERS = ("primary", "fallback", "alternative")

_HASH_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def normalize_content_hash(value: Optional[str]) -> Optional[str]:
    """Lower-case a 40-hex content hash; anything else counts as absent."""
    if not value:
        return None
    candidate = value.strip()
    if not _HASH_RE.match(candidate):
        return None
    return candidate.lower()


@dataclass(frozen=True)
class MediaQuery:
    """What to search for. Season/episode only apply to series."""

    external_id: Optional[str]
    kind: str
    title: str
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind not in MEDIA_KINDS:
            raise ValueError(f"Unknown media kind '{self.kind}'. Expected one of: {', '.join(MEDIA_KINDS)}.")
        if self.kind == "movie" and (self.season is not None or self.episode is not None):
            raise ValueError("season/episode are only valid for series queries")

    @property
    def is_series(self) -> bool:
        return self.kind == "series"

    def label(self) -> str:
        parts = [self.title]
        if self.year:
            parts.append(f"({self.year})")
        if self.is_series and self.season is not None and self.episode is not None:
            parts.append(f"S{self.season:02d}E{self.episode:02d}")
        return " ".join(parts)


@dataclass
class RawResult:
    """One candidate exactly as a source adapter reported it."""

    title: str
    size_bytes: int
    seed_count: int
    peer_count: int
    source_id: str
    content_hash: Optional[str] = None
    retrieval_uri: Optional[str] = None

    def __post_init__(self) -> None:
        self.content_hash = normalize_content_hash(self.content_hash)
        self.size_bytes = max(int(self.size_bytes or 0), 0)
        self.seed_count = max(int(self.seed_count or 0), 0)
        self.peer_count = max(int(self.peer_count or 0), 0)


@dataclass(frozen=True)
class QualityAttributes:
    resolution: str
    resolution_rank: int
    codec: str
    codec_rank: int
    hdr: str
    dolby_vision_profile: Optional[int]
    audio: str
    audio_rank: int
    source: str
    source_rank: int
    is_3d: bool = False
    is_remux: bool = False
    is_bluray: bool = False
    is_web_dl: bool = False
    is_cam: bool = False
    is_trusted_release: bool = False
    has_proper_tag: bool = False
    has_repack_tag: bool = False
    is_multi_audio: bool = False
    is_multi_subs: bool = False
    release_group: Optional[str] = None
    quality_score: int = 0

    @property
    def has_proper_or_repack(self) -> bool:
        return self.has_proper_tag or self.has_repack_tag

    def tags(self) -> Tuple[str, ...]:
        """Short labels used in report digests."""
        values = [self.resolution]
        if self.hdr != "none":
            values.append(self.hdr)
        if self.source != "unknown":
            values.append(self.source)
        if self.codec != "unknown":
            values.append(self.codec)
        if self.audio != "unknown":
            values.append(self.audio)
        if self.is_3d:
            values.append("3D")
        return tuple(values)

    def summary(self) -> str:
        return " • ".join(self.tags())


@dataclass(frozen=True)
class ScoreBreakdown:
    resolution: float = 0.0
    hdr: float = 0.0
    source: float = 0.0
    codec: float = 0.0
    audio: float = 0.0
    health: float = 0.0
    trust: float = 0.0
    size: float = 0.0
    penalty: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.resolution
            + self.hdr
            + self.source
            + self.codec
            + self.audio
            + self.health
            + self.trust
            + self.size
            - self.penalty
        )


@dataclass(frozen=True)
class RankedResult:
    raw: RawResult
    quality: QualityAttributes
    rank_score: float
    score_breakdown: ScoreBreakdown
    arrival_index: int

    @property
    def title(self) -> str:
        return self.raw.title

    @property
    def content_hash(self) -> Optional[str]:
        return self.raw.content_hash

    @property
    def source_id(self) -> str:
        return self.raw.source_id

    @property
    def seed_count(self) -> int:
        return self.raw.seed_count

    @property
    def size_bytes(self) -> int:
        return self.raw.size_bytes


@dataclass
class SourceOutcome:
    """Result of one adapter invocation within a search."""

    source_id: str
    results: list[RawResult] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    duration_ms: float = 0.0
    is_backup: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class QueryVariant:
    query: str
    tier: str
    description: str = ""
