"""Per-source query strings with tiered fallbacks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
from urllib.parse import quote_plus

from reelsift.search.types import MediaQuery, QueryVariant

EPISODE_FORMATS = ("sxxexx", "nxnn", "verbose", "episode")
MAX_ALTERNATIVE_TITLES = 2


@dataclass(frozen=True)
class SourceQueryProfile:
    supports_id_lookup: bool = False
    supports_year: bool = True
    episode_format: str = "sxxexx"
    needs_escaping: bool = True
    max_query_length: int | None = None


DEFAULT_QUERY_PROFILE = SourceQueryProfile()

_SOURCE_QUERY_PROFILES: dict[str, SourceQueryProfile] = {
    "yts": SourceQueryProfile(supports_id_lookup=True, supports_year=True),
    "eztv": SourceQueryProfile(supports_id_lookup=True, supports_year=False),
    "1337x": SourceQueryProfile(supports_year=True, max_query_length=100),
    "tpb": SourceQueryProfile(supports_year=True),
    "torrentgalaxy": SourceQueryProfile(supports_id_lookup=True, supports_year=True),
    "nyaa": SourceQueryProfile(supports_year=False, episode_format="episode"),
    "rutor": SourceQueryProfile(supports_year=True),
    "torrentio": SourceQueryProfile(supports_id_lookup=True, supports_year=False, needs_escaping=False),
}


def _normalize_source_id(source_id: str | None) -> str:
    return (source_id or "").strip().lower()


def resolve_query_profile(source_id: str | None) -> SourceQueryProfile:
    """Known sources get their own profile; anything else gets the generic one."""
    return _SOURCE_QUERY_PROFILES.get(_normalize_source_id(source_id), DEFAULT_QUERY_PROFILE)


def known_query_profiles() -> dict[str, SourceQueryProfile]:
    return dict(_SOURCE_QUERY_PROFILES)


def normalize_title(title: str) -> str:
    text = title.replace("’", "'").replace("‘", "'")
    text = text.replace("&", " and ")
    text = re.sub(r"[^\w\s'-]", " ", text)
    text = text.replace("_", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def simplify_title(title: str) -> str:
    text = re.sub(r"\([^)]*\)", " ", title)
    text = re.sub(r"\[[^\]]*\]", " ", text)
    text = text.split(":", 1)[0]
    text = re.sub(r"^\s*the\s+", "", text, flags=re.IGNORECASE)
    return normalize_title(text)


def format_episode(season: int, episode: int, episode_format: str = "sxxexx") -> str:
    if episode_format == "nxnn":
        return f"{season}x{episode:02d}"
    if episode_format == "verbose":
        return f"season {season} episode {episode}"
    if episode_format == "episode":
        return str(episode)
    return f"S{season:02d}E{episode:02d}"


def format_season(season: int, episode_format: str = "sxxexx") -> str:
    if episode_format == "verbose":
        return f"season {season}"
    return f"S{season:02d}"


def _join(*parts: object) -> str:
    return " ".join(str(part) for part in parts if part not in (None, "")).strip()


def _episode_code(query: MediaQuery, profile: SourceQueryProfile) -> str:
    if query.is_series and query.season is not None and query.episode is not None:
        return format_episode(query.season, query.episode, profile.episode_format)
    if query.is_series and query.episode is not None:
        return str(query.episode)
    return ""


def _title_query(title: str, query: MediaQuery, profile: SourceQueryProfile, with_year: bool = True) -> str:
    if query.is_series:
        return _join(title, _episode_code(query, profile))
    year = query.year if with_year and profile.supports_year else None
    return _join(title, year)


def _truncate(text: str, max_length: int | None) -> str:
    if not max_length or len(text) <= max_length:
        return text
    clipped = text[:max_length]
    # Avoid ending on half a word when a space is close by.
    cut = clipped.rfind(" ")
    if cut > max_length // 2:
        clipped = clipped[:cut]
    return clipped.strip()


def _candidate_variants(
    query: MediaQuery,
    profile: SourceQueryProfile,
    alternatives: Sequence[str],
) -> Iterable[QueryVariant]:
    title = normalize_title(query.title)
    title_query = _title_query(title, query, profile)

    if profile.supports_id_lookup and query.external_id:
        yield QueryVariant(query.external_id, "primary", "external id")
        yield QueryVariant(title_query, "fallback", "title")
    else:
        yield QueryVariant(title_query, "primary", "title")

    if query.is_series:
        if query.season is not None:
            yield QueryVariant(_join(title, format_season(query.season, profile.episode_format)), "fallback", "season pack")
        if query.year:
            yield QueryVariant(_join(title, query.year, _episode_code(query, profile)), "fallback", "title + year + episode")
    elif query.year:
        yield QueryVariant(title, "fallback", "title without year")

    simplified = simplify_title(query.title)
    if len(simplified) > 3 and simplified.lower() != title.lower():
        yield QueryVariant(_title_query(simplified, query, profile, with_year=False), "fallback", "simplified title")

    for alternative in list(alternatives)[:MAX_ALTERNATIVE_TITLES]:
        alt_title = normalize_title(alternative)
        if alt_title:
            yield QueryVariant(_title_query(alt_title, query, profile), "alternative", f"alternative title '{alternative}'")


def build_queries(
    query: MediaQuery,
    profile: Optional[SourceQueryProfile] = None,
    alternatives: Optional[Sequence[str]] = None,
) -> list[QueryVariant]:
    """Ordered query variants: primary, then fallbacks, then alternative titles."""
    profile = profile or DEFAULT_QUERY_PROFILE
    variants: list[QueryVariant] = []
    seen: set[str] = set()
    for variant in _candidate_variants(query, profile, alternatives or ()):
        text = _truncate(variant.query, profile.max_query_length)
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        variants.append(QueryVariant(text, variant.tier, variant.description))

    if not variants:
        # Titles made only of punctuation normalize to nothing; fall back to the raw text.
        raw = _truncate(query.title.strip(), profile.max_query_length)
        if raw:
            variants.append(QueryVariant(raw, "primary", "raw title"))
    return variants


def encode_query(variant: QueryVariant | str, profile: Optional[SourceQueryProfile] = None) -> str:
    text = variant.query if isinstance(variant, QueryVariant) else variant
    profile = profile or DEFAULT_QUERY_PROFILE
    return quote_plus(text) if profile.needs_escaping else text
