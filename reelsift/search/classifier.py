"""Quality classification of free-text release titles."""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from reelsift.search.types import QualityAttributes

_I = re.IGNORECASE


class _Tier(NamedTuple):
    label: str
    rank: int


class _HdrInfo(NamedTuple):
    kind: str
    bonus: int
    dolby_vision_profile: Optional[int]


UNKNOWN = "unknown"

# (pattern, label, rank), checked in order; first match wins.
_RESOLUTION_RULES = (
    (re.compile(r"2160p|\b4k\b|\buhd\b", _I), "4K", 5),
    (re.compile(r"1080[pi]", _I), "1080p", 4),
    (re.compile(r"720p", _I), "720p", 3),
    (re.compile(r"480p|\bsd\b", _I), "480p", 2),
)

_CODEC_RULES = (
    (re.compile(r"\bav1\b", _I), "AV1", 5),
    (re.compile(r"hevc|x265|h\.?265", _I), "HEVC", 4),
    (re.compile(r"\bvp9\b", _I), "VP9", 3),
    (re.compile(r"x264|h\.?264|\bavc\b", _I), "x264", 2),
    (re.compile(r"xvid|divx|mpeg", _I), "MPEG", 1),
)

_AUDIO_RULES = (
    (re.compile(r"atmos", _I), "Atmos", 6),
    (re.compile(r"true[\s.-]?hd", _I), "TrueHD", 5),
    (re.compile(r"dts[\s.-]?hd[\s.-]?ma\b", _I), "DTS-HD MA", 5),
    (re.compile(r"dts[\s.:-]?x\b", _I), "DTS:X", 5),
    (re.compile(r"dts[\s.-]?hd", _I), "DTS-HD", 4),
    (re.compile(r"\bdts\b", _I), "DTS", 3),
    (re.compile(r"\bddp|dd\+|\be-?ac-?3", _I), "DD+", 3),
    (re.compile(r"\bdd[\s.]?5\.1|\bac-?3\b", _I), "DD5.1", 2),
    (re.compile(r"\baac", _I), "AAC", 1),
    (re.compile(r"\bmp3\b", _I), "MP3", 0),
)

_SOURCE_RULES = (
    (re.compile(r"remux", _I), "Remux", 6),
    (re.compile(r"blu[\s.-]?ray|bdrip|brrip", _I), "BluRay", 5),
    (re.compile(r"web[\s.-]?dl", _I), "WEB-DL", 4),
    (re.compile(r"web[\s.-]?rip", _I), "WEBRip", 3),
    (re.compile(r"hdtv", _I), "HDTV", 2),
    (re.compile(r"dvd[\s.-]?rip", _I), "DVDRip", 1),
    (re.compile(r"\b(?:hd)?cam(?:rip)?\b|telesync|\b(?:hd)?ts\b|\btsrip\b", _I), "CAM", 0),
)

_DOLBY_VISION_RE = re.compile(
    r"dolby[\s._-]?vision|\bdovi\b|\bdv(?:[\s._-]?(?:profile[\s._-]?|p)?\d)?(?![a-z0-9])",
    _I,
)
# A profile needs a "p"/"profile" marker or a digit right after "dv", so channel counts such as 7.1 never match.
_DV_PROFILE_RE = re.compile(
    r"\b(?:dv|dovi|vision)[\s._-]?(?:profile[\s._-]?|p)(\d)(?!\d)|\b(?:dv|dovi)\s?(\d)(?![\d.])",
    _I,
)
_HDR10_PLUS_RE = re.compile(r"hdr10(?:\+|plus)", _I)
_HDR10_RE = re.compile(r"hdr10", _I)
_HDR_RE = re.compile(r"\bhdr\b", _I)
_HLG_RE = re.compile(r"\bhlg\b", _I)

TRUSTED_RELEASE_TAGS = (
    "SPARKS", "GECKOS", "RARBG", "YTS", "YIFY", "NTb", "FLUX", "TEPES", "BCORE",
    "CMRG", "SMURF", "HULU", "AMZN", "NF", "DSNP", "ATVP", "PCOK", "MA", "HMAX",
    "PROPER", "REPACK", "FGT", "EVO", "ION10", "CODY", "WEBDL", "NOGRP",
)
_TRUSTED_TAG_RES = tuple(
    (tag, re.compile(rf"(?<![a-z0-9]){re.escape(tag)}(?![a-z0-9])", _I)) for tag in TRUSTED_RELEASE_TAGS
)
_TRUSTED_SOURCE_RE = re.compile(r"web-?dl|bluray|remux", _I)
_RELEASE_GROUP_RE = re.compile(r"-([a-z0-9]+)(?:\.(?:mkv|mp4|avi))?\s*(?:\[[^\]]*\])?\s*$", _I)

_3D_RE = re.compile(r"\b3d\b|3d-", _I)
_PROPER_RE = re.compile(r"proper", _I)
_REPACK_RE = re.compile(r"repack|rerip", _I)
_DUAL_AUDIO_RE = re.compile(r"dual[\s.-]?audio", _I)

_HDR_BONUS = {"Dolby Vision": 15, "HDR10+": 12, "HDR10": 10, "HDR": 8, "HLG": 8, "none": 0}


def _first_match(title: str, rules, default: _Tier) -> _Tier:
    for pattern, label, rank in rules:
        if pattern.search(title):
            return _Tier(label, rank)
    return default


def parse_resolution(title: str) -> _Tier:
    return _first_match(title, _RESOLUTION_RULES, _Tier(UNKNOWN, 1))


def parse_codec(title: str) -> _Tier:
    return _first_match(title, _CODEC_RULES, _Tier(UNKNOWN, 0))


def parse_audio(title: str) -> _Tier:
    return _first_match(title, _AUDIO_RULES, _Tier(UNKNOWN, 0))


def parse_source(title: str) -> _Tier:
    return _first_match(title, _SOURCE_RULES, _Tier(UNKNOWN, 0))


def parse_hdr(title: str) -> _HdrInfo:
    """Exactly one HDR kind; Dolby Vision outranks every other keyword."""
    if _DOLBY_VISION_RE.search(title):
        profile_match = _DV_PROFILE_RE.search(title)
        profile = int(profile_match.group(1) or profile_match.group(2)) if profile_match else None
        return _HdrInfo("Dolby Vision", _HDR_BONUS["Dolby Vision"], profile)
    if _HDR10_PLUS_RE.search(title):
        return _HdrInfo("HDR10+", _HDR_BONUS["HDR10+"], None)
    if _HDR10_RE.search(title):
        return _HdrInfo("HDR10", _HDR_BONUS["HDR10"], None)
    if _HDR_RE.search(title):
        return _HdrInfo("HDR", _HDR_BONUS["HDR"], None)
    if _HLG_RE.search(title):
        return _HdrInfo("HLG", _HDR_BONUS["HLG"], None)
    return _HdrInfo("none", 0, None)


def parse_trust(title: str) -> tuple[bool, Optional[str]]:
    for tag, pattern in _TRUSTED_TAG_RES:
        if pattern.search(title):
            return True, tag
    return bool(_TRUSTED_SOURCE_RE.search(title)), None


def parse_release_group(title: str) -> Optional[str]:
    match = _RELEASE_GROUP_RE.search(title.strip())
    if not match:
        return None
    group = match.group(1)
    # "x264"/"DL" style codec tails are not groups.
    if group.lower() in {"dl", "rip", "x264", "x265", "hd"} or group.isdigit():
        return None
    return group


def quality_score(
    resolution_rank: int,
    source_rank: int,
    codec_rank: int,
    hdr_bonus: int,
    audio_rank: int,
    is_trusted: bool,
    proper_or_repack: bool,
) -> int:
    score = (
        resolution_rank * 6
        + source_rank * 3
        + codec_rank * 3
        + hdr_bonus
        + audio_rank * 2
        + (5 if is_trusted else 0)
        + (5 if proper_or_repack else 0)
    )
    return max(0, min(100, score))


def classify_title(title: str) -> QualityAttributes:
    """Classify a release title. Pure and case-insensitive."""
    text = title or ""
    lower = text.lower()

    resolution = parse_resolution(text)
    codec = parse_codec(text)
    hdr = parse_hdr(text)
    audio = parse_audio(text)
    source = parse_source(text)
    is_trusted, trusted_tag = parse_trust(text)

    has_proper = bool(_PROPER_RE.search(text))
    has_repack = bool(_REPACK_RE.search(text))
    has_multi = "multi" in lower

    return QualityAttributes(
        resolution=resolution.label,
        resolution_rank=resolution.rank,
        codec=codec.label,
        codec_rank=codec.rank,
        hdr=hdr.kind,
        dolby_vision_profile=hdr.dolby_vision_profile,
        audio=audio.label,
        audio_rank=audio.rank,
        source=source.label,
        source_rank=source.rank,
        is_3d=bool(_3D_RE.search(text)),
        is_remux=source.label == "Remux",
        is_bluray=source.label in ("Remux", "BluRay"),
        is_web_dl=source.label == "WEB-DL",
        is_cam=source.label == "CAM",
        is_trusted_release=is_trusted,
        has_proper_tag=has_proper,
        has_repack_tag=has_repack,
        is_multi_audio=(has_multi and "audio" in lower) or bool(_DUAL_AUDIO_RE.search(text)),
        is_multi_subs=has_multi and "sub" in lower,
        release_group=parse_release_group(text) or trusted_tag,
        quality_score=quality_score(
            resolution.rank,
            source.rank,
            codec.rank,
            hdr.bonus,
            audio.rank,
            is_trusted,
            has_proper or has_repack,
        ),
    )
