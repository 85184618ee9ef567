"""Scoring, filtering, deduplication and ordering of raw results."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from reelsift.config import GIB, RankingConfig, ensure_valid_ranking_config
from reelsift.search.classifier import classify_title
from reelsift.search.dedupe import dedupe_by_key, title_size_key
from reelsift.search.types import QualityAttributes, RankedResult, RawResult, ScoreBreakdown

CAM_PENALTY = 50
LOW_SEED_PENALTY = 20

_HEALTH_STEPS = ((100, 15), (50, 12), (20, 10), (10, 8), (5, 5), (1, 2))


@dataclass
class RankingStats:
    input_count: int = 0
    after_hard_filter: int = 0
    after_hash_dedupe: int = 0
    after_dedupe: int = 0
    final_count: int = 0
    removed_cam: int = 0
    removed_zero_seed: int = 0
    penalized: int = 0
    quality_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass
class RankingResult:
    ranked: list[RankedResult]
    stats: RankingStats


def resolution_score(quality: QualityAttributes, config: RankingConfig) -> float:
    score = quality.resolution_rank * 6
    if config.preferred_resolution != "any" and quality.resolution == config.preferred_resolution:
        score += 5
    return score


def hdr_score(quality: QualityAttributes, config: RankingConfig) -> float:
    if not config.prefer_hdr:
        return 0
    if quality.hdr == "Dolby Vision":
        # Without the preference Dolby Vision still carries an HDR base layer.
        return 20 if config.prefer_dolby_vision else 10
    return {"HDR10+": 18, "HDR10": 15, "HDR": 10, "HLG": 10}.get(quality.hdr, 0)


def source_score(quality: QualityAttributes, config: RankingConfig) -> float:
    if quality.is_remux:
        return 15 if config.prefer_remux else 12
    if quality.is_bluray:
        return 10
    if quality.is_web_dl:
        return 8
    return quality.source_rank * 2


def codec_score(quality: QualityAttributes, config: RankingConfig) -> float:
    if quality.resolution == "4K" and config.prefer_hevc:
        if quality.codec in ("HEVC", "AV1"):
            return 10
        if quality.codec == "x264":
            return 5
    return quality.codec_rank * 2


def audio_score(quality: QualityAttributes) -> float:
    if quality.audio == "Atmos":
        return 10
    if quality.audio == "TrueHD":
        return 8
    return min(10, quality.audio_rank * 2)


def health_score(seed_count: int) -> float:
    for threshold, points in _HEALTH_STEPS:
        if seed_count >= threshold:
            return points
    return 0


def trust_score(quality: QualityAttributes) -> float:
    score = 0
    if quality.is_trusted_release:
        score += 3
    if quality.has_proper_or_repack:
        score += 2
    return score


def size_score(size_bytes: int, config: RankingConfig) -> float:
    if config.max_size_bytes is not None and size_bytes > config.max_size_bytes:
        return -10
    if config.min_size_bytes is not None and size_bytes < config.min_size_bytes:
        return -5
    size_gib = size_bytes / GIB
    if 2 <= size_gib <= 15:
        return 5
    if 15 < size_gib <= 30:
        return 3
    if size_gib > 30:
        return 1
    return 2


def score_result(raw: RawResult, quality: QualityAttributes, config: RankingConfig) -> ScoreBreakdown:
    """Weighted terms before penalties."""
    return ScoreBreakdown(
        resolution=resolution_score(quality, config),
        hdr=hdr_score(quality, config),
        source=source_score(quality, config),
        codec=codec_score(quality, config),
        audio=audio_score(quality),
        health=health_score(raw.seed_count),
        trust=trust_score(quality),
        size=size_score(raw.size_bytes, config),
    )


def _is_zero_seed_trusted(raw: RawResult, config: RankingConfig) -> bool:
    trusted = {source.lower() for source in config.zero_seed_trusted_sources}
    return raw.source_id.lower() in trusted


def _survives_zero_seed_rule(result: RankedResult, config: RankingConfig) -> bool:
    raw = result.raw
    return raw.seed_count > 0 or result.quality.is_trusted_release or _is_zero_seed_trusted(raw, config)


def hard_filter(results: Sequence[RankedResult], config: RankingConfig, stats: Optional[RankingStats] = None) -> list[RankedResult]:
    """Remove CAM releases and untrusted zero-seed results."""
    stats = stats if stats is not None else RankingStats()
    # Only non-CAM results that will themselves be kept count as "something better".
    has_non_cam = any(
        not result.quality.is_cam and _survives_zero_seed_rule(result, config) for result in results
    )
    kept: list[RankedResult] = []
    for result in results:
        raw = result.raw
        if config.exclude_cam and result.quality.is_cam:
            # A seeded CAM from a trusted backup survives only when nothing better exists.
            if has_non_cam or raw.seed_count <= 0 or not _is_zero_seed_trusted(raw, config):
                stats.removed_cam += 1
                continue
        if not _survives_zero_seed_rule(result, config):
            stats.removed_zero_seed += 1
            continue
        kept.append(result)
    return kept


def apply_soft_penalties(results: Sequence[RankedResult], config: RankingConfig, stats: Optional[RankingStats] = None) -> list[RankedResult]:
    """Push CAM and under-seeded results down instead of dropping them."""
    penalized: list[RankedResult] = []
    for result in results:
        penalty = 0
        if config.exclude_cam and result.quality.is_cam:
            penalty += CAM_PENALTY
        if result.raw.seed_count < config.min_seeds:
            penalty += LOW_SEED_PENALTY
        if penalty and stats is not None:
            stats.penalized += 1
        breakdown = replace(result.score_breakdown, penalty=result.score_breakdown.penalty + penalty)
        penalized.append(replace(result, score_breakdown=breakdown, rank_score=breakdown.total))
    return penalized


def sort_ranked(results: Sequence[RankedResult]) -> list[RankedResult]:
    return sorted(results, key=lambda result: (-result.rank_score, -result.raw.seed_count, result.arrival_index))


def rank_results(raw_results: Sequence[RawResult], config: Optional[RankingConfig] = None) -> RankingResult:
    """Classify, filter, dedupe, penalize and sort. Deterministic for a given input and config."""
    config = ensure_valid_ranking_config(config)
    stats = RankingStats(input_count=len(raw_results))

    scored: list[RankedResult] = []
    for index, raw in enumerate(raw_results):
        quality = classify_title(raw.title)
        breakdown = score_result(raw, quality, config)
        scored.append(
            RankedResult(
                raw=raw,
                quality=quality,
                rank_score=breakdown.total,
                score_breakdown=breakdown,
                arrival_index=index,
            )
        )

    survivors = hard_filter(scored, config, stats)
    stats.after_hard_filter = len(survivors)

    by_hash = dedupe_by_key(survivors, lambda result: result.raw.content_hash, lambda result: result.rank_score)
    stats.after_hash_dedupe = len(by_hash.kept)

    by_title = dedupe_by_key(
        by_hash.kept,
        lambda result: None if result.raw.content_hash else title_size_key(result.raw.title, result.raw.size_bytes),
        lambda result: result.rank_score,
    )
    stats.after_dedupe = len(by_title.kept)

    ranked = sort_ranked(apply_soft_penalties(by_title.kept, config, stats))
    stats.final_count = len(ranked)
    stats.quality_breakdown = dict(Counter(result.quality.resolution for result in ranked))
    return RankingResult(ranked=ranked, stats=stats)
