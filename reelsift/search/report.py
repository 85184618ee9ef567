"""Debug report for a single search: per-source outcomes, funnel counts and reference overlap."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reelsift.search.classifier import classify_title
from reelsift.search.ranking import RankingStats
from reelsift.search.types import MediaQuery, RankedResult, RawResult, SourceOutcome

MAX_UNIQUE_HASHES = 20
DEFAULT_TOP_RESULTS = 10


@dataclass
class ItemDigest:
    title: str
    content_hash: Optional[str]
    size_bytes: int
    seed_count: int
    quality: list[str] = field(default_factory=list)
    score: Optional[float] = None
    source_id: Optional[str] = None


@dataclass
class SourceReport:
    source_id: str
    is_backup: bool
    duration_ms: float
    raw_count: int
    filtered_count: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None
    items: list[ItemDigest] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FunnelCounts:
    input: int = 0
    after_hard_filter: int = 0
    after_hash_dedupe: int = 0
    after_dedupe: int = 0
    final: int = 0
    removed_cam: int = 0
    removed_zero_seed: int = 0
    penalized: int = 0


@dataclass
class ReferenceComparison:
    reference_source: str
    reference_count: int
    in_app_count: int
    overlap: int
    unique_to_reference: int
    unique_to_in_app: int
    reference_only_hashes: list[str] = field(default_factory=list)
    in_app_only_hashes: list[str] = field(default_factory=list)


@dataclass
class SearchReport:
    query: dict[str, Any]
    started_at: str
    finished_at: Optional[str] = None
    duration_ms: float = 0.0
    sources: list[SourceReport] = field(default_factory=list)
    funnel: FunnelCounts = field(default_factory=FunnelCounts)
    quality_histogram: dict[str, int] = field(default_factory=dict)
    codec_breakdown: dict[str, int] = field(default_factory=dict)
    source_breakdown: dict[str, int] = field(default_factory=dict)
    top_results: list[ItemDigest] = field(default_factory=list)
    reference: Optional[ReferenceComparison] = None

    @property
    def failed_sources(self) -> list[SourceReport]:
        return [source for source in self.sources if not source.ok]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def summary(self) -> str:
        lines = ["=== SEARCH DEBUG REPORT ==="]
        query = self.query
        ident = f", {query['external_id']}" if query.get("external_id") else ""
        lines.append(f"Query: {query.get('label', query.get('title'))} [{query.get('kind')}{ident}]")
        lines.append(f"Duration: {self.duration_ms:.0f}ms")

        lines.append("")
        lines.append("--- Sources ---")
        if not self.sources:
            lines.append("  (no sources enabled)")
        for source in self.sources:
            tag = " (backup)" if source.is_backup else ""
            if source.ok:
                lines.append(
                    f"  {source.source_id}{tag}: {source.raw_count} raw, "
                    f"{source.filtered_count} kept, {source.duration_ms:.0f}ms"
                )
            else:
                lines.append(
                    f"  {source.source_id}{tag}: FAILED [{source.error_kind}] {source.error} "
                    f"({source.duration_ms:.0f}ms)"
                )

        funnel = self.funnel
        lines.append("")
        lines.append("--- Funnel ---")
        lines.append(
            f"  input {funnel.input} -> hard filter {funnel.after_hard_filter} -> "
            f"hash dedupe {funnel.after_hash_dedupe} -> title dedupe {funnel.after_dedupe} -> final {funnel.final}"
        )
        lines.append(
            f"  removed: {funnel.removed_cam} CAM, {funnel.removed_zero_seed} zero-seed; "
            f"penalized: {funnel.penalized}"
        )

        lines.append("")
        lines.append("--- Quality ---")
        lines.append("  " + (_format_counts(self.quality_histogram) or "(none)"))
        if self.codec_breakdown:
            lines.append("  codecs: " + _format_counts(self.codec_breakdown))
        if self.source_breakdown:
            lines.append("  sources: " + _format_counts(self.source_breakdown))

        if self.reference is not None:
            ref = self.reference
            lines.append("")
            lines.append(f"--- Reference ({ref.reference_source}) ---")
            lines.append(
                f"  reference {ref.reference_count}, in-app {ref.in_app_count}, overlap {ref.overlap}"
            )
            lines.append(
                f"  only in reference: {ref.unique_to_reference}, only in-app: {ref.unique_to_in_app}"
            )

        if self.top_results:
            lines.append("")
            lines.append("--- Top results ---")
            for idx, item in enumerate(self.top_results, 1):
                score = f"{item.score:.1f}" if item.score is not None else "-"
                lines.append(f"  {idx:>2}. [{score}] {item.title} ({item.source_id}, {item.seed_count} seeds)")
        return "\n".join(lines)


def _format_counts(counts: dict[str, int]) -> str:
    return ", ".join(f"{key}: {value}" for key, value in counts.items())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _digest_raw(raw: RawResult) -> ItemDigest:
    return ItemDigest(
        title=raw.title,
        content_hash=raw.content_hash,
        size_bytes=raw.size_bytes,
        seed_count=raw.seed_count,
        quality=list(classify_title(raw.title).tags()),
        source_id=raw.source_id,
    )


def _digest_ranked(result: RankedResult) -> ItemDigest:
    return ItemDigest(
        title=result.title,
        content_hash=result.content_hash,
        size_bytes=result.size_bytes,
        seed_count=result.seed_count,
        quality=list(result.quality.tags()),
        score=result.rank_score,
        source_id=result.source_id,
    )


def compare_with_reference(
    reference_source: str,
    reference: Sequence[RawResult],
    in_app: Sequence[RawResult],
) -> ReferenceComparison:
    reference_hashes = {raw.content_hash for raw in reference if raw.content_hash}
    in_app_hashes = {raw.content_hash for raw in in_app if raw.content_hash}
    reference_only = sorted(reference_hashes - in_app_hashes)
    in_app_only = sorted(in_app_hashes - reference_hashes)
    return ReferenceComparison(
        reference_source=reference_source,
        reference_count=len(reference),
        in_app_count=len(in_app),
        overlap=len(reference_hashes & in_app_hashes),
        unique_to_reference=len(reference_only),
        unique_to_in_app=len(in_app_only),
        reference_only_hashes=reference_only[:MAX_UNIQUE_HASHES],
        in_app_only_hashes=in_app_only[:MAX_UNIQUE_HASHES],
    )


class SearchReporter:
    """Collects a SearchReport. Every method is a no-op unless enabled."""

    def __init__(self, enabled: bool = False, top_n: int = DEFAULT_TOP_RESULTS):
        self.enabled = enabled
        self.top_n = top_n
        self._report: Optional[SearchReport] = None
        self._started: Optional[datetime] = None

    def start(self, query: MediaQuery) -> None:
        if not self.enabled:
            return
        self._started = _now()
        self._report = SearchReport(
            query={**asdict(query), "label": query.label()},
            started_at=self._started.isoformat(),
        )

    def record_outcomes(self, outcomes: Sequence[SourceOutcome]) -> None:
        if not self.enabled or self._report is None:
            return
        for outcome in outcomes:
            self._report.sources.append(
                SourceReport(
                    source_id=outcome.source_id,
                    is_backup=outcome.is_backup,
                    duration_ms=round(outcome.duration_ms, 1),
                    raw_count=len(outcome.results),
                    error=outcome.error,
                    error_kind=outcome.error_kind,
                    items=[_digest_raw(raw) for raw in outcome.results],
                )
            )

    def record_ranking(self, ranked: Sequence[RankedResult], stats: RankingStats) -> None:
        if not self.enabled or self._report is None:
            return
        report = self._report
        report.funnel = FunnelCounts(
            input=stats.input_count,
            after_hard_filter=stats.after_hard_filter,
            after_hash_dedupe=stats.after_hash_dedupe,
            after_dedupe=stats.after_dedupe,
            final=stats.final_count,
            removed_cam=stats.removed_cam,
            removed_zero_seed=stats.removed_zero_seed,
            penalized=stats.penalized,
        )
        report.quality_histogram = dict(Counter(result.quality.resolution for result in ranked))
        report.codec_breakdown = dict(Counter(result.quality.codec for result in ranked))
        per_source = Counter(result.source_id for result in ranked)
        report.source_breakdown = dict(per_source)
        for source in report.sources:
            source.filtered_count = per_source.get(source.source_id, 0)
        report.top_results = [_digest_ranked(result) for result in ranked[: self.top_n]]

    def record_reference(
        self,
        reference_source: str,
        reference: Sequence[RawResult],
        in_app: Sequence[RawResult],
    ) -> None:
        if not self.enabled or self._report is None:
            return
        self._report.reference = compare_with_reference(reference_source, reference, in_app)

    def finish(self) -> Optional[SearchReport]:
        if not self.enabled or self._report is None:
            return None
        finished = _now()
        self._report.finished_at = finished.isoformat()
        if self._started is not None:
            self._report.duration_ms = round((finished - self._started).total_seconds() * 1000, 1)
        return self._report


def render_report(console: Console, report: SearchReport) -> None:
    """Print the report as rich tables."""
    sources = Table(title=f"Sources for {report.query.get('label', '')}")
    sources.add_column("Source", style="cyan", no_wrap=True)
    sources.add_column("Status", no_wrap=True)
    sources.add_column("Raw", style="green", justify="right")
    sources.add_column("Kept", style="green", justify="right")
    sources.add_column("Time (ms)", justify="right")
    sources.add_column("Error", style="yellow")
    for source in report.sources:
        name = escape(f"{source.source_id} (backup)" if source.is_backup else source.source_id)
        status = "[green]ok[/green]" if source.ok else f"[red]{source.error_kind}[/red]"
        sources.add_row(
            name,
            status,
            str(source.raw_count),
            str(source.filtered_count),
            f"{source.duration_ms:.0f}",
            escape(source.error or ""),
        )
    console.print(sources)

    funnel = report.funnel
    console.print(
        f"[cyan]Funnel:[/cyan] {funnel.input} in → {funnel.after_hard_filter} after filter → "
        f"{funnel.after_dedupe} after dedupe → {funnel.final} ranked "
        f"(CAM removed {funnel.removed_cam}, zero-seed removed {funnel.removed_zero_seed}, "
        f"penalized {funnel.penalized})"
    )
    if report.quality_histogram:
        console.print(f"[cyan]Quality:[/cyan] {_format_counts(report.quality_histogram)}")
    if report.reference is not None:
        ref = report.reference
        console.print(
            f"[cyan]Reference ({ref.reference_source}):[/cyan] overlap {ref.overlap}, "
            f"only reference {ref.unique_to_reference}, only in-app {ref.unique_to_in_app}"
        )
