"""Entry points: query all sources, rank what comes back."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from reelsift import logger
from reelsift.config import OrchestratorConfig, RankingConfig, ensure_valid_ranking_config
from reelsift.errors import InvalidConfig
from reelsift.search.orchestrator import OrchestratorResult, SearchOrchestrator
from reelsift.search.protocols import SourceAdapter
from reelsift.search.ranking import RankingResult, rank_results
from reelsift.search.report import SearchReport, SearchReporter
from reelsift.search.types import MediaQuery, RankedResult, RawResult


@dataclass
class DebugSearchResult:
    results: list[RankedResult]
    report: SearchReport


def _validate(
    query: MediaQuery,
    ranking: Optional[RankingConfig],
    orchestrator: Optional[OrchestratorConfig],
) -> tuple[RankingConfig, OrchestratorConfig]:
    if not isinstance(query, MediaQuery):
        raise InvalidConfig(f"Expected MediaQuery, got {type(query).__name__}")
    if not query.title.strip():
        raise InvalidConfig("Search title must not be empty")
    if orchestrator is not None and not isinstance(orchestrator, OrchestratorConfig):
        raise InvalidConfig(f"Expected OrchestratorConfig, got {type(orchestrator).__name__}")
    return ensure_valid_ranking_config(ranking), orchestrator or OrchestratorConfig()


def _log_outcomes(fanout: OrchestratorResult) -> None:
    log = logger.get_logger()
    for outcome in fanout.outcomes:
        tag = " (backup)" if outcome.is_backup else ""
        if outcome.ok:
            log.info(f"   {outcome.source_id} ok {len(outcome.results)} results in {outcome.duration_ms:.0f}ms{tag}")
        else:
            log.info(f"   {outcome.source_id} failed {outcome.error_kind}: {outcome.error}{tag}")


async def _search(
    query: MediaQuery,
    adapters: Sequence[SourceAdapter],
    backup: Optional[SourceAdapter],
    ranking: RankingConfig,
    orchestrator: OrchestratorConfig,
    reporter: SearchReporter,
) -> tuple[OrchestratorResult, RankingResult]:
    reporter.start(query)
    fanout = await SearchOrchestrator(orchestrator).run(query, adapters, backup)
    reporter.record_outcomes(fanout.outcomes)

    ranking_result = rank_results(fanout.results, ranking)
    reporter.record_ranking(ranking_result.ranked, ranking_result.stats)
    logger.get_logger().debug(
        f"Ranked {ranking_result.stats.final_count} of {ranking_result.stats.input_count} results "
        f"for '{query.label()}'"
    )
    return fanout, ranking_result


async def search(
    query: MediaQuery,
    adapters: Sequence[SourceAdapter],
    *,
    backup: Optional[SourceAdapter] = None,
    ranking: Optional[RankingConfig] = None,
    orchestrator: Optional[OrchestratorConfig] = None,
) -> list[RankedResult]:
    """
    Search every adapter and return one ranked list.

    Only configuration problems raise (InvalidConfig, before any request is
    made). Source failures are absorbed; a search where every source failed
    returns an empty list.
    """
    ranking_config, orchestrator_config = _validate(query, ranking, orchestrator)
    _, ranking_result = await _search(
        query, adapters, backup, ranking_config, orchestrator_config, SearchReporter(enabled=False)
    )
    return ranking_result.ranked


async def search_with_debug(
    query: MediaQuery,
    adapters: Sequence[SourceAdapter],
    *,
    backup: Optional[SourceAdapter] = None,
    ranking: Optional[RankingConfig] = None,
    orchestrator: Optional[OrchestratorConfig] = None,
    reference: Optional[Sequence[RawResult]] = None,
    reference_source: Optional[str] = None,
) -> DebugSearchResult:
    """Same as search(), plus a report. Backup results serve as the reference unless one is given."""
    ranking_config, orchestrator_config = _validate(query, ranking, orchestrator)
    reporter = SearchReporter(enabled=True)
    fanout, ranking_result = await _search(
        query, adapters, backup, ranking_config, orchestrator_config, reporter
    )
    _log_outcomes(fanout)

    in_app = [raw for outcome in fanout.primary_outcomes for raw in outcome.results]
    backup_outcome = fanout.backup_outcome
    if reference is not None:
        reporter.record_reference(reference_source or "reference", list(reference), in_app)
    elif backup_outcome is not None and backup_outcome.ok:
        reporter.record_reference(backup_outcome.source_id, backup_outcome.results, in_app)

    report = reporter.finish()
    if report is None:
        raise RuntimeError("Search reporter produced no report")
    return DebugSearchResult(results=ranking_result.ranked, report=report)
