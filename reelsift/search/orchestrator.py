"""Concurrent fan-out over source adapters with per-source time budgets."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from reelsift import logger
from reelsift.config import OrchestratorConfig
from reelsift.errors import as_source_error, classify_error
from reelsift.search.protocols import SourceAdapter
from reelsift.search.types import MediaQuery, RawResult, SourceOutcome


@dataclass
class OrchestratorResult:
    outcomes: list[SourceOutcome] = field(default_factory=list)

    @property
    def results(self) -> list[RawResult]:
        """All raw results, grouped by source in adapter order (backup last)."""
        merged: list[RawResult] = []
        for outcome in self.outcomes:
            merged.extend(outcome.results)
        return merged

    @property
    def primary_outcomes(self) -> list[SourceOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.is_backup]

    @property
    def backup_outcome(self) -> Optional[SourceOutcome]:
        for outcome in self.outcomes:
            if outcome.is_backup:
                return outcome
        return None

    def counts_by_source(self) -> dict[str, int]:
        return {outcome.source_id: len(outcome.results) for outcome in self.outcomes}


def _adapter_id(adapter: SourceAdapter) -> str:
    return str(getattr(adapter, "source_id", None) or type(adapter).__name__)


def _coerce_results(source_id: str, values: object) -> list[RawResult]:
    if values is None:
        return []
    results = list(values)  # type: ignore[arg-type]
    for index, value in enumerate(results):
        if not isinstance(value, RawResult):
            raise TypeError(f"{source_id} returned {type(value).__name__} at index {index}, expected RawResult")
    return results


class SearchOrchestrator:
    """Run every enabled adapter at once; each settles to an outcome, none aborts the others."""

    def __init__(self, config: Optional[OrchestratorConfig] = None):
        self.config = config or OrchestratorConfig()

    async def _run_adapter(self, adapter: SourceAdapter, query: MediaQuery, *, is_backup: bool) -> SourceOutcome:
        source_id = _adapter_id(adapter)
        log = logger.get_logger()
        timeout = self.config.timeout_seconds
        started = time.monotonic()
        log.debug(f"Searching {source_id} for '{query.label()}' (timeout {timeout:.0f}s)")
        try:
            values = await asyncio.wait_for(adapter.search(query), timeout=timeout)
            results = _coerce_results(source_id, values)
        except Exception as exc:
            duration_ms = (time.monotonic() - started) * 1000
            kind = classify_error(exc)
            if kind == "timeout" and isinstance(exc, asyncio.TimeoutError):
                message = f"no response within {timeout:.0f}s"
            else:
                message = str(as_source_error(source_id, exc))
            log.warning(f"{source_id} {kind}: {message}")
            return SourceOutcome(
                source_id=source_id,
                error=message,
                error_kind=kind,
                duration_ms=duration_ms,
                is_backup=is_backup,
            )

        duration_ms = (time.monotonic() - started) * 1000
        log.debug(f"{source_id} returned {len(results)} results in {duration_ms:.0f}ms")
        return SourceOutcome(
            source_id=source_id,
            results=results,
            duration_ms=duration_ms,
            is_backup=is_backup,
        )

    async def run(
        self,
        query: MediaQuery,
        adapters: Sequence[SourceAdapter],
        backup: Optional[SourceAdapter] = None,
    ) -> OrchestratorResult:
        """
        Query every adapter concurrently and collect one outcome per adapter.

        The backup aggregator, when given and enabled, runs alongside the
        primary adapters and its outcome is placed last.
        """
        run_backup = backup is not None and self.config.use_backup_aggregator
        if not adapters and not run_backup:
            return OrchestratorResult()

        tasks = [self._run_adapter(adapter, query, is_backup=False) for adapter in adapters]
        if run_backup:
            tasks.append(self._run_adapter(backup, query, is_backup=True))

        outcomes = await asyncio.gather(*tasks)
        return OrchestratorResult(outcomes=list(outcomes))
