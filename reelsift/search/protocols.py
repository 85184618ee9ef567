"""Protocol definition for source adapters."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from reelsift.search.types import MediaQuery, RawResult


@runtime_checkable
class SourceAdapter(Protocol):
    """Minimal adapter API used by the orchestrator.

    ``search`` may raise; the orchestrator converts failures into outcomes.
    Adapters must tolerate being abandoned mid-call when their time budget
    runs out.
    """

    source_id: str

    async def search(self, query: MediaQuery) -> Sequence[RawResult]:
        ...
