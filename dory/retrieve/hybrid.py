"""Hybrid retrieval fusing several retrievers with Reciprocal Rank Fusion."""

from __future__ import annotations

from collections.abc import Sequence

from dory.core import Query, Retriever
from dory.retrieve.ensemble import _run_all
from dory.units import RetrievedUnit

DEFAULT_K = 60
DEFAULT_TOP_K = 10


class Hybrid(Retriever):
    """Runs sub-retrievers concurrently and fuses their rankings with RRF.

    ``k`` is the RRF constant; 0 selects the default of 60.
    """

    def __init__(self, retrievers: Sequence[Retriever], k: int = DEFAULT_K) -> None:
        self.retrievers = list(retrievers)
        self.k = k or DEFAULT_K

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        fused: dict[str, tuple[RetrievedUnit, float]] = {}
        for results in _run_all(self.retrievers, query):
            for rank, unit in enumerate(results, start=1):
                contribution = 1.0 / (self.k + rank)
                if unit.id in fused:
                    first, score = fused[unit.id]
                    fused[unit.id] = (first, score + contribution)
                else:
                    fused[unit.id] = (unit, contribution)

        ranked = sorted(fused.values(), key=lambda pair: pair[1], reverse=True)
        top_k = query.top_k if query.top_k > 0 else DEFAULT_TOP_K
        return [unit.with_score("rrf_fusion", score) for unit, score in ranked[:top_k]]