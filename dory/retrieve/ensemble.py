"""Retrieval that merges the results of several retrievers without fusion."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from dory.core import Query, Retriever
from dory.units import DoryError, RetrievedUnit

DEFAULT_TOP_K = 10


def _run_all(retrievers: Sequence[Retriever], query: Query) -> list[list[RetrievedUnit]]:
    """Run every retriever concurrently; results keep the retrievers' order."""
    if not retrievers:
        return []
    with ThreadPoolExecutor(max_workers=len(retrievers)) as pool:
        futures = [pool.submit(retriever.retrieve, query) for retriever in retrievers]
        results: list[list[RetrievedUnit]] = []
        for index, future in enumerate(futures):
            try:
                results.append(list(future.result() or ()))
            except Exception as exc:
                raise DoryError(f"retriever {index}: {exc}") from exc
    return results


class Ensemble(Retriever):
    """Runs sub-retrievers concurrently, deduplicates by id and sorts by score."""

    def __init__(self, retrievers: Sequence[Retriever]) -> None:
        self.retrievers = list(retrievers)

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        seen: set[str] = set()
        merged: list[RetrievedUnit] = []
        for results in _run_all(self.retrievers, query):
            for unit in results:
                if unit.id in seen:
                    continue
                seen.add(unit.id)
                merged.append(unit.with_score("ensemble", unit.score))

        merged.sort(key=lambda unit: unit.score, reverse=True)
        top_k = query.top_k if query.top_k > 0 else DEFAULT_TOP_K
        return merged[:top_k]