"""Cross-encoder reranking."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from dory.core import Reranker
from dory.units import RetrievedUnit

ScoreFunc = Callable[[str, str], float]

_MAX_WORKERS = 32


class CrossEncoder(Reranker):
    """Scores each query–document pair and sorts by the new scores.

    ``top_k`` of 0 returns everything; units scoring below ``threshold``
    are dropped.
    """

    def __init__(self, score_func: ScoreFunc, top_k: int = 0, threshold: float = 0.0) -> None:
        self.score_func = score_func
        self.top_k = top_k
        self.threshold = threshold

    def rerank(self, query: str, units: Sequence[RetrievedUnit]) -> list[RetrievedUnit]:
        candidates = list(units or ())
        if not candidates:
            return []

        workers = min(len(candidates), _MAX_WORKERS)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            scores = list(pool.map(lambda unit: self.score_func(query, unit.as_text()), candidates))

        ranked = sorted(zip(candidates, scores), key=lambda pair: pair[1], reverse=True)

        out: list[RetrievedUnit] = []
        for unit, score in ranked:
            if score < self.threshold:
                continue
            out.append(unit.with_score("crossencoder", score))
            if self.top_k > 0 and len(out) >= self.top_k:
                break
        return out