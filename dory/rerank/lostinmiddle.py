"""Reordering that puts the strongest results at both ends of the list."""

from __future__ import annotations

from collections.abc import Sequence

from dory.core import Reranker
from dory.units import RetrievedUnit


class LostInTheMiddle(Reranker):
    """Places the best units first and last and the weakest in the middle.

    Scores are unchanged; each unit gains a ``litm_reorder`` entry
    repeating its current score.
    """

    def rerank(self, query: str, units: Sequence[RetrievedUnit]) -> list[RetrievedUnit]:
        ranked = sorted(units or (), key=lambda unit: unit.score, reverse=True)
        if not ranked:
            return []

        front: list[RetrievedUnit] = []
        back: list[RetrievedUnit] = []
        for i, unit in enumerate(ranked):
            placed = unit.with_score("litm_reorder", unit.score)
            (front if i % 2 == 0 else back).append(placed)
        return front + back[::-1]