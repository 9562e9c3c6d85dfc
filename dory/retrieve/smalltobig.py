"""Small-to-big retrieval: match small chunks, return their parents."""

from __future__ import annotations

from collections.abc import Mapping

from dory.core import Query, Retriever
from dory.units import Chunk, RetrievedUnit


class SmallToBig(Retriever):
    """Expands retrieved child chunks to their parent chunks.

    Results are deduplicated by parent, keeping the best child score.
    Units that are not chunks, have no parent id or whose parent is
    unknown pass through unchanged.
    """

    def __init__(self, retriever: Retriever, parents: Mapping[str, Chunk]) -> None:
        self.retriever = retriever
        self.parents = parents

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        children = self.retriever.retrieve(query)
        positions: dict[str, int] = {}
        results: list[RetrievedUnit] = []

        for child in children:
            if not isinstance(child, Chunk) or not child.parent_id:
                results.append(child)
                continue
            parent = self.parents.get(child.parent_id)
            if parent is None:
                results.append(child)
                continue
            if child.parent_id in positions:
                index = positions[child.parent_id]
                if child.score > results[index].score:
                    results[index] = parent.with_score("small_to_big", child.score)
                continue
            positions[child.parent_id] = len(results)
            results.append(parent.with_score("small_to_big", child.score))

        return results