"""In-memory vector store with brute-force cosine similarity."""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Sequence

from dory.core import ScoredChunk, SearchRequest, VectorStore
from dory.units import Chunk


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class MemoryStore(VectorStore):
    """A vector store held in a dictionary, for development and testing."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._chunks: dict[str, Chunk] = {}

    def store(self, chunks: Iterable[Chunk]) -> None:
        with self._lock:
            for chunk in chunks:
                self._chunks[chunk.id] = chunk

    def search(self, request: SearchRequest) -> list[ScoredChunk]:
        query_vector = request.query_vector
        with self._lock:
            candidates = list(self._chunks.values())

        results: list[ScoredChunk] = []
        if query_vector:
            for chunk in candidates:
                if chunk.vector is None:
                    continue
                if request.filter is not None and not request.filter.matches(chunk.metadata):
                    continue
                results.append(ScoredChunk(chunk, _cosine(query_vector, chunk.vector)))

        results.sort(key=lambda scored: scored.score, reverse=True)
        return results[: max(request.top_k, 0)]

    def delete(self, ids: Iterable[str]) -> None:
        with self._lock:
            for chunk_id in ids:
                self._chunks.pop(chunk_id, None)