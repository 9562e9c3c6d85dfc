"""Dense vector retrieval against a vector store."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from dory.core import Query, Retriever, SearchRequest, VectorStore
from dory.units import RetrievedUnit

DEFAULT_TOP_K = 10


class _Embedder(Protocol):
    def embed(self, text: str) -> Sequence[float]: ...


class VectorRetriever(Retriever):
    """Embeds the query and searches the store for the nearest chunks.

    Only the first of the query's filters is passed to the store.
    """

    def __init__(self, store: VectorStore, embedder: _Embedder) -> None:
        self.store = store
        self.embedder = embedder

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        query_vector = self.embedder.embed(query.text)
        request = SearchRequest(
            query_vector=query_vector,
            top_k=query.top_k if query.top_k > 0 else DEFAULT_TOP_K,
            filter=query.filters[0] if query.filters else None,
        )
        return [scored.chunk.with_score("vector", scored.score) for scored in self.store.search(request)]