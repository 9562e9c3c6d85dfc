"""Retrieval through an external web search function."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from dory.core import Query, Retriever
from dory.units import Chunk, RetrievedUnit

DEFAULT_TOP_K = 10


@dataclass(frozen=True)
class WebResult:
    """A single web search hit."""

    url: str
    title: str = ""
    snippet: str = ""


SearchFunc = Callable[[str, int], Sequence[WebResult]]


class WebRetriever(Retriever):
    """Delegates to a search function and turns each hit into a chunk.

    Hits are scored 1.0, 0.99, 0.98, ... in the order returned.
    """

    def __init__(self, search_func: SearchFunc) -> None:
        self.search_func = search_func

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        top_k = query.top_k if query.top_k > 0 else DEFAULT_TOP_K
        results = self.search_func(query.text, top_k) or ()
        return [
            Chunk(
                result.url,
                "web",
                result.snippet,
                metadata={"title": result.title},
                source_uri=result.url,
            ).with_score("web", 1.0 - i * 0.01)
            for i, result in enumerate(results)
        ]