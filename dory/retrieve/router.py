"""Routing of queries to the first matching retriever."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from dory.core import Query, Retriever
from dory.units import RetrievedUnit


@dataclass
class Route:
    """A named retriever and the predicate that selects it."""

    name: str
    retriever: Retriever
    match: Callable[[Query], bool]


class Router(Retriever):
    """Sends each query to the first route whose predicate matches."""

    def __init__(self, routes: Sequence[Route]) -> None:
        self.routes = list(routes)

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        for route in self.routes:
            if route.match(query):
                return route.retriever.retrieve(query)
        return []