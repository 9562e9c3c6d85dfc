"""In-memory retrieval over knowledge-graph facts by term matching."""

from __future__ import annotations

import threading

from dory.core import Query, Retriever
from dory.units import GraphFact, RetrievedUnit

DEFAULT_TOP_K = 10


class GraphRetriever(Retriever):
    """Stores facts and scores them by the fraction of query terms they contain."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._facts: list[GraphFact] = []

    def add_facts(self, *args: GraphFact) -> None:
        """Store one or more facts."""
        with self._lock:
            self._facts.extend(args)

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        terms = query.text.lower().split()
        if not terms:
            return []

        with self._lock:
            facts = list(self._facts)

        matches: list[tuple[GraphFact, float]] = []
        for fact in facts:
            combined = f"{fact.subject} {fact.predicate} {fact.object}".lower()
            count = sum(1 for term in terms if term in combined)
            if count:
                matches.append((fact, count / len(terms)))

        matches.sort(key=lambda pair: pair[1], reverse=True)
        top_k = query.top_k if query.top_k > 0 else DEFAULT_TOP_K
        return [fact.with_score("graph", score) for fact, score in matches[:top_k]]