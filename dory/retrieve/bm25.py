"""In-memory sparse retrieval with Okapi BM25 scoring."""

from __future__ import annotations

import math
import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from dory.core import Query, Retriever, matches_all
from dory.units import Chunk, RetrievedUnit

DEFAULT_K1 = 1.2
DEFAULT_B = 0.75
DEFAULT_TOP_K = 10


def tokenize(text: str) -> list[str]:
    """Lowercase whitespace-delimited tokens."""
    return text.lower().split()


@dataclass
class _IndexedDoc:
    chunk: Chunk
    tf: Counter
    length: int


class BM25(Retriever):
    """Sparse retriever over indexed chunks.

    ``k1`` controls term-frequency saturation and ``b`` length
    normalisation; a value of 0 selects the default.
    """

    def __init__(self, k1: float = DEFAULT_K1, b: float = DEFAULT_B) -> None:
        self.k1 = k1 or DEFAULT_K1
        self.b = b or DEFAULT_B
        self._lock = threading.RLock()
        self._docs: list[_IndexedDoc] = []
        self._df: Counter = Counter()
        self._avg_len = 0.0

    def index(self, chunks: Iterable[Chunk]) -> None:
        """Add chunks to the index; may be called repeatedly."""
        with self._lock:
            for chunk in chunks:
                tokens = tokenize(chunk.as_text())
                tf = Counter(tokens)
                self._df.update(tf.keys())
                self._docs.append(_IndexedDoc(chunk, tf, len(tokens)))
            if self._docs:
                self._avg_len = sum(doc.length for doc in self._docs) / len(self._docs)

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        with self._lock:
            if not self._docs:
                return []
            top_k = query.top_k if query.top_k > 0 else DEFAULT_TOP_K
            terms = tokenize(query.text)
            n = len(self._docs)

            scored: list[tuple[_IndexedDoc, float]] = []
            for doc in self._docs:
                if not matches_all(doc.chunk.metadata, query.filters):
                    continue
                score = sum(self._term_score(doc, term, n) for term in terms if term in doc.tf)
                if score > 0:
                    scored.append((doc, score))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [doc.chunk.with_score("bm25", score) for doc, score in scored[:top_k]]

    def _term_score(self, doc: _IndexedDoc, term: str, n: int) -> float:
        df = self._df[term]
        idf = math.log(1 + (n - df + 0.5) / (df + 0.5))
        tf = doc.tf[term]
        denom = tf + self.k1 * (1 - self.b + self.b * doc.length / self._avg_len)
        return idf * (tf * (self.k1 + 1)) / denom