"""Core contracts: queries, metadata filters, search requests and component interfaces."""

from __future__ import annotations

import dataclasses
import enum
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

from dory.units import Chunk, RetrievedUnit

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


class FilterOp(str, enum.Enum):
    """Comparison operator of a metadata filter."""

    EQ = "eq"
    IN = "in"
    ANY_OF = "any_of"


@dataclasses.dataclass(frozen=True)
class MetadataFilter:
    """A portable metadata constraint.

    ``value`` is a single value for ``EQ`` and a list of values for
    ``IN`` and ``ANY_OF``.
    """

    field: str
    op: FilterOp
    value: Any

    def matches(self, metadata: Optional[Mapping[str, Any]]) -> bool:
        """Whether the metadata satisfies this filter."""
        if not metadata or self.field not in metadata:
            return False
        actual = metadata[self.field]
        if self.op == FilterOp.EQ:
            return actual == self.value
        if self.op == FilterOp.IN:
            if not isinstance(self.value, _SEQUENCE_TYPES):
                return False
            return any(actual == candidate for candidate in self.value)
        if self.op == FilterOp.ANY_OF:
            if not isinstance(actual, _SEQUENCE_TYPES) or not isinstance(self.value, _SEQUENCE_TYPES):
                return False
            return any(item == candidate for item in actual for candidate in self.value)
        return False


def matches_all(metadata: Optional[Mapping[str, Any]], filters: Iterable[MetadataFilter]) -> bool:
    """Whether the metadata satisfies every filter; true when there are none."""
    return all(f.matches(metadata) for f in filters)


@dataclasses.dataclass
class SearchRequest:
    """Everything a vector store needs to run a similarity search."""

    query_vector: Sequence[float]
    top_k: int = 0
    filter: Optional[MetadataFilter] = None


@dataclasses.dataclass
class ScoredChunk:
    """A chunk returned from a vector store search with its similarity score."""

    chunk: Chunk
    score: float


@dataclasses.dataclass
class Query:
    """A retrieval request.

    ``tenant_id`` isolates tenants in multi-tenant knowledge bases,
    ``subject`` identifies the caller for authorization, and ``top_k``
    caps the number of results (retrievers treat 0 as their default).
    """

    text: str
    tenant_id: str = ""
    subject: str = ""
    top_k: int = 0
    filters: list[MetadataFilter] = dataclasses.field(default_factory=list)


class Retriever(ABC):
    """Finds the most relevant units for a query."""

    @abstractmethod
    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        """Return relevant units, best first."""


class Reranker(ABC):
    """Reorders retrieved units by relevance to the query text."""

    @abstractmethod
    def rerank(self, query: str, units: Sequence[RetrievedUnit]) -> list[RetrievedUnit]:
        """Return the units in a new order, possibly fewer of them."""


class Splitter(ABC):
    """Turns a document into chunks."""

    @abstractmethod
    def split(self, document: Any) -> list[Chunk]:
        """Split a document; chunks carry the document's id and metadata."""


class VectorStore(ABC):
    """Persistence and similarity search for chunks."""

    @abstractmethod
    def store(self, chunks: Iterable[Chunk]) -> None:
        """Persist chunks."""

    @abstractmethod
    def search(self, request: SearchRequest) -> list[ScoredChunk]:
        """Return the chunks nearest to the query vector, best first."""

    @abstractmethod
    def delete(self, ids: Iterable[str]) -> None:
        """Remove chunks by id."""