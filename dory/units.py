"""Retrievable units: chunks, graph facts and structured rows, with JSON-ready envelopes."""

from __future__ import annotations

import copy
import enum
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union


class DoryError(Exception):
    """Raised for invalid units, envelopes and pipeline failures."""


@dataclass(frozen=True)
class ScoreEntry:
    """A single scoring event in a unit's retrieval history."""

    stage: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "score": self.score}

    @classmethod
    def from_dict(cls, data: Any) -> "ScoreEntry":
        mapping = _require_mapping(data, "score entry")
        return cls(
            stage=_get_str(mapping, "stage"),
            score=_get_float(mapping, "score"),
        )


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise DoryError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _get_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DoryError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _get_int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise DoryError(f"field {key!r} must be an integer, got {type(value).__name__}")
    return value


def _get_float(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DoryError(f"field {key!r} must be a number, got {type(value).__name__}")
    return float(value)


def _get_object(data: Mapping[str, Any], key: str) -> Optional[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DoryError(f"field {key!r} must be an object, got {type(value).__name__}")
    return dict(value)


def _get_scores(data: Mapping[str, Any]) -> tuple[ScoreEntry, ...]:
    value = data.get("scores")
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DoryError(f"field 'scores' must be an array, got {type(value).__name__}")
    return tuple(ScoreEntry.from_dict(entry) for entry in value)


@dataclass
class Position:
    """Where in the source document a chunk came from."""

    start_byte: int = 0
    end_byte: int = 0
    page: Optional[int] = None
    section: Optional[list[str]] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"start_byte": self.start_byte, "end_byte": self.end_byte}
        if self.page is not None:
            out["page"] = self.page
        if self.section:
            out["section"] = list(self.section)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Position":
        mapping = _require_mapping(data, "position")
        page = mapping.get("page")
        if page is not None and (isinstance(page, bool) or not isinstance(page, int)):
            raise DoryError("field 'page' must be an integer")
        section = mapping.get("section")
        if section is not None:
            if not isinstance(section, list) or not all(isinstance(s, str) for s in section):
                raise DoryError("field 'section' must be an array of strings")
            section = list(section)
        return cls(
            start_byte=_get_int(mapping, "start_byte"),
            end_byte=_get_int(mapping, "end_byte"),
            page=page,
            section=section,
        )


class RetrievedUnit(ABC):
    """Common interface for everything that can be retrieved.

    Concrete units carry ``id``, ``source_document_id``, ``source_uri``,
    ``scores`` and ``metadata`` attributes.
    """

    id: str
    source_document_id: str
    source_uri: str
    scores: tuple[ScoreEntry, ...]
    metadata: Optional[dict[str, Any]]

    @property
    def score(self) -> float:
        """The most recent relevance score, or 0 when never scored."""
        return self.scores[-1].score if self.scores else 0.0

    @abstractmethod
    def as_text(self) -> str:
        """A natural language rendering suitable for an LLM prompt."""

    @abstractmethod
    def with_score(self, stage: str, score: float) -> "RetrievedUnit":
        """A copy of this unit with a score appended to its history."""


@dataclass
class Chunk(RetrievedUnit):
    """A piece of text produced by a splitter."""

    id: str
    source_document_id: str
    text: str
    metadata: Optional[dict[str, Any]] = None
    source_uri: str = ""
    position: Optional[Position] = None
    token_count: int = 0
    vector: Optional[list[float]] = None
    parent_id: str = ""
    window_text: str = ""
    context_prefix: str = ""
    scores: tuple[ScoreEntry, ...] = ()

    def as_text(self) -> str:
        if self.window_text:
            return self.window_text
        if self.context_prefix:
            return f"{self.context_prefix} {self.text}"
        return self.text

    def with_score(self, stage: str, score: float) -> "Chunk":
        position = None
        if self.position is not None:
            position = replace(
                self.position,
                section=list(self.position.section) if self.position.section is not None else None,
            )
        return replace(
            self,
            vector=list(self.vector) if self.vector is not None else None,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            position=position,
            scores=self.scores + (ScoreEntry(stage, float(score)),),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "source_doc_id": self.source_document_id}
        if self.source_uri:
            out["source_uri"] = self.source_uri
        out["text"] = self.text
        if self.vector:
            out["vector"] = list(self.vector)
        if self.scores:
            out["scores"] = [entry.to_dict() for entry in self.scores]
        if self.position is not None:
            out["position"] = self.position.to_dict()
        if self.token_count:
            out["token_count"] = self.token_count
        if self.parent_id:
            out["parent_id"] = self.parent_id
        if self.window_text:
            out["window_text"] = self.window_text
        if self.context_prefix:
            out["context_prefix"] = self.context_prefix
        if self.metadata:
            out["metadata"] = copy.deepcopy(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Chunk":
        mapping = _require_mapping(data, "chunk")
        vector = mapping.get("vector")
        if vector is not None:
            if not isinstance(vector, list) or not all(
                isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector
            ):
                raise DoryError("field 'vector' must be an array of numbers")
            vector = [float(v) for v in vector]
        position = mapping.get("position")
        return cls(
            id=_get_str(mapping, "id"),
            source_document_id=_get_str(mapping, "source_doc_id"),
            text=_get_str(mapping, "text"),
            metadata=_get_object(mapping, "metadata"),
            source_uri=_get_str(mapping, "source_uri"),
            position=Position.from_dict(position) if position is not None else None,
            token_count=_get_int(mapping, "token_count"),
            vector=vector,
            parent_id=_get_str(mapping, "parent_id"),
            window_text=_get_str(mapping, "window_text"),
            context_prefix=_get_str(mapping, "context_prefix"),
            scores=_get_scores(mapping),
        )


@dataclass
class GraphFact(RetrievedUnit):
    """A subject–predicate–object fact from a knowledge graph."""

    id: str
    source_document_id: str
    subject: str
    predicate: str
    object: str
    metadata: Optional[dict[str, Any]] = None
    source_uri: str = ""
    scores: tuple[ScoreEntry, ...] = ()

    def as_text(self) -> str:
        return f"{self.subject} is related to {self.object} via {self.predicate}."

    def with_score(self, stage: str, score: float) -> "GraphFact":
        return replace(
            self,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            scores=self.scores + (ScoreEntry(stage, float(score)),),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "source_doc_id": self.source_document_id}
        if self.source_uri:
            out["source_uri"] = self.source_uri
        if self.scores:
            out["scores"] = [entry.to_dict() for entry in self.scores]
        out["subject"] = self.subject
        out["predicate"] = self.predicate
        out["object"] = self.object
        if self.metadata:
            out["metadata"] = copy.deepcopy(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "GraphFact":
        mapping = _require_mapping(data, "graph fact")
        return cls(
            id=_get_str(mapping, "id"),
            source_document_id=_get_str(mapping, "source_doc_id"),
            subject=_get_str(mapping, "subject"),
            predicate=_get_str(mapping, "predicate"),
            object=_get_str(mapping, "object"),
            metadata=_get_object(mapping, "metadata"),
            source_uri=_get_str(mapping, "source_uri"),
            scores=_get_scores(mapping),
        )


@dataclass
class StructuredRow(RetrievedUnit):
    """A database row returned by structured retrieval."""

    id: str
    source_document_id: str
    columns: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    source_uri: str = ""
    scores: tuple[ScoreEntry, ...] = ()

    def as_text(self) -> str:
        parts = ", ".join(f"{key}: {value}" for key, value in (self.columns or {}).items())
        return "[row] " + parts

    def with_score(self, stage: str, score: float) -> "StructuredRow":
        return replace(
            self,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            columns=dict(self.columns) if self.columns is not None else None,
            scores=self.scores + (ScoreEntry(stage, float(score)),),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "source_doc_id": self.source_document_id}
        if self.source_uri:
            out["source_uri"] = self.source_uri
        if self.scores:
            out["scores"] = [entry.to_dict() for entry in self.scores]
        out["columns"] = copy.deepcopy(self.columns) if self.columns is not None else None
        if self.metadata:
            out["metadata"] = copy.deepcopy(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "StructuredRow":
        mapping = _require_mapping(data, "structured row")
        return cls(
            id=_get_str(mapping, "id"),
            source_document_id=_get_str(mapping, "source_doc_id"),
            columns=_get_object(mapping, "columns"),
            metadata=_get_object(mapping, "metadata"),
            source_uri=_get_str(mapping, "source_uri"),
            scores=_get_scores(mapping),
        )


class UnitType(str, enum.Enum):
    """Discriminator for serialized units."""

    CHUNK = "chunk"
    GRAPH_FACT = "graph_fact"
    STRUCTURED_ROW = "structured_row"


@dataclass
class UnitEnvelope:
    """A serializable wrapper carrying a unit's type and its encoded data."""

    type: Union[UnitType, str]
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        kind = self.type.value if isinstance(self.type, UnitType) else self.type
        return {"type": kind, "data": copy.deepcopy(self.data)}

    @classmethod
    def from_dict(cls, data: Any) -> "UnitEnvelope":
        mapping = _require_mapping(data, "unit envelope")
        kind = _get_str(mapping, "type")
        try:
            unit_type: Union[UnitType, str] = UnitType(kind)
        except ValueError:
            unit_type = kind
        payload = mapping.get("data")
        return cls(type=unit_type, data=payload)


_UNIT_CLASSES: dict[UnitType, tuple[type, str]] = {
    UnitType.CHUNK: (Chunk, "chunk"),
    UnitType.GRAPH_FACT: (GraphFact, "graph fact"),
    UnitType.STRUCTURED_ROW: (StructuredRow, "structured row"),
}


def wrap_unit(unit: RetrievedUnit) -> UnitEnvelope:
    """Pack a unit into a serializable envelope."""
    if isinstance(unit, Chunk):
        unit_type = UnitType.CHUNK
    elif isinstance(unit, GraphFact):
        unit_type = UnitType.GRAPH_FACT
    elif isinstance(unit, StructuredRow):
        unit_type = UnitType.STRUCTURED_ROW
    else:
        raise DoryError(f"unknown RetrievedUnit type {type(unit).__name__}")
    return UnitEnvelope(type=unit_type, data=unit.to_dict())


def unwrap_unit(envelope: UnitEnvelope) -> RetrievedUnit:
    """Recover a unit from an envelope."""
    try:
        unit_type = UnitType(envelope.type)
    except ValueError:
        raise DoryError(f"unknown unit type {str(envelope.type)!r}") from None
    unit_class, label = _UNIT_CLASSES[unit_type]
    try:
        return unit_class.from_dict(envelope.data)
    except DoryError as exc:
        raise DoryError(f"unmarshal {label}: {exc}") from exc