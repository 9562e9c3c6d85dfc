"""Vector store persisted in SQLite with brute-force cosine similarity."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import closing, contextmanager
from decimal import Decimal
from typing import Any, Optional

from dory.core import ScoredChunk, SearchRequest, VectorStore
from dory.units import Chunk, DoryError

DEFAULT_TABLE_NAME = "dory_chunks"


def _json_number(value: float) -> str:
    """Render a float the way a compact JSON encoder with shortest digits does."""
    if not math.isfinite(value):
        raise DoryError(f"unsupported value: {value!r}")
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(float(value))).as_tuple()
    exp = len(digit_tuple) + exponent - 1
    digits = "".join(map(str, digit_tuple)).rstrip("0") or "0"
    prefix = "-" if sign else ""
    magnitude = abs(value)
    if magnitude < 1e-6 or magnitude >= 1e21:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{prefix}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp)}"
    if exp >= 0:
        whole = digits[: exp + 1].ljust(exp + 1, "0")
        fraction = digits[exp + 1 :]
    else:
        whole = "0"
        fraction = "0" * (-exp - 1) + digits
    return prefix + whole + ("." + fraction if fraction else "")


def marshal_vector(vector: Optional[Sequence[float]]) -> str:
    """Serialize a vector as a compact JSON array; ``None`` becomes ``[]``."""
    if vector is None:
        return "[]"
    return "[" + ",".join(_json_number(float(v)) for v in vector) + "]"


def unmarshal_vector(text: str) -> list[float]:
    """Parse a JSON array of numbers into a vector."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DoryError(f"invalid vector JSON: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in data
    ):
        raise DoryError("vector must be a JSON array of numbers")
    return [float(v) for v in data]


def marshal_metadata(metadata: Optional[Mapping[str, Any]]) -> str:
    """Serialize metadata as a compact JSON object; ``None`` becomes ``{}``."""
    if metadata is None:
        return "{}"
    try:
        return json.dumps(dict(metadata), separators=(",", ":"), sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise DoryError(f"cannot encode metadata: {exc}") from exc


def unmarshal_metadata(text: str) -> Optional[dict[str, Any]]:
    """Parse a JSON object into metadata; JSON ``null`` gives ``None``."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DoryError(f"invalid metadata JSON: {exc}") from exc
    if data is None:
        return None
    if not isinstance(data, dict):
        raise DoryError("metadata must be a JSON object")
    return data


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity, or 0 for empty, mismatched or zero vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


@contextmanager
def _transaction(connection: Any) -> Iterator[Any]:
    cursor = connection.cursor()
    try:
        yield cursor
        connection.commit()
    except BaseException:
        connection.rollback()
        raise
    finally:
        cursor.close()


class SQLiteStore(VectorStore):
    """A vector store in a SQLite table.

    Vectors are kept as JSON arrays and similarity is computed in Python.
    The caller opens and closes the connection; call ``ensure_table``
    before first use.
    """

    def __init__(self, connection: Any, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if connection is None:
            raise DoryError("store: SQLite connection must not be None")
        self.connection = connection
        self.table_name = table_name or DEFAULT_TABLE_NAME

    def ensure_table(self) -> None:
        """Create the chunks table if it does not exist."""
        query = (
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
            "id TEXT PRIMARY KEY, source_doc_id TEXT, source_uri TEXT, "
            "content TEXT, vector TEXT, metadata TEXT)"
        )
        try:
            with _transaction(self.connection) as cursor:
                cursor.execute(query)
        except Exception as exc:
            raise DoryError(f"store: create table: {exc}") from exc

    def store(self, chunks: Iterable[Chunk]) -> None:
        query = (
            f"INSERT OR REPLACE INTO {self.table_name} "
            "(id, source_doc_id, source_uri, content, vector, metadata) VALUES (?, ?, ?, ?, ?, ?)"
        )
        with _transaction(self.connection) as cursor:
            for chunk in chunks:
                try:
                    vector_json = marshal_vector(chunk.vector)
                except DoryError as exc:
                    raise DoryError(f"store: marshal vector for {chunk.id}: {exc}") from exc
                try:
                    metadata_json = marshal_metadata(chunk.metadata)
                except DoryError as exc:
                    raise DoryError(f"store: marshal metadata for {chunk.id}: {exc}") from exc
                try:
                    cursor.execute(
                        query,
                        (
                            chunk.id,
                            chunk.source_document_id,
                            chunk.source_uri,
                            chunk.as_text(),
                            vector_json,
                            metadata_json,
                        ),
                    )
                except Exception as exc:
                    raise DoryError(f"store: insert {chunk.id}: {exc}") from exc

    def search(self, request: SearchRequest) -> list[ScoredChunk]:
        query = f"SELECT id, source_doc_id, source_uri, content, vector, metadata FROM {self.table_name}"
        try:
            with closing(self.connection.cursor()) as cursor:
                cursor.execute(query)
                rows = cursor.fetchall()
        except Exception as exc:
            raise DoryError(f"store: query: {exc}") from exc

        results: list[ScoredChunk] = []
        for chunk_id, source_doc_id, _source_uri, content, vector_json, metadata_json in rows:
            try:
                vector = unmarshal_vector(vector_json or "")
            except DoryError:
                continue
            try:
                metadata = unmarshal_metadata(metadata_json or "")
            except DoryError:
                metadata = None

            chunk = Chunk(chunk_id or "", source_doc_id or "", content or "", metadata, vector=vector)
            if request.filter is not None and not request.filter.matches(chunk.metadata):
                continue
            if not request.query_vector:
                continue
            results.append(ScoredChunk(chunk, cosine_similarity(request.query_vector, vector)))

        results.sort(key=lambda scored: scored.score, reverse=True)
        return results[: max(request.top_k, 0)]

    def delete(self, ids: Iterable[str]) -> None:
        id_list = list(ids)
        if not id_list:
            return
        placeholders = ",".join("?" for _ in id_list)
        query = f"DELETE FROM {self.table_name} WHERE id IN ({placeholders})"
        try:
            with _transaction(self.connection) as cursor:
                cursor.execute(query, id_list)
        except Exception as exc:
            raise DoryError(f"store: delete: {exc}") from exc