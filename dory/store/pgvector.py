"""Vector store backed by PostgreSQL with the pgvector extension."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import closing, contextmanager
from decimal import Decimal
from typing import Any, Optional

from dory.core import FilterOp, MetadataFilter, ScoredChunk, SearchRequest, VectorStore
from dory.units import Chunk, DoryError

DEFAULT_TABLE_NAME = "dory_chunks"
DEFAULT_TOP_K = 10


def _format_g(value: float) -> str:
    """Shortest-digit %g formatting: exponent form below 1e-4 or from 1e6."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(float(value))).as_tuple()
    exp = len(digit_tuple) + exponent - 1
    digits = "".join(map(str, digit_tuple)).rstrip("0") or "0"
    prefix = "-" if sign else ""
    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{prefix}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if exp >= 0:
        whole = digits[: exp + 1].ljust(exp + 1, "0")
        fraction = digits[exp + 1 :]
    else:
        whole = "0"
        fraction = "0" * (-exp - 1) + digits
    return prefix + whole + ("." + fraction if fraction else "")


def pgvector_string(vector: Optional[Sequence[float]]) -> str:
    """Format a vector as a pgvector literal such as ``[1,2.5,3]``."""
    if not vector:
        return "[]"
    return "[" + ",".join(_format_g(float(v)) for v in vector) + "]"


def pg_string_array(values: Iterable[str]) -> str:
    """Format strings as a PostgreSQL array literal with quoted, escaped elements."""
    parts = []
    for value in values:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        parts.append(f'"{escaped}"')
    return "{" + ",".join(parts) + "}"


def _string_values(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    return []


def _decode_metadata(raw: Any) -> Optional[dict[str, Any]]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DoryError(f"dory/store: unmarshal metadata: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise DoryError("dory/store: unmarshal metadata: not a JSON object")
    return data


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


class PgVectorStore(VectorStore):
    """A vector store in a PostgreSQL table using pgvector cosine distance.

    ``connection`` is a DB-API connection whose cursors accept
    PostgreSQL's native numbered placeholders (``$1``, ``$2``, ...).
    The caller opens and closes it.
    """

    def __init__(self, connection: Any, dimensions: int, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if connection is None:
            raise DoryError("dory/store: PgVector connection must not be None")
        if dimensions <= 0:
            raise DoryError("dory/store: PgVector dimensions must be > 0")
        self.connection = connection
        self.dimensions = dimensions
        self.table_name = table_name or DEFAULT_TABLE_NAME

    def ensure_table(self) -> None:
        """Create the pgvector extension and the chunks table if missing."""
        query = (
            "CREATE EXTENSION IF NOT EXISTS vector;\n"
            f"CREATE TABLE IF NOT EXISTS {self.table_name} (\n"
            "    id            TEXT PRIMARY KEY,\n"
            "    source_doc_id TEXT NOT NULL,\n"
            "    source_uri    TEXT NOT NULL DEFAULT '',\n"
            "    content       TEXT NOT NULL,\n"
            f"    vector        vector({self.dimensions}),\n"
            "    metadata      JSONB DEFAULT '{}'\n"
            ");"
        )
        with _transaction(self.connection) as cursor:
            cursor.execute(query)

    def store(self, chunks: Iterable[Chunk]) -> None:
        chunk_list = list(chunks)
        if not chunk_list:
            return
        query = (
            f"INSERT INTO {self.table_name} (id, source_doc_id, source_uri, content, vector, metadata)\n"
            "VALUES ($1, $2, $3, $4, $5, $6)\n"
            "ON CONFLICT (id) DO UPDATE SET\n"
            "    source_doc_id = EXCLUDED.source_doc_id,\n"
            "    source_uri    = EXCLUDED.source_uri,\n"
            "    content       = EXCLUDED.content,\n"
            "    vector        = EXCLUDED.vector,\n"
            "    metadata      = EXCLUDED.metadata"
        )
        with _transaction(self.connection) as cursor:
            for chunk in chunk_list:
                try:
                    metadata_json = json.dumps(
                        chunk.metadata, separators=(",", ":"), sort_keys=True, allow_nan=False
                    )
                except (TypeError, ValueError) as exc:
                    raise DoryError(
                        f"dory/store: marshal metadata for chunk {chunk.id}: {exc}"
                    ) from exc
                params = (
                    chunk.id,
                    chunk.source_document_id,
                    chunk.source_uri,
                    chunk.as_text(),
                    pgvector_string(chunk.vector),
                    metadata_json,
                )
                try:
                    cursor.execute(query, params)
                except Exception as exc:
                    raise DoryError(f"dory/store: upsert chunk {chunk.id}: {exc}") from exc

    def search(self, request: SearchRequest) -> list[ScoredChunk]:
        top_k = request.top_k if request.top_k > 0 else DEFAULT_TOP_K
        where_clause, filter_args = self.build_filter(request.filter, 2)
        query = (
            "SELECT id, source_doc_id, source_uri, content, metadata,\n"
            "       1 - (vector <=> $1) AS score\n"
            f"FROM {self.table_name}\n"
            f"{where_clause}\n"
            "ORDER BY vector <=> $1\n"
            f"LIMIT {top_k}"
        )
        params = [pgvector_string(request.query_vector), *filter_args]
        try:
            with closing(self.connection.cursor()) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
        except Exception as exc:
            raise DoryError(f"dory/store: search query: {exc}") from exc

        results: list[ScoredChunk] = []
        for chunk_id, source_doc_id, _source_uri, content, metadata_raw, score in rows:
            chunk = Chunk(chunk_id, source_doc_id, content, _decode_metadata(metadata_raw))
            results.append(ScoredChunk(chunk, float(score)))
        return results

    def delete(self, ids: Iterable[str]) -> None:
        id_list = list(ids)
        if not id_list:
            return
        query = f"DELETE FROM {self.table_name} WHERE id = ANY($1)"
        with _transaction(self.connection) as cursor:
            cursor.execute(query, [pg_string_array(id_list)])

    def build_filter(
        self, metadata_filter: Optional[MetadataFilter], param_offset: int
    ) -> tuple[str, list[Any]]:
        """Translate a filter into a WHERE clause and its parameters.

        Parameters are numbered from ``param_offset``; an absent filter or
        an unknown operator gives an empty clause.
        """
        if metadata_filter is None:
            return "", []
        param = f"${param_offset}"
        field_param = f"${param_offset + 1}"
        op = metadata_filter.op
        if op == FilterOp.EQ:
            filter_json = json.dumps(
                {metadata_filter.field: metadata_filter.value}, separators=(",", ":"), default=str
            )
            return f"WHERE metadata @> {param}::jsonb", [filter_json]
        if op == FilterOp.IN:
            values = _string_values(metadata_filter.value)
            return (
                f"WHERE metadata->>{field_param} = ANY({param})",
                [pg_string_array(values), metadata_filter.field],
            )
        if op == FilterOp.ANY_OF:
            values = _string_values(metadata_filter.value)
            return (
                f"WHERE metadata->{field_param} ?| {param}",
                [pg_string_array(values), metadata_filter.field],
            )
        return "", []