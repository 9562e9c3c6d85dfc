"""Structured retrieval: natural language to SQL, rows as units."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from dory.core import Query, Retriever
from dory.units import DoryError, RetrievedUnit, StructuredRow

TextToSQL = Callable[[str], str]
ExecSQL = Callable[[str], Sequence[Mapping[str, Any]]]


class StructuredRetriever(Retriever):
    """Turns a question into SQL, runs it and returns each row as a unit."""

    def __init__(self, text_to_sql: TextToSQL, exec_sql: ExecSQL, source_doc_id: str = "") -> None:
        self.text_to_sql = text_to_sql
        self.exec_sql = exec_sql
        self.source_doc_id = source_doc_id

    def retrieve(self, query: Query) -> list[RetrievedUnit]:
        try:
            sql = self.text_to_sql(query.text)
        except Exception as exc:
            raise DoryError(f"text-to-sql: {exc}") from exc
        try:
            rows = self.exec_sql(sql)
        except Exception as exc:
            raise DoryError(f"exec-sql: {exc}") from exc

        return [
            StructuredRow(f"row-{i}", self.source_doc_id, columns=dict(row)).with_score("structured", 1.0)
            for i, row in enumerate(rows or ())
        ]