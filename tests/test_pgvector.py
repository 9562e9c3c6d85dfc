import json

import pytest

from dory.core import FilterOp, MetadataFilter, SearchRequest
from dory.store.pgvector import PgVectorStore, pg_string_array, pgvector_string
from dory.units import Chunk, DoryError


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def execute(self, sql, params=None):
        if self.connection.fail_on_execute:
            raise RuntimeError("connection lost")
        self.connection.executed.append((sql, list(params) if params is not None else None))

    def fetchall(self):
        return list(self.connection.rows)

    def close(self):
        self.connection.closed_cursors += 1


class FakeConnection:
    def __init__(self, rows=(), fail_on_execute=False):
        self.rows = list(rows)
        self.fail_on_execute = fail_on_execute
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def pg():
    return PgVectorStore(FakeConnection(), dimensions=3, table_name="test_chunks")


def test_nil_connection_raises():
    with pytest.raises(DoryError):
        PgVectorStore(None, dimensions=128)


@pytest.mark.parametrize("dimensions", [0, -1])
def test_invalid_dimensions_raise(dimensions):
    with pytest.raises(DoryError):
        PgVectorStore(FakeConnection(), dimensions=dimensions)


@pytest.mark.parametrize(
    "vector, expected",
    [
        (None, "[]"),
        ([], "[]"),
        ([1.5], "[1.5]"),
        ([1.0, 2.5, 3.0], "[1,2.5,3]"),
        ([-0.5, 0.0, 0.5], "[-0.5,0,0.5]"),
    ],
)
def test_pgvector_string(vector, expected):
    assert pgvector_string(vector) == expected


def test_pgvector_string_uses_exponent_for_large_values():
    assert pgvector_string([1000000.0, 0.00001]) == "[1e+06,1e-05]"


@pytest.mark.parametrize(
    "values, expected",
    [
        ([], "{}"),
        (["hello"], '{"hello"}'),
        (["a", "b", "c"], '{"a","b","c"}'),
        (['say "hi"'], '{"say \\"hi\\""}'),
        (["path\\to"], '{"path\\\\to"}'),
    ],
)
def test_pg_string_array(values, expected):
    assert pg_string_array(values) == expected


def test_build_filter_none(pg):
    assert pg.build_filter(None, 2) == ("", [])


def test_build_filter_eq(pg):
    clause, args = pg.build_filter(MetadataFilter("tenant", FilterOp.EQ, "acme"), 2)
    assert clause == "WHERE metadata @> $2::jsonb"
    assert args == ['{"tenant":"acme"}']


def test_build_filter_in(pg):
    clause, args = pg.build_filter(MetadataFilter("status", FilterOp.IN, ["active", "pending"]), 2)
    assert clause == "WHERE metadata->>$3 = ANY($2)"
    assert args == ['{"active","pending"}', "status"]


def test_build_filter_any_of(pg):
    clause, args = pg.build_filter(MetadataFilter("roles", FilterOp.ANY_OF, ["admin", "editor"]), 2)
    assert clause == "WHERE metadata->$3 ?| $2"
    assert args == ['{"admin","editor"}', "roles"]


def test_build_filter_unknown_op(pg):
    assert pg.build_filter(MetadataFilter("x", "unknown", "y"), 2) == ("", [])


def test_default_table_name():
    connection = FakeConnection()
    store = PgVectorStore(connection, dimensions=128)
    store.ensure_table()
    sql, _ = connection.executed[0]
    assert store.table_name == "dory_chunks"
    assert "CREATE TABLE IF NOT EXISTS dory_chunks" in sql
    assert "vector(128)" in sql
    assert connection.commits == 1


def test_store_upserts_each_chunk():
    connection = FakeConnection()
    store = PgVectorStore(connection, dimensions=3)
    chunk = Chunk("c1", "doc1", "hello", {"tenant": "acme"}, source_uri="file:///doc1", vector=[0.5, 1.0, 2.0])
    store.store([chunk, Chunk("c2", "doc1", "bye", vector=[1.0, 0.0, 0.0])])
    assert len(connection.executed) == 2
    sql, params = connection.executed[0]
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert params == ["c1", "doc1", "file:///doc1", "hello", "[0.5,1,2]", '{"tenant":"acme"}']
    assert connection.executed[1][1][5] == "null"
    assert connection.commits == 1


def test_store_empty_does_nothing():
    connection = FakeConnection()
    PgVectorStore(connection, dimensions=3).store([])
    assert connection.executed == []
    assert connection.commits == 0


def test_store_failure_rolls_back():
    connection = FakeConnection(fail_on_execute=True)
    store = PgVectorStore(connection, dimensions=3)
    with pytest.raises(DoryError, match="upsert chunk c1"):
        store.store([Chunk("c1", "doc1", "hello", vector=[1.0])])
    assert connection.rollbacks == 1
    assert connection.commits == 0


def test_search_builds_query_and_parses_rows():
    rows = [
        ("c1", "doc1", "", "hello", '{"tenant":"acme"}', 0.9),
        ("c2", "doc1", "", "bye", {"kind": "note"}, 0.5),
        ("c3", "doc2", "", "none", None, 0.1),
    ]
    connection = FakeConnection(rows=rows)
    store = PgVectorStore(connection, dimensions=3)
    results = store.search(
        SearchRequest(
            query_vector=[1.0, 0.0, 0.0],
            filter=MetadataFilter("tenant", FilterOp.EQ, "acme"),
        )
    )
    sql, params = connection.executed[0]
    assert "WHERE metadata @> $2::jsonb" in sql
    assert "LIMIT 10" in sql
    assert params == ["[1,0,0]", '{"tenant":"acme"}']
    assert [r.chunk.id for r in results] == ["c1", "c2", "c3"]
    assert [r.score for r in results] == [0.9, 0.5, 0.1]
    assert results[0].chunk.metadata == {"tenant": "acme"}
    assert results[1].chunk.metadata == {"kind": "note"}
    assert results[2].chunk.metadata is None
    assert results[0].chunk.text == "hello"


def test_search_bad_metadata_raises():
    connection = FakeConnection(rows=[("c1", "doc1", "", "hello", "not json", 0.9)])
    store = PgVectorStore(connection, dimensions=3)
    with pytest.raises(DoryError, match="unmarshal metadata"):
        store.search(SearchRequest(query_vector=[1.0], top_k=5))


def test_search_query_failure_raises():
    store = PgVectorStore(FakeConnection(fail_on_execute=True), dimensions=3)
    with pytest.raises(DoryError, match="search query"):
        store.search(SearchRequest(query_vector=[1.0], top_k=5))


def test_delete_passes_array_literal():
    connection = FakeConnection()
    store = PgVectorStore(connection, dimensions=3, table_name="test_chunks")
    store.delete(["c1", "c2"])
    sql, params = connection.executed[0]
    assert sql == "DELETE FROM test_chunks WHERE id = ANY($1)"
    assert params == ['{"c1","c2"}']
    assert connection.commits == 1


def test_delete_empty_does_nothing():
    connection = FakeConnection()
    PgVectorStore(connection, dimensions=3).delete([])
    assert connection.executed == []


def test_eq_filter_json_round_trips(pg):
    _, args = pg.build_filter(MetadataFilter("count", FilterOp.EQ, 3), 4)
    assert json.loads(args[0]) == {"count": 3}