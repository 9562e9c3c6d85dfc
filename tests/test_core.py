import pytest

from dory.core import (
    FilterOp,
    MetadataFilter,
    Query,
    Reranker,
    Retriever,
    SearchRequest,
    Splitter,
    VectorStore,
    matches_all,
)


@pytest.mark.parametrize(
    "name, metadata",
    [
        ("eq", {"x": "a"}),
        ("in", {"x": "a"}),
        ("any_of", {"x": ["a", "b"]}),
    ],
)
def test_filter_op_from_wire_string(name, metadata):
    op = FilterOp(name)
    value = "a" if name == "eq" else ["a"]
    assert MetadataFilter(field="x", op=op, value=value).matches(metadata) is True


def test_eq_filter_matches_and_rejects():
    f = MetadataFilter(field="tenant", op=FilterOp.EQ, value="acme")
    assert f.matches({"tenant": "acme"}) is True
    assert f.matches({"tenant": "globex"}) is False


def test_filter_rejects_missing_metadata():
    f = MetadataFilter(field="tenant", op=FilterOp.EQ, value="acme")
    assert f.matches(None) is False
    assert f.matches({}) is False
    assert f.matches({"other": "acme"}) is False


def test_in_filter():
    f = MetadataFilter(field="status", op=FilterOp.IN, value=["active", "pending"])
    assert f.matches({"status": "pending"}) is True
    assert f.matches({"status": "closed"}) is False


def test_any_of_filter_on_list_field():
    f = MetadataFilter(field="roles", op=FilterOp.ANY_OF, value=["admin", "editor"])
    assert f.matches({"roles": ["viewer", "editor"]}) is True
    assert f.matches({"roles": ["viewer"]}) is False
    assert f.matches({"roles": "admin"}) is False


def test_unknown_op_never_matches():
    f = MetadataFilter(field="x", op="unknown", value="y")
    assert f.matches({"x": "y"}) is False


def test_plain_string_op_is_accepted():
    f = MetadataFilter(field="x", op="eq", value="y")
    assert f.matches({"x": "y"}) is True


def test_matches_all():
    filters = [
        MetadataFilter(field="tenant", op=FilterOp.EQ, value="acme"),
        MetadataFilter(field="roles", op=FilterOp.ANY_OF, value=["admin"]),
    ]
    assert matches_all({"tenant": "acme", "roles": ["admin"]}, filters) is True
    assert matches_all({"tenant": "acme", "roles": ["guest"]}, filters) is False
    assert matches_all(None, []) is True


def test_query_defaults_are_independent():
    first = Query(text="a")
    second = Query(text="b")
    first.filters.append(MetadataFilter(field="f", op=FilterOp.EQ, value="v"))
    assert second.filters == []
    assert second.top_k == 0


def test_search_request_default_filter():
    request = SearchRequest(query_vector=[1.0])
    assert request.filter is None
    assert request.top_k == 0


@pytest.mark.parametrize("abstract", [Retriever, Reranker, Splitter, VectorStore])
def test_interfaces_are_abstract(abstract):
    with pytest.raises(TypeError):
        abstract()


def test_concrete_retriever_works():
    class Echo(Retriever):
        def retrieve(self, query):
            return [query.text]

    assert Echo().retrieve(Query(text="hello")) == ["hello"]