import pytest

from dory.core import Query, Retriever
from dory.retrieve.hybrid import Hybrid
from dory.units import Chunk, DoryError


class FakeRetriever(Retriever):
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error

    def retrieve(self, query):
        if self.error is not None:
            raise self.error
        return self.results


def make_unit(unit_id, text, score):
    return Chunk(unit_id, "doc1", text).with_score("test", score)


def test_fusion_two_retrievers():
    ret_a = FakeRetriever([
        make_unit("a", "chunk a", 0.9),
        make_unit("b", "chunk b", 0.8),
        make_unit("c", "chunk c", 0.7),
    ])
    ret_b = FakeRetriever([
        make_unit("b", "chunk b", 0.95),
        make_unit("c", "chunk c", 0.85),
        make_unit("d", "chunk d", 0.75),
    ])
    results = Hybrid([ret_a, ret_b], k=60).retrieve(Query("query", top_k=10))
    assert len(results) == 4
    assert [u.id for u in results] == ["b", "c", "a", "d"]
    assert results[0].scores[-1].stage == "rrf_fusion"


def test_deduplication():
    ret_a = FakeRetriever([make_unit("same", "same chunk", 0.9)])
    ret_b = FakeRetriever([make_unit("same", "same chunk", 0.8)])
    results = Hybrid([ret_a, ret_b], k=60).retrieve(Query("query", top_k=10))
    assert len(results) == 1
    assert results[0].score == pytest.approx(2.0 / 61.0, abs=1e-9)


def test_rrf_scoring():
    ret = FakeRetriever([make_unit("first", "first", 0.9), make_unit("second", "second", 0.8)])
    results = Hybrid([ret], k=60).retrieve(Query("query", top_k=10))
    assert len(results) == 2
    assert results[0].score == pytest.approx(1.0 / 61, abs=1e-9)
    assert results[1].score == pytest.approx(1.0 / 62, abs=1e-9)


def test_top_k():
    ret = FakeRetriever([make_unit("a", "a", 0.9), make_unit("b", "b", 0.8), make_unit("c", "c", 0.7)])
    results = Hybrid([ret], k=60).retrieve(Query("query", top_k=2))
    assert len(results) == 2


def test_zero_k_uses_default():
    ret = FakeRetriever([make_unit("a", "a", 0.9)])
    results = Hybrid([ret], k=0).retrieve(Query("query"))
    assert results[0].score == pytest.approx(1.0 / 61, abs=1e-9)


def test_error_propagates():
    with pytest.raises(DoryError, match="retriever 0"):
        Hybrid([FakeRetriever(error=ValueError("down"))]).retrieve(Query("query"))