import pytest

from dory.core import Query
from dory.retrieve.web import WebResult, WebRetriever


def test_retrieve():
    calls = []

    def search(query, top_k):
        calls.append((query, top_k))
        return [
            WebResult("https://example.com/1", "Result 1", "First result snippet"),
            WebResult("https://example.com/2", "Result 2", "Second result snippet"),
        ]

    results = WebRetriever(search).retrieve(Query("Go tutorial", top_k=5))
    assert calls == [("Go tutorial", 5)]
    assert len(results) == 2
    first = results[0]
    assert first.id == "https://example.com/1"
    assert first.source_uri == "https://example.com/1"
    assert first.source_document_id == "web"
    assert first.as_text() == "First result snippet"
    assert first.metadata["title"] == "Result 1"
    assert first.score == 1.0
    assert results[1].score == pytest.approx(0.99)


def test_error_propagates():
    def search(query, top_k):
        raise ConnectionError("network error")

    with pytest.raises(ConnectionError, match="network error"):
        WebRetriever(search).retrieve(Query("test", top_k=5))


def test_default_top_k():
    captured = []

    def search(query, top_k):
        captured.append(top_k)
        return []

    results = WebRetriever(search).retrieve(Query("test"))
    assert results == []
    assert captured == [10]