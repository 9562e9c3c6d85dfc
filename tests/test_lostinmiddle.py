from dory.rerank.lostinmiddle import LostInTheMiddle
from dory.units import Chunk


def test_reordering():
    units = [
        Chunk(str(i), "doc1", f"text{i}").with_score("test", 0.9 - i * 0.1)
        for i in range(5)
    ]
    result = LostInTheMiddle().rerank("query", units)
    assert len(result) == 5
    assert [u.id for u in result] == ["0", "2", "4", "3", "1"]
    middle = result[2].score
    assert result[0].score > middle
    assert result[-1].score > middle


def test_preserves_scores():
    units = [
        Chunk("1", "doc1", "a").with_score("test", 0.9),
        Chunk("2", "doc1", "b").with_score("test", 0.3),
    ]
    for unit in LostInTheMiddle().rerank("query", units):
        last, prev = unit.scores[-1], unit.scores[-2]
        assert last.stage == "litm_reorder"
        assert last.score == prev.score


def test_empty():
    assert LostInTheMiddle().rerank("query", []) == []
    assert LostInTheMiddle().rerank("query", None) == []


def test_single_item():
    units = [Chunk("1", "doc1", "only").with_score("test", 0.5)]
    result = LostInTheMiddle().rerank("query", units)
    assert [u.id for u in result] == ["1"]


def test_even_count():
    units = [
        Chunk(str(i), "doc1", f"t{i}").with_score("test", 1.0 - i * 0.2)
        for i in range(4)
    ]
    result = LostInTheMiddle().rerank("query", units)
    assert [u.id for u in result] == ["0", "2", "3", "1"]


def test_unsorted_input_is_sorted_first():
    units = [
        Chunk("low", "doc1", "a").with_score("test", 0.1),
        Chunk("high", "doc1", "b").with_score("test", 0.9),
        Chunk("mid", "doc1", "c").with_score("test", 0.5),
    ]
    result = LostInTheMiddle().rerank("query", units)
    assert [u.id for u in result] == ["high", "low", "mid"]