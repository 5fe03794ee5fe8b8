from __future__ import annotations

from award_matcher import categorize, match_label
from conftest import make_match


def test_categorize_boundaries_fall_into_higher_bucket() -> None:
    results = [make_match("p90", 90), make_match("g89", 89), make_match("g60", 60), make_match("x59", 59)]

    categorized = categorize(results)

    assert [m.award.id for m in categorized.perfect] == ["p90"]
    assert [m.award.id for m in categorized.good] == ["g89", "g60"]
    assert [m.award.id for m in categorized.partial] == ["x59"]


def test_categorize_partitions_every_result_exactly_once() -> None:
    results = [make_match(f"a{score}", score) for score in (100, 0, 75, 90, 12, 60, 59, 89)]

    categorized = categorize(results)

    bucketed = categorized.perfect + categorized.good + categorized.partial
    assert len(categorized) == len(results)
    assert sorted(m.award.id for m in bucketed) == sorted(m.award.id for m in results)


def test_categorize_preserves_input_order_within_buckets() -> None:
    results = [make_match("g1", 70), make_match("p1", 95), make_match("g2", 88), make_match("p2", 90), make_match("g3", 61)]

    categorized = categorize(results)

    assert [m.award.id for m in categorized.good] == ["g1", "g2", "g3"]
    assert [m.award.id for m in categorized.perfect] == ["p1", "p2"]


def test_categorize_empty_input_yields_empty_buckets() -> None:
    categorized = categorize([])

    assert categorized.perfect == []
    assert categorized.good == []
    assert categorized.partial == []


def test_categorize_is_idempotent() -> None:
    results = [make_match("a", 91), make_match("b", 40), make_match("c", 65)]

    once = categorize(results)
    twice = categorize(once.perfect + once.good + once.partial)

    assert twice == once


def test_match_label_uses_same_thresholds() -> None:
    assert match_label(90) == "Perfect Match"
    assert match_label(89) == "Good Match"
    assert match_label(60) == "Good Match"
    assert match_label(59) == "Partial Match"
