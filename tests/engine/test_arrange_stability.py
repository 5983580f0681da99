from __future__ import annotations

import pytest

from relq.core.errors import PartitionKeyTypeMismatch
from relq.core.relation import Relation, Schema
from relq.core.spec import OrderKey
from relq.engine.arrange import arrange, arrange_indices, peer_bounds


def _scores() -> Relation:
    schema = Schema.of(("team", "text"), ("score", "integer"), ("name", "text"))
    return Relation.from_rows(
        schema,
        [
            ("b", 10, "p0"),
            ("a", None, "p1"),
            ("b", 7, "p2"),
            ("a", 3, "p3"),
            ("b", 10, "p4"),
            ("a", 3, "p5"),
        ],
    )


def _names(rel: Relation, idx: list[int]) -> list[str]:
    return [rel[i]["name"] for i in idx]


def test_partitions_in_first_appearance_order() -> None:
    parts = arrange(_scores(), ["team"], [])
    assert [p.key for p in parts] == [("b",), ("a",)]
    assert [p.indices for p in parts] == [(0, 2, 4), (1, 3, 5)]
    assert parts[0].relation.column("name") == ["p0", "p2", "p4"]


def test_ties_keep_arrival_order() -> None:
    rel = _scores()
    ((_, idx),) = arrange_indices(rel, [], [OrderKey(column="team")])
    assert _names(rel, idx) == ["p1", "p3", "p5", "p0", "p2", "p4"]


@pytest.mark.parametrize(
    "key,expected",
    [
        ("score", ["p3", "p5", "p2", "p0", "p4", "p1"]),
        ("score nulls first", ["p1", "p3", "p5", "p2", "p0", "p4"]),
        ("score desc", ["p1", "p0", "p4", "p2", "p3", "p5"]),
        ("score desc nulls last", ["p0", "p4", "p2", "p3", "p5", "p1"]),
    ],
)
def test_null_placement_is_explicit(key: str, expected: list[str]) -> None:
    rel = _scores()
    ((_, idx),) = arrange_indices(rel, [], [OrderKey.parse(key)])
    assert _names(rel, idx) == expected


def test_multi_key_sort_within_partitions() -> None:
    rel = _scores()
    parts = arrange_indices(rel, ["team"], [OrderKey.parse("score desc nulls last"), OrderKey.parse("name desc")])
    assert [_names(rel, idx) for _, idx in parts] == [["p4", "p0", "p2"], ["p5", "p3", "p1"]]


def test_every_row_appears_exactly_once() -> None:
    rel = _scores()
    parts = arrange_indices(rel, ["team"], [OrderKey(column="score")])
    flat = sorted(i for _, idx in parts for i in idx)
    assert flat == list(range(len(rel)))


def test_missing_columns_raise() -> None:
    with pytest.raises(PartitionKeyTypeMismatch):
        arrange(_scores(), ["league"], [])
    with pytest.raises(PartitionKeyTypeMismatch):
        arrange(_scores(), [], [OrderKey(column="rating")])


def test_peer_bounds_groups_equal_keys() -> None:
    assert peer_bounds([(1,), (1,), (2,), (None,), (None,)]) == [
        (0, 2),
        (0, 2),
        (2, 3),
        (3, 5),
        (3, 5),
    ]
    assert peer_bounds([]) == []
