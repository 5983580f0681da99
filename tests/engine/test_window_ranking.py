from __future__ import annotations

import pytest

from relq.core.errors import MissingOrderSpec, PartitionKeyTypeMismatch
from relq.core.relation import Relation, Schema
from relq.core.spec import WindowSpec
from relq.engine.window import evaluate_window
from relq.io.config import QuerySettings


def _games() -> Relation:
    schema = Schema.of(("seq", "integer"), ("team", "text"), ("points", "integer"))
    return Relation.from_rows(
        schema,
        [
            (1, "x", 10),
            (2, "y", 4),
            (3, "x", 10),
            (4, "x", 5),
            (5, "y", None),
            (6, "x", 7),
        ],
    )


def test_row_number_restarts_per_partition_in_input_order() -> None:
    rel = Relation.from_rows(Schema.of(("g", "text"), ("seq", "integer")), [("X", 1), ("X", 2), ("Y", 3)])
    spec = WindowSpec(function={"kind": "row_number"}, partition_by=["g"], order_by=["seq"])
    assert evaluate_window(rel, spec) == [1, 2, 1]


def test_row_number_breaks_ties_by_arrival() -> None:
    spec = WindowSpec(function={"kind": "row_number"}, partition_by="team", order_by="points desc")
    assert evaluate_window(_games(), spec) == [1, 2, 2, 4, 1, 3]


def test_rank_and_dense_rank_over_ties() -> None:
    rel = Relation.from_rows(Schema.of(("v", "integer")), [(10,), (10,), (5,)])
    rank = WindowSpec(function={"kind": "rank"}, order_by=["v desc"])
    dense = WindowSpec(function={"kind": "dense_rank"}, order_by=["v desc"])
    assert evaluate_window(rel, rank) == [1, 1, 3]
    assert evaluate_window(rel, dense) == [1, 1, 2]


def test_rank_treats_nulls_as_peers() -> None:
    rel = Relation.from_rows(Schema.of(("v", "integer")), [(None,), (2,), (None,), (1,)])
    spec = WindowSpec(function={"kind": "rank"}, order_by=["v"])
    assert evaluate_window(rel, spec) == [3, 2, 3, 1]


@pytest.mark.parametrize(
    "n,buckets,expected",
    [
        (5, 2, [1, 1, 1, 2, 2]),
        (2, 5, [1, 2]),
        (6, 3, [1, 1, 2, 2, 3, 3]),
    ],
)
def test_ntile_distributes_larger_buckets_first(n: int, buckets: int, expected: list[int]) -> None:
    rel = Relation.from_rows(Schema.of(("i", "integer")), [(i,) for i in range(n)])
    spec = WindowSpec(function={"kind": "ntile", "buckets": buckets}, order_by="i")
    assert evaluate_window(rel, spec) == expected


def test_lag_and_lead_defaults() -> None:
    rel = _games()
    lag = WindowSpec(function={"kind": "lag", "column": "points"}, partition_by="team", order_by="seq")
    lag_default = WindowSpec(
        function={"kind": "lag", "column": "points", "default": 0}, partition_by="team", order_by="seq"
    )
    lead2 = WindowSpec(
        function={"kind": "lead", "column": "points", "offset": 2, "default": -1},
        partition_by="team",
        order_by="seq",
    )
    assert evaluate_window(rel, lag) == [None, None, 10, 10, 4, 5]
    assert evaluate_window(rel, lag_default) == [0, 0, 10, 10, 4, 5]
    assert evaluate_window(rel, lead2) == [5, -1, 7, -1, -1, -1]


def test_lag_offset_zero_is_current_row() -> None:
    spec = WindowSpec(function={"kind": "lag", "column": "seq", "offset": 0}, order_by="seq")
    assert evaluate_window(_games(), spec) == [1, 2, 3, 4, 5, 6]


@pytest.mark.parametrize("kind", ["row_number", "rank", "dense_rank", "lag", "lead"])
def test_order_dependent_functions_require_order(kind: str) -> None:
    function = {"kind": kind} if kind not in ("lag", "lead") else {"kind": kind, "column": "points"}
    spec = WindowSpec(function=function, partition_by="team")
    with pytest.raises(MissingOrderSpec):
        evaluate_window(_games(), spec)


def test_absent_partition_column_raises() -> None:
    spec = WindowSpec(function={"kind": "rank"}, partition_by="league", order_by="seq")
    with pytest.raises(PartitionKeyTypeMismatch):
        evaluate_window(_games(), spec)


def test_output_is_deterministic_and_independent_of_workers() -> None:
    rel = _games()
    spec = WindowSpec(function={"kind": "rank"}, partition_by="team", order_by=["points desc", "seq"])
    serial = evaluate_window(rel, spec)
    assert evaluate_window(rel, spec) == serial
    assert evaluate_window(rel, spec, QuerySettings(max_workers=4)) == serial
