from __future__ import annotations

import datetime as dt

import pytest

from relq.core.errors import MissingOrderSpec, PartitionKeyTypeMismatch, SchemaError
from relq.core.grammar import StreakMode
from relq.core.relation import Relation, Schema
from relq.core.spec import ConsecutiveRun, GapTolerance, QualifyingRun
from relq.engine.streaks import group_streaks, streak_ids, summarize_streaks
from relq.io.config import QuerySettings


def _days(*days: int) -> Relation:
    return Relation.from_rows(Schema.of(("day", "date")), [(dt.date(2024, 1, d),) for d in days])


def test_consecutive_dates_form_islands() -> None:
    out = group_streaks(_days(1, 2, 3, 5, 6), [], ["day"], ConsecutiveRun())
    assert out.column("group_id") == [1, 1, 1, 2, 2]
    summary = summarize_streaks(out, order_column="day")
    assert summary.column("streak_length") == [3, 2]
    assert summary.column("streak_start") == [dt.date(2024, 1, 1), dt.date(2024, 1, 5)]
    assert summary.column("streak_end") == [dt.date(2024, 1, 3), dt.date(2024, 1, 6)]


def test_ids_come_back_in_input_order() -> None:
    ids = streak_ids(_days(6, 1, 5, 3, 2), [], ["day"], ConsecutiveRun())
    assert ids == [2, 1, 2, 1, 1]


def test_consecutive_with_custom_step() -> None:
    rel = Relation.from_rows(Schema.of(("n", "integer")), [(0,), (5,), (10,), (20,)])
    assert streak_ids(rel, [], "n", ConsecutiveRun(step=5)) == [1, 1, 1, 2]


@pytest.mark.parametrize(
    "inclusive,expected",
    [
        (True, [1, 1, 1, 2]),
        (False, [1, 1, 2, 3]),
    ],
)
def test_gap_tolerance_boundary(inclusive: bool, expected: list[int]) -> None:
    rel = _days(1, 2, 4, 7)
    assert streak_ids(rel, [], "day", GapTolerance(tolerance=2, inclusive=inclusive)) == expected


def test_gap_inclusivity_defaults_to_settings() -> None:
    rel = _days(1, 2, 4, 7)
    criterion = GapTolerance(tolerance=dt.timedelta(days=2))
    assert streak_ids(rel, [], "day", criterion) == [1, 1, 1, 2]
    assert streak_ids(rel, [], "day", criterion, QuerySettings(gap_inclusive=False)) == [1, 1, 2, 3]


def test_qualifying_runs_use_row_number_difference() -> None:
    schema = Schema.of(("t", "integer"), ("v", "integer"))
    rel = Relation.from_rows(schema, [(1, 5), (2, 6), (3, 1), (4, 7), (5, 8), (6, 9)])
    out = group_streaks(rel, [], "t", QualifyingRun(predicate=lambda r: r["v"] > 4))
    ids = out.column("group_id")
    assert ids[2] is None
    assert ids[0] == ids[1] != ids[3] == ids[4] == ids[5]
    assert summarize_streaks(out).column("streak_length") == [2, 3]


def test_streaks_restart_per_partition() -> None:
    schema = Schema.of(("user", "text"), ("day", "date"))
    rel = Relation.from_rows(
        schema,
        [
            ("u1", dt.date(2024, 1, 1)),
            ("u2", dt.date(2024, 1, 1)),
            ("u1", dt.date(2024, 1, 2)),
            ("u2", dt.date(2024, 1, 3)),
        ],
    )
    out = group_streaks(rel, "user", "day", ConsecutiveRun(), output_column="streak")
    assert out.column("streak") == [1, 1, 1, 2]
    summary = summarize_streaks(out, "user", group_column="streak", order_column="day")
    assert summary.to_records() == [
        {"user": "u1", "streak": 1, "streak_length": 2, "streak_start": dt.date(2024, 1, 1), "streak_end": dt.date(2024, 1, 2)},
        {"user": "u2", "streak": 1, "streak_length": 1, "streak_start": dt.date(2024, 1, 1), "streak_end": dt.date(2024, 1, 1)},
        {"user": "u2", "streak": 2, "streak_length": 1, "streak_start": dt.date(2024, 1, 3), "streak_end": dt.date(2024, 1, 3)},
    ]


def test_null_measured_values_are_ungrouped() -> None:
    rel = Relation.from_rows(Schema.of(("n", "integer")), [(1,), (None,), (2,)])
    assert streak_ids(rel, [], "n", GapTolerance(tolerance=1)) == [1, None, 1]


def test_streak_errors() -> None:
    rel = _days(1, 2)
    with pytest.raises(MissingOrderSpec):
        streak_ids(rel, [], [], ConsecutiveRun())
    text = Relation.from_rows(Schema.of(("s", "text")), [("a",)])
    with pytest.raises(PartitionKeyTypeMismatch):
        streak_ids(text, [], "s", ConsecutiveRun())
    ints = Relation.from_rows(Schema.of(("n", "integer")), [(1,)])
    with pytest.raises(SchemaError):
        streak_ids(ints, [], "n", GapTolerance(tolerance=dt.timedelta(days=1)))
    with pytest.raises(SchemaError):
        group_streaks(rel, [], "day", ConsecutiveRun(), output_column="day")


def test_consecutive_runs_under_descending_order() -> None:
    assert streak_ids(_days(3, 2, 1), [], ["day desc"], ConsecutiveRun()) == [1, 1, 1]
    assert streak_ids(_days(1, 2, 3, 5, 6), [], "day desc", ConsecutiveRun()) == [2, 2, 2, 1, 1]
    rel = Relation.from_rows(Schema.of(("n", "integer")), [(10,), (5,), (0,), (-10,)])
    assert streak_ids(rel, [], "n desc", ConsecutiveRun(step=5)) == [1, 1, 1, 2]


def test_null_measured_values_do_not_break_runs() -> None:
    schema = Schema.of(("t", "integer"), ("v", "integer"))
    rel = Relation.from_rows(schema, [(1, 10), (2, None), (3, 11), (4, 20)])
    assert streak_ids(rel, [], "t", GapTolerance(column="v", tolerance=2)) == [1, None, 1, 2]
    assert streak_ids(rel, [], "t", ConsecutiveRun(column="v")) == [1, None, 1, 2]


def test_every_streak_mode_has_a_criterion() -> None:
    modes = {model.model_fields["mode"].default for model in (QualifyingRun, ConsecutiveRun, GapTolerance)}
    assert modes == {m.value for m in StreakMode}
