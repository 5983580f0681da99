from __future__ import annotations

import datetime as dt

import pytest
from pydantic import ValidationError

from relq.core.errors import InvalidFrameSpec
from relq.core.grammar import BoundKind, FrameUnit, NullOrdering, SortDirection, WindowFunctionKind
from relq.core.relation import Relation, Schema
from relq.core.spec import (
    Aggregate,
    ConsecutiveRun,
    FrameBound,
    FrameSpec,
    GapTolerance,
    Lag,
    OrderKey,
    QualifyingRun,
    RecursiveSpec,
    WindowSpec,
)


def test_order_key_null_defaults_follow_direction() -> None:
    asc = OrderKey(column="x")
    desc = OrderKey(column="x", direction="DESC")
    assert asc.nulls is NullOrdering.LAST
    assert desc.nulls is NullOrdering.FIRST
    assert OrderKey(column="x", direction="desc", nulls="NULLS LAST").nulls is NullOrdering.LAST


@pytest.mark.parametrize(
    "text,direction,nulls",
    [
        ("day", SortDirection.ASC, NullOrdering.LAST),
        ("day desc", SortDirection.DESC, NullOrdering.FIRST),
        ("day ASC NULLS FIRST", SortDirection.ASC, NullOrdering.FIRST),
        ("day descending nulls last", SortDirection.DESC, NullOrdering.LAST),
    ],
)
def test_order_key_parse(text: str, direction: SortDirection, nulls: NullOrdering) -> None:
    key = OrderKey.parse(text)
    assert key.column == "day"
    assert key.direction is direction
    assert key.nulls is nulls


def test_order_key_parse_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        OrderKey.parse("day sideways")


def test_frame_bound_offset_rules() -> None:
    with pytest.raises(InvalidFrameSpec):
        FrameBound(kind="preceding")
    with pytest.raises(InvalidFrameSpec):
        FrameBound(kind="current_row", offset=1)
    with pytest.raises(InvalidFrameSpec):
        FrameBound.following(-1)
    assert FrameBound(kind="UNBOUNDED PRECEDING").kind is BoundKind.UNBOUNDED_PRECEDING


@pytest.mark.parametrize(
    "start,end",
    [
        (FrameBound.unbounded_following(), FrameBound.unbounded_following()),
        (FrameBound.current_row(), FrameBound.unbounded_preceding()),
        (FrameBound.following(1), FrameBound.current_row()),
        (FrameBound.preceding(1), FrameBound.preceding(3)),
    ],
)
def test_frame_spec_rejects_inverted_bounds(start: FrameBound, end: FrameBound) -> None:
    with pytest.raises(InvalidFrameSpec):
        FrameSpec.rows(start, end)


def test_rows_frames_need_integer_offsets() -> None:
    with pytest.raises(InvalidFrameSpec):
        FrameSpec.rows(FrameBound.preceding(1.5))
    with pytest.raises(InvalidFrameSpec):
        FrameSpec.rows(FrameBound.preceding(dt.timedelta(days=1)))
    frame = FrameSpec.range(FrameBound.preceding(dt.timedelta(days=2)), FrameBound.following(1))
    assert frame.unit is FrameUnit.RANGE
    assert frame.has_offsets


def test_window_spec_discriminates_function_kind() -> None:
    spec = WindowSpec(
        function={"kind": "lag", "column": "v", "offset": 2, "default": 0},
        partition_by="g",
        order_by=["t desc", {"column": "id"}],
    )
    assert isinstance(spec.function, Lag)
    assert spec.kind is WindowFunctionKind.LAG
    assert spec.partition_by == ("g",)
    assert [k.column for k in spec.order_by] == ["t", "id"]
    assert spec.column_name == "lag"


def test_window_spec_rejects_unknown_kind_and_missing_payload() -> None:
    with pytest.raises(ValidationError):
        WindowSpec(function={"kind": "median", "column": "v"})
    with pytest.raises(ValidationError):
        WindowSpec(function={"kind": "ntile", "buckets": 0})
    with pytest.raises(ValidationError):
        Aggregate(kind="sum")
    assert Aggregate(kind="count").column is None


def test_recursive_spec_coerces_keys_and_checks_output_columns() -> None:
    spec = RecursiveSpec(
        anchor=lambda base: base,
        member=lambda frontier, base: Relation.empty(base.schema),
        cycle_key_columns="id",
    )
    assert spec.cycle_key_columns == ("id",)
    assert spec.max_depth == 0
    with pytest.raises(ValidationError):
        RecursiveSpec(
            anchor=lambda base: base,
            member=lambda frontier, base: base,
            cycle_key_columns=[],
        )
    with pytest.raises(ValidationError):
        RecursiveSpec(
            anchor=lambda base: base,
            member=lambda frontier, base: base,
            cycle_key_columns="id",
            depth_column="x",
            path_column="x",
        )


def test_streak_criteria_payloads() -> None:
    schema = Schema.of(("ok", "boolean"))
    row = Relation.from_rows(schema, [(True,)])[0]
    assert QualifyingRun(predicate=lambda r: r["ok"]).predicate(row) is True
    assert ConsecutiveRun().mode == "consecutive"
    assert GapTolerance(tolerance=2).inclusive is None
    with pytest.raises(ValidationError):
        GapTolerance(tolerance=-1)
