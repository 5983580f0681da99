"""
Window Function Evaluator.

Computes one output value per input row for a WindowSpec, returned in input order.

Pipeline
1. Validate the spec against the relation (ORDER BY presence, argument column types,
   RANGE offset compatibility).
2. Arrange rows with relq.engine.arrange (stable partition + sort).
3. Evaluate each partition through the dispatch table keyed by WindowFunctionKind.
   Partitions share no mutable state; with ``max_workers > 1`` they run on a bounded
   thread pool and results are scattered back by original row position.

Frames
- ROWS bounds count physical rows from the current row.
- RANGE bounds compare the ORDER BY value: CURRENT ROW means the peer group; offset
  bounds need exactly one numeric/date/datetime ORDER BY column. Nulls form their own
  peer group, and a null row's offset bounds select exactly that group.
- No FrameSpec: RANGE UNBOUNDED PRECEDING..CURRENT ROW with an ORDER BY, the whole
  partition without one.
- Ranking and offset functions ignore frames.

Notes
- The dispatch table is checked against WindowFunctionKind at import so the set of
  supported functions stays closed.
"""

from __future__ import annotations

import datetime as dt
import logging
from bisect import bisect_left, bisect_right
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import cached_property
from typing import Any

from ..core.errors import InvalidFrameSpec, MissingOrderSpec, PartitionKeyTypeMismatch, SchemaError
from ..core.grammar import (
    AGGREGATE_KINDS,
    ORDER_REQUIRED_KINDS,
    RANKING_KINDS,
    BoundKind,
    ColumnType,
    FrameUnit,
    WindowFunctionKind,
)
from ..core.relation import Relation, Schema
from ..core.spec import FrameBound, FrameSpec, WindowSpec
from ..core.typing import Scalar
from ..io.config import QuerySettings
from .aggregates import aggregate_frames
from .arrange import arrange_indices, peer_bounds

__all__ = [
    "default_frame",
    "output_type",
    "validate_window",
    "frame_bounds",
    "order_coordinate",
    "offset_units",
    "evaluate_window",
]

logger = logging.getLogger(__name__)

_NUMERIC = (ColumnType.INTEGER, ColumnType.FLOAT)
_RANGE_OFFSET_TYPES = (ColumnType.INTEGER, ColumnType.FLOAT, ColumnType.DATE, ColumnType.DATETIME)
_EPOCH = dt.datetime(1970, 1, 1)
_MICROSECOND = dt.timedelta(microseconds=1)
_DAY_US = 86_400_000_000


class _PartitionView:
    """Read-only view of one arranged partition."""

    def __init__(
        self,
        schema: Schema,
        indices: list[int],
        rows: Sequence[tuple[Scalar, ...]],
        spec: WindowSpec,
    ) -> None:
        self.schema = schema
        self.indices = indices
        self.rows = rows
        self.spec = spec

    def __len__(self) -> int:
        return len(self.indices)

    def column(self, name: str) -> list[Scalar]:
        pos = self.schema.index_of(name)
        return [r[pos] for r in self.rows]

    @cached_property
    def order_values(self) -> list[tuple[Scalar, ...]]:
        pos = [self.schema.index_of(k.column) for k in self.spec.order_by]
        return [tuple(r[p] for p in pos) for r in self.rows]

    @cached_property
    def peers(self) -> list[tuple[int, int]]:
        return peer_bounds(self.order_values)


# ============================================================================
# Validation
# ============================================================================


def default_frame(spec: WindowSpec) -> FrameSpec:
    """SQL default frame for aggregates and first/last value."""
    if spec.order_by:
        return FrameSpec.range(FrameBound.unbounded_preceding(), FrameBound.current_row())
    return FrameSpec.rows(FrameBound.unbounded_preceding(), FrameBound.unbounded_following())


def output_type(schema: Schema, spec: WindowSpec) -> ColumnType:
    """Column type of the computed values."""
    kind = spec.kind
    if kind in RANKING_KINDS or kind is WindowFunctionKind.COUNT:
        return ColumnType.INTEGER
    if kind is WindowFunctionKind.AVG:
        return ColumnType.FLOAT
    return schema.type_of(spec.function.column)  # type: ignore[union-attr]


def validate_window(relation: Relation, spec: WindowSpec) -> FrameSpec | None:
    """
    Check a WindowSpec against a relation and resolve its effective frame.

    Returns:
        FrameSpec | None: The frame that applies (None for ranking/offset functions).

    Raises:
        MissingOrderSpec: Ranking/ntile/offset function without ORDER BY.
        PartitionKeyTypeMismatch: Partition/order column absent, or RANGE offsets over a
            non-numeric, non-temporal ORDER BY column.
        InvalidFrameSpec: RANGE offsets with other than exactly one ORDER BY column, or
            an offset whose kind does not fit the ORDER BY column.
        SchemaError: Argument column absent, or sum/avg over a non-numeric column.
    """
    schema = relation.schema
    kind = spec.kind
    if kind in ORDER_REQUIRED_KINDS and not spec.order_by:
        raise MissingOrderSpec(f"{kind.value} requires an ORDER BY")
    for col in spec.partition_by:
        if col not in schema:
            raise PartitionKeyTypeMismatch(f"partition column {col!r} not in {list(schema.names)!r}")
    for key in spec.order_by:
        if key.column not in schema:
            raise PartitionKeyTypeMismatch(f"order column {key.column!r} not in {list(schema.names)!r}")

    column = getattr(spec.function, "column", None)
    if column is not None:
        ctype = schema.type_of(column)
        if kind in (WindowFunctionKind.SUM, WindowFunctionKind.AVG) and ctype not in _NUMERIC:
            raise SchemaError(f"{kind.value} requires a numeric column; {column!r} is {ctype.value}")

    if kind in ORDER_REQUIRED_KINDS:
        return None
    frame = spec.frame or default_frame(spec)
    if frame.unit is FrameUnit.RANGE and frame.has_offsets:
        if len(spec.order_by) != 1:
            raise InvalidFrameSpec(
                f"RANGE frames with offsets need exactly one ORDER BY column, got {len(spec.order_by)}"
            )
        order_col = spec.order_by[0].column
        otype = schema.type_of(order_col)
        if otype not in _RANGE_OFFSET_TYPES:
            raise PartitionKeyTypeMismatch(
                f"RANGE offsets need a numeric or temporal ORDER BY column; {order_col!r} is {otype.value}"
            )
        for bound in (frame.start, frame.end):
            if isinstance(bound.offset, dt.timedelta) and otype in _NUMERIC:
                raise InvalidFrameSpec(
                    f"timedelta offset {bound.offset!r} cannot apply to {otype.value} column {order_col!r}"
                )
    return frame


# ============================================================================
# Frame bounds
# ============================================================================


def _rows_bounds(n: int, frame: FrameSpec) -> list[tuple[int, int]]:
    def start_of(i: int, b: FrameBound) -> int:
        if b.kind is BoundKind.UNBOUNDED_PRECEDING:
            return 0
        if b.kind is BoundKind.PRECEDING:
            return i - b.offset  # type: ignore[operator]
        if b.kind is BoundKind.FOLLOWING:
            return i + b.offset  # type: ignore[operator]
        return i

    def end_of(i: int, b: FrameBound) -> int:
        if b.kind is BoundKind.UNBOUNDED_FOLLOWING:
            return n
        if b.kind is BoundKind.PRECEDING:
            return i - b.offset + 1  # type: ignore[operator]
        if b.kind is BoundKind.FOLLOWING:
            return i + b.offset + 1  # type: ignore[operator]
        return i + 1

    out = []
    for i in range(n):
        lo = min(max(start_of(i, frame.start), 0), n)
        hi = min(max(end_of(i, frame.end), 0), n)
        out.append((lo, hi))
    return out


def order_coordinate(value: Scalar, ctype: ColumnType) -> int | float:
    """Map an ORDER BY value onto a number line (days for dates, microseconds for datetimes)."""
    if ctype is ColumnType.DATE:
        return value.toordinal()  # type: ignore[union-attr]
    if ctype is ColumnType.DATETIME:
        v: dt.datetime = value  # type: ignore[assignment]
        if v.tzinfo is not None:
            v = v.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return (v - _EPOCH) // _MICROSECOND
    return value  # type: ignore[return-value]


def offset_units(offset: Any, ctype: ColumnType) -> int | float:
    # Offsets in the same units as order_coordinate: days for dates, microseconds for datetimes.
    if ctype is ColumnType.DATE:
        if isinstance(offset, dt.timedelta):
            return offset / dt.timedelta(days=1)
        return offset
    if ctype is ColumnType.DATETIME:
        if isinstance(offset, dt.timedelta):
            return offset // _MICROSECOND
        return offset * _DAY_US
    return offset


def _range_bounds(view: _PartitionView, frame: FrameSpec) -> list[tuple[int, int]]:
    n = len(view)
    peers = view.peers
    if not frame.has_offsets:
        out = []
        for i in range(n):
            p_lo, p_hi = peers[i]
            lo = 0 if frame.start.kind is BoundKind.UNBOUNDED_PRECEDING else p_lo
            hi = n if frame.end.kind is BoundKind.UNBOUNDED_FOLLOWING else p_hi
            out.append((lo, hi))
        return out

    key = view.spec.order_by[0]
    ctype = view.schema.type_of(key.column)
    raw = [ov[0] for ov in view.order_values]
    non_null = [i for i, v in enumerate(raw) if v is not None]
    # Nulls sit in one contiguous block at either end; the rest is sorted by value.
    base = non_null[0] if non_null else n
    sign = -1 if key.descending else 1
    coords = [sign * order_coordinate(raw[i], ctype) for i in non_null]

    def start_of(i: int, b: FrameBound) -> int:
        if b.kind is BoundKind.UNBOUNDED_PRECEDING:
            return 0
        if raw[i] is None or b.kind is BoundKind.CURRENT_ROW:
            return peers[i][0]
        c = coords[i - base]
        off = offset_units(b.offset, ctype)
        target = c - off if b.kind is BoundKind.PRECEDING else c + off
        return base + bisect_left(coords, target)

    def end_of(i: int, b: FrameBound) -> int:
        if b.kind is BoundKind.UNBOUNDED_FOLLOWING:
            return n
        if raw[i] is None or b.kind is BoundKind.CURRENT_ROW:
            return peers[i][1]
        c = coords[i - base]
        off = offset_units(b.offset, ctype)
        target = c - off if b.kind is BoundKind.PRECEDING else c + off
        return base + bisect_right(coords, target)

    return [(start_of(i, frame.start), end_of(i, frame.end)) for i in range(n)]


def frame_bounds(view: _PartitionView, frame: FrameSpec) -> list[tuple[int, int]]:
    """Half-open [lo, hi) frame of every position in an arranged partition."""
    if frame.unit is FrameUnit.ROWS:
        return _rows_bounds(len(view), frame)
    return _range_bounds(view, frame)


# ============================================================================
# Per-kind evaluators (dispatch table)
# ============================================================================

_Evaluator = Callable[[_PartitionView, FrameSpec | None], list[Any]]


def _row_number(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    return list(range(1, len(view) + 1))


def _rank(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    return [lo + 1 for lo, _ in view.peers]


def _dense_rank(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    out: list[Any] = []
    rank = 0
    prev_start = -1
    for lo, _ in view.peers:
        if lo != prev_start:
            rank += 1
            prev_start = lo
        out.append(rank)
    return out


def _ntile(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    n = len(view)
    buckets = view.spec.function.buckets  # type: ignore[union-attr]
    size, extra = divmod(n, buckets)
    out: list[Any] = []
    bucket = 1
    remaining = size + (1 if extra else 0)
    for _ in range(n):
        while remaining == 0:
            bucket += 1
            remaining = size + (1 if bucket <= extra else 0)
        out.append(bucket)
        remaining -= 1
    return out


def _shift(view: _PartitionView, step: int) -> list[Any]:
    fn = view.spec.function
    values = view.column(fn.column)  # type: ignore[union-attr]
    n = len(values)
    out: list[Any] = []
    for i in range(n):
        j = i + step
        out.append(values[j] if 0 <= j < n else fn.default)  # type: ignore[union-attr]
    return out


def _lag(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    return _shift(view, -view.spec.function.offset)  # type: ignore[union-attr]


def _lead(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    return _shift(view, view.spec.function.offset)  # type: ignore[union-attr]


def _first_value(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    values = view.column(view.spec.function.column)  # type: ignore[union-attr]
    return [values[lo] if hi > lo else None for lo, hi in frame_bounds(view, frame)]  # type: ignore[arg-type]


def _last_value(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    values = view.column(view.spec.function.column)  # type: ignore[union-attr]
    return [values[hi - 1] if hi > lo else None for lo, hi in frame_bounds(view, frame)]  # type: ignore[arg-type]


def _aggregate(view: _PartitionView, frame: FrameSpec | None) -> list[Any]:
    column = view.spec.function.column  # type: ignore[union-attr]
    values: list[Scalar] = [True] * len(view) if column is None else view.column(column)
    return aggregate_frames(view.spec.kind, values, frame_bounds(view, frame))  # type: ignore[arg-type]


_EVALUATORS: dict[WindowFunctionKind, _Evaluator] = {
    WindowFunctionKind.ROW_NUMBER: _row_number,
    WindowFunctionKind.RANK: _rank,
    WindowFunctionKind.DENSE_RANK: _dense_rank,
    WindowFunctionKind.NTILE: _ntile,
    WindowFunctionKind.LAG: _lag,
    WindowFunctionKind.LEAD: _lead,
    WindowFunctionKind.FIRST_VALUE: _first_value,
    WindowFunctionKind.LAST_VALUE: _last_value,
    **{k: _aggregate for k in AGGREGATE_KINDS},
}


def _assert_dispatch_covers_kinds() -> None:
    missing = set(WindowFunctionKind) - set(_EVALUATORS)
    if missing:
        raise RuntimeError(
            f"window dispatch table is missing {sorted(k.value for k in missing)}"
        )


_assert_dispatch_covers_kinds()


# ============================================================================
# Entry point
# ============================================================================


def evaluate_window(
    relation: Relation,
    spec: WindowSpec,
    settings: QuerySettings | None = None,
) -> list[Any]:
    """
    Evaluate a window function over a relation.

    Args:
        relation (Relation): Input rows.
        spec (WindowSpec): Function, partitioning, ordering, and frame.
        settings (QuerySettings | None): Execution settings; ``max_workers > 1`` evaluates
            partitions concurrently. Defaults to QuerySettings().

    Returns:
        list[Any]: One value per input row, in input order.

    Raises:
        MissingOrderSpec, InvalidFrameSpec, PartitionKeyTypeMismatch, SchemaError: See
            validate_window.

    Examples:
        >>> from relq.core import Relation, Schema, WindowSpec
        >>> rel = Relation.from_rows(Schema.of(("g", "text"), ("t", "integer")),
        ...                          [("x", 1), ("x", 2), ("y", 3)])
        >>> evaluate_window(rel, WindowSpec(function={"kind": "row_number"},
        ...                                 partition_by=["g"], order_by=["t"]))
        [1, 2, 1]
    """
    settings = settings or QuerySettings()
    frame = validate_window(relation, spec)
    evaluator = _EVALUATORS[spec.kind]
    schema = relation.schema
    rows = relation.rows
    arranged = arrange_indices(relation, spec.partition_by, spec.order_by)

    def run(part: tuple[Any, list[int]]) -> tuple[list[int], list[Any]]:
        _, idx = part
        view = _PartitionView(schema, idx, [rows[i].as_tuple() for i in idx], spec)
        return idx, evaluator(view, frame)

    if settings.max_workers > 1 and len(arranged) > 1:
        workers = min(settings.max_workers, len(arranged))
        logger.debug("evaluating %d partitions on %d workers", len(arranged), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(run, arranged))
    else:
        results = [run(p) for p in arranged]

    out: list[Any] = [None] * len(relation)
    for idx, values in results:
        for i, v in zip(idx, values):
            out[i] = v
    logger.debug(
        "window %s over %d rows (%d partitions, frame=%s)",
        spec.kind.value,
        len(relation),
        len(arranged),
        None if frame is None else f"{frame.unit.value} {frame.start.kind.value}..{frame.end.kind.value}",
    )
    return out
