"""
Streak/Grouping helpers.

Derive group identifiers for contiguous or gap-tolerant runs of rows, built only from
window functions evaluated by relq.engine.window.

Recipes
- qualifying: ``ROW_NUMBER() OVER (p ORDER BY o) - ROW_NUMBER() OVER (p, q ORDER BY o)``
  is constant within a maximal run of rows satisfying the predicate. Rows that do not
  qualify get a null id.
- consecutive: ``value - ROW_NUMBER() * step`` is constant within a run of consecutive
  values (islands). Each change of that key starts a new group. The step is negated
  when the measured column is ordered descending.
- gap: a row starts a new group when it has no previous row or its gap to the previous
  row exceeds the tolerance (``>=`` when exclusive). Group ids are
  ``SUM(starts_new) OVER (p ORDER BY o ROWS UNBOUNDED PRECEDING)``.

consecutive and gap ids are 1, 2, ... per partition. Rows whose measured value is null
get a null id and do not break a run. Both recipes run over the remaining rows, so
"previous row" means the previous row with a measured value.

summarize_streaks() aggregates (length, first, last) per group with polars.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import Any

import polars as pl

from ..core.constants import STREAK_END_COLUMN, STREAK_LENGTH_COLUMN, STREAK_START_COLUMN
from ..core.errors import MissingOrderSpec, PartitionKeyTypeMismatch, SchemaError
from ..core.grammar import ColumnType, StreakMode
from ..core.relation import Relation, Schema
from ..core.spec import (
    Aggregate,
    ConsecutiveRun,
    FrameBound,
    FrameSpec,
    GapTolerance,
    Lag,
    OrderKey,
    QualifyingRun,
    RowNumber,
    StreakCriterion,
    WindowSpec,
)
from ..io.config import QuerySettings
from ..io.frames import relation_from_frame, relation_to_frame
from .window import evaluate_window, offset_units, order_coordinate

__all__ = [
    "streak_ids",
    "group_streaks",
    "summarize_streaks",
]

logger = logging.getLogger(__name__)

_MEASURABLE = (ColumnType.INTEGER, ColumnType.FLOAT, ColumnType.DATE, ColumnType.DATETIME)


def _scratch(schema: Schema, stem: str) -> str:
    name = f"__{stem}"
    n = 0
    while name in schema:
        n += 1
        name = f"__{stem}_{n}"
    return name


def _measured(relation: Relation, order_by: Sequence[OrderKey], column: str | None) -> tuple[str, ColumnType]:
    if column is None:
        if not order_by:
            raise MissingOrderSpec("streak grouping requires an ORDER BY")
        column = order_by[0].column
    if column not in relation.schema:
        raise PartitionKeyTypeMismatch(f"streak column {column!r} not in {list(relation.schema.names)!r}")
    ctype = relation.schema.type_of(column)
    if ctype not in _MEASURABLE:
        raise PartitionKeyTypeMismatch(
            f"streak column {column!r} must be numeric or temporal, got {ctype.value}"
        )
    return column, ctype


def _units(value: Any, ctype: ColumnType, what: str) -> int | float:
    if isinstance(value, timedelta) and ctype in (ColumnType.INTEGER, ColumnType.FLOAT):
        raise SchemaError(f"timedelta {what} {value!r} cannot apply to a {ctype.value} column")
    return offset_units(value, ctype)


def _measured_rows(relation: Relation, column: str) -> tuple[Relation, list[int]]:
    # Rows with a non-null measured value, and their positions in the input.
    values = relation.column(column)
    positions = [i for i, v in enumerate(values) if v is not None]
    if len(positions) == len(values):
        return relation, positions
    rows = relation.rows
    return Relation._trusted(relation.schema, (rows[i] for i in positions)), positions


def _scatter(size: int, positions: Sequence[int], ids: Sequence[int]) -> list[int | None]:
    out: list[int | None] = [None] * size
    for p, i in zip(positions, ids):
        out[p] = i
    return out


def _direction(order_by: Sequence[OrderKey], column: str) -> int:
    # -1 when the measured column is ordered descending, so runs step downwards.
    for key in order_by:
        if key.column == column:
            return -1 if key.descending else 1
    return 1


def _running_resets(
    relation: Relation,
    partition_by: tuple[str, ...],
    order_by: tuple[OrderKey, ...],
    starts: list[bool],
    settings: QuerySettings,
) -> list[int]:
    # Running SUM of reset flags.
    flag = _scratch(relation.schema, "starts_new")
    tmp = relation.with_column(flag, ColumnType.INTEGER, [int(s) for s in starts])
    spec = WindowSpec(
        function=Aggregate(kind="sum", column=flag),
        partition_by=partition_by,
        order_by=order_by,
        frame=FrameSpec.rows(FrameBound.unbounded_preceding(), FrameBound.current_row()),
    )
    return evaluate_window(tmp, spec, settings)


def _qualifying(
    relation: Relation,
    partition_by: tuple[str, ...],
    order_by: tuple[OrderKey, ...],
    criterion: QualifyingRun,
    settings: QuerySettings,
) -> list[int | None]:
    flags = [bool(criterion.predicate(row)) for row in relation.rows]
    flag = _scratch(relation.schema, "qualifies")
    tmp = relation.with_column(flag, ColumnType.BOOLEAN, flags)
    rn_all = evaluate_window(tmp, WindowSpec(function=RowNumber(), partition_by=partition_by, order_by=order_by), settings)
    rn_flag = evaluate_window(
        tmp,
        WindowSpec(function=RowNumber(), partition_by=partition_by + (flag,), order_by=order_by),
        settings,
    )
    return [a - b if q else None for q, a, b in zip(flags, rn_all, rn_flag)]


def _consecutive(
    relation: Relation,
    partition_by: tuple[str, ...],
    order_by: tuple[OrderKey, ...],
    criterion: ConsecutiveRun,
    settings: QuerySettings,
) -> list[int | None]:
    column, ctype = _measured(relation, order_by, criterion.column)
    step = _units(criterion.step if criterion.step is not None else 1, ctype, "step")
    step *= _direction(order_by, column)
    measured, positions = _measured_rows(relation, column)
    rn = evaluate_window(measured, WindowSpec(function=RowNumber(), partition_by=partition_by, order_by=order_by), settings)
    island = [order_coordinate(v, ctype) - r * step for v, r in zip(measured.column(column), rn)]
    key = _scratch(measured.schema, "island")
    key_type = ColumnType.INTEGER if all(isinstance(k, int) for k in island) else ColumnType.FLOAT
    tmp = measured.with_column(key, key_type, island)
    prev = evaluate_window(
        tmp,
        WindowSpec(function=Lag(column=key), partition_by=partition_by, order_by=order_by),
        settings,
    )
    starts = [p is None or k != p for k, p in zip(island, prev)]
    ids = _running_resets(measured, partition_by, order_by, starts, settings)
    return _scatter(len(relation), positions, ids)


def _gap(
    relation: Relation,
    partition_by: tuple[str, ...],
    order_by: tuple[OrderKey, ...],
    criterion: GapTolerance,
    settings: QuerySettings,
) -> list[int | None]:
    column, ctype = _measured(relation, order_by, criterion.column)
    tolerance = _units(criterion.tolerance, ctype, "tolerance")
    inclusive = settings.gap_inclusive if criterion.inclusive is None else criterion.inclusive
    measured, positions = _measured_rows(relation, column)
    prev = evaluate_window(
        measured,
        WindowSpec(function=Lag(column=column), partition_by=partition_by, order_by=order_by),
        settings,
    )
    starts: list[bool] = []
    for v, p in zip(measured.column(column), prev):
        if p is None:
            starts.append(True)
        else:
            gap = abs(order_coordinate(v, ctype) - order_coordinate(p, ctype))
            starts.append(gap > tolerance if inclusive else gap >= tolerance)
    ids = _running_resets(measured, partition_by, order_by, starts, settings)
    return _scatter(len(relation), positions, ids)


_RECIPES: dict[StreakMode, Callable[..., list[int | None]]] = {
    StreakMode.QUALIFYING: _qualifying,
    StreakMode.CONSECUTIVE: _consecutive,
    StreakMode.GAP: _gap,
}


def streak_ids(
    relation: Relation,
    partition_by: str | Sequence[str],
    order_by: str | OrderKey | Sequence[str | OrderKey],
    criterion: StreakCriterion,
    settings: QuerySettings | None = None,
) -> list[int | None]:
    """
    Compute one streak group id per row, in input order.

    Args:
        relation (Relation): Input rows.
        partition_by: Partition columns (empty for one global partition).
        order_by: ORDER BY keys (OrderKey, dict, or "col [asc|desc] [nulls first|last]").
        criterion (StreakCriterion): QualifyingRun, ConsecutiveRun, or GapTolerance.
        settings (QuerySettings | None): Supplies the default gap inclusivity.

    Raises:
        MissingOrderSpec: If order_by is empty.
        PartitionKeyTypeMismatch: If a partition/order/measured column is absent or the
            measured column is not numeric or temporal.
        SchemaError: If a timedelta step/tolerance is used with a numeric column.
    """
    settings = settings or QuerySettings()
    # WindowSpec normalizes column and key spellings.
    shape = WindowSpec(function=RowNumber(), partition_by=partition_by, order_by=order_by)
    if not shape.order_by:
        raise MissingOrderSpec("streak grouping requires an ORDER BY")
    ids = _RECIPES[StreakMode(criterion.mode)](relation, shape.partition_by, shape.order_by, criterion, settings)
    logger.debug(
        "streaks (%s) over %d rows: %d grouped",
        criterion.mode,
        len(relation),
        sum(i is not None for i in ids),
    )
    return ids


def group_streaks(
    relation: Relation,
    partition_by: str | Sequence[str],
    order_by: str | OrderKey | Sequence[str | OrderKey],
    criterion: StreakCriterion,
    settings: QuerySettings | None = None,
    output_column: str | None = None,
) -> Relation:
    """
    Append a streak group id column (``settings.group_id_column`` by default).

    Raises:
        SchemaError: If the output column already exists. See streak_ids for the rest.

    Examples:
        >>> import datetime as dt
        >>> from relq.core import ConsecutiveRun, Relation, Schema
        >>> days = [dt.date(2024, 1, d) for d in (1, 2, 3, 5, 6)]
        >>> rel = Relation.from_rows(Schema.of(("day", "date")), [(d,) for d in days])
        >>> group_streaks(rel, [], ["day"], ConsecutiveRun()).column("group_id")
        [1, 1, 1, 2, 2]
    """
    settings = settings or QuerySettings()
    name = output_column or settings.group_id_column
    if name in relation.schema:
        raise SchemaError(f"output column {name!r} already exists")
    ids = streak_ids(relation, partition_by, order_by, criterion, settings)
    return relation.with_column(name, ColumnType.INTEGER, ids)


def summarize_streaks(
    relation: Relation,
    partition_by: str | Sequence[str] = (),
    group_column: str | None = None,
    order_column: str | None = None,
    settings: QuerySettings | None = None,
) -> Relation:
    """
    Aggregate streak groups into one row per (partition, group id).

    Args:
        relation (Relation): Output of group_streaks.
        partition_by: Partition columns used when grouping.
        group_column (str | None): Group id column; defaults to settings.group_id_column.
        order_column (str | None): When set, adds streak_start/streak_end as its min/max.
        settings (QuerySettings | None): Defaults to QuerySettings().

    Returns:
        Relation: partition columns, group id, streak_length, and (with order_column)
        streak_start and streak_end, in order of first appearance. Rows with a null
        group id are left out.

    Raises:
        SchemaError: If a named column is absent.
    """
    settings = settings or QuerySettings()
    group_column = group_column or settings.group_id_column
    keys = [partition_by] if isinstance(partition_by, str) else list(partition_by)
    for col in (*keys, group_column, *([order_column] if order_column else [])):
        if col not in relation.schema:
            raise SchemaError(f"unknown column {col!r} (known: {list(relation.schema.names)!r})")

    aggs = [pl.len().cast(pl.Int64).alias(STREAK_LENGTH_COLUMN)]
    if order_column is not None:
        aggs.append(pl.col(order_column).min().alias(STREAK_START_COLUMN))
        aggs.append(pl.col(order_column).max().alias(STREAK_END_COLUMN))

    df = relation_to_frame(relation)
    out = (
        df.filter(pl.col(group_column).is_not_null())
        .group_by([*keys, group_column], maintain_order=True)
        .agg(aggs)
    )
    return relation_from_frame(out, strict=True)
