"""
Entry points of the query evaluation core.

Each function takes an in-memory Relation plus an already-parsed description and
returns a new Relation; inputs are never modified. Errors from relq.core.errors are
raised at whole-query granularity and no partial result is ever returned.

- resolve_recursive: fixed-point expansion (RecursiveSpec)
- arrange_and_evaluate_window: append one window function column (WindowSpec)
- group_streaks: append a streak group id column
- summarize_streaks: length/start/end per streak group
- evaluate_query: recursion first, then windows over the result
"""

from __future__ import annotations

import numbers
from collections.abc import Callable, Mapping, Sequence
from datetime import timedelta
from typing import Any

from pydantic import TypeAdapter

from .core.errors import SchemaError
from .core.relation import Relation, Row
from .core.spec import (
    ConsecutiveRun,
    GapTolerance,
    OrderKey,
    QualifyingRun,
    RecursiveSpec,
    StreakCriterion,
    WindowSpec,
)
from .engine import recursive as _recursive
from .engine import streaks as _streaks
from .engine.window import evaluate_window, output_type
from .io.config import QuerySettings

__all__ = [
    "resolve_recursive",
    "arrange_and_evaluate_window",
    "group_streaks",
    "summarize_streaks",
    "evaluate_query",
]

_CRITERION: TypeAdapter[Any] = TypeAdapter(StreakCriterion)

StreakRule = (
    QualifyingRun | ConsecutiveRun | GapTolerance | Callable[[Row], bool] | int | float | timedelta | Mapping[str, Any]
)


def resolve_recursive(
    relation: Relation,
    spec: RecursiveSpec,
    settings: QuerySettings | None = None,
) -> Relation:
    """
    Expand a hierarchy to its fixed point.

    Raises:
        RecursionLimitExceeded: Depth cap reached with a non-empty frontier.
        InvalidRecursiveSpec: Member output schema differs from the anchor's, or the
            cycle key columns are not in it.
    """
    return _recursive.resolve(relation, spec, settings)


def arrange_and_evaluate_window(
    relation: Relation,
    spec: WindowSpec,
    settings: QuerySettings | None = None,
) -> Relation:
    """
    Evaluate a window function and append it as a column named ``spec.column_name``.

    Raises:
        MissingOrderSpec: Ranking/offset function without ORDER BY.
        InvalidFrameSpec: Frame incompatible with the ORDER BY.
        PartitionKeyTypeMismatch: Partition/order column absent or of the wrong type.
        SchemaError: Output column already exists, or an argument column is unusable.

    Examples:
        >>> from relq.core import Relation, Schema, WindowSpec
        >>> rel = Relation.from_rows(Schema.of(("v", "integer")), [(10,), (10,), (5,)])
        >>> spec = WindowSpec(function={"kind": "dense_rank"}, order_by=["v desc"])
        >>> arrange_and_evaluate_window(rel, spec).column("dense_rank")
        [1, 1, 2]
    """
    name = spec.column_name
    if name in relation.schema:
        raise SchemaError(f"output column {name!r} already exists")
    values = evaluate_window(relation, spec, settings)
    return relation.with_column(name, output_type(relation.schema, spec), values)


def _criterion(rule: StreakRule) -> Any:
    if isinstance(rule, Mapping):
        return _CRITERION.validate_python(dict(rule))
    if isinstance(rule, (QualifyingRun, ConsecutiveRun, GapTolerance)):
        return rule
    if isinstance(rule, timedelta) or (isinstance(rule, numbers.Real) and not isinstance(rule, bool)):
        return GapTolerance(tolerance=rule)
    if callable(rule):
        return QualifyingRun(predicate=rule)
    raise TypeError(f"unsupported streak rule {rule!r}")


def group_streaks(
    relation: Relation,
    partition_by: str | Sequence[str],
    order_by: str | OrderKey | Sequence[str | OrderKey],
    rule: StreakRule,
    settings: QuerySettings | None = None,
    output_column: str | None = None,
) -> Relation:
    """
    Append a group id column for contiguous or gap-tolerant runs.

    Args:
        relation (Relation): Input rows.
        partition_by: Partition columns (empty for one partition).
        order_by: ORDER BY keys.
        rule: A streak criterion (QualifyingRun, ConsecutiveRun, GapTolerance or an
            equivalent dict), a row predicate (contiguous qualifying runs), or a
            tolerance (number or timedelta; gap-tolerant grouping over the first
            ORDER BY column).
        settings (QuerySettings | None): Group id column name and gap inclusivity.
        output_column (str | None): Overrides settings.group_id_column.

    Returns:
        Relation: Input columns plus the group id column.
    """
    criterion = _criterion(rule)
    return _streaks.group_streaks(relation, partition_by, order_by, criterion, settings, output_column)


def summarize_streaks(
    relation: Relation,
    partition_by: str | Sequence[str] = (),
    group_column: str | None = None,
    order_column: str | None = None,
    settings: QuerySettings | None = None,
) -> Relation:
    """Aggregate group_streaks output into streak_length/start/end per group."""
    return _streaks.summarize_streaks(relation, partition_by, group_column, order_column, settings)


def evaluate_query(
    relation: Relation,
    recursive: RecursiveSpec | None = None,
    windows: Sequence[WindowSpec] = (),
    settings: QuerySettings | None = None,
) -> Relation:
    """
    Resolve the hierarchy (when given), then append each window column in order.

    Later windows may partition or order by columns added by earlier ones (including
    the recursion's depth/path columns).
    """
    settings = settings or QuerySettings()
    out = relation
    if recursive is not None:
        out = resolve_recursive(out, recursive, settings)
    for spec in windows:
        out = arrange_and_evaluate_window(out, spec, settings)
    return out
