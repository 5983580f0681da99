"""
Partition & Sort Engine.

Splits a relation into partitions by PartitionKey and stable-sorts each partition by
its OrderSpec.

Guarantees
- Pure reordering: every input row index appears in exactly one partition, once.
- Partitions are listed in order of first appearance of their key in arrival order.
- Stability: rows comparing equal under the OrderSpec keep their arrival order, so
  ROW_NUMBER, LAG/LEAD, and ROWS frame boundaries resolve ties identically on every
  call.
- Null placement is taken from each OrderKey (never implementation-defined).

Implementation
- One stable ``list.sort`` pass per order key, last key first. ``reverse=True`` keeps
  equal elements in their original order, so descending keys need no value negation
  and text/date columns sort the same way as numbers.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..core.errors import PartitionKeyTypeMismatch
from ..core.relation import Relation
from ..core.spec import OrderKey
from ..core.typing import PartitionKeyValue, Scalar

__all__ = [
    "Partition",
    "check_columns",
    "arrange",
    "arrange_indices",
    "peer_bounds",
    "sort_value",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Partition:
    """
    One arranged partition.

    Attributes:
        key (PartitionKeyValue): Partition-column values shared by every row.
        indices (tuple[int, ...]): Input row positions in arrangement order.
        relation (Relation): The ordered slice of rows (same schema as the input).
    """

    key: PartitionKeyValue
    indices: tuple[int, ...]
    relation: Relation

    def __len__(self) -> int:
        return len(self.indices)


def check_columns(
    relation: Relation, partition_by: Sequence[str], order_by: Sequence[OrderKey]
) -> None:
    """
    Ensure every partition/order column exists.

    Raises:
        PartitionKeyTypeMismatch: If a column is absent from the relation's schema.
    """
    names = relation.schema.names
    for col in partition_by:
        if col not in names:
            raise PartitionKeyTypeMismatch(f"partition column {col!r} not in {list(names)!r}")
    for key in order_by:
        if key.column not in names:
            raise PartitionKeyTypeMismatch(f"order column {key.column!r} not in {list(names)!r}")


def sort_value(value: Scalar) -> Scalar:
    """
    Comparable form of a value: tz-aware datetimes become naive UTC.

    A DATETIME column may hold naive and aware values side by side; naive values are
    read as UTC, matching the RANGE frame coordinates.
    """
    if isinstance(value, dt.datetime) and value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def _sort_pass(values: list[Scalar], idx: list[int], key: OrderKey) -> None:
    reverse = key.descending
    null_flag = int(key.nulls_first == reverse)
    value_flag = 1 - null_flag

    def sort_key(i: int) -> tuple:
        v = values[i]
        if v is None:
            return (null_flag,)
        return (value_flag, sort_value(v))

    idx.sort(key=sort_key, reverse=reverse)


def arrange_indices(
    relation: Relation, partition_by: Sequence[str], order_by: Sequence[OrderKey]
) -> list[tuple[PartitionKeyValue, list[int]]]:
    """
    Partition and sort row positions without materializing slices.

    Returns:
        list[tuple[PartitionKeyValue, list[int]]]: (key, ordered positions) per partition.

    Raises:
        PartitionKeyTypeMismatch: If a partition/order column is absent.
    """
    check_columns(relation, partition_by, order_by)
    schema = relation.schema
    part_pos = [schema.index_of(c) for c in partition_by]

    groups: dict[PartitionKeyValue, list[int]] = {}
    for i, row in enumerate(relation.rows):
        values = row.as_tuple()
        groups.setdefault(tuple(values[p] for p in part_pos), []).append(i)

    columns = {k.column: relation.column(k.column) for k in order_by}
    for idx in groups.values():
        for key in reversed(order_by):
            _sort_pass(columns[key.column], idx, key)

    logger.debug(
        "arranged %d rows into %d partition(s) by %s, order %s",
        len(relation),
        len(groups),
        list(partition_by),
        [f"{k.column} {k.direction.value} nulls {k.nulls.value}" for k in order_by],
    )
    return list(groups.items())


def arrange(
    relation: Relation, partition_by: Sequence[str], order_by: Sequence[OrderKey]
) -> list[Partition]:
    """
    Partition a relation and stable-sort each partition.

    Args:
        relation (Relation): Input rows.
        partition_by (Sequence[str]): Partition columns; empty means one global partition.
        order_by (Sequence[OrderKey]): Intra-partition ordering; empty keeps arrival order.

    Returns:
        list[Partition]: Partitions in order of first appearance.

    Raises:
        PartitionKeyTypeMismatch: If a partition/order column is absent.

    Examples:
        >>> from relq.core import Relation, Schema
        >>> rel = Relation.from_rows(Schema.of(("g", "text")), [("x",), ("y",), ("x",)])
        >>> [(p.key, p.indices) for p in arrange(rel, ["g"], [])]
        [(('x',), (0, 2)), (('y',), (1,))]
    """
    out: list[Partition] = []
    rows = relation.rows
    for key, idx in arrange_indices(relation, partition_by, order_by):
        out.append(
            Partition(
                key=key,
                indices=tuple(idx),
                relation=Relation._trusted(relation.schema, (rows[i] for i in idx)),
            )
        )
    return out


def peer_bounds(order_values: Sequence[tuple[Scalar, ...]]) -> list[tuple[int, int]]:
    """
    Peer group of every position in an arranged partition.

    Args:
        order_values (Sequence[tuple]): ORDER BY values per position, in arrangement order.

    Returns:
        list[tuple[int, int]]: Half-open [first, end) span of rows sharing the position's
        ORDER BY values. Nulls are peers of each other.
    """
    keys = [tuple(sort_value(v) for v in values) for values in order_values]
    n = len(keys)
    out: list[tuple[int, int]] = [(0, 0)] * n
    start = 0
    for i in range(1, n + 1):
        if i == n or keys[i] != keys[start]:
            for j in range(start, i):
                out[j] = (start, i)
            start = i
    return out
