"""
Recursive Resolver.

Evaluates an anchor + recursive member to a fixed point ("recursive CTE" traversal of
parent/child relationships) as an explicit loop with a depth counter.

Algorithm
1. ``frontier := anchor(base)``; each frontier row's ancestor chain is its own
   identity key (under cycle_key_columns).
2. While the frontier is non-empty and (max_depth == 0 or depth < max_depth): call the
   member once per frontier row, in frontier order. A candidate whose identity key is
   already on its parent's chain is dropped; survivors inherit the chain plus their
   own key and form the next frontier. ``depth += 1``.
3. If the loop stops at ``depth == max_depth`` with a non-empty frontier, raise
   RecursionLimitExceeded. Nothing is returned in that case.

Ordering
- Result rows are grouped by level (anchor first). Within a level, rows follow
  frontier order, then the order the member produced them for that frontier row.

Concurrency
- Member calls for the rows of one level are independent and may run on a bounded
  thread pool (``QuerySettings.max_workers > 1``). Levels always run in sequence.

Notes
- ``max_depth`` is a cap on loop iterations, so a tree whose deepest level is d
  needs max_depth >= d + 1: the iteration that discovers the frontier is empty still
  counts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..core.constants import PATH_SEPARATOR
from ..core.errors import InvalidRecursiveSpec, RecursionLimitExceeded
from ..core.grammar import ColumnType
from ..core.relation import Relation, Row, Schema
from ..core.spec import RecursiveSpec
from ..core.typing import IdentityKey
from ..io.config import QuerySettings

__all__ = [
    "ResolveResult",
    "resolve",
    "resolve_with_stats",
    "join_member",
    "anchor_where",
]

logger = logging.getLogger(__name__)

# A frontier entry: the row and the identity keys of its ancestor chain (itself last).
_Entry = tuple[Row, tuple[IdentityKey, ...]]


@dataclass(frozen=True, slots=True)
class ResolveResult:
    """
    Outcome of a recursive resolution.

    Attributes:
        relation (Relation): Every row reached, level by level.
        level_sizes (tuple[int, ...]): Row count per non-empty level, anchor first.
    """

    relation: Relation
    level_sizes: tuple[int, ...]

    @property
    def iterations(self) -> int:
        """Number of member iterations that produced a non-empty frontier."""
        return max(len(self.level_sizes) - 1, 0)


def _check_anchor(seed: object, spec: RecursiveSpec) -> Schema:
    if not isinstance(seed, Relation):
        raise InvalidRecursiveSpec(f"anchor must return a Relation, got {type(seed).__name__}")
    schema = seed.schema
    missing = [c for c in spec.cycle_key_columns if c not in schema]
    if missing:
        raise InvalidRecursiveSpec(
            f"cycle key columns {missing!r} not in anchor schema {list(schema.names)!r}"
        )
    for extra in (spec.depth_column, spec.path_column):
        if extra is not None and extra in schema:
            raise InvalidRecursiveSpec(f"output column {extra!r} already exists in the anchor schema")
    return schema


def _key_of(row: Row, positions: Sequence[int]) -> IdentityKey:
    values = row.as_tuple()
    return tuple(values[p] for p in positions)


def _format_key(key: IdentityKey) -> str:
    return ",".join("" if v is None else str(v) for v in key)


def resolve_with_stats(
    base: Relation,
    spec: RecursiveSpec,
    settings: QuerySettings | None = None,
) -> ResolveResult:
    """
    Resolve a RecursiveSpec against a base relation and report per-level sizes.

    Args:
        base (Relation): Relation the anchor and member read from.
        spec (RecursiveSpec): Anchor, member, identity columns, depth cap.
        settings (QuerySettings | None): ``max_depth`` applies when spec.max_depth is 0;
            ``max_workers`` bounds member calls per level. Defaults to QuerySettings().

    Returns:
        ResolveResult: The accumulated relation (plus optional depth/path columns) and
        the size of each non-empty level.

    Raises:
        InvalidRecursiveSpec: Anchor/member output is not a Relation, member output
            schema differs from the anchor's, or a cycle key column is missing.
        RecursionLimitExceeded: The depth cap was reached with a non-empty frontier.
    """
    settings = settings or QuerySettings()
    max_depth = spec.max_depth or settings.max_depth

    seed = spec.anchor(base)
    schema = _check_anchor(seed, spec)
    positions = [schema.index_of(c) for c in spec.cycle_key_columns]

    frontier: list[_Entry] = [(row, (_key_of(row, positions),)) for row in seed.rows]
    levels: list[list[_Entry]] = [frontier] if frontier else []
    depth = 0

    def expand(entry: _Entry) -> tuple[list[_Entry], int]:
        row, chain = entry
        out = spec.member(Relation._trusted(schema, (row,)), base)
        if not isinstance(out, Relation):
            raise InvalidRecursiveSpec(
                f"recursive member must return a Relation, got {type(out).__name__}"
            )
        if out.schema != schema:
            raise InvalidRecursiveSpec(
                f"recursive member schema {list(out.schema.names)!r} "
                f"does not match anchor schema {list(schema.names)!r}"
            )
        kept: list[_Entry] = []
        dropped = 0
        for child in out.rows:
            key = _key_of(child, positions)
            if key in chain:
                dropped += 1
                continue
            kept.append((child, chain + (key,)))
        return kept, dropped

    pool = ThreadPoolExecutor(max_workers=settings.max_workers) if settings.max_workers > 1 else None
    try:
        while frontier and (max_depth == 0 or depth < max_depth):
            if pool is not None and len(frontier) > 1:
                expanded = list(pool.map(expand, frontier))
            else:
                expanded = [expand(e) for e in frontier]
            frontier = [e for kept, _ in expanded for e in kept]
            depth += 1
            logger.debug(
                "recursion level %d: %d row(s), %d cycle candidate(s) dropped",
                depth,
                len(frontier),
                sum(d for _, d in expanded),
            )
            if frontier:
                levels.append(frontier)
    finally:
        if pool is not None:
            pool.shutdown(wait=True)

    if frontier:
        raise RecursionLimitExceeded(max_depth, len(frontier))

    rows = [row for level in levels for row, _ in level]
    result = Relation._trusted(schema, rows)
    if spec.depth_column is not None:
        depths = [d for d, level in enumerate(levels) for _ in level]
        result = result.with_column(spec.depth_column, ColumnType.INTEGER, depths)
    if spec.path_column is not None:
        paths = [
            PATH_SEPARATOR.join(_format_key(k) for k in chain)
            for level in levels
            for _, chain in level
        ]
        result = result.with_column(spec.path_column, ColumnType.TEXT, paths)

    logger.debug(
        "resolved %d row(s) over %d level(s) (max_depth=%d)", len(result), len(levels), max_depth
    )
    return ResolveResult(relation=result, level_sizes=tuple(len(level) for level in levels))


def resolve(
    base: Relation,
    spec: RecursiveSpec,
    settings: QuerySettings | None = None,
) -> Relation:
    """Resolve a RecursiveSpec; see resolve_with_stats."""
    return resolve_with_stats(base, spec, settings).relation


# ============================================================================
# Builders
# ============================================================================


def _as_columns(value: str | Sequence[str]) -> tuple[str, ...]:
    return (value,) if isinstance(value, str) else tuple(value)


def join_member(
    parent_columns: str | Sequence[str],
    child_columns: str | Sequence[str],
) -> Callable[[Relation, Relation], Relation]:
    """
    Build a member that joins frontier rows to their children in the base relation.

    A base row is a child of a frontier row when its ``child_columns`` equal the
    frontier row's ``parent_columns``. Null keys never match.

    Args:
        parent_columns: Frontier columns holding the join key (e.g. "id").
        child_columns: Base columns referencing the parent (e.g. "manager_id").

    Returns:
        Callable[[Relation, Relation], Relation]: A member for RecursiveSpec.

    Raises:
        InvalidRecursiveSpec: If the two column lists differ in length.

    Examples:
        >>> from relq.core import Relation, RecursiveSpec, Schema
        >>> emp = Relation.from_rows(Schema.of(("id", "integer"), ("boss", "integer")),
        ...                          [(1, None), (2, 1), (3, 1)])
        >>> spec = RecursiveSpec(anchor=anchor_where(lambda r: r["boss"] is None),
        ...                      member=join_member("id", "boss"), cycle_key_columns="id")
        >>> resolve(emp, spec).column("id")
        [1, 2, 3]
    """
    parents = _as_columns(parent_columns)
    children = _as_columns(child_columns)
    if len(parents) != len(children) or not parents:
        raise InvalidRecursiveSpec(
            f"join_member needs matching non-empty column lists, got {parents!r} and {children!r}"
        )

    def member(frontier: Relation, base: Relation) -> Relation:
        matched: list[Row] = []
        for row in frontier.rows:
            key = tuple(row[c] for c in parents)
            if any(v is None for v in key):
                continue
            matched.extend(r for r in base.rows if tuple(r[c] for c in children) == key)
        return Relation._trusted(base.schema, matched)

    return member


def anchor_where(predicate: Callable[[Row], bool]) -> Callable[[Relation], Relation]:
    """Build an anchor selecting the base rows that satisfy predicate."""

    def anchor(base: Relation) -> Relation:
        return base.filter(predicate)

    return anchor
