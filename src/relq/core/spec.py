"""
Pydantic v2 models describing already-parsed queries: ordering, frames, window
functions, recursive resolution, and streak criteria.

Responsibilities
- Define the canonical query description models consumed by relq.engine.
- Normalize SQL-style enum spellings via grammar helpers ("DESC", "NULLS FIRST").
- Enforce structural invariants at construction (frame bounds, offsets, argument
  payloads per function kind).

Style
- Zero-IO (stdlib + pydantic only).
- Window functions and streak criteria are tagged variants (discriminated unions on
  ``kind`` / ``mode``), each carrying only its own argument payload.
- Checks that need a relation's schema (column existence, column types, presence of
  an ORDER BY for order-dependent functions) belong to the engine, not these models.

Errors
- InvalidFrameSpec is raised directly from FrameBound/FrameSpec validators. It is not
  a ValueError, so pydantic propagates it unwrapped.
- Wrong field shapes/types raise pydantic.ValidationError.

References
- grammar: src/relq/core/grammar.py (enums and normalization helpers)
- errors: src/relq/core/errors.py
- tests: tests/core/test_spec_*.py
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Callable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import InvalidFrameSpec
from .grammar import (
    BoundKind,
    FrameUnit,
    NullOrdering,
    SortDirection,
    WindowFunctionKind,
    bound_kind_from_value,
    direction_from_value,
    frame_unit_from_value,
    nulls_from_value,
)
from .relation import Relation, Row

__all__ = [
    # Ordering / frames
    "OrderKey",
    "FrameBound",
    "FrameSpec",
    # Window functions
    "RowNumber",
    "Rank",
    "DenseRank",
    "Ntile",
    "Lag",
    "Lead",
    "FirstValue",
    "LastValue",
    "Aggregate",
    "WindowFunction",
    "WindowSpec",
    # Recursion
    "RecursiveSpec",
    # Streaks
    "QualifyingRun",
    "ConsecutiveRun",
    "GapTolerance",
    "StreakCriterion",
]

Offset = int | float | dt.timedelta

# "col", "col desc", "col DESC NULLS FIRST"
_ORDER_TEXT_RE = re.compile(
    r"^\s*(?P<col>\S+)(?:\s+(?P<dir>asc|desc|ascending|descending))?"
    r"(?:\s+nulls\s+(?P<nulls>first|last))?\s*$",
    re.IGNORECASE,
)


# ============================================================================
# Ordering
# ============================================================================


class OrderKey(BaseModel):
    """
    One ORDER BY entry.

    Attributes:
        column (str): Ordering column.
        direction (SortDirection): asc or desc.
        nulls (NullOrdering): first or last. When omitted it resolves explicitly to
            last for ascending keys and first for descending keys, so a built model
            never leaves null placement implementation-defined.

    Examples:
        >>> from relq.core.spec import OrderKey
        >>> OrderKey(column="score", direction="DESC").nulls.value
        'first'
        >>> OrderKey.parse("day asc nulls first").nulls.value
        'first'
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    column: str
    direction: SortDirection = SortDirection.ASC
    nulls: NullOrdering

    @model_validator(mode="before")
    @classmethod
    def _resolve_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = dict(data)
        direction = direction_from_value(out.get("direction") or SortDirection.ASC)
        out["direction"] = direction
        if out.get("nulls") is None:
            out["nulls"] = (
                NullOrdering.LAST if direction is SortDirection.ASC else NullOrdering.FIRST
            )
        else:
            out["nulls"] = nulls_from_value(out["nulls"])
        return out

    @classmethod
    def parse(cls, text: str) -> OrderKey:
        """Parse "column [asc|desc] [nulls first|last]"."""
        m = _ORDER_TEXT_RE.match(text or "")
        if m is None:
            raise ValueError(f"cannot parse order key {text!r}")
        return cls(column=m.group("col"), direction=m.group("dir"), nulls=m.group("nulls"))

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    @property
    def nulls_first(self) -> bool:
        return self.nulls is NullOrdering.FIRST


# ============================================================================
# Frames
# ============================================================================

_BOUND_RANK: dict[BoundKind, int] = {
    BoundKind.UNBOUNDED_PRECEDING: 0,
    BoundKind.PRECEDING: 1,
    BoundKind.CURRENT_ROW: 1,
    BoundKind.FOLLOWING: 1,
    BoundKind.UNBOUNDED_FOLLOWING: 2,
}


def _offset_magnitude(offset: Offset) -> float:
    # Timedeltas compare in days so "1 PRECEDING" and "timedelta(days=1) PRECEDING" agree.
    if isinstance(offset, dt.timedelta):
        return offset.total_seconds() / 86400.0
    return float(offset)


class FrameBound(BaseModel):
    """
    One end of a window frame.

    Attributes:
        kind (BoundKind): Bound kind.
        offset (int | float | timedelta | None): Required for preceding/following,
            forbidden otherwise. ROWS frames need a non-negative int; RANGE frames
            accept numbers or timedeltas (numbers are days for date columns).

    Raises:
        InvalidFrameSpec: If the offset is missing, forbidden, negative, or not an
            int for a ROWS frame (the unit check happens in FrameSpec).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: BoundKind
    offset: Offset | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> BoundKind:
        return bound_kind_from_value(v)

    @model_validator(mode="after")
    def _check_offset(self) -> FrameBound:
        needs_offset = self.kind in (BoundKind.PRECEDING, BoundKind.FOLLOWING)
        if needs_offset and self.offset is None:
            raise InvalidFrameSpec(f"{self.kind.value} bound requires an offset")
        if not needs_offset and self.offset is not None:
            raise InvalidFrameSpec(f"{self.kind.value} bound takes no offset")
        if needs_offset and _offset_magnitude(self.offset) < 0:  # type: ignore[arg-type]
            raise InvalidFrameSpec(f"frame offset must be non-negative, got {self.offset!r}")
        return self

    @classmethod
    def unbounded_preceding(cls) -> FrameBound:
        return cls(kind=BoundKind.UNBOUNDED_PRECEDING)

    @classmethod
    def preceding(cls, offset: Offset) -> FrameBound:
        return cls(kind=BoundKind.PRECEDING, offset=offset)

    @classmethod
    def current_row(cls) -> FrameBound:
        return cls(kind=BoundKind.CURRENT_ROW)

    @classmethod
    def following(cls, offset: Offset) -> FrameBound:
        return cls(kind=BoundKind.FOLLOWING, offset=offset)

    @classmethod
    def unbounded_following(cls) -> FrameBound:
        return cls(kind=BoundKind.UNBOUNDED_FOLLOWING)

    def position(self) -> tuple[int, float]:
        """Sort key on the frame-offset axis (preceding negative, following positive)."""
        if self.kind is BoundKind.PRECEDING:
            return (1, -_offset_magnitude(self.offset))  # type: ignore[arg-type]
        if self.kind is BoundKind.FOLLOWING:
            return (1, _offset_magnitude(self.offset))  # type: ignore[arg-type]
        return (_BOUND_RANK[self.kind], 0.0)


class FrameSpec(BaseModel):
    """
    Window frame: unit plus start and end bounds.

    Attributes:
        unit (FrameUnit): rows or range.
        start (FrameBound): Frame start.
        end (FrameBound): Frame end.

    Raises:
        InvalidFrameSpec: If start is unbounded following, end is unbounded preceding,
            start lies after end in frame-offset terms, or a ROWS offset is not an int.

    Examples:
        >>> from relq.core.spec import FrameSpec, FrameBound
        >>> FrameSpec.rows(FrameBound.preceding(2), FrameBound.current_row()).unit.value
        'rows'
        >>> FrameSpec.running().start.kind.value
        'unbounded_preceding'
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    unit: FrameUnit = FrameUnit.ROWS
    start: FrameBound
    end: FrameBound = Field(default_factory=FrameBound.current_row)

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, v: Any) -> FrameUnit:
        return frame_unit_from_value(v)

    @model_validator(mode="after")
    def _check_bounds(self) -> FrameSpec:
        if self.start.kind is BoundKind.UNBOUNDED_FOLLOWING:
            raise InvalidFrameSpec("frame start cannot be UNBOUNDED FOLLOWING")
        if self.end.kind is BoundKind.UNBOUNDED_PRECEDING:
            raise InvalidFrameSpec("frame end cannot be UNBOUNDED PRECEDING")
        if self.start.position() > self.end.position():
            raise InvalidFrameSpec(
                f"frame start ({self.start.kind.value}, offset={self.start.offset!r}) "
                f"lies after frame end ({self.end.kind.value}, offset={self.end.offset!r})"
            )
        if self.unit is FrameUnit.ROWS:
            for b in (self.start, self.end):
                if b.offset is not None and (
                    not isinstance(b.offset, int) or isinstance(b.offset, bool)
                ):
                    raise InvalidFrameSpec(
                        f"ROWS frame offsets must be integers, got {b.offset!r}"
                    )
        return self

    @classmethod
    def rows(cls, start: FrameBound, end: FrameBound | None = None) -> FrameSpec:
        return cls(unit=FrameUnit.ROWS, start=start, end=end or FrameBound.current_row())

    @classmethod
    def range(cls, start: FrameBound, end: FrameBound | None = None) -> FrameSpec:
        return cls(unit=FrameUnit.RANGE, start=start, end=end or FrameBound.current_row())

    @classmethod
    def running(cls) -> FrameSpec:
        """ROWS BETWEEN UNBOUNDED PRECEDING AND CURRENT ROW."""
        return cls.rows(FrameBound.unbounded_preceding(), FrameBound.current_row())

    @property
    def has_offsets(self) -> bool:
        return self.start.offset is not None or self.end.offset is not None


# ============================================================================
# Window functions (tagged variants)
# ============================================================================


class _Function(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: str

    @property
    def function_kind(self) -> WindowFunctionKind:
        return WindowFunctionKind(self.kind)


class RowNumber(_Function):
    """ROW_NUMBER(): 1..n in arrangement order; never repeats within a partition."""

    kind: Literal["row_number"] = "row_number"


class Rank(_Function):
    """RANK(): peers share a rank; the next rank skips by the number of peers."""

    kind: Literal["rank"] = "rank"


class DenseRank(_Function):
    """DENSE_RANK(): peers share a rank; ranks have no gaps."""

    kind: Literal["dense_rank"] = "dense_rank"


class Ntile(_Function):
    """NTILE(buckets): distribute rows into buckets as evenly as possible, larger first."""

    kind: Literal["ntile"] = "ntile"
    buckets: int = Field(..., ge=1)


class Lag(_Function):
    """
    LAG(column, offset, default).

    Attributes:
        column (str): Source column.
        offset (int): Rows back within the partition (0 is the current row).
        default (Any): Returned when the offset falls outside the partition.
    """

    kind: Literal["lag"] = "lag"
    column: str
    offset: int = Field(1, ge=0)
    default: Any = None


class Lead(_Function):
    """LEAD(column, offset, default): like Lag, looking forward."""

    kind: Literal["lead"] = "lead"
    column: str
    offset: int = Field(1, ge=0)
    default: Any = None


class FirstValue(_Function):
    """FIRST_VALUE(column) over the frame; null for an empty frame."""

    kind: Literal["first_value"] = "first_value"
    column: str


class LastValue(_Function):
    """LAST_VALUE(column) over the frame; null for an empty frame."""

    kind: Literal["last_value"] = "last_value"
    column: str


class Aggregate(_Function):
    """
    SUM/COUNT/AVG/MIN/MAX over the frame.

    Attributes:
        kind (str): One of sum, count, avg, min, max.
        column (str | None): Source column; None only for COUNT(*).

    Raises:
        pydantic.ValidationError: If column is omitted for anything but count.
    """

    kind: Literal["sum", "count", "avg", "min", "max"]
    column: str | None = None

    @model_validator(mode="after")
    def _check_column(self) -> Aggregate:
        if self.column is None and self.kind != "count":
            raise ValueError(f"{self.kind} requires a column (only count may omit it)")
        return self


WindowFunction = Annotated[
    RowNumber | Rank | DenseRank | Ntile | Lag | Lead | FirstValue | LastValue | Aggregate,
    Field(discriminator="kind"),
]


class WindowSpec(BaseModel):
    """
    One window function application.

    Attributes:
        function (WindowFunction): Tagged variant with its argument payload.
        partition_by (tuple[str, ...]): Partition columns; empty means one partition.
        order_by (tuple[OrderKey, ...]): Intra-partition ordering. Plain strings such as
            "day desc nulls last" are parsed into OrderKey.
        frame (FrameSpec | None): Frame for aggregates and first/last value. None
            selects the SQL default (see relq.engine.window).
        output_column (str | None): Name of the computed column; defaults to the
            function kind value (e.g. "row_number").

    Examples:
        >>> from relq.core.spec import WindowSpec
        >>> spec = WindowSpec(function={"kind": "rank"}, order_by=["score desc"])
        >>> spec.column_name, spec.order_by[0].direction.value
        ('rank', 'desc')
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    function: WindowFunction
    partition_by: tuple[str, ...] = ()
    order_by: tuple[OrderKey, ...] = ()
    frame: FrameSpec | None = None
    output_column: str | None = None

    @field_validator("partition_by", mode="before")
    @classmethod
    def _coerce_partition(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("order_by", mode="before")
    @classmethod
    def _coerce_order(cls, v: Any) -> Any:
        if isinstance(v, (str, OrderKey, dict)):
            v = [v]
        return tuple(OrderKey.parse(k) if isinstance(k, str) else k for k in v)

    @property
    def kind(self) -> WindowFunctionKind:
        return self.function.function_kind

    @property
    def column_name(self) -> str:
        return self.output_column or self.function.kind


# ============================================================================
# Recursive resolution
# ============================================================================


class RecursiveSpec(BaseModel):
    """
    Anchor + recursive member describing a fixed-point expansion.

    Attributes:
        anchor (Callable[[Relation], Relation]): Produces the seed rows from the base
            relation.
        member (Callable[[Relation, Relation], Relation]): Called once per frontier row
            with (single-row frontier, base relation); returns that row's children.
            Output schema must equal the anchor's schema exactly.
        cycle_key_columns (tuple[str, ...]): Identity columns; a candidate whose key is
            already on its own ancestor chain is dropped.
        max_depth (int): Iteration cap; 0 means unlimited.
        depth_column (str | None): When set, append an integer depth column (anchor = 0).
        path_column (str | None): When set, append a text column holding the ancestor
            chain's identity keys joined by "/".

    Notes:
        relq.engine.recursive provides join_member() and anchor_where() builders for
        the common parent/child join.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    anchor: Callable[[Relation], Relation]
    member: Callable[[Relation, Relation], Relation]
    cycle_key_columns: tuple[str, ...] = Field(..., min_length=1)
    max_depth: int = Field(0, ge=0)
    depth_column: str | None = None
    path_column: str | None = None

    @field_validator("cycle_key_columns", mode="before")
    @classmethod
    def _coerce_keys(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @model_validator(mode="after")
    def _check_output_columns(self) -> RecursiveSpec:
        if self.depth_column is not None and self.depth_column == self.path_column:
            raise ValueError("depth_column and path_column must differ")
        return self


# ============================================================================
# Streak criteria (tagged variants)
# ============================================================================


class QualifyingRun(BaseModel):
    """
    Contiguous runs of rows satisfying a predicate.

    group_id = ROW_NUMBER(partition) - ROW_NUMBER(partition + qualifies); rows that do
    not qualify get a null group id.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["qualifying"] = "qualifying"
    predicate: Callable[[Row], bool]


class ConsecutiveRun(BaseModel):
    """
    Runs of consecutive values (islands): value - ROW_NUMBER * step is constant within
    a run. Under a descending ORDER BY on the measured column the run steps downwards.
    Rows with a null measured value are skipped and get a null group id.

    Attributes:
        column (str | None): Measured column; defaults to the first ORDER BY column.
        step (int | float | timedelta | None): Expected increment; defaults to 1 for
            numbers and one day for dates/datetimes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["consecutive"] = "consecutive"
    column: str | None = None
    step: Offset | None = None


class GapTolerance(BaseModel):
    """
    Gap-tolerant groups: a new group starts when the gap to the previous row exceeds
    the tolerance (or there is no previous row). Rows with a null measured value are
    skipped, so the gap is measured to the last row that has a value.

    Attributes:
        column (str | None): Measured column; defaults to the first ORDER BY column.
        tolerance (int | float | timedelta): Largest gap that keeps a row in its group.
            Numbers are days for date/datetime columns.
        inclusive (bool | None): True keeps a gap equal to the tolerance in the group;
            False starts a new group at equality. None uses QuerySettings.gap_inclusive.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["gap"] = "gap"
    column: str | None = None
    tolerance: Offset
    inclusive: bool | None = None

    @field_validator("tolerance")
    @classmethod
    def _non_negative(cls, v: Offset) -> Offset:
        if _offset_magnitude(v) < 0:
            raise ValueError(f"tolerance must be non-negative, got {v!r}")
        return v


StreakCriterion = Annotated[
    QualifyingRun | ConsecutiveRun | GapTolerance,
    Field(discriminator="mode"),
]
