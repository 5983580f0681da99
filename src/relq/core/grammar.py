"""
Canonical relq grammar and helpers.

Defines column types, sort directions, null orderings, frame units and bound kinds,
window function kinds, and streak criteria. Includes zero-IO validators and
normalizers used by the query description models in relq.core.spec.

Responsibilities
- Define enums whose serialized values are lower_snake.
- Provide normalization helpers that accept SQL-style spellings ("DESC", "ROW_NUMBER",
  "NULLS FIRST") and return the canonical enum.
- Group function kinds by the capabilities the evaluator needs (ordering required,
  frame honoured, offset access).

Design principles
-----------------
1) One naming standard:
   - Enum classes: PascalCase
   - Enum member names: UPPER_SNAKE (Python constants)
   - Enum serialized values: lower_snake
   - Column names elsewhere are free-form; only enum values are normalized.

2) Closed sets:
   - WindowFunctionKind is the exhaustive list of supported window functions; the
     evaluator dispatch table in relq.engine.window is checked against it at import.

SQL-to-Code mapping
-------------------
| SQL                                   | Code enum/value
|---------------------------------------|-----------------------------------------
| ROWS / RANGE                          | FrameUnit.ROWS / FrameUnit.RANGE
| UNBOUNDED PRECEDING                   | BoundKind.UNBOUNDED_PRECEDING
| n PRECEDING                           | BoundKind.PRECEDING (offset=n)
| CURRENT ROW                           | BoundKind.CURRENT_ROW
| n FOLLOWING                           | BoundKind.FOLLOWING (offset=n)
| UNBOUNDED FOLLOWING                   | BoundKind.UNBOUNDED_FOLLOWING
| ASC / DESC                            | SortDirection.ASC / SortDirection.DESC
| NULLS FIRST / NULLS LAST              | NullOrdering.FIRST / NullOrdering.LAST

Examples
--------
>>> from relq.core.grammar import function_kind_from_value, direction_from_value
>>> function_kind_from_value("ROW_NUMBER")
<WindowFunctionKind.ROW_NUMBER: 'row_number'>
>>> direction_from_value("desc").value
'desc'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from typing import Final

__all__ = [
    "ColumnType",
    "SortDirection",
    "NullOrdering",
    "FrameUnit",
    "BoundKind",
    "WindowFunctionKind",
    "StreakMode",
    "RANKING_KINDS",
    "OFFSET_KINDS",
    "VALUE_KINDS",
    "AGGREGATE_KINDS",
    "ORDER_REQUIRED_KINDS",
    # helpers/validators
    "is_lower_snake",
    "assert_lower_snake",
    "column_type_from_value",
    "direction_from_value",
    "nulls_from_value",
    "frame_unit_from_value",
    "bound_kind_from_value",
    "function_kind_from_value",
    "ensure_all_enum_values_lower_snake",
]


class ColumnType(Enum):
    """
    Semantic scalar type of a relation column.

    Notes:
      Python value mapping (enforced by relq.core.relation):
        * integer  -> int (bool rejected)
        * float    -> float (int widened)
        * text     -> str
        * date     -> datetime.date (datetime rejected)
        * datetime -> datetime.datetime
        * boolean  -> bool
      None is the null for every type.
    """

    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"


class SortDirection(Enum):
    """Direction of one ORDER BY key."""

    ASC = "asc"
    DESC = "desc"


class NullOrdering(Enum):
    """Placement of nulls for one ORDER BY key."""

    FIRST = "first"
    LAST = "last"


class FrameUnit(Enum):
    """ROWS counts physical rows; RANGE compares ordering-column values."""

    ROWS = "rows"
    RANGE = "range"


class BoundKind(Enum):
    """
    One end of a window frame.

    Notes:
      Position on the frame-offset axis (used to validate start <= end):
        unbounded_preceding < preceding(n) < current_row < following(n) < unbounded_following
    """

    UNBOUNDED_PRECEDING = "unbounded_preceding"
    PRECEDING = "preceding"
    CURRENT_ROW = "current_row"
    FOLLOWING = "following"
    UNBOUNDED_FOLLOWING = "unbounded_following"


class WindowFunctionKind(Enum):
    """
    Closed set of window functions understood by the evaluator.

    Notes:
      Groups:
        * ranking:   row_number, rank, dense_rank, ntile
        * offset:    lag, lead
        * value:     first_value, last_value (frame-aware)
        * aggregate: sum, count, avg, min, max (frame-aware)
    """

    ROW_NUMBER = "row_number"
    RANK = "rank"
    DENSE_RANK = "dense_rank"
    NTILE = "ntile"
    LAG = "lag"
    LEAD = "lead"
    FIRST_VALUE = "first_value"
    LAST_VALUE = "last_value"
    SUM = "sum"
    COUNT = "count"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


class StreakMode(Enum):
    """How group_streaks decides where one streak ends and the next begins."""

    QUALIFYING = "qualifying"
    CONSECUTIVE = "consecutive"
    GAP = "gap"


RANKING_KINDS: Final[frozenset[WindowFunctionKind]] = frozenset(
    {
        WindowFunctionKind.ROW_NUMBER,
        WindowFunctionKind.RANK,
        WindowFunctionKind.DENSE_RANK,
        WindowFunctionKind.NTILE,
    }
)
OFFSET_KINDS: Final[frozenset[WindowFunctionKind]] = frozenset(
    {WindowFunctionKind.LAG, WindowFunctionKind.LEAD}
)
VALUE_KINDS: Final[frozenset[WindowFunctionKind]] = frozenset(
    {WindowFunctionKind.FIRST_VALUE, WindowFunctionKind.LAST_VALUE}
)
AGGREGATE_KINDS: Final[frozenset[WindowFunctionKind]] = frozenset(
    {
        WindowFunctionKind.SUM,
        WindowFunctionKind.COUNT,
        WindowFunctionKind.AVG,
        WindowFunctionKind.MIN,
        WindowFunctionKind.MAX,
    }
)
# Results are undefined without a row order, so these are rejected rather than defaulted.
ORDER_REQUIRED_KINDS: Final[frozenset[WindowFunctionKind]] = RANKING_KINDS | OFFSET_KINDS


_LOWER_SNAKE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")
_SQL_SPACING_RE: Final[re.Pattern[str]] = re.compile(r"[\s\-]+")


def is_lower_snake(value: str) -> bool:
    """
    Check whether a string is lower_snake.

    Args:
      value (str): Candidate string to validate.

    Returns:
      bool: True if value matches lower_snake (e.g., "dense_rank"), False otherwise.

    Examples:
      >>> is_lower_snake("dense_rank")
      True
      >>> is_lower_snake("DenseRank")
      False
    """
    return bool(_LOWER_SNAKE_RE.match(value or ""))


def assert_lower_snake(value: str, what: str = "value") -> None:
    """
    Validate that a string is lower_snake.

    Args:
      value (str): Candidate string to validate.
      what (str): Human-friendly label used in the error message.

    Raises:
      ValueError: If value is not lower_snake.
    """
    if not is_lower_snake(value):
        raise ValueError(f"{what} must be lower_snake (got: {value!r})")


def _sql_token(s: str) -> str:
    # "NULLS FIRST" -> "nulls_first", "Row-Number" -> "row_number"
    return _SQL_SPACING_RE.sub("_", (s or "").strip()).lower()


def _parse_enum(enum_cls: type[Enum], s: str | Enum, what: str) -> Enum:
    if isinstance(s, enum_cls):
        return s
    token = _sql_token(str(s))
    assert_lower_snake(token, what)
    allowed = [m.value for m in enum_cls]
    if token not in allowed:
        raise ValueError(f"{what} must be one of {allowed} (got {s!r})")
    return enum_cls(token)


def column_type_from_value(s: str | ColumnType) -> ColumnType:
    """
    Parse a column type label.

    Args:
      s (str | ColumnType): Label such as "integer" or "DATE".

    Returns:
      ColumnType: Parsed column type.

    Raises:
      ValueError: If the label is not a known column type.
    """
    return _parse_enum(ColumnType, s, "column_type")  # type: ignore[return-value]


def direction_from_value(s: str | SortDirection) -> SortDirection:
    """
    Parse a sort direction, accepting "asc"/"desc" in any case and the long forms.

    Raises:
      ValueError: If the label is not a known direction.
    """
    if isinstance(s, str):
        token = _sql_token(s)
        s = {"ascending": "asc", "descending": "desc"}.get(token, token)
    return _parse_enum(SortDirection, s, "direction")  # type: ignore[return-value]


def nulls_from_value(s: str | NullOrdering) -> NullOrdering:
    """
    Parse a null ordering, accepting "first", "last", "NULLS FIRST" and "NULLS LAST".

    Raises:
      ValueError: If the label is not a known null ordering.
    """
    if isinstance(s, str):
        token = _sql_token(s)
        if token.startswith("nulls_"):
            token = token[len("nulls_"):]
        s = token
    return _parse_enum(NullOrdering, s, "nulls")  # type: ignore[return-value]


def frame_unit_from_value(s: str | FrameUnit) -> FrameUnit:
    """Parse "rows" or "range" (any case)."""
    return _parse_enum(FrameUnit, s, "frame unit")  # type: ignore[return-value]


def bound_kind_from_value(s: str | BoundKind) -> BoundKind:
    """Parse a frame bound kind such as "UNBOUNDED PRECEDING" or "current_row"."""
    return _parse_enum(BoundKind, s, "frame bound")  # type: ignore[return-value]


def function_kind_from_value(s: str | WindowFunctionKind) -> WindowFunctionKind:
    """
    Parse a window function name.

    Args:
      s (str | WindowFunctionKind): Name such as "ROW_NUMBER" or "lag".

    Returns:
      WindowFunctionKind: Parsed kind.

    Raises:
      ValueError: If the name is not in the closed set of supported functions.
    """
    return _parse_enum(WindowFunctionKind, s, "window function")  # type: ignore[return-value]


def ensure_all_enum_values_lower_snake(enums: Iterable[type[Enum]]) -> None:
    """
    Assert that every enum member's value is lower_snake.

    Args:
      enums (Iterable[type[Enum]]): Iterable of Enum classes to inspect.

    Raises:
      AssertionError: If any enum member has a non-lower_snake value.

    Examples:
      >>> ensure_all_enum_values_lower_snake([
      ...     ColumnType, SortDirection, NullOrdering, FrameUnit,
      ...     BoundKind, WindowFunctionKind, StreakMode,
      ... ])
    """
    for E in enums:
        for m in E:
            if not is_lower_snake(m.value):
                raise AssertionError(
                    f"{E.__name__}.{m.name} has non-lower_snake value: {m.value!r}"
                )
