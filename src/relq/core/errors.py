"""
Core exception types raised by relation construction, query validation, and evaluation.

Provides typed exceptions for core-domain failures:
- SchemaError for rows that do not conform to their schema, or unusable argument columns.
- RecursionLimitExceeded when a depth cap is hit with a non-empty frontier.
- InvalidRecursiveSpec when anchor and recursive member disagree on schema.
- MissingOrderSpec when an order-dependent window function has no ORDER BY.
- InvalidFrameSpec for malformed frame bounds.
- PartitionKeyTypeMismatch when a partition/order column is absent or of the wrong type.

Notes:
    - This module uses only the Python standard library and has no side effects.
    - Every failure is reported at whole-query granularity; nothing here carries a
      partial result.
    - None of these subclass ValueError, so when a validator in relq.core.spec raises
      one, pydantic lets it propagate as-is instead of folding it into a
      pydantic.ValidationError. Field shape/type problems still surface as
      ValidationError.

Examples:
    Catch a missing ORDER BY.

    >>> from relq.core.errors import MissingOrderSpec, QueryError
    >>> try:
    ...     raise MissingOrderSpec("row_number requires an ORDER BY")
    ... except QueryError as e:
    ...     msg = str(e)
    >>> "ORDER BY" in msg
    True
"""

from __future__ import annotations

__all__ = [
    "QueryError",
    "SchemaError",
    "RecursionLimitExceeded",
    "InvalidRecursiveSpec",
    "MissingOrderSpec",
    "InvalidFrameSpec",
    "PartitionKeyTypeMismatch",
]


class QueryError(Exception):
    """Base class for every failure raised by the evaluation core."""


class SchemaError(QueryError):
    """Schema-level validation failure (shape, value types, unknown columns)."""


class RecursionLimitExceeded(QueryError):
    """
    Depth cap reached while the frontier still had rows.

    Attributes:
        max_depth (int): The cap that was hit.
        frontier_size (int): Number of rows still pending expansion.
    """

    def __init__(self, max_depth: int, frontier_size: int) -> None:
        super().__init__(
            f"recursion reached max_depth={max_depth} with {frontier_size} "
            "frontier row(s) still pending"
        )
        self.max_depth = max_depth
        self.frontier_size = frontier_size


class InvalidRecursiveSpec(QueryError):
    """Recursive member output does not match the anchor schema, or cycle keys are unknown."""


class MissingOrderSpec(QueryError):
    """Ranking, ntile, or offset function requested without an ORDER BY."""


class InvalidFrameSpec(QueryError):
    """Frame bounds are malformed (start after end, unbounded on the wrong side, bad offset)."""


class PartitionKeyTypeMismatch(QueryError):
    """Partition or order column is absent from the schema or has an unusable type."""
