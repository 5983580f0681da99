"""
Core package aggregator for relq contracts (grammar, relations, query specs, errors, hashing).

## Contracts (single source of truth)
- Grammar — enums for column types, ordering, frames, window function kinds; normalizers.
- Relations — immutable Schema/Row/Relation store.
- Specs — pydantic models for OrderKey, FrameSpec, window function variants, WindowSpec,
  RecursiveSpec, and streak criteria.
- Errors — the query error taxonomy.
- Hashing — canonical JSON and relation fingerprints.

## Notes
- Zero-IO policy: stdlib + pydantic only; no file/network IO.
- Enum `.value`s are lower_snake; SQL spellings ("DESC", "ROW_NUMBER") are normalized on input.

## Downstream usage
- relq.engine — consumes Relation and the spec models; raises the core errors.
- relq.io — converts polars frames to/from Relation; loads QuerySettings.

## Examples
```python
from relq.core import Relation, Schema, WindowSpec

schema = Schema.of(("team", "text"), ("score", "integer"))
rel = Relation.from_rows(schema, [("x", 10), ("x", 10), ("y", 5)])
spec = WindowSpec(function={"kind": "rank"}, partition_by=["team"], order_by=["score desc"])
```
"""

from __future__ import annotations

from .errors import (
    InvalidFrameSpec,
    InvalidRecursiveSpec,
    MissingOrderSpec,
    PartitionKeyTypeMismatch,
    QueryError,
    RecursionLimitExceeded,
    SchemaError,
)
from .grammar import ColumnType, FrameUnit, NullOrdering, SortDirection, WindowFunctionKind
from .relation import Column, Relation, Row, Schema
from .spec import (
    Aggregate,
    ConsecutiveRun,
    DenseRank,
    FirstValue,
    FrameBound,
    FrameSpec,
    GapTolerance,
    Lag,
    LastValue,
    Lead,
    Ntile,
    OrderKey,
    QualifyingRun,
    Rank,
    RecursiveSpec,
    RowNumber,
    WindowSpec,
)

__all__ = [
    # errors
    "QueryError",
    "SchemaError",
    "RecursionLimitExceeded",
    "InvalidRecursiveSpec",
    "MissingOrderSpec",
    "InvalidFrameSpec",
    "PartitionKeyTypeMismatch",
    # grammar
    "ColumnType",
    "SortDirection",
    "NullOrdering",
    "FrameUnit",
    "WindowFunctionKind",
    # relations
    "Column",
    "Schema",
    "Row",
    "Relation",
    # specs
    "OrderKey",
    "FrameBound",
    "FrameSpec",
    "RowNumber",
    "Rank",
    "DenseRank",
    "Ntile",
    "Lag",
    "Lead",
    "FirstValue",
    "LastValue",
    "Aggregate",
    "WindowSpec",
    "RecursiveSpec",
    "QualifyingRun",
    "ConsecutiveRun",
    "GapTolerance",
]
