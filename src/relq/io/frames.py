"""
Polars interop for relq relations.

Purpose
- Convert a polars DataFrame into an immutable relq Relation (and back) so callers can
  feed query results to, or take inputs from, the tabular tooling they already use.

Dtype mapping
- Int8..Int64 / UInt8..UInt32 -> integer
- Float32 / Float64           -> float
- String (Utf8)               -> text
- Date                        -> date
- Datetime (any unit/tz)      -> datetime
- Boolean                     -> boolean

Unsupported dtypes (lists, structs, decimals, all-null columns, ...) raise IoSchemaError
when ``strict`` is true and are dropped (with a warning log) otherwise.

Notes
- Row order is preserved in both directions; it is the arrival order the engine uses
  as its stable tie-break.
"""

from __future__ import annotations

import logging

import polars as pl

from relq.core.grammar import ColumnType
from relq.core.relation import Column, Relation, Schema

from .config import QuerySettings
from .errors import IoSchemaError

__all__ = [
    "column_type_of",
    "polars_dtype_of",
    "relation_from_frame",
    "relation_to_frame",
]

logger = logging.getLogger(__name__)

# Polars exposes dtype singletons/classes (e.g., pl.Int64); keep this mapping loosely typed.
_TO_POLARS: dict[ColumnType, object] = {
    ColumnType.INTEGER: pl.Int64,
    ColumnType.FLOAT: pl.Float64,
    ColumnType.TEXT: pl.String,
    ColumnType.DATE: pl.Date,
    ColumnType.DATETIME: pl.Datetime("us"),
    ColumnType.BOOLEAN: pl.Boolean,
}

_INTEGER_DTYPES = (
    pl.Int8,
    pl.Int16,
    pl.Int32,
    pl.Int64,
    pl.UInt8,
    pl.UInt16,
    pl.UInt32,
)


def column_type_of(dtype: pl.DataType) -> ColumnType | None:
    """Return the relq column type for a polars dtype, or None when unsupported."""
    if any(dtype == t for t in _INTEGER_DTYPES):
        return ColumnType.INTEGER
    if dtype == pl.Float32 or dtype == pl.Float64:
        return ColumnType.FLOAT
    if dtype == pl.String:
        return ColumnType.TEXT
    if dtype == pl.Date:
        return ColumnType.DATE
    if isinstance(dtype, pl.Datetime) or dtype == pl.Datetime:
        return ColumnType.DATETIME
    if dtype == pl.Boolean:
        return ColumnType.BOOLEAN
    return None


def polars_dtype_of(ctype: ColumnType) -> object:
    return _TO_POLARS[ctype]


def relation_from_frame(
    df: pl.DataFrame,
    *,
    strict: bool | None = None,
    settings: QuerySettings | None = None,
) -> Relation:
    """
    Build a Relation from a polars DataFrame.

    Args:
        df (pl.DataFrame): Source frame.
        strict (bool | None): Reject unsupported dtypes instead of dropping those
            columns. None uses ``settings.strict_schema``.
        settings (QuerySettings | None): Defaults to QuerySettings().

    Returns:
        Relation: Rows in frame order.

    Raises:
        IoSchemaError: If strict and a column has an unsupported dtype.

    Examples:
        >>> import polars as pl
        >>> rel = relation_from_frame(pl.DataFrame({"id": [1, 2], "name": ["a", None]}))
        >>> rel.schema.names, rel.column("name")
        (('id', 'name'), ['a', None])
    """
    settings = settings or QuerySettings()
    strict = settings.strict_schema if strict is None else strict

    columns: list[Column] = []
    unsupported: list[str] = []
    for name, dtype in df.schema.items():
        ctype = column_type_of(dtype)
        if ctype is None:
            unsupported.append(f"{name}: {dtype}")
            continue
        columns.append(Column(name, ctype))

    if unsupported:
        if strict:
            raise IoSchemaError(f"unsupported column dtypes: {unsupported!r}")
        logger.warning("dropping columns with unsupported dtypes: %s", unsupported)

    schema = Schema(tuple(columns))
    selected = df.select([c.name for c in columns])
    return Relation.from_rows(schema, selected.iter_rows())


def relation_to_frame(relation: Relation) -> pl.DataFrame:
    """
    Convert a Relation into a polars DataFrame with one column per schema column.

    Examples:
        >>> from relq.core import Relation, Schema
        >>> rel = Relation.from_rows(Schema.of(("n", "integer")), [(1,), (None,)])
        >>> relation_to_frame(rel).schema["n"]
        Int64
    """
    schema = relation.schema
    data = {c.name: relation.column(c.name) for c in schema.columns}
    return pl.DataFrame(
        data,
        schema={c.name: polars_dtype_of(c.type) for c in schema.columns},  # type: ignore[misc]
    )
