"""
Immutable row-oriented relations with a fixed schema.

Notes:
    - A Schema is an ordered tuple of (name, ColumnType) columns with unique names.
    - A Row is a read-only mapping bound to its schema; values are validated (and ints
      widened to float for float columns) when the row enters a Relation.
    - A Relation's row order is its arrival order and is the stable tie-break used by
      the Partition & Sort Engine.
    - Every operation returns a new Relation; nothing here mutates in place.
    - Zero-IO; polars interop lives in relq.io.frames.

Examples:
    >>> from relq.core.relation import Relation, Schema
    >>> schema = Schema.of(("id", "integer"), ("name", "text"))
    >>> rel = Relation.from_records(schema, [{"id": 1, "name": "a"}, {"id": 2, "name": None}])
    >>> len(rel), rel.column("id")
    (2, [1, 2])
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import SchemaError
from .grammar import ColumnType, column_type_from_value
from .hashing import hash_relation
from .typing import Scalar

__all__ = [
    "Column",
    "Schema",
    "Row",
    "Relation",
    "coerce_value",
]


@dataclass(frozen=True, slots=True)
class Column:
    """
    One named, typed column.

    Attributes:
        name (str): Column name, unique within its schema.
        type (ColumnType): Semantic scalar type.
    """

    name: str
    type: ColumnType

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise SchemaError(f"column name must be a non-empty string, got {self.name!r}")
        if not isinstance(self.type, ColumnType):
            object.__setattr__(self, "type", column_type_from_value(self.type))


@dataclass(frozen=True, slots=True)
class Schema:
    """
    Ordered sequence of columns with unique names.

    Attributes:
        columns (tuple[Column, ...]): Columns in declaration order.

    Notes:
        Two schemas are equal only when names, types, and order all match. The
        Recursive Resolver relies on this exact equality.
    """

    columns: tuple[Column, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        seen: set[str] = set()
        for col in self.columns:
            if col.name in seen:
                raise SchemaError(f"duplicate column name {col.name!r}")
            seen.add(col.name)

    @classmethod
    def of(cls, *pairs: tuple[str, ColumnType | str]) -> Schema:
        """Build a schema from (name, type) pairs; types may be ColumnType or labels."""
        return cls(tuple(Column(name, column_type_from_value(t)) for name, t in pairs))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def __contains__(self, name: object) -> bool:
        return any(c.name == name for c in self.columns)

    def index_of(self, name: str) -> int:
        for i, c in enumerate(self.columns):
            if c.name == name:
                return i
        raise SchemaError(f"unknown column {name!r} (known: {list(self.names)!r})")

    def type_of(self, name: str) -> ColumnType:
        return self.columns[self.index_of(name)].type

    def with_column(self, name: str, ctype: ColumnType) -> Schema:
        """Return a schema with one column appended (names must stay unique)."""
        return Schema(self.columns + (Column(name, ctype),))

    def select(self, names: Sequence[str]) -> Schema:
        return Schema(tuple(self.columns[self.index_of(n)] for n in names))


def coerce_value(value: Any, column: Column) -> Scalar:
    """
    Validate one value against its column type.

    Args:
        value (Any): Candidate value.
        column (Column): Target column.

    Returns:
        Scalar: The value, with ints widened to float for float columns.

    Raises:
        SchemaError: If the value does not conform to the column type.
    """
    if value is None:
        return None
    ctype = column.type
    ok = False
    if ctype is ColumnType.INTEGER:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif ctype is ColumnType.FLOAT:
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        ok = isinstance(value, float)
    elif ctype is ColumnType.TEXT:
        ok = isinstance(value, str)
    elif ctype is ColumnType.DATE:
        ok = isinstance(value, dt.date) and not isinstance(value, dt.datetime)
    elif ctype is ColumnType.DATETIME:
        ok = isinstance(value, dt.datetime)
    elif ctype is ColumnType.BOOLEAN:
        ok = isinstance(value, bool)
    if not ok:
        raise SchemaError(
            f"column {column.name!r} expects {ctype.value}, got {type(value).__name__} {value!r}"
        )
    return value


class Row(Mapping[str, Scalar]):
    """
    Read-only mapping from column name to value, bound to a schema.

    Notes:
        Rows are only built through Relation constructors (or Row.build), which
        validate values; a Row never changes after construction.
    """

    __slots__ = ("_schema", "_values")

    _schema: Schema
    _values: tuple[Scalar, ...]

    def __init__(self, schema: Schema, values: Iterable[Any]) -> None:
        vals = tuple(values)
        if len(vals) != len(schema):
            raise SchemaError(f"row has {len(vals)} values for {len(schema)} columns")
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(
            self, "_values", tuple(coerce_value(v, c) for v, c in zip(vals, schema.columns))
        )

    @classmethod
    def _trusted(cls, schema: Schema, values: tuple[Scalar, ...]) -> Row:
        # Values already validated against this schema.
        row = cls.__new__(cls)
        object.__setattr__(row, "_schema", schema)
        object.__setattr__(row, "_values", values)
        return row

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Row is immutable")

    @property
    def schema(self) -> Schema:
        return self._schema

    def as_tuple(self) -> tuple[Scalar, ...]:
        return self._values

    def __getitem__(self, key: str) -> Scalar:
        return self._values[self._schema.index_of(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schema.names)

    def __len__(self) -> int:
        return len(self._values)

    def __hash__(self) -> int:
        return hash((self._schema.names, self._values))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return self._schema.names == other._schema.names and self._values == other._values
        return Mapping.__eq__(self, other)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in zip(self._schema.names, self._values))
        return f"Row({body})"


class Relation:
    """
    Ordered, immutable sequence of rows sharing one schema.

    Attributes:
        schema (Schema): The schema every row conforms to.

    Raises:
        SchemaError: On construction, if any row does not conform to the schema.
    """

    __slots__ = ("_schema", "_rows")

    def __init__(self, schema: Schema, rows: Iterable[Row | Mapping[str, Any]] = ()) -> None:
        self._schema = schema
        built: list[Row] = []
        names = schema.names
        for r in rows:
            if isinstance(r, Row) and r.schema == schema:
                built.append(r)
                continue
            if not isinstance(r, Mapping):
                raise SchemaError(f"rows must be mappings, got {type(r).__name__}")
            extra = set(r.keys()) - set(names)
            if extra:
                raise SchemaError(f"row has unknown columns {sorted(extra)!r}")
            missing = [n for n in names if n not in r]
            if missing:
                raise SchemaError(f"row is missing columns {missing!r}")
            built.append(Row(schema, (r[n] for n in names)))
        self._rows: tuple[Row, ...] = tuple(built)

    @classmethod
    def _trusted(cls, schema: Schema, rows: Iterable[Row]) -> Relation:
        # Rows already belong to this exact schema.
        rel = cls.__new__(cls)
        rel._schema = schema
        rel._rows = tuple(rows)
        return rel

    @classmethod
    def from_records(cls, schema: Schema, records: Iterable[Mapping[str, Any]]) -> Relation:
        """Build a relation from name-keyed mappings (every column must be present)."""
        return cls(schema, records)

    @classmethod
    def from_rows(cls, schema: Schema, rows: Iterable[Sequence[Any]]) -> Relation:
        """Build a relation from positional value sequences in schema order."""
        return cls._trusted(schema, (Row(schema, values) for values in rows))

    @classmethod
    def empty(cls, schema: Schema) -> Relation:
        return cls._trusted(schema, ())

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def rows(self) -> tuple[Row, ...]:
        return self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> Row:
        return self._rows[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Relation):
            return NotImplemented
        return self._schema == other._schema and self._rows == other._rows

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Relation(columns={list(self._schema.names)!r}, rows={len(self._rows)})"

    def column(self, name: str) -> list[Scalar]:
        """Return one column's values in arrival order."""
        i = self._schema.index_of(name)
        return [r.as_tuple()[i] for r in self._rows]

    def with_column(
        self, name: str, ctype: ColumnType | str, values: Sequence[Any]
    ) -> Relation:
        """
        Return a new relation with one computed column appended.

        Raises:
            SchemaError: If the name already exists, the value count differs from the
                row count, or a value does not conform to ctype.
        """
        if len(values) != len(self._rows):
            raise SchemaError(
                f"column {name!r} has {len(values)} values for {len(self._rows)} rows"
            )
        schema = self._schema.with_column(name, column_type_from_value(ctype))
        col = schema.columns[-1]
        return Relation._trusted(
            schema,
            (
                Row._trusted(schema, r.as_tuple() + (coerce_value(v, col),))
                for r, v in zip(self._rows, values)
            ),
        )

    def concat(self, other: Relation) -> Relation:
        """Append other's rows after this relation's rows (schemas must be equal)."""
        if other._schema != self._schema:
            raise SchemaError(
                f"cannot concat relations with different schemas: "
                f"{list(self._schema.names)!r} vs {list(other._schema.names)!r}"
            )
        return Relation._trusted(self._schema, self._rows + other._rows)

    def filter(self, predicate: Callable[[Row], bool]) -> Relation:
        return Relation._trusted(self._schema, (r for r in self._rows if predicate(r)))

    def select(self, names: Sequence[str]) -> Relation:
        """Project onto the given columns, in the given order."""
        schema = self._schema.select(names)
        idx = [self._schema.index_of(n) for n in names]
        return Relation._trusted(
            schema,
            (Row._trusted(schema, tuple(r.as_tuple()[i] for i in idx)) for r in self._rows),
        )

    def to_records(self) -> list[dict[str, Scalar]]:
        return [dict(zip(self._schema.names, r.as_tuple())) for r in self._rows]

    def fingerprint(self) -> str:
        """
        Stable SHA-256 over schema and rows in order.

        Notes:
            Two evaluations of the same query over the same input must produce equal
            fingerprints; tests use this to check determinism.
        """
        return hash_relation(
            [(c.name, c.type.value) for c in self._schema.columns],
            [r.as_tuple() for r in self._rows],
        )
