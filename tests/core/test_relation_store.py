from __future__ import annotations

import datetime as dt

import pytest

from relq.core.errors import SchemaError
from relq.core.relation import Relation, Row, Schema


def _people() -> Relation:
    schema = Schema.of(("id", "integer"), ("name", "text"), ("score", "float"))
    return Relation.from_records(
        schema,
        [
            {"id": 1, "name": "ada", "score": 3},
            {"id": 2, "name": None, "score": 1.5},
        ],
    )


def test_schema_rejects_duplicate_names() -> None:
    with pytest.raises(SchemaError):
        Schema.of(("a", "integer"), ("a", "text"))


def test_schema_accepts_sql_type_labels() -> None:
    s = Schema.of(("d", "DATE"), ("flag", "Boolean"))
    assert [c.type.value for c in s] == ["date", "boolean"]


def test_int_widened_to_float_and_nulls_kept() -> None:
    rel = _people()
    assert rel.column("score") == [3.0, 1.5]
    assert isinstance(rel.column("score")[0], float)
    assert rel.column("name") == ["ada", None]


@pytest.mark.parametrize(
    "ctype,value",
    [
        ("integer", True),
        ("integer", 1.0),
        ("text", 1),
        ("date", dt.datetime(2024, 1, 1, 12)),
        ("boolean", 0),
    ],
)
def test_nonconforming_values_rejected(ctype: str, value: object) -> None:
    schema = Schema.of(("v", ctype))
    with pytest.raises(SchemaError):
        Relation.from_rows(schema, [(value,)])


def test_missing_and_unknown_columns_rejected() -> None:
    schema = Schema.of(("a", "integer"), ("b", "integer"))
    with pytest.raises(SchemaError):
        Relation.from_records(schema, [{"a": 1}])
    with pytest.raises(SchemaError):
        Relation.from_records(schema, [{"a": 1, "b": 2, "c": 3}])


def test_rows_are_read_only_mappings() -> None:
    row = _people()[0]
    assert isinstance(row, Row)
    assert row["name"] == "ada"
    assert dict(row) == {"id": 1, "name": "ada", "score": 3.0}
    with pytest.raises(AttributeError):
        row.foo = 1  # type: ignore[attr-defined]


def test_with_column_returns_new_relation() -> None:
    rel = _people()
    out = rel.with_column("rank", "integer", [1, 2])
    assert out.schema.names == ("id", "name", "score", "rank")
    assert rel.schema.names == ("id", "name", "score")
    assert out.column("rank") == [1, 2]


def test_with_column_rejects_duplicates_and_bad_lengths() -> None:
    rel = _people()
    with pytest.raises(SchemaError):
        rel.with_column("id", "integer", [1, 2])
    with pytest.raises(SchemaError):
        rel.with_column("extra", "integer", [1])


def test_concat_requires_equal_schema_and_keeps_order() -> None:
    rel = _people()
    both = rel.concat(rel)
    assert both.column("id") == [1, 2, 1, 2]
    other = Relation.empty(Schema.of(("id", "integer")))
    with pytest.raises(SchemaError):
        rel.concat(other)


def test_filter_select_and_records() -> None:
    rel = _people().filter(lambda r: r["name"] is not None).select(["name", "id"])
    assert rel.to_records() == [{"name": "ada", "id": 1}]


def test_fingerprint_tracks_row_order_and_types() -> None:
    rel = _people()
    assert rel.fingerprint() == _people().fingerprint()
    reversed_rel = Relation(rel.schema, list(reversed(rel.rows)))
    assert reversed_rel.fingerprint() != rel.fingerprint()
    as_text = Relation.from_rows(Schema.of(("d", "text")), [("2024-01-01",)])
    as_date = Relation.from_rows(Schema.of(("d", "date")), [(dt.date(2024, 1, 1),)])
    assert as_text.fingerprint() != as_date.fingerprint()
