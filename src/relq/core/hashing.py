"""
Canonical JSON serialization and hashing helpers for relations.

Provides a single canonical JSON policy and SHA-256 helpers so that evaluating the
same query twice over the same input can be checked for byte-identical output. This
module is zero-IO and uses only the Python standard library.

Notes:
    - Canonical JSON:
        - sort_keys=True
        - separators=(",", ":")
        - ensure_ascii=False
    - Scalars that JSON cannot carry natively are tagged: dates and datetimes become
      {"$date": iso} / {"$datetime": iso}; floats keep repr() precision via json.
    - Hashing is performed over the UTF-8 encoded canonical JSON string.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from collections.abc import Iterable, Sequence
from typing import Any

__all__ = [
    "json_dumps_canonical",
    "canonical_scalar",
    "hash_relation",
]


def canonical_scalar(value: Any) -> Any:
    """
    Map one row value onto a JSON-serializable, type-preserving form.

    Args:
        value (Any): A relation scalar.

    Returns:
        Any: JSON-ready value. Dates and datetimes are tagged so that a date never
        hashes equal to the string with the same digits.
    """
    if isinstance(value, dt.datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, dt.date):
        return {"$date": value.isoformat()}
    return value


def json_dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to a canonical JSON string.

    Args:
        obj (Any): JSON-serializable object.

    Returns:
        str: Canonical JSON string with sort_keys=True, compact separators,
        and ensure_ascii=False.

    Notes:
        This function assumes the input is JSON-serializable and does not perform
        coercion of unsupported types; use canonical_scalar first.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _sha256_hexdigest(s: str) -> str:
    """Compute SHA-256 hex digest of a UTF-8 string."""
    h = hashlib.sha256()
    h.update(s.encode("utf-8"))
    return h.hexdigest()


def hash_relation(
    columns: Sequence[tuple[str, str]],
    rows: Iterable[Sequence[Any]],
) -> str:
    """
    Compute a stable hash for a relation's schema and rows, in row order.

    Args:
        columns (Sequence[tuple[str, str]]): (name, type label) pairs.
        rows (Iterable[Sequence[Any]]): Row values in schema order.

    Returns:
        str: SHA-256 hex digest over the canonical JSON serialization.

    Examples:
        >>> from relq.core.hashing import hash_relation
        >>> a = hash_relation([("x", "integer")], [(1,), (2,)])
        >>> a == hash_relation([("x", "integer")], [(1,), (2,)])
        True
        >>> a == hash_relation([("x", "integer")], [(2,), (1,)])
        False
    """
    payload = {
        "columns": [list(c) for c in columns],
        "rows": [[canonical_scalar(v) for v in r] for r in rows],
    }
    return _sha256_hexdigest(json_dumps_canonical(payload))
