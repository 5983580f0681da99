"""
Lightweight typing aliases used across relations, specs, and the engine.

Provides minimal aliases to improve readability and static checks.
This module contains no runtime logic and is zero-IO.

Notes:
    - Scalar is the union of every value a Row may hold (None is the null).
    - PartitionKeyValue is the tuple of partition-column values identifying one partition.
    - IdentityKey is the tuple of cycle-key-column values identifying one node during
      recursive resolution.
"""

from __future__ import annotations

import datetime as dt
from typing import TypeAlias

__all__ = [
    "Scalar",
    "PartitionKeyValue",
    "IdentityKey",
]

Scalar: TypeAlias = int | float | str | bool | dt.date | dt.datetime | None

PartitionKeyValue: TypeAlias = tuple[Scalar, ...]
IdentityKey: TypeAlias = tuple[Scalar, ...]
