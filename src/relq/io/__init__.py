"""
relq.io — Configuration and polars interop for relq.

## Responsibilities
- Load QuerySettings with precedence environment > TOML > defaults.
- Convert polars DataFrames to and from relq.core.Relation.

## Public API
- QuerySettings — runtime settings (defaults sourced from relq.core.constants).
- relation_from_frame / relation_to_frame — DataFrame interop.
- IoError, IoConfigError, IoSchemaError — IO-layer failures.

## Import DAG discipline
- Depends only on stdlib, polars, and relq.core.*.
- MUST NOT import relq.engine or relq.api.

## Examples
```python
import polars as pl
from relq.io import QuerySettings, relation_from_frame

settings = QuerySettings.load()  # doctest: +SKIP
rel = relation_from_frame(pl.DataFrame({"id": [1, 2]}), settings=settings)  # doctest: +SKIP
```
"""

from __future__ import annotations

from .config import QuerySettings
from .errors import IoConfigError, IoError, IoSchemaError
from .frames import column_type_of, polars_dtype_of, relation_from_frame, relation_to_frame

__all__ = [
    "QuerySettings",
    "IoError",
    "IoConfigError",
    "IoSchemaError",
    "column_type_of",
    "polars_dtype_of",
    "relation_from_frame",
    "relation_to_frame",
]
