"""
relq — in-memory query evaluation core: recursive hierarchy resolution and window
functions over immutable relations.

## Layers
- relq.core — zero-IO contracts: relations, grammar enums, pydantic query specs, errors.
- relq.engine — partition/sort, window evaluation, recursive resolution, streaks.
- relq.io — QuerySettings (env > TOML > defaults) and polars interop.
- relq.api — the entry points re-exported here.

## Examples
```python
from relq import Relation, Schema, WindowSpec, arrange_and_evaluate_window

rel = Relation.from_rows(Schema.of(("g", "text")), [("x",), ("x",), ("y",)])
spec = WindowSpec(function={"kind": "row_number"}, partition_by="g", order_by="g")
arrange_and_evaluate_window(rel, spec).column("row_number")  # [1, 2, 1]
```
"""

from __future__ import annotations

import logging

from .api import (
    arrange_and_evaluate_window,
    evaluate_query,
    group_streaks,
    resolve_recursive,
    summarize_streaks,
)
from .core import *  # noqa: F403
from .core import __all__ as _core_all
from .engine.recursive import ResolveResult, anchor_where, join_member, resolve_with_stats
from .io import QuerySettings, relation_from_frame, relation_to_frame

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "resolve_recursive",
    "resolve_with_stats",
    "ResolveResult",
    "join_member",
    "anchor_where",
    "arrange_and_evaluate_window",
    "group_streaks",
    "summarize_streaks",
    "evaluate_query",
    "QuerySettings",
    "relation_from_frame",
    "relation_to_frame",
    *_core_all,
]
