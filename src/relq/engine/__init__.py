"""
relq.engine — evaluation algorithms over relq.core relations.

## Modules
- arrange — Partition & Sort Engine (stable partition + multi-key sort, explicit nulls).
- aggregates — sliding frame accumulators (sum/count/avg, monotonic-deque min/max).
- window — Window Function Evaluator (dispatch table keyed by WindowFunctionKind).
- recursive — Recursive Resolver (iterative fixed point with ancestor-chain cycle checks).
- streaks — contiguous and gap-tolerant group ids composed from window functions.

## Import DAG discipline
- Depends on relq.core and relq.io (settings, polars interop for streak summaries).
- MUST NOT import relq.api.
"""

from __future__ import annotations

from .arrange import Partition, arrange, arrange_indices, peer_bounds
from .recursive import ResolveResult, anchor_where, join_member, resolve, resolve_with_stats
from .streaks import group_streaks, streak_ids, summarize_streaks
from .window import default_frame, evaluate_window, output_type, validate_window

__all__ = [
    "Partition",
    "arrange",
    "arrange_indices",
    "peer_bounds",
    "evaluate_window",
    "validate_window",
    "default_frame",
    "output_type",
    "ResolveResult",
    "resolve",
    "resolve_with_stats",
    "join_member",
    "anchor_where",
    "streak_ids",
    "group_streaks",
    "summarize_streaks",
]
