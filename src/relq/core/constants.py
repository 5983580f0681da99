"""
relq core defaults.

Defines the evaluation defaults consumed by relq.io.config and the engine. This
module is zero-IO and uses only the Python standard library.

Notes:
    - Changing a default here changes QuerySettings defaults; env/TOML still override.
    - MAX_DEPTH_UNLIMITED (0) disables the recursion depth cap; cycle avoidance still
      guarantees termination on finite data.
"""

from __future__ import annotations

__all__ = [
    "MAX_DEPTH_UNLIMITED",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_GAP_INCLUSIVE",
    "DEFAULT_GROUP_ID_COLUMN",
    "PATH_SEPARATOR",
    "STREAK_LENGTH_COLUMN",
    "STREAK_START_COLUMN",
    "STREAK_END_COLUMN",
]

MAX_DEPTH_UNLIMITED: int = 0

# 1 keeps evaluation serial; larger values bound the partition/frontier thread pool.
DEFAULT_MAX_WORKERS: int = 1

# Gap-tolerant streaks: a gap exactly equal to the tolerance stays in the group.
DEFAULT_GAP_INCLUSIVE: bool = True

DEFAULT_GROUP_ID_COLUMN: str = "group_id"

# Joins identity keys when a recursive resolution materializes its ancestor path.
PATH_SEPARATOR: str = "/"

# Output columns of relq.engine.streaks.summarize_streaks.
STREAK_LENGTH_COLUMN: str = "streak_length"
STREAK_START_COLUMN: str = "streak_start"
STREAK_END_COLUMN: str = "streak_end"
