"""
Configuration for relq query evaluation.

Defines QuerySettings, a frozen dataclass carrying runtime configuration for the
engine. Defaults are sourced from relq.core.constants (the single source of truth).

Source of truth
- relq.core.constants.MAX_DEPTH_UNLIMITED, DEFAULT_MAX_WORKERS, DEFAULT_GAP_INCLUSIVE,
  DEFAULT_GROUP_ID_COLUMN

Import DAG discipline
- Depends only on stdlib and relq.core.constants.
- Does not import relq.engine.

Notes
- Precedence: environment > TOML > defaults.
- max_workers bounds the thread pool used across window partitions and across the
  frontier rows of one recursion level. Recursion levels themselves always run in
  sequence.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from relq.core.constants import DEFAULT_GAP_INCLUSIVE as CORE_GAP_INCLUSIVE
from relq.core.constants import DEFAULT_GROUP_ID_COLUMN as CORE_GROUP_ID_COLUMN
from relq.core.constants import DEFAULT_MAX_WORKERS as CORE_MAX_WORKERS
from relq.core.constants import MAX_DEPTH_UNLIMITED

from .errors import IoConfigError

__all__ = ["QuerySettings"]


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}
    return False


@dataclass(frozen=True)
class QuerySettings:
    """
    Runtime settings for the relq engine.

    Attributes:
        max_depth (int): Default recursion cap used when a RecursiveSpec leaves
            max_depth at 0 (0 = unlimited).
        max_workers (int): 1 evaluates serially; larger values bound the thread pool
            used for independent partitions and frontier rows.
        gap_inclusive (bool): Default boundary rule for gap-tolerant streaks; True keeps
            a gap equal to the tolerance inside the group.
        group_id_column (str): Name of the column group_streaks appends.
        strict_schema (bool): If True, polars frames with unsupported dtypes are rejected
            by relq.io.frames instead of having those columns dropped.

    Raises:
        IoConfigError: If max_depth < 0 or max_workers < 1.

    Examples:
        >>> from relq.io import QuerySettings
        >>> QuerySettings(max_workers=4)  # doctest: +ELLIPSIS
        QuerySettings(...)
    """

    max_depth: int = MAX_DEPTH_UNLIMITED
    max_workers: int = CORE_MAX_WORKERS
    gap_inclusive: bool = CORE_GAP_INCLUSIVE
    group_id_column: str = CORE_GROUP_ID_COLUMN
    strict_schema: bool = True

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise IoConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_workers < 1:
            raise IoConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if not self.group_id_column:
            raise IoConfigError("group_id_column must be a non-empty string")

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(cls, base: QuerySettings, cfg: dict[str, Any] | None) -> QuerySettings:
        """Apply a loose config mapping onto QuerySettings, returning a new instance."""
        if not isinstance(cfg, dict):
            return base

        s = base

        for key in ("max_depth", "max_workers"):
            if key in cfg:
                try:
                    s = replace(s, **{key: int(cfg[key])})
                except (TypeError, ValueError) as exc:
                    raise IoConfigError(f"{key} must be an integer, got {cfg[key]!r}") from exc

        if "gap_inclusive" in cfg:
            s = replace(s, gap_inclusive=_bool(cfg["gap_inclusive"]))

        if "group_id_column" in cfg and isinstance(cfg["group_id_column"], str):
            s = replace(s, group_id_column=cfg["group_id_column"])

        if "strict_schema" in cfg:
            s = replace(s, strict_schema=_bool(cfg["strict_schema"]))

        return s

    @classmethod
    def from_env(cls, base: QuerySettings | None = None, prefix: str = "RELQ_") -> QuerySettings:
        """
        Build QuerySettings from environment variables. Precedence is env > base (if provided) > defaults.

        Recognized variables:
            - RELQ_MAX_DEPTH
            - RELQ_MAX_WORKERS
            - RELQ_GAP_INCLUSIVE (1/0/true/false/yes/no/on/off)
            - RELQ_GROUP_ID_COLUMN
            - RELQ_STRICT_SCHEMA (1/0/true/false/yes/no/on/off)
        """
        s = base or cls()

        mapping: dict[str, Any] = {}
        for key in ("max_depth", "max_workers", "gap_inclusive", "group_id_column", "strict_schema"):
            v = os.getenv(prefix + key.upper())
            if v:
                mapping[key] = v

        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> QuerySettings:
        """
        Build QuerySettings from a TOML file.

        Search order when `path` is None:
            1) ./relq.toml (with either a top-level [query] table or direct keys)
            2) ./pyproject.toml under [tool.relq]

        Returns defaults if no file is present.

        Raises:
            IoConfigError: If a candidate file exists but is not valid TOML.
        """
        s = cls()

        def _load_toml(p: Path) -> dict[str, Any]:
            try:
                with p.open("rb") as fh:
                    return tomllib.load(fh)
            except tomllib.TOMLDecodeError as exc:
                raise IoConfigError(f"invalid TOML in {p}: {exc}") from exc

        cfg: dict[str, Any] | None = None

        cand: list[Path] = []
        if path is not None:
            cand.append(Path(path))
        else:
            cand.append(Path.cwd() / "relq.toml")
            cand.append(Path.cwd() / "pyproject.toml")

        for p in cand:
            if not p.exists():
                continue
            data = _load_toml(p)
            if p.name == "pyproject.toml":
                tool = data.get("tool", {})
                cfg = tool.get("relq", {}) if isinstance(tool, dict) else None
            elif isinstance(data.get("query"), dict):
                cfg = data["query"]
            else:
                cfg = data
            if cfg:
                break

        return cls._apply_mapping(s, cfg)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> QuerySettings:
        """
        Load QuerySettings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search defaults (relq.toml, pyproject.toml).

        Returns:
            QuerySettings
        """
        s = cls.from_toml(path)
        s = cls.from_env(base=s)
        return s
