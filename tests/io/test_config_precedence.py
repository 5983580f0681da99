from __future__ import annotations

from pathlib import Path

import pytest

from relq.core.constants import DEFAULT_GROUP_ID_COLUMN, DEFAULT_MAX_WORKERS, MAX_DEPTH_UNLIMITED
from relq.io.config import QuerySettings
from relq.io.errors import IoConfigError

ENV_KEYS = [
    "RELQ_MAX_DEPTH",
    "RELQ_MAX_WORKERS",
    "RELQ_GAP_INCLUSIVE",
    "RELQ_GROUP_ID_COLUMN",
    "RELQ_STRICT_SCHEMA",
]


def _clear_env(monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_relq_toml(tmp: Path, content: str) -> Path:
    p = tmp / "relq.toml"
    p.write_text(content)
    return p


def test_query_settings_precedence_env_over_toml(tmp_path: Path, monkeypatch) -> None:
    # Arrange TOML
    _write_relq_toml(
        tmp_path,
        """
        [query]
        max_depth = 10
        max_workers = 2
        gap_inclusive = true
        """.strip(),
    )
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    # Arrange ENV that should override TOML
    monkeypatch.setenv("RELQ_MAX_DEPTH", "25")
    monkeypatch.setenv("RELQ_GAP_INCLUSIVE", "off")

    s = QuerySettings.load()

    assert s.max_depth == 25  # env override
    assert s.max_workers == 2  # from TOML
    assert s.gap_inclusive is False  # env override


def test_query_settings_from_top_level_toml_keys(tmp_path: Path, monkeypatch) -> None:
    _write_relq_toml(tmp_path, 'group_id_column = "run"\nstrict_schema = false\n')
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    s = QuerySettings.load()

    assert s.group_id_column == "run"
    assert s.strict_schema is False


def test_query_settings_from_pyproject_tool_table(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "x"\n\n[tool.relq]\nmax_workers = 8\n'
    )
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    assert QuerySettings.load().max_workers == 8


def test_query_settings_defaults_when_no_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    s = QuerySettings.load()

    # Defaults from QuerySettings / relq.core.constants
    assert s.max_depth == MAX_DEPTH_UNLIMITED
    assert s.max_workers == DEFAULT_MAX_WORKERS
    assert s.gap_inclusive is True
    assert s.group_id_column == DEFAULT_GROUP_ID_COLUMN
    assert s.strict_schema is True


def test_explicit_path_is_used(tmp_path: Path, monkeypatch) -> None:
    cfg = tmp_path / "custom.toml"
    cfg.write_text("[query]\nmax_depth = 3\n")
    _clear_env(monkeypatch)

    assert QuerySettings.load(cfg).max_depth == 3


@pytest.mark.parametrize(
    "env,value",
    [
        ("RELQ_MAX_DEPTH", "deep"),
        ("RELQ_MAX_DEPTH", "-1"),
        ("RELQ_MAX_WORKERS", "0"),
    ],
)
def test_invalid_values_raise_config_error(tmp_path: Path, monkeypatch, env: str, value: str) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    monkeypatch.setenv(env, value)
    with pytest.raises(IoConfigError):
        QuerySettings.load()


def test_malformed_toml_raises_config_error(tmp_path: Path, monkeypatch) -> None:
    _write_relq_toml(tmp_path, "[query\nmax_depth = ")
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    with pytest.raises(IoConfigError):
        QuerySettings.load()
