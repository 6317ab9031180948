"""Tests for dashgen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from dashgen.config import ConfigError, DashgenConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, DashgenConfig)
    assert config.root == tmp_path.resolve()
    assert config.build.output_dir is None
    assert config.build.incremental is True
    assert config.build.render is False
    assert config.build.workers == 1
    assert config.backend.executable == "quarto"
    assert config.backend.extra_args == []
    assert config.cache.exclude_fields == []
    assert config.logging.level == "info"
    assert config.logging.file is None
    assert config.renderers is None


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text(
        """
build:
  output_dir: "public"
  incremental: false
  render: yes
  workers: 4
backend:
  executable: "/opt/quarto/bin/quarto"
  extra_args: ["--quiet"]
  templates_dir: "templates"
cache:
  exclude_fields: [subtitle, notes]
renderers:
  enabled: [bar, histogram]
logging:
  level: DEBUG
  file: logs/dashgen.log
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path / "dashboard.py", environ={})

    root = tmp_path.resolve()
    assert config.build.output_dir == root / "public"
    assert config.build.incremental is False
    assert config.build.render is True
    assert config.build.workers == 4
    assert config.backend.executable == "/opt/quarto/bin/quarto"
    assert config.backend.extra_args == ["--quiet"]
    assert config.backend.templates_dir == root / "templates"
    assert config.cache.exclude_fields == ["subtitle", "notes"]
    assert config.renderers == ["bar", "histogram"]
    assert config.logging.level == "debug"
    assert config.logging.file == root / "logs" / "dashgen.log"


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("build:\n  workers: -2\n  incremental: maybe\n", encoding="utf-8")

    config = load_config(tmp_path, environ={})

    assert config.build.workers == 1
    assert config.build.incremental is True


def test_environment_overrides_incremental(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("build:\n  incremental: true\n", encoding="utf-8")

    assert load_config(tmp_path, environ={"DASHGEN_INCREMENTAL": "0"}).build.incremental is False
    assert load_config(tmp_path, environ={"DASHGEN_INCREMENTAL": "on"}).build.incremental is True
    assert load_config(tmp_path, environ={"DASHGEN_INCREMENTAL": "?"}).build.incremental is True


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("build: [unterminated", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path, environ={})


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, environ={})


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path, environ={}).build.workers == 1


def test_unknown_log_level_raises(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text("logging:\n  level: loud\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="logging.level"):
        load_config(tmp_path, environ={})


def test_build_overrides_win_over_configured_values(tmp_path: Path) -> None:
    (tmp_path / ".dashgen.yml").write_text(
        "build:\n  output_dir: public\n  incremental: false\n  workers: 3\n", encoding="utf-8"
    )
    build = load_config(tmp_path, environ={}).build

    assert build.overridden() == {
        "incremental": False,
        "render": False,
        "workers": 3,
        "output_dir": tmp_path.resolve() / "public",
    }
    assert build.overridden(incremental=True, workers=1, output_dir=Path("elsewhere")) == {
        "incremental": True,
        "render": False,
        "workers": 1,
        "output_dir": Path("elsewhere"),
    }
