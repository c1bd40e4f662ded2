"""
Tests for configuration loading, config check, and logging setup.
"""

import logging
from pathlib import Path

import pytest

from stepwise.core.config.loader import ConfigError, find_config_file, load_config
from stepwise.core.observability.logging_config import resolve_level, setup_logging
from stepwise.core.use_cases.config_check import check_config


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path):
        loaded = load_config(None, search=False)
        assert loaded.path is None
        assert loaded.config.default_timeout == 120
        assert loaded.config.max_workers == 8
        assert loaded.config.auto_install is True

    def test_flat_file(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("default_timeout: 30\nmax_workers: 2\nsessions_dir: runs\n")
        loaded = load_config(cfg)
        assert loaded.config.default_timeout == 30
        assert loaded.config.max_workers == 2
        assert loaded.path == cfg
        assert loaded.sessions_dir == (tmp_path / "runs").resolve()

    def test_wrapped_file(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("stepwise:\n  auto_install: false\n")
        assert load_config(cfg).config.auto_install is False

    def test_tool_recipes(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text(
            "tools:\n"
            "  rustscan:\n"
            "    cli: rustscan\n"
            "    packages: {pacman: rustscan}\n"
        )
        tools = load_config(cfg).config.tools
        assert tools["rustscan"].packages == {"pacman": "rustscan"}

    def test_empty_file_is_defaults(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("")
        assert load_config(cfg).config.max_output_bytes == 65536

    def test_absolute_sessions_dir(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        target = tmp_path / "elsewhere"
        cfg.write_text(f"sessions_dir: {target}\n")
        assert load_config(cfg).sessions_dir == target

    def test_missing_explicit_path(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("default_timeout: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(cfg)

    def test_not_a_mapping(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(cfg)

    def test_invalid_values(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("max_workers: 0\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(cfg)

    def test_find_walks_up(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("{}\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == cfg.resolve()


class TestConfigCheck:
    def test_valid_file(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("auto_install: false\n")
        result = check_config(cfg)
        assert result.valid
        assert result.errors == []
        assert result.to_dict()["config"]["auto_install"] is False

    def test_invalid_file(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("max_workers: -1\n")
        result = check_config(cfg)
        assert not result.valid
        assert result.errors

    def test_recipe_without_packages_warns(self, tmp_path: Path):
        cfg = tmp_path / "stepwise.yml"
        cfg.write_text("auto_install: false\ntools:\n  mytool: {cli: mytool}\n")
        result = check_config(cfg)
        assert result.valid
        assert any("mytool" in w for w in result.warnings)


class TestLogging:
    def test_resolve_level_flags(self, monkeypatch):
        monkeypatch.delenv("STEPWISE_LOG_LEVEL", raising=False)
        assert resolve_level(debug=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level() == "WARNING"

    def test_resolve_level_env(self, monkeypatch):
        monkeypatch.setenv("STEPWISE_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        assert resolve_level(debug=True) == "DEBUG"

    def test_setup_with_file(self, tmp_path: Path):
        log_file = tmp_path / "stepwise.log"
        root = logging.getLogger()
        saved = (root.handlers[:], root.level)
        try:
            setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
            assert root.level == logging.DEBUG
            logging.getLogger("stepwise.test").debug("to file only")
            for h in root.handlers:
                h.flush()
            assert "to file only" in log_file.read_text()
        finally:
            for h in root.handlers:
                h.close()
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])
