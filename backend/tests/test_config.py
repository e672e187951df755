"""Tests for engine configuration."""

from pathlib import Path

import pytest

from labelforge.config import DEFAULT_MAX_LOOP_ITERATIONS, EngineConfig, resolve_base_path

ENV_VARS = (
    "LABELFORGE_STRICT",
    "LABELFORGE_STRICT_LEXING",
    "LABELFORGE_MAX_LOOP_ITERATIONS",
    "LABELFORGE_PRESETS_PATH",
    "LABELFORGE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestEngineConfig:
    def test_defaults(self, tmp_path):
        config = EngineConfig.from_env(base_path=tmp_path)

        assert config.strict is False
        assert config.strict_lexing is False
        assert config.max_loop_iterations == DEFAULT_MAX_LOOP_ITERATIONS == 10_000
        assert config.presets_path == tmp_path / "presets"
        assert config.log_level == "INFO"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LABELFORGE_STRICT", "yes")
        monkeypatch.setenv("LABELFORGE_STRICT_LEXING", "TRUE")
        monkeypatch.setenv("LABELFORGE_MAX_LOOP_ITERATIONS", "50")
        monkeypatch.setenv("LABELFORGE_PRESETS_PATH", str(tmp_path / "mine"))
        monkeypatch.setenv("LABELFORGE_LOG_LEVEL", "debug")

        config = EngineConfig.from_env()

        assert config.strict is True
        assert config.strict_lexing is True
        assert config.max_loop_iterations == 50
        assert config.presets_path == tmp_path / "mine"
        assert config.log_level == "DEBUG"

    def test_false_flag_values(self, monkeypatch):
        monkeypatch.setenv("LABELFORGE_STRICT", "0")
        assert EngineConfig.from_env().strict is False

    def test_resolve_base_path_from_backend(self, monkeypatch, tmp_path):
        backend = tmp_path / "backend"
        backend.mkdir()

        monkeypatch.chdir(backend)
        assert resolve_base_path() == backend.parent

        monkeypatch.chdir(tmp_path)
        assert resolve_base_path() == Path(tmp_path)
