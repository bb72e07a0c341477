"""Tests for engine configuration."""

import pytest

from interpolant.config import EngineConfig, load_config
from interpolant.exceptions import ConfigError


def test_defaults():
    """Defaults match the documented engine behavior."""
    config = EngineConfig()
    assert config.use_cache is True
    assert config.ctx_name == "ctx"
    assert config.recursion_limit == 9
    assert config.exec_fn_name == "partial"
    assert config.local_var_name == "PARTIAL"
    assert config.self_ref_key_name == "SELF"
    assert config.on_duplicate == "overwrite"


@pytest.mark.parametrize(
    "field,value",
    [
        ("ctx_name", "not valid"),
        ("ctx_name", "globals\n"),
        ("recursion_limit", -1),
        ("on_duplicate", "merge"),
    ],
)
def test_invalid_values(field, value):
    """Bad identifiers, limits and policies are rejected."""
    with pytest.raises(ValueError):
        EngineConfig(**{field: value})


def test_load_config(tmp_path):
    """YAML files populate the model."""
    path = tmp_path / "interpolant.yaml"
    path.write_text("ctx_name: globals\nrecursion_limit: 3\non_duplicate: ignore\n")
    config = load_config(path)
    assert config.ctx_name == "globals"
    assert config.recursion_limit == 3
    assert config.on_duplicate == "ignore"


@pytest.mark.parametrize(
    "content", ["unknown_key: 1\n", "- a\n- b\n", "ctx_name: [\n"]
)
def test_load_config_errors(tmp_path, content):
    """Unknown keys, non-mappings and bad YAML raise ConfigError."""
    path = tmp_path / "interpolant.yaml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_missing_config_file(tmp_path):
    """A missing file raises ConfigError."""
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")


def test_from_env(monkeypatch):
    """INTERPOLANT_* variables override the base config."""
    monkeypatch.setenv("INTERPOLANT_RECURSION_LIMIT", "4")
    monkeypatch.setenv("INTERPOLANT_USE_CACHE", "false")
    config = EngineConfig.from_env(EngineConfig(ctx_name="globals"))
    assert config.recursion_limit == 4
    assert config.use_cache is False
    assert config.ctx_name == "globals"


def test_from_env_invalid(monkeypatch):
    """Invalid environment values raise ConfigError."""
    monkeypatch.setenv("INTERPOLANT_RECURSION_LIMIT", "many")
    with pytest.raises(ConfigError):
        EngineConfig.from_env()
