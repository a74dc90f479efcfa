"""
Unit tests for the akv-tui configuration system.
"""

from pathlib import Path

import pytest
import yaml

from akv_tui.config import (
    Config,
    ConfigurationError,
    apply_env_overrides,
    clear_config_cache,
    deep_merge,
    get_config,
    get_nested_value,
    load_config,
    load_yaml_file,
    set_nested_value,
)
from akv_tui.storage.paths import get_akv_home, get_default_log_path, get_global_config_path


# =============================================================================
# Schema Tests
# =============================================================================


class TestConfigSchema:
    """Tests for the Config Pydantic schema."""

    def test_default_config_is_valid(self):
        """Test that the default Config() is valid."""
        config = Config()
        assert config.auth.skew_margin_seconds == 120.0
        assert config.retry.max_attempts == 3
        assert config.remote.page_size == 25
        assert config.cache.preload_all is False
        assert config.ui.mask_values is True

    def test_config_from_dict(self):
        """Test Config validation from a dictionary."""
        config = Config.model_validate(
            {"retry": {"max_attempts": 5}, "cache": {"preload_all": True}}
        )
        assert config.retry.max_attempts == 5
        assert config.cache.preload_all is True
        assert config.remote.timeout_seconds == 30.0

    @pytest.mark.parametrize(
        "data",
        [
            {"retry": {"max_attempts": 0}},
            {"remote": {"timeout_seconds": 0}},
            {"remote": {"page_size": 26}},
            {"auth": {"skew_margin_seconds": -1}},
            {"cache": {"preload_concurrency": 0}},
        ],
    )
    def test_config_with_invalid_values(self, data):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValueError):
            Config.model_validate(data)


# =============================================================================
# Merge Tests
# =============================================================================


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_merge(self):
        base = {"retry": {"max_attempts": 3, "backoff_base_seconds": 0.5}}
        result = deep_merge(base, {"retry": {"max_attempts": 5}})
        assert result == {"retry": {"max_attempts": 5, "backoff_base_seconds": 0.5}}
        assert base["retry"]["max_attempts"] == 3

    def test_null_removes_key(self):
        """Test that a null value removes the key."""
        assert deep_merge({"a": 1, "b": 2}, {"a": None}) == {"b": 2}

    def test_list_replaced(self):
        assert deep_merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}


class TestNestedValue:
    """Tests for dotted-path access."""

    def test_get_nested_value(self):
        config = {"retry": {"max_attempts": 3}}
        assert get_nested_value(config, "retry.max_attempts") == 3
        assert get_nested_value(config, "retry.missing", "default") == "default"
        assert get_nested_value(config, "retry.max_attempts.deeper") is None

    def test_set_nested_value_creates_levels(self):
        config: dict = {}
        set_nested_value(config, "cache.preload_all", True)
        assert config == {"cache": {"preload_all": True}}


# =============================================================================
# Loader Tests
# =============================================================================


class TestConfigLoader:
    """Tests for configuration loading."""

    def test_load_yaml_file(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.safe_dump({"retry": {"max_attempts": 4}}))
        assert load_yaml_file(path) == {"retry": {"max_attempts": 4}}

    def test_load_yaml_file_not_found(self, temp_dir):
        """Test that a missing file loads as empty."""
        assert load_yaml_file(temp_dir / "missing.yaml") == {}

    def test_load_yaml_file_empty(self, temp_dir):
        path = temp_dir / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_load_yaml_file_invalid(self, temp_dir):
        """Test that malformed YAML raises ConfigurationError."""
        path = temp_dir / "bad.yaml"
        path.write_text("retry: [unclosed")
        with pytest.raises(ConfigurationError):
            load_yaml_file(path)

    def test_load_yaml_file_not_a_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="Expected a mapping"):
            load_yaml_file(path)

    def test_load_config_defaults(self, mock_akv_home):
        """Test loading with no config file present."""
        config = load_config(skip_env=True)
        assert config == Config()

    def test_load_config_with_global(self, mock_akv_home):
        """Test that the global config file is merged over defaults."""
        (mock_akv_home / "config.yaml").write_text(
            yaml.safe_dump({"cache": {"preload_all": True, "preload_concurrency": 8}})
        )

        config = load_config()

        assert config.cache.preload_all is True
        assert config.cache.preload_concurrency == 8
        assert config.retry.max_attempts == 3

    def test_load_config_explicit_path(self, mock_akv_home, temp_dir):
        path = temp_dir / "custom.yaml"
        path.write_text(yaml.safe_dump({"remote": {"timeout_seconds": 10}}))

        assert load_config(config_path=path).remote.timeout_seconds == 10.0

    def test_load_config_explicit_path_missing(self, mock_akv_home, temp_dir):
        """Test that an explicit path must exist."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(config_path=temp_dir / "nope.yaml")

    def test_load_config_from_akv_config_env(self, mock_akv_home, temp_dir, monkeypatch):
        path = temp_dir / "from-env.yaml"
        path.write_text(yaml.safe_dump({"ui": {"dark": False}}))
        monkeypatch.setenv("AKV_CONFIG", str(path))

        assert load_config().ui.dark is False

    def test_load_config_env_override(self, mock_akv_home, monkeypatch):
        """Test AKV_<SECTION>__<KEY> overrides."""
        monkeypatch.setenv("AKV_RETRY__MAX_ATTEMPTS", "7")
        monkeypatch.setenv("AKV_CACHE__PRELOAD_ALL", "yes")
        monkeypatch.setenv("AKV_AUTH__SKEW_MARGIN_SECONDS", "30.5")

        config = load_config()

        assert config.retry.max_attempts == 7
        assert config.cache.preload_all is True
        assert config.auth.skew_margin_seconds == 30.5

    def test_env_without_section_ignored(self, monkeypatch):
        """Test that variables without a section separator are skipped."""
        monkeypatch.setenv("AKV_SOMETHING", "1")
        assert apply_env_overrides({}) == {}

    def test_load_config_invalid_value(self, mock_akv_home, monkeypatch):
        monkeypatch.setenv("AKV_RETRY__MAX_ATTEMPTS", "0")
        with pytest.raises(ConfigurationError, match="validation failed"):
            load_config()

    def test_get_config_cached(self, mock_akv_home):
        """Test that get_config returns one instance until reloaded."""
        first = get_config()
        assert get_config() is first
        assert get_config(reload=True) is not first

        clear_config_cache()
        assert get_config() is not first


# =============================================================================
# Path Tests
# =============================================================================


class TestPaths:
    """Tests for path utilities."""

    def test_get_akv_home_default(self, monkeypatch):
        monkeypatch.delenv("AKV_HOME", raising=False)
        assert get_akv_home() == Path.home() / ".akv"

    def test_get_akv_home_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("AKV_HOME", str(temp_dir))
        assert get_akv_home() == temp_dir.resolve()

    def test_derived_paths(self, mock_akv_home):
        assert get_global_config_path() == mock_akv_home.resolve() / "config.yaml"
        assert get_default_log_path() == mock_akv_home.resolve() / "akv.log"
