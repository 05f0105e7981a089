"""
Tests for configuration management

Tests cover:
- Configuration loading and defaults
- Dot-path reads and writes
- Configuration validation
- Persistence to disk
"""
import json

import pytest

from velo.utils.config import ConfigManager
from velo.utils.errors import InvalidConfigError, MissingConfigError


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


class TestConfigManagerInitialization:
    """Tests for ConfigManager initialization"""

    def test_creates_default_file(self, config_path):
        """Test a missing config file is created with defaults"""
        ConfigManager(config_path)
        assert config_path.exists()

        data = json.loads(config_path.read_text())
        assert data["queue"]["max_retries"] == 10

    def test_singleton(self, config_path):
        assert ConfigManager(config_path) is ConfigManager()

    def test_invalid_json_raises(self, config_path):
        config_path.write_text("{not json")
        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)

    def test_schema_violation_raises(self, config_path):
        config_path.write_text(json.dumps({"queue": {"max_retries": 0}}))
        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)


class TestConfigurationDefaults:
    """Tests for default configuration values"""

    def test_queue_defaults(self, config_path):
        config = ConfigManager(config_path)
        assert config.get_config("queue.max_retries") == 10
        assert config.get_config("queue.drain_interval_seconds") == 30
        assert config.get_config("queue.drain_on_reconnect") is True
        assert config.get_config("queue.backoff_base_seconds") == 2.0
        assert config.get_config("queue.backoff_max_seconds") == 300.0

    def test_quick_step_defaults(self, config_path):
        config = ConfigManager(config_path)
        assert config.get_config("quick_steps.seed_defaults") is True

    def test_unknown_key_returns_default(self, config_path):
        config = ConfigManager(config_path)
        assert config.get_config("queue.nope", "fallback") == "fallback"


class TestConfigurationUpdates:
    """Tests for set_config and reset_to_defaults"""

    def test_set_config_persists(self, config_path):
        config = ConfigManager(config_path)
        config.set_config("queue.drain_interval_seconds", 5)

        ConfigManager.reset()
        reloaded = ConfigManager(config_path)
        assert reloaded.get_config("queue.drain_interval_seconds") == 5

    def test_set_unknown_key_raises(self, config_path):
        config = ConfigManager(config_path)
        with pytest.raises(MissingConfigError):
            config.set_config("queue.frequency", 1)

    def test_set_unknown_section_raises(self, config_path):
        config = ConfigManager(config_path)
        with pytest.raises(MissingConfigError):
            config.set_config("nope.value", 1)

    def test_reset_to_defaults(self, config_path):
        config = ConfigManager(config_path)
        config.set_config("queue.max_retries", 3)
        config.reset_to_defaults()
        assert config.get_config("queue.max_retries") == 10

    def test_set_invalid_value_raises(self, config_path):
        config = ConfigManager(config_path)
        with pytest.raises(InvalidConfigError):
            config.set_config("queue.drain_interval_seconds", 0)
        assert config.get_config("queue.drain_interval_seconds") == 30
