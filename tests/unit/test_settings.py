"""
Tests for monitor settings resolution and validation.
"""

from pathlib import Path

import pytest

from panewatch import config
from panewatch.errors import ConfigError
from panewatch.settings import (
    MonitorSettings,
    get_export_path,
    get_log_path,
    get_state_dir,
    load_settings,
    settings_from_dict,
)


class TestPaths:
    """State paths honour PANEWATCH_STATE_DIR"""

    def test_env_override(self, isolated_state_dir):
        assert get_state_dir() == isolated_state_dir
        assert get_log_path() == isolated_state_dir / "monitor.log"
        assert get_export_path() == isolated_state_dir / "stats.json"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("PANEWATCH_STATE_DIR")
        assert get_state_dir() == Path.home() / ".panewatch"


class TestValidate:
    """Test MonitorSettings.validate"""

    def test_defaults_valid(self):
        settings = MonitorSettings()
        assert settings.validate() is settings
        assert settings.interval == 2.0
        assert settings.max_probe_workers == 4
        assert settings.cwd_ttl == 30.0
        assert settings.legacy_probes is False

    @pytest.mark.parametrize("overrides", [
        {"interval": 0},
        {"interval": -2},
        {"interval": "fast"},
        {"list_timeout": 0},
        {"probe_timeout": -1},
        {"min_gap": -1},
        {"min_gap": 0},
        {"cost_timeout": 0},
        {"cwd_ttl": -5},
        {"max_probe_workers": 0},
        {"max_probe_workers": 2.5},
        {"max_probe_workers": True},
        {"capture_lines": 0},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ConfigError):
            MonitorSettings(**overrides).validate()

    def test_zero_ttl_allowed(self):
        MonitorSettings(cwd_ttl=0, log_path_ttl=0, legacy_probe_ttl=0).validate()


class TestOverrides:
    """Test with_overrides and settings_from_dict"""

    def test_none_ignored(self):
        settings = MonitorSettings().with_overrides(interval=None, notify=True)
        assert settings.interval == 2.0
        assert settings.notify is True

    def test_unknown_keys_ignored(self):
        settings = settings_from_dict({"interval": 5, "colour": "blue"})
        assert settings.interval == 5


class TestLoadSettings:
    """Defaults, then config file, then explicit overrides"""

    def test_defaults(self):
        assert load_settings() == MonitorSettings()

    def test_config_file(self):
        config.save_config({
            "monitor": {"interval": 4, "legacy_probes": True, "tmux_socket": "work"},
            "notifications": {"enabled": True, "mode": "banner"},
        })
        settings = load_settings()
        assert settings.interval == 4
        assert settings.legacy_probes is True
        assert settings.tmux_socket == "work"
        assert settings.notify is True
        assert settings.notify_mode == "banner"

    def test_overrides_win(self):
        config.save_config({"monitor": {"interval": 4}})
        assert load_settings(interval=1.5).interval == 1.5

    def test_socket_env(self, monkeypatch):
        monkeypatch.setenv("PANEWATCH_TMUX_SOCKET", "test")
        assert load_settings().tmux_socket == "test"

    def test_invalid_config_raises(self):
        config.save_config({"monitor": {"interval": 0}})
        with pytest.raises(ConfigError):
            load_settings()
