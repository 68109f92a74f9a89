"""
Runtime settings and paths for panewatch.

Values resolve in order: built-in defaults < config file `monitor:` section
< explicit overrides (CLI flags). The refresh engine validates the result
before it starts; an unusable value raises ConfigError.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError


# =============================================================================
# Paths
# =============================================================================

def get_state_dir() -> Path:
    """Base directory for logs and config (respects PANEWATCH_STATE_DIR)."""
    state_dir = os.environ.get("PANEWATCH_STATE_DIR")
    if state_dir:
        return Path(state_dir)
    return Path.home() / ".panewatch"


def get_log_path() -> Path:
    """Log file used by `panewatch watch`."""
    return get_state_dir() / "monitor.log"


def get_export_path() -> Path:
    """Default destination for exported pane statistics."""
    return get_state_dir() / "stats.json"


# =============================================================================
# Monitor settings
# =============================================================================

@dataclass(frozen=True)
class MonitorSettings:
    """Tuning knobs for the refresh engine and its collaborators."""

    interval: float = 2.0  # target seconds between cycle starts
    min_gap: float = 1.0  # always idle at least this long, even after an overrun
    max_probe_workers: int = 4  # K: ceiling on concurrent resolver calls
    list_timeout: float = 3.0  # tmux list-panes
    probe_timeout: float = 2.0  # capture-pane / ps / lsof
    cost_timeout: float = 5.0
    cwd_ttl: float = 30.0
    log_path_ttl: float = 60.0
    legacy_probes: bool = False
    legacy_probe_ttl: float = 10.0  # minimum seconds between scrapes of one pane
    capture_lines: int = 40
    tmux_socket: Optional[str] = None
    notify: bool = False
    notify_mode: str = "both"
    auto_jump: bool = False
    show_all: bool = False

    def validate(self) -> "MonitorSettings":
        """Raise ConfigError if any value is unusable, else return self."""
        for name in ("interval", "min_gap", "list_timeout", "probe_timeout", "cost_timeout"):
            _require_positive(name, getattr(self, name))
        for name in ("cwd_ttl", "log_path_ttl", "legacy_probe_ttl"):
            _require_non_negative(name, getattr(self, name))
        if isinstance(self.max_probe_workers, bool) or not isinstance(self.max_probe_workers, int) \
                or self.max_probe_workers < 1:
            raise ConfigError(f"max_probe_workers must be a positive integer, got {self.max_probe_workers!r}")
        if isinstance(self.capture_lines, bool) or not isinstance(self.capture_lines, int) \
                or self.capture_lines < 1:
            raise ConfigError(f"capture_lines must be a positive integer, got {self.capture_lines!r}")
        return self

    def with_overrides(self, **overrides: Any) -> "MonitorSettings":
        """Copy with non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_positive(name: str, value: Any) -> None:
    if not _is_number(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive number, got {value!r}")


def _require_non_negative(name: str, value: Any) -> None:
    if not _is_number(value) or value < 0:
        raise ConfigError(f"{name} must be a non-negative number, got {value!r}")


_FIELD_NAMES = {f.name for f in fields(MonitorSettings)}


def settings_from_dict(data: Dict[str, Any]) -> MonitorSettings:
    """Build settings from a config mapping, ignoring unknown keys."""
    known = {k: v for k, v in data.items() if k in _FIELD_NAMES}
    return MonitorSettings(**known)


def load_settings(**overrides: Any) -> MonitorSettings:
    """Resolve settings from defaults, config file and overrides.

    Raises:
        ConfigError: if the resolved values are unusable
    """
    from .config import get_monitor_config, get_notification_config, get_tmux_socket

    data = dict(get_monitor_config())
    notifications = get_notification_config()
    data.setdefault("notify", notifications["enabled"])
    data.setdefault("notify_mode", notifications["mode"])
    socket = get_tmux_socket()
    if socket:
        data["tmux_socket"] = socket

    settings = settings_from_dict(data).with_overrides(**overrides)
    return settings.validate()
