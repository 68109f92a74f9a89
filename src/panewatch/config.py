"""
User configuration file handling.

Config lives at ~/.panewatch/config.yaml (or $PANEWATCH_STATE_DIR/config.yaml).
Everything is optional; a missing or broken file means "use defaults".

Example:
    monitor:
      interval: 2
      max_probe_workers: 4
      legacy_probes: false
    notifications:
      enabled: true
      mode: both
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _default_config_path() -> Path:
    state_dir = os.environ.get("PANEWATCH_STATE_DIR")
    if state_dir:
        return Path(state_dir) / "config.yaml"
    return Path.home() / ".panewatch" / "config.yaml"


CONFIG_PATH = _default_config_path()


def load_config() -> Dict[str, Any]:
    """Load the config file, returning {} when missing or unusable."""
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_config(config: Dict[str, Any]) -> None:
    """Write the config dict back to disk as YAML."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_PATH, "w") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)


def get_monitor_config() -> Dict[str, Any]:
    """The `monitor:` section (refresh engine tuning)."""
    section = load_config().get("monitor")
    return section if isinstance(section, dict) else {}


def get_notification_config() -> Dict[str, Any]:
    """The `notifications:` section.

    Returns:
        Dict with 'enabled' (bool) and 'mode' (off/sound/banner/both)
    """
    section = load_config().get("notifications")
    if not isinstance(section, dict):
        section = {}
    return {
        "enabled": bool(section.get("enabled", False)),
        "mode": str(section.get("mode", "both")),
    }


def get_tmux_socket() -> Optional[str]:
    """Tmux socket name from the environment, then config."""
    env = os.environ.get("PANEWATCH_TMUX_SOCKET")
    if env:
        return env
    socket = get_monitor_config().get("tmux_socket")
    return str(socket) if socket else None
