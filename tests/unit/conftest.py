"""
Unit test configuration for panewatch.

Every unit test gets its own state directory so nothing touches the
user's ~/.panewatch.
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path, monkeypatch):
    """Point PANEWATCH_STATE_DIR and the config path at a temp directory."""
    from panewatch import config

    state_dir = tmp_path / "state"
    state_dir.mkdir()
    monkeypatch.setenv("PANEWATCH_STATE_DIR", str(state_dir))
    monkeypatch.delenv("PANEWATCH_TMUX_SOCKET", raising=False)
    monkeypatch.delenv("TMUX_PANE", raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", state_dir / "config.yaml")
    yield state_dir
