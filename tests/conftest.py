"""
Pytest configuration for panewatch tests.

Registers markers and provides fixtures shared by all tests.
"""

import shutil

import pytest


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "requires_tmux: mark test as requiring a tmux binary"
    )


@pytest.fixture(scope="session")
def tmux_available():
    """Skip when tmux is not installed."""
    if shutil.which("tmux") is None:
        pytest.skip("tmux not installed or not in PATH")
    return True
