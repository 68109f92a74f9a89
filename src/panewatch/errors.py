"""
Exception hierarchy for panewatch.

Everything below the refresh engine is absorbed into degraded values;
these types exist so callers can tell *which* signal was unavailable.
Only ConfigError is fatal, and only at engine construction.
"""

from typing import Optional


class PanewatchError(Exception):
    """Base class for all panewatch errors."""


class ConfigError(PanewatchError):
    """Configuration is unusable (e.g. non-positive refresh interval)."""


# =============================================================================
# Process runner
# =============================================================================

class RunError(PanewatchError):
    """An external command did not produce a usable result."""

    def __init__(self, message: str, args: Optional[list] = None):
        super().__init__(message)
        self.command = list(args or [])


class RunTimeout(RunError):
    """Command exceeded its wall-clock timeout (or never got a slot)."""

    def __init__(self, args: list, timeout: float):
        super().__init__(f"{args[0] if args else '?'} timed out after {timeout}s", args)
        self.timeout = timeout


class SpawnError(RunError):
    """Command could not be started (missing binary, permissions, ...)."""


class NonZeroExit(RunError):
    """Command exited with a non-zero status."""

    def __init__(self, args: list, returncode: int, stderr: str = ""):
        detail = stderr.strip().splitlines()[0] if stderr.strip() else ""
        msg = f"{args[0] if args else '?'} exited with {returncode}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg, args)
        self.returncode = returncode
        self.stderr = stderr


class RunCancelled(RunError):
    """Command was killed by cancel_all() or the runner is closed."""


# =============================================================================
# Acquisition
# =============================================================================

class SourceUnavailable(PanewatchError):
    """The pane listing could not be obtained this cycle."""


class ParseAmbiguous(PanewatchError):
    """Scraped pane content had conflicting or no status indicators."""


# =============================================================================
# Cost
# =============================================================================

class CostError(PanewatchError):
    """Cost could not be computed; surfaced as 'cost unavailable'."""


class NoLogFound(CostError):
    """No session log exists for the pane's working directory."""


class CostParseError(CostError):
    """A session log exists but contained no usable usage records."""
