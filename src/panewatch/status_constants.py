"""
Status and provider constants for panewatch.

Centralizes the closed sets of agent providers and statuses, the table that
maps published pane-option tokens onto them, and the display mappings
(icons, labels, colors, sort order) used by the CLI.
"""

import re
from typing import Dict, Optional, Tuple


# =============================================================================
# Agent Status Values
# =============================================================================

STATUS_WORKING = "working"
STATUS_WAITING_INPUT = "waiting_input"
STATUS_PERMISSION = "permission"
STATUS_NOT_DETECTED = "not_detected"

ALL_STATUSES = [
    STATUS_WORKING,
    STATUS_WAITING_INPUT,
    STATUS_PERMISSION,
    STATUS_NOT_DETECTED,
]


# =============================================================================
# Providers
# =============================================================================

PROVIDER_CLAUDE = "claude"
PROVIDER_GEMINI = "gemini"
PROVIDER_CODEX = "codex"
PROVIDER_NONE = "none"

ALL_PROVIDERS = [PROVIDER_CLAUDE, PROVIDER_GEMINI, PROVIDER_CODEX]

# Raw @agent_provider values -> provider
PROVIDER_ALIASES: Dict[str, str] = {
    "claude": PROVIDER_CLAUDE,
    "claude-code": PROVIDER_CLAUDE,
    "gemini": PROVIDER_GEMINI,
    "gemini-cli": PROVIDER_GEMINI,
    "codex": PROVIDER_CODEX,
}

PROVIDER_DISPLAY_NAMES: Dict[str, str] = {
    PROVIDER_CLAUDE: "Claude",
    PROVIDER_GEMINI: "Gemini",
    PROVIDER_CODEX: "Codex",
    PROVIDER_NONE: "-",
}


def normalize_provider(raw: Optional[str]) -> str:
    """Map a raw @agent_provider value to a known provider (or none)."""
    if not raw:
        return PROVIDER_NONE
    return PROVIDER_ALIASES.get(raw.strip().lower(), PROVIDER_NONE)


# =============================================================================
# Published Status Table
# =============================================================================

# @agent_status tokens the hooks publish. Matching is exact (after
# trimming); any other token is no signal.
_STATUS_TOKENS: Dict[str, str] = {
    "working": STATUS_WORKING,
    "waiting": STATUS_WAITING_INPUT,
    "permission": STATUS_PERMISSION,
}

# (provider, token) -> status; unknown pairs map to not_detected
PUBLISHED_STATUS_TABLE: Dict[Tuple[str, str], str] = {
    (provider, token): status
    for provider in ALL_PROVIDERS + [PROVIDER_NONE]
    for token, status in _STATUS_TOKENS.items()
}


def map_published_status(provider: str, token: Optional[str]) -> str:
    """Look up the status for a published @agent_status token."""
    if not token:
        return STATUS_NOT_DETECTED
    return PUBLISHED_STATUS_TABLE.get((provider, token.strip()), STATUS_NOT_DETECTED)


# =============================================================================
# Stale-option guard
# =============================================================================

# Commands tmux reports (#{pane_current_command}) while each agent runs
PROVIDER_COMMANDS: Dict[str, Tuple[str, ...]] = {
    PROVIDER_CLAUDE: ("claude", "node"),
    PROVIDER_GEMINI: ("gemini", "node"),
    PROVIDER_CODEX: ("codex", "node"),
}

# Claude's binary renames its process title to its version, e.g. "2.1.7"
_VERSION_COMMAND = re.compile(r"^\d+(\.\d+)+$")


def is_version_string(command: str) -> bool:
    return bool(_VERSION_COMMAND.match(command.strip()))


def is_agent_command(provider: str, command: Optional[str]) -> bool:
    """Check whether the pane's foreground command can be the given agent.

    Unknown providers and unknown commands (empty string) are given the
    benefit of the doubt.
    """
    if not command or provider not in PROVIDER_COMMANDS:
        return True
    command = command.strip().lower()
    if provider == PROVIDER_CLAUDE and is_version_string(command):
        return True
    if provider == PROVIDER_CODEX and command.startswith("codex"):
        return True
    return command in PROVIDER_COMMANDS[provider]


# =============================================================================
# Display mappings
# =============================================================================

STATUS_ICONS = {
    STATUS_WAITING_INPUT: ">_",
    STATUS_PERMISSION: "⚠",
    STATUS_WORKING: "◐",
    STATUS_NOT_DETECTED: "--",
}

STATUS_LABELS = {
    STATUS_WAITING_INPUT: "Waiting for input",
    STATUS_PERMISSION: "Permission required",
    STATUS_WORKING: "Working",
    STATUS_NOT_DETECTED: "Not detected",
}

STATUS_COLORS = {
    STATUS_WAITING_INPUT: "cyan",
    STATUS_PERMISSION: "red",
    STATUS_WORKING: "yellow",
    STATUS_NOT_DETECTED: "dim",
}

# Lower sorts first: blocked agents at the top
STATUS_SORT_ORDER = {
    STATUS_PERMISSION: 0,
    STATUS_WORKING: 1,
    STATUS_WAITING_INPUT: 2,
    STATUS_NOT_DETECTED: 3,
}


def get_status_icon(status: str) -> str:
    """Get icon for a status (neutral '--' for anything unknown)."""
    return STATUS_ICONS.get(status, "--")


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, "Not detected")


def get_status_color(status: str) -> str:
    """Get Rich color name for a status."""
    return STATUS_COLORS.get(status, "dim")


def get_status_symbol(status: str) -> Tuple[str, str]:
    """Get (icon, color) tuple for a status."""
    return get_status_icon(status), get_status_color(status)


def get_sort_rank(status: str) -> int:
    return STATUS_SORT_ORDER.get(status, len(STATUS_SORT_ORDER))


# =============================================================================
# Status Categorization
# =============================================================================

def is_detected(status: str) -> bool:
    """Check if an agent was found in the pane."""
    return status != STATUS_NOT_DETECTED


def needs_attention(status: str) -> bool:
    """Check if status indicates user intervention is required."""
    return status in (STATUS_PERMISSION, STATUS_WAITING_INPUT)
