"""
Screen patterns for the legacy (scraping) status path.

Only consulted when a pane has no published agent options and legacy
probes are enabled. Each provider gets one ProviderPatterns entry:
- content_indicators identify which agent drew the screen
- permission_patterns are matched against the last few lines only
- working_indicators mean the agent is busy
- prompt_chars mark an empty input prompt (positive "waiting" signal)

Classification never guesses: content with no positive signal, or with
indicators of more than one provider, raises ParseAmbiguous.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ParseAmbiguous
from .status_constants import (
    PROVIDER_CLAUDE,
    PROVIDER_CODEX,
    PROVIDER_GEMINI,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
    is_version_string,
)

# Regex to match ANSI escape sequences (colors, cursor movement, etc.)
ANSI_ESCAPE_PATTERN = re.compile(r'\x1b\[[0-9;]*[a-zA-Z]')

# Trailing version in pane titles, e.g. "✳ Fix tests (2.1.7)" or "... v2.1.7"
_TITLE_VERSION_SUFFIX = re.compile(r'\s*\(?v?\d+(\.\d+)+\)?\s*$')


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return ANSI_ESCAPE_PATTERN.sub('', text)


@dataclass
class ProviderPatterns:
    """Patterns for one provider. Matching is case-sensitive unless noted."""

    content_indicators: List[str]
    working_indicators: List[str]
    # Lowercased match when permission_case_insensitive is set
    permission_patterns: List[str]
    permission_window: int = 5
    permission_case_insensitive: bool = False
    prompt_chars: List[str] = field(default_factory=lambda: [">", "›", "❯"])
    prompt_window: int = 8
    title_markers: List[str] = field(default_factory=list)


PATTERNS: Dict[str, ProviderPatterns] = {
    PROVIDER_CLAUDE: ProviderPatterns(
        content_indicators=["⏺ ", "⎿", "✢", "⏵⏵", "Claude Code"],
        working_indicators=["esc to interrupt"],
        permission_patterns=[
            "Yes, allow once",
            "Yes, allow always",
            "Yes, proceed",
            "No, deny",
            "Don't allow",
            "Allow once",
            "Allow always",
        ],
        permission_window=5,
        title_markers=["✳"],
    ),
    PROVIDER_GEMINI: ProviderPatterns(
        content_indicators=["Gemini CLI", "gemini>", "✦", "gemini-", "Google AI"],
        working_indicators=["Thinking", "Running"],
        permission_patterns=[
            "do you want to allow",
            "allow this action",
            "execute this command",
            "run this command",
            "(y/n)",
            "[y/n]",
        ],
        permission_window=10,
        permission_case_insensitive=True,
        prompt_chars=[">", "gemini>"],
    ),
    PROVIDER_CODEX: ProviderPatterns(
        content_indicators=["OpenAI Codex", "codex>"],
        working_indicators=["esc to interrupt", "Working ("],
        permission_patterns=[
            "Allow command?",
            "Yes, proceed",
            "approve this",
        ],
        permission_window=8,
        prompt_chars=["›", ">"],
    ),
}


def get_patterns(provider: str) -> Optional[ProviderPatterns]:
    return PATTERNS.get(provider)


def matches_any(text: str, patterns: List[str], case_sensitive: bool = True) -> bool:
    """Check if text contains any of the patterns."""
    if not case_sensitive:
        text = text.lower()
        return any(p.lower() in text for p in patterns)
    return any(p in text for p in patterns)


def tail_lines(content: str, count: int) -> List[str]:
    """Last `count` non-blank lines of content."""
    lines = [line for line in content.splitlines() if line.strip()]
    return lines[-count:]


def is_prompt_line(line: str, prompt_chars: List[str]) -> bool:
    """Check if a line is an (empty or partially typed) input prompt."""
    stripped = line.strip().strip("│").strip()
    return any(stripped == c or stripped.startswith(c + " ") for c in prompt_chars)


# =============================================================================
# Cheap pre-filter (no subprocess calls)
# =============================================================================

def guess_provider(current_command: str, title: str) -> Optional[str]:
    """Guess a provider from the foreground command and pane title alone.

    Used to decide whether a pane is worth scraping at all. Returns None
    when nothing suggests an agent.
    """
    command = (current_command or "").strip().lower()
    for provider, patterns in PATTERNS.items():
        if command and command.startswith(provider):
            return provider
        if any(marker in (title or "") for marker in patterns.title_markers):
            return provider
    if command and is_version_string(command):
        # Claude renames its process title to its version
        return PROVIDER_CLAUDE
    if command == "node":
        # Several agents run under node; content decides which
        return ""
    return None


def extract_title_task(title: str) -> Optional[str]:
    """Pull the current task out of a pane title ("✳ Fix the tests")."""
    if not title:
        return None
    for patterns in PATTERNS.values():
        for marker in patterns.title_markers:
            if title.startswith(marker):
                task = _TITLE_VERSION_SUFFIX.sub("", title[len(marker):]).strip()
                return task or None
    return None


# =============================================================================
# Content classification
# =============================================================================

def detect_provider(content: str) -> str:
    """Identify which agent drew the screen.

    Raises:
        ParseAmbiguous: no provider's indicators (or more than one's) present
    """
    found = [p for p, pats in PATTERNS.items() if matches_any(content, pats.content_indicators)]
    if len(found) != 1:
        raise ParseAmbiguous(
            f"content matches {len(found)} providers" if found else "no agent indicators"
        )
    return found[0]


def classify_screen(provider: str, content: str) -> str:
    """Map captured pane content to a status for a known provider.

    Pure function - no side effects, fully testable.

    Permission buttons near the bottom win; then working indicators; then
    a visible input prompt. Anything else is ambiguous.

    Raises:
        ParseAmbiguous: no positive status signal
    """
    patterns = get_patterns(provider)
    if patterns is None:
        raise ParseAmbiguous(f"no screen patterns for {provider!r}")

    content = strip_ansi(content)
    perm_tail = "\n".join(tail_lines(content, patterns.permission_window))
    if matches_any(perm_tail, patterns.permission_patterns,
                   case_sensitive=not patterns.permission_case_insensitive):
        return STATUS_PERMISSION

    tail = tail_lines(content, patterns.prompt_window)
    if matches_any("\n".join(tail), patterns.working_indicators):
        return STATUS_WORKING

    if any(is_prompt_line(line, patterns.prompt_chars) for line in tail):
        return STATUS_WAITING_INPUT

    raise ParseAmbiguous("no status indicators in pane content")
