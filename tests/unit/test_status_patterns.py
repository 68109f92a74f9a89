"""
Tests for screen scraping patterns used by legacy screen capture.
"""

import pytest

from panewatch.errors import ParseAmbiguous
from panewatch.status_constants import (
    PROVIDER_CLAUDE,
    PROVIDER_CODEX,
    PROVIDER_GEMINI,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
)
from panewatch.status_patterns import (
    classify_screen,
    detect_provider,
    extract_title_task,
    guess_provider,
    is_prompt_line,
    matches_any,
    strip_ansi,
    tail_lines,
)


CLAUDE_WORKING = """\
⏺ Reading src/app.py
  ⎿  Read 120 lines

✢ Thinking… (12s · esc to interrupt)
"""

CLAUDE_PERMISSION = """\
⏺ Bash(rm -rf build/)
 Do you want to proceed?
 ❯ 1. Yes, allow once
   2. Yes, allow always
   3. No, deny
"""

CLAUDE_WAITING = """\
⏺ Done. All 42 tests pass.

╭──────────────────────────────╮
│ >                            │
╰──────────────────────────────╯
  ⏵⏵ accept edits on
"""

GEMINI_PERMISSION = """\
✦ I will run the test suite.
Do you want to allow this action? (y/n)
"""

CODEX_WORKING = """\
OpenAI Codex (v0.40)
• Working (8s • esc to interrupt)
"""


class TestHelpers:
    """Test small text helpers"""

    def test_strip_ansi(self):
        assert strip_ansi("\x1b[31mred\x1b[0m text") == "red text"

    def test_matches_any_case(self):
        assert matches_any("Allow This", ["allow this"], case_sensitive=False)
        assert not matches_any("Allow This", ["allow this"])

    def test_tail_lines_skips_blank(self):
        assert tail_lines("a\n\nb\n  \nc\n", 2) == ["b", "c"]

    @pytest.mark.parametrize("line,expected", [
        (">", True),
        ("> fix the", True),
        ("│ >                │", True),
        ("->", False),
        (">>> import os", False),
    ])
    def test_prompt_line(self, line, expected):
        assert is_prompt_line(line, [">"]) == expected


class TestGuessProvider:
    """Cheap pre-filter on command and title"""

    @pytest.mark.parametrize("command,title,expected", [
        ("claude", "", PROVIDER_CLAUDE),
        ("2.1.7", "", PROVIDER_CLAUDE),
        ("zsh", "✳ Fix tests", PROVIDER_CLAUDE),
        ("gemini", "", PROVIDER_GEMINI),
        ("codex-aarch64", "", PROVIDER_CODEX),
        ("node", "", ""),
        ("zsh", "zsh", None),
        ("vim", "", None),
        ("", "", None),
    ])
    def test_guess(self, command, title, expected):
        assert guess_provider(command, title) == expected


class TestExtractTitleTask:
    """Task text from Claude's pane title"""

    def test_marker_and_version_stripped(self):
        assert extract_title_task("✳ Fix the login bug (2.1.7)") == "Fix the login bug"

    def test_plain_title(self):
        assert extract_title_task("zsh") is None
        assert extract_title_task("") is None

    def test_marker_only(self):
        assert extract_title_task("✳ ") is None


class TestDetectProvider:
    """Identify which agent drew the screen"""

    def test_claude(self):
        assert detect_provider(CLAUDE_WORKING) == PROVIDER_CLAUDE

    def test_codex(self):
        assert detect_provider(CODEX_WORKING) == PROVIDER_CODEX

    def test_nothing_matches(self):
        with pytest.raises(ParseAmbiguous):
            detect_provider("$ ls\nREADME.md\n$ ")

    def test_multiple_match(self):
        with pytest.raises(ParseAmbiguous):
            detect_provider("Claude Code and OpenAI Codex side by side")


class TestClassifyScreen:
    """Map screen content to a status"""

    def test_claude_working(self):
        assert classify_screen(PROVIDER_CLAUDE, CLAUDE_WORKING) == STATUS_WORKING

    def test_claude_permission(self):
        assert classify_screen(PROVIDER_CLAUDE, CLAUDE_PERMISSION) == STATUS_PERMISSION

    def test_claude_waiting(self):
        assert classify_screen(PROVIDER_CLAUDE, CLAUDE_WAITING) == STATUS_WAITING_INPUT

    def test_gemini_permission_case_insensitive(self):
        assert classify_screen(PROVIDER_GEMINI, GEMINI_PERMISSION) == STATUS_PERMISSION

    def test_codex_working(self):
        assert classify_screen(PROVIDER_CODEX, CODEX_WORKING) == STATUS_WORKING

    def test_permission_beats_working(self):
        content = CLAUDE_WORKING + CLAUDE_PERMISSION
        assert classify_screen(PROVIDER_CLAUDE, content) == STATUS_PERMISSION

    def test_old_permission_text_scrolled_away(self):
        content = CLAUDE_PERMISSION + "\n".join(f"⏺ line {i}" for i in range(10)) + "\n✢ esc to interrupt\n"
        assert classify_screen(PROVIDER_CLAUDE, content) == STATUS_WORKING

    def test_ansi_is_ignored(self):
        content = "\x1b[2m✢ Thinking… (esc to interrupt)\x1b[0m\n"
        assert classify_screen(PROVIDER_CLAUDE, content) == STATUS_WORKING

    def test_no_signal_is_ambiguous(self):
        with pytest.raises(ParseAmbiguous):
            classify_screen(PROVIDER_CLAUDE, "⏺ Some output\nmore output\n")

    def test_unknown_provider_is_ambiguous(self):
        with pytest.raises(ParseAmbiguous):
            classify_screen("aider", CLAUDE_WORKING)
