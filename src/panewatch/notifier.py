"""
Desktop notifications for agent transitions.

Sends a native notification when an agent finishes (working -> waiting)
or asks for permission, so users working in other apps notice. Events
are queued while a snapshot is processed and flushed as one coalesced
notification.
"""

import shutil
import sys
import time
from typing import List, Optional, Tuple

from .errors import RunError
from .logging_config import get_logger
from .protocols import CommandRunner
from .transitions import TransitionEvent, TransitionKind


log = get_logger(__name__)

NOTIFY_TIMEOUT = 2.0


class DesktopNotifier:
    """Coalescing notifier for agent transitions.

    Uses terminal-notifier when available on macOS (supports grouping),
    falling back to osascript; notify-send on Linux.
    """

    MODES = ("off", "sound", "banner", "both")

    def __init__(
        self,
        runner: CommandRunner,
        mode: str = "both",
        coalesce_seconds: float = 2.0,
        platform: Optional[str] = None,
    ):
        self.runner = runner
        self.mode = mode if mode in self.MODES else "off"
        self.coalesce_seconds = coalesce_seconds
        self.platform = platform or sys.platform
        self._pending: List[TransitionEvent] = []
        self._last_send: Optional[float] = None
        self._has_terminal_notifier: Optional[bool] = None  # lazy-detected

    @property
    def supported(self) -> bool:
        return self.platform == "darwin" or self.platform.startswith("linux")

    def queue(self, event: TransitionEvent) -> None:
        """Queue an event. No-ops when off, unsupported, or not notify-worthy."""
        if self.mode == "off" or not self.supported or not event.notify:
            return
        self._pending.append(event)

    def flush(self) -> bool:
        """Send one coalesced notification for queued events, then clear.

        Returns True if a notification was sent.
        """
        if not self._pending or self.mode == "off":
            self._pending.clear()
            return False

        now = time.monotonic()
        if self._last_send is not None and now - self._last_send < self.coalesce_seconds:
            # Too soon; hold until the next flush
            return False

        title, message = self._format(self._pending)
        self._send(title, message)
        self._last_send = now
        self._pending.clear()
        return True

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _format(events: List[TransitionEvent]) -> Tuple[str, str]:
        """Return (title, message) for the queued events."""
        if len(events) == 1:
            return events[0].notification_text()

        # Permission requests first, one entry per pane
        ordered = sorted(events, key=lambda e: e.kind != TransitionKind.PERMISSION)
        names: List[str] = []
        for event in ordered:
            name = event.folder_name or event.display_name
            if name not in names:
                names.append(name)
        title = "⚠️ Permission needed" if ordered[0].kind == TransitionKind.PERMISSION else "Agents ready"
        if len(names) == 1:
            return title, f"{names[0]} needs attention"
        elif len(names) == 2:
            return title, f"{names[0]} and {names[1]} need attention"
        elif len(names) == 3:
            return title, f"{names[0]}, {names[1]}, and {names[2]} need attention"
        others = len(names) - 2
        return title, f"{names[0]}, {names[1]}, and {others} others need attention"

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _send(self, title: str, message: str) -> None:
        want_sound = self.mode in ("sound", "both")
        want_banner = self.mode in ("banner", "both")
        if self.platform == "darwin":
            if self._use_terminal_notifier():
                cmd = self._terminal_notifier_command(title, message, want_sound, want_banner)
            else:
                cmd = self._osascript_command(title, message, want_sound, want_banner)
        else:
            cmd = self._notify_send_command(title, message, want_banner)
        if cmd is None:
            return
        try:
            self.runner.run(cmd, timeout=NOTIFY_TIMEOUT)
        except RunError as e:
            log.debug("notification failed: %s", e)

    def _use_terminal_notifier(self) -> bool:
        if self._has_terminal_notifier is None:
            self._has_terminal_notifier = shutil.which("terminal-notifier") is not None
        return self._has_terminal_notifier

    @staticmethod
    def _terminal_notifier_command(
        title: str, message: str, want_sound: bool, want_banner: bool,
    ) -> Optional[List[str]]:
        if not want_banner and not want_sound:
            return None
        cmd = ["terminal-notifier", "-title", title, "-group", "panewatch", "-message", message]
        if want_sound:
            cmd += ["-sound", "Hero"]
        return cmd

    @staticmethod
    def _osascript_command(
        title: str, message: str, want_sound: bool, want_banner: bool,
    ) -> Optional[List[str]]:
        if want_banner:
            script = (
                f'display notification "{_escape(message)}" '
                f'with title "{_escape(title)}"'
            )
            if want_sound:
                script += ' sound name "Hero"'
            return ["osascript", "-e", script]
        if want_sound:
            return ["afplay", "/System/Library/Sounds/Hero.aiff"]
        return None

    @staticmethod
    def _notify_send_command(title: str, message: str, want_banner: bool) -> Optional[List[str]]:
        if not want_banner:
            # No portable sound-only notification on Linux
            return None
        return ["notify-send", "--app-name=panewatch", title, message]


def _escape(text: str) -> str:
    """Escape text for an AppleScript string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')
