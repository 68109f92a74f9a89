"""
Resolve a pane's agent provider, status and task.

Two mutually exclusive paths:

1. Published - the agent's hooks wrote @agent_provider / @agent_status /
   @agent_task into the pane options. Pure table lookups, no external calls.
2. Legacy - nothing published and legacy probes are enabled. The pane is
   pre-filtered on its foreground command and title, then (rate limited)
   captured and scraped. Anything unclear resolves to not_detected.
"""

from dataclasses import dataclass
from typing import List, Optional

from .errors import ParseAmbiguous, RunError
from .fact_cache import FactCache
from .logging_config import get_structured_logger
from .pane_source import Pane
from .process_runner import tmux_command
from .protocols import CommandRunner
from .settings import MonitorSettings
from .status_constants import (
    PROVIDER_CLAUDE,
    PROVIDER_NONE,
    STATUS_NOT_DETECTED,
    is_agent_command,
    is_version_string,
    map_published_status,
    normalize_provider,
)
from .status_patterns import (
    classify_screen,
    detect_provider,
    extract_title_task,
    guess_provider,
)


SOURCE_PUBLISHED = "published"
SOURCE_LEGACY = "legacy"
SOURCE_ERROR = "error"
SOURCE_NONE = "none"

MAX_TASK_LENGTH = 100


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one pane."""
    provider: str
    status: str
    task: Optional[str] = None
    source: str = SOURCE_NONE
    agent_pid: Optional[int] = None


NOT_DETECTED = Resolution(provider=PROVIDER_NONE, status=STATUS_NOT_DETECTED)


def truncate_task(task: Optional[str], limit: int = MAX_TASK_LENGTH) -> Optional[str]:
    """Collapse whitespace and cap task text at `limit` characters."""
    if not task:
        return None
    task = " ".join(task.split())
    return task[:limit] or None


def resolve_published(pane: Pane) -> Resolution:
    """Resolve from published pane options.

    Pure function - no side effects, fully testable.

    Options left behind by an agent that has since exited are ignored when
    the pane's foreground command cannot be that agent.
    """
    provider = normalize_provider(pane.provider_option)
    status = map_published_status(provider, pane.status_option)
    if provider != PROVIDER_NONE and not is_agent_command(provider, pane.current_command):
        return Resolution(provider=PROVIDER_NONE, status=STATUS_NOT_DETECTED, source=SOURCE_PUBLISHED)
    return Resolution(
        provider=provider,
        status=status,
        task=truncate_task(pane.task_option),
        source=SOURCE_PUBLISHED,
    )


def parse_ps_output(output: str) -> List[tuple]:
    """Parse `ps -o pid=,comm=` lines into (pid, command) tuples."""
    rows = []
    for line in output.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2:
            continue
        try:
            rows.append((int(parts[0]), parts[1].strip()))
        except ValueError:
            continue
    return rows


def parse_lsof_cwd(output: str) -> Optional[str]:
    """Extract the cwd path from `lsof -Fn` field output."""
    for line in output.splitlines():
        if line.startswith("n") and len(line) > 1:
            return line[1:]
    return None


class StatusResolver:
    """Resolve panes to (provider, status, task).

    Args:
        runner: ProcessRunner for legacy probes (unused on the published path)
        settings: Monitor settings (legacy flag, timeouts, TTLs)
        cwd_cache: Working directory by agent pid
        pid_cache: Agent pid by tty
        probe_cache: Last legacy resolution per pane; its TTL is the rate limit
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: Optional[MonitorSettings] = None,
        cwd_cache: Optional[FactCache] = None,
        pid_cache: Optional[FactCache] = None,
        probe_cache: Optional[FactCache] = None,
    ):
        self.runner = runner
        self.settings = settings or MonitorSettings()
        self.cwd_cache = cwd_cache if cwd_cache is not None else FactCache()
        self.pid_cache = pid_cache if pid_cache is not None else FactCache()
        self.probe_cache = probe_cache if probe_cache is not None else FactCache()
        self.log = get_structured_logger("resolver")

    @property
    def legacy_enabled(self) -> bool:
        return self.settings.legacy_probes

    def resolve(self, pane: Pane) -> Resolution:
        """Resolve one pane.

        A failed legacy capture resolves to not_detected (source "error")
        and, like a successful one, is not retried for legacy_probe_ttl.
        """
        if pane.has_published_signal:
            return resolve_published(pane)
        if not self.legacy_enabled:
            return NOT_DETECTED
        return self._resolve_legacy(pane)

    # ------------------------------------------------------------------
    # Legacy path
    # ------------------------------------------------------------------

    def _resolve_legacy(self, pane: Pane) -> Resolution:
        guess = guess_provider(pane.current_command, pane.title)
        if guess is None:
            return NOT_DETECTED
        key = ("probe", pane.id, pane.pane_pid)

        def fetch() -> Resolution:
            try:
                return self._probe(pane, guess)
            except RunError as e:
                self.log.with_context(pane=pane.id).debug(f"legacy capture failed: {e}")
                previous = self.probe_cache.peek(key)
                if previous is not None:
                    return previous
                return Resolution(provider=guess or PROVIDER_NONE, status=STATUS_NOT_DETECTED,
                                  source=SOURCE_ERROR)

        return self.probe_cache.get_or_fetch(key, self.settings.legacy_probe_ttl, fetch)

    def _probe(self, pane: Pane, guess: str) -> Resolution:
        log = self.log.with_context(pane=pane.id)
        content = self.capture(pane)
        try:
            provider = guess or detect_provider(content)
            status = classify_screen(provider, content)
        except ParseAmbiguous as e:
            log.debug(f"legacy probe inconclusive: {e}")
            return Resolution(provider=guess or PROVIDER_NONE, status=STATUS_NOT_DETECTED,
                              source=SOURCE_LEGACY)

        agent_pid = self.find_agent_pid(pane, provider)
        if agent_pid is not None:
            # Warm the cwd entry so cost lookups do not pay for lsof
            self.get_cwd(agent_pid)
        log.debug(f"legacy probe: {provider} {status}")
        return Resolution(
            provider=provider,
            status=status,
            task=truncate_task(extract_title_task(pane.title)),
            source=SOURCE_LEGACY,
            agent_pid=agent_pid,
        )

    def capture(self, pane: Pane) -> str:
        """Capture the visible tail of a pane."""
        cmd = tmux_command(
            "capture-pane", "-p", "-J", "-t", pane.id,
            "-S", f"-{self.settings.capture_lines}",
            socket=self.settings.tmux_socket,
        )
        return self.runner.run(cmd, timeout=self.settings.probe_timeout).stdout

    def find_agent_pid(self, pane: Pane, provider: str) -> Optional[int]:
        """Find the agent process on the pane's tty (None if not found)."""
        if not pane.tty:
            return None
        tty = pane.tty[len("/dev/"):] if pane.tty.startswith("/dev/") else pane.tty

        def fetch() -> List[tuple]:
            cmd = ["ps", "-t", tty, "-o", "pid=,comm="]
            return parse_ps_output(self.runner.run(cmd, timeout=self.settings.probe_timeout).stdout)

        try:
            rows = self.pid_cache.get_or_fetch(tty, self.settings.cwd_ttl, fetch)
        except RunError as e:
            self.log.debug(f"ps for {tty} failed: {e}")
            return None
        for pid, comm in rows:
            name = comm.rsplit("/", 1)[-1].lower()
            if name.startswith(provider) or (provider == PROVIDER_CLAUDE and is_version_string(name)):
                return pid
        for pid, comm in rows:
            if comm.rsplit("/", 1)[-1] == "node":
                return pid
        return None

    def get_cwd(self, pid: int, ttl: Optional[float] = None) -> Optional[str]:
        """Working directory of a process (FactCache-backed, None on failure)."""
        def fetch() -> Optional[str]:
            cmd = ["lsof", "-a", "-p", str(pid), "-d", "cwd", "-Fn"]
            return parse_lsof_cwd(self.runner.run(cmd, timeout=self.settings.probe_timeout).stdout)

        ttl = self.settings.cwd_ttl if ttl is None else ttl
        try:
            return self.cwd_cache.get_or_fetch(pid, ttl, fetch)
        except RunError as e:
            self.log.debug(f"lsof for pid {pid} failed: {e}")
            return None
