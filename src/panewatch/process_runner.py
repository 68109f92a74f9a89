"""
Timeout-bounded subprocess execution.

Every external command panewatch issues (tmux, ps, lsof, notifiers) goes
through ProcessRunner. A call either returns a RunResult or raises a
RunError subclass; it never blocks longer than its timeout plus a short
kill grace, even when the child ignores SIGTERM.

The runner can also cap how many children run at once, and can kill all
in-flight children on shutdown.
"""

import subprocess
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

from .errors import NonZeroExit, RunCancelled, RunTimeout, SpawnError
from .logging_config import get_logger


log = get_logger(__name__)

DEFAULT_TIMEOUT = 3.0
KILL_GRACE = 0.5


@dataclass(frozen=True)
class RunResult:
    """Output of a finished command."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float


class ProcessRunner:
    """Run external commands with hard timeouts.

    Args:
        default_timeout: Timeout used when run() is called without one
        max_concurrent: Optional global ceiling on simultaneously running children
        kill_grace: Seconds to wait after terminate() before kill()
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        max_concurrent: Optional[int] = None,
        kill_grace: float = KILL_GRACE,
    ):
        self.default_timeout = default_timeout
        self.kill_grace = kill_grace
        self._slots = threading.BoundedSemaphore(max_concurrent) if max_concurrent else None
        self._lock = threading.Lock()
        self._procs: Set[subprocess.Popen] = set()
        self._killed: Set[subprocess.Popen] = set()
        self._closed = False

        # Instrumentation
        self.active = 0
        self.peak_active = 0
        self.total_calls = 0

    def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        check: bool = True,
        input: Optional[str] = None,
    ) -> RunResult:
        """Run a command to completion.

        Args:
            args: Command and arguments
            timeout: Wall-clock limit in seconds (default_timeout if None)
            check: Raise NonZeroExit on a non-zero exit status
            input: Optional text written to the child's stdin

        Raises:
            RunTimeout: limit exceeded (the child has been killed)
            SpawnError: the command could not be started
            NonZeroExit: non-zero exit and check=True
            RunCancelled: cancelled by cancel_all() or runner closed
        """
        args = list(args)
        timeout = self.default_timeout if timeout is None else timeout
        if self._closed:
            raise RunCancelled("runner is closed", args)

        start = time.monotonic()
        if self._slots is not None and not self._slots.acquire(timeout=timeout):
            raise RunTimeout(args, timeout)
        try:
            remaining = max(timeout - (time.monotonic() - start), 0.0)
            return self._run(args, remaining, timeout, check, input, start)
        finally:
            if self._slots is not None:
                self._slots.release()

    def _run(self, args, remaining, timeout, check, input, start) -> RunResult:
        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(f"failed to start {args[0]}: {e}", args) from e

        with self._lock:
            if self._closed:
                proc.kill()
                proc.wait()
                raise RunCancelled("runner is closed", args)
            self._procs.add(proc)
            self.active += 1
            self.total_calls += 1
            self.peak_active = max(self.peak_active, self.active)

        try:
            try:
                stdout, stderr = proc.communicate(input=input, timeout=remaining)
            except subprocess.TimeoutExpired:
                self._reap(proc)
                log.debug("%s timed out after %.1fs", args[0], timeout)
                raise RunTimeout(args, timeout)
        finally:
            with self._lock:
                self._procs.discard(proc)
                self.active -= 1
                cancelled = proc in self._killed
                self._killed.discard(proc)

        if cancelled:
            raise RunCancelled(f"{args[0]} cancelled", args)

        result = RunResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration=time.monotonic() - start,
        )
        if check and result.returncode != 0:
            raise NonZeroExit(args, result.returncode, result.stderr)
        return result

    def _reap(self, proc: subprocess.Popen) -> None:
        """terminate, then kill after the grace period; never waits unbounded."""
        proc.terminate()
        try:
            proc.communicate(timeout=self.kill_grace)
            return
        except subprocess.TimeoutExpired:
            pass
        proc.kill()
        try:
            proc.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            log.warning("pid %s did not exit after SIGKILL", proc.pid)

    def cancel_all(self) -> int:
        """Kill every in-flight child. Returns the number signalled."""
        with self._lock:
            procs = list(self._procs)
            self._killed.update(procs)
        for proc in procs:
            try:
                proc.kill()
            except OSError:
                pass
        return len(procs)

    def close(self) -> None:
        """Cancel in-flight children and reject further calls."""
        with self._lock:
            self._closed = True
        self.cancel_all()

    @property
    def closed(self) -> bool:
        return self._closed


def tmux_command(*args: str, socket: Optional[str] = None) -> List[str]:
    """Build a tmux argv, honouring a custom socket name (-L)."""
    cmd = ["tmux"]
    if socket:
        cmd += ["-L", socket]
    cmd += list(args)
    return cmd
