"""
Locate and read Claude Code session logs for token counting.

Claude Code stores each conversation in
~/.claude/projects/{encoded-path}/{sessionId}.jsonl, where the project path
has '/' and '_' replaced by '-'. Subagent transcripts (agent-*.jsonl) live
alongside and are ignored.

Assistant messages carry usage data:
{
  "message": {
    "model": "claude-sonnet-4-5-20250929",
    "usage": {
      "input_tokens": 1003,
      "cache_creation_input_tokens": 2884,
      "cache_read_input_tokens": 25944,
      "output_tokens": 278
    }
  }
}
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import CostParseError, NoLogFound


CLAUDE_PROJECTS_PATH = Path.home() / ".claude" / "projects"

_USAGE_KEYS = (
    "input_tokens",
    "output_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
)


def encode_project_path(path: str) -> str:
    """Encode a project path the way Claude Code names its project dirs.

    /home/me/my_app -> -home-me-my-app
    """
    return path.replace("/", "-").replace("_", "-")


def get_project_dir(cwd: str, projects_path: Optional[Path] = None) -> Path:
    base = CLAUDE_PROJECTS_PATH if projects_path is None else projects_path
    return base / encode_project_path(cwd)


def find_latest_session_log(cwd: str, projects_path: Optional[Path] = None) -> Path:
    """Most recently modified session log for a working directory.

    Raises:
        NoLogFound: no project directory or no session logs in it
    """
    project_dir = get_project_dir(cwd, projects_path)
    if not project_dir.is_dir():
        raise NoLogFound(f"no Claude project directory for {cwd}")

    newest: Optional[Path] = None
    newest_mtime = -1.0
    for candidate in project_dir.glob("*.jsonl"):
        if candidate.name.startswith("agent-"):
            continue
        try:
            mtime = candidate.stat().st_mtime
        except OSError:
            continue
        if mtime > newest_mtime:
            newest, newest_mtime = candidate, mtime
    if newest is None:
        raise NoLogFound(f"no session logs in {project_dir}")
    return newest


@dataclass(frozen=True)
class TokenUsage:
    """Token counters summed over a session log."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    model: Optional[str] = None
    records: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens including cache operations."""
        return (self.input_tokens + self.output_tokens +
                self.cache_creation_tokens + self.cache_read_tokens)


def read_token_usage(path: Path) -> TokenUsage:
    """Sum usage counters over a whole session log.

    An assistant message is logged once per content block, each copy
    carrying the same message id and usage; only the first is counted.

    Raises:
        NoLogFound: the file vanished or cannot be read
        CostParseError: no parseable usage record in the log
    """
    seen_ids = set()
    input_tokens = output_tokens = cache_creation = cache_read = 0
    model = None
    records = 0

    try:
        f = open(path, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        raise NoLogFound(f"cannot read {path}: {e}") from e

    with f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue
            message = data.get("message")
            message = message if isinstance(message, dict) else {}
            if message.get("model"):
                model = message["model"]
            usage = message.get("usage") or data.get("usage")
            if not isinstance(usage, dict):
                continue
            try:
                counts = [int(usage.get(k) or 0) for k in _USAGE_KEYS]
            except (TypeError, ValueError):
                continue
            msg_id = message.get("id")
            if isinstance(msg_id, str) and msg_id:
                if msg_id in seen_ids:
                    continue
                seen_ids.add(msg_id)
            input_tokens += counts[0]
            output_tokens += counts[1]
            cache_creation += counts[2]
            cache_read += counts[3]
            records += 1

    if records == 0:
        raise CostParseError(f"no usage records in {path.name}")
    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation,
        cache_read_tokens=cache_read,
        model=model,
        records=records,
    )
