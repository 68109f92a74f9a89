"""Hook handler that publishes agent state into tmux pane options.

A single command (`panewatch hook-handler`) handles all hook events. It
reads the hook event JSON from stdin and writes @agent_provider,
@agent_status and @agent_task on the agent's own pane ($TMUX_PANE) with
one tmux invocation. The monitor then reads those options for free in its
batched pane listing.

Hook registrations:
    Claude Code:  UserPromptSubmit, Stop, PermissionRequest, Notification,
                  SessionEnd   -> panewatch hook-handler
    Gemini CLI:   BeforeAgent, AfterAgent
                               -> panewatch hook-handler --provider gemini
"""

import json
import os
import sys
from typing import Any, Dict, Mapping, Optional, TextIO

from .pane_source import OPT_PROVIDER, OPT_STATUS, OPT_TASK
from .process_runner import ProcessRunner
from .status_constants import PROVIDER_CLAUDE
from .status_resolver import truncate_task
from .tmux_utils import set_pane_options


# Hook event -> published @agent_status token ("" clears it)
HOOK_STATUS_TOKENS: Dict[str, str] = {
    "UserPromptSubmit": "working",
    "BeforeAgent": "working",
    "Stop": "waiting",
    "AfterAgent": "waiting",
    "PermissionRequest": "permission",
    "SessionEnd": "",
}

# Events that start a new task (the prompt becomes @agent_task)
TASK_EVENTS = ("UserPromptSubmit", "BeforeAgent")

PUBLISH_TIMEOUT = 2.0


def build_hook_options(event: str, data: Mapping[str, Any], provider: str) -> Optional[Dict[str, str]]:
    """Pane options to publish for a hook event (None when nothing to do).

    Pure function - no side effects, fully testable.
    """
    if event == "Notification":
        message = str(data.get("message") or "").lower()
        if data.get("notification_type") == "permission_prompt" or "permission" in message:
            return {OPT_STATUS: "permission"}
        return None

    token = HOOK_STATUS_TOKENS.get(event)
    if token is None:
        return None

    if event == "SessionEnd":
        return {OPT_PROVIDER: "", OPT_STATUS: "", OPT_TASK: ""}

    options = {OPT_PROVIDER: provider}
    if event in TASK_EVENTS:
        prompt = data.get("prompt")
        options[OPT_TASK] = truncate_task(prompt if isinstance(prompt, str) else None) or ""
    options[OPT_STATUS] = token
    return options


def handle_hook_event(
    provider: str = PROVIDER_CLAUDE,
    stdin: Optional[TextIO] = None,
    runner: Optional[ProcessRunner] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    """Main entry point: read stdin JSON and publish pane options.

    Called by the agent for every hook event. Silent no-op (returns False)
    when not running inside tmux or when stdin is empty/invalid, so a
    broken hook never blocks the agent.
    """
    env = os.environ if environ is None else environ
    pane_id = env.get("TMUX_PANE")
    if not pane_id:
        return False

    try:
        raw = (stdin or sys.stdin).read()
        if not raw.strip():
            return False
        data = json.loads(raw)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return False
    if not isinstance(data, dict):
        return False

    event = data.get("hook_event_name")
    if not event:
        return False

    options = build_hook_options(event, data, provider)
    if not options:
        return False

    runner = runner or ProcessRunner(default_timeout=PUBLISH_TIMEOUT)
    return set_pane_options(runner, pane_id, options)
