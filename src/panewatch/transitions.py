"""
Status transition classification.

Turns (previous status, new status) pairs into events that consumers act
on: desktop notifications and auto-jump. Classification is a pure function
of the two statuses; panes seen for the first time never produce events.

    any          -> permission    PERMISSION  notify, auto-jump eligible
    working      -> waiting_input FINISHED    notify
    not_detected -> waiting_input READY       informational
    any          -> not_detected  LOST        informational
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .status_constants import (
    STATUS_NOT_DETECTED,
    STATUS_PERMISSION,
    STATUS_WAITING_INPUT,
    STATUS_WORKING,
    PROVIDER_NONE,
)


class TransitionKind(str, Enum):
    PERMISSION = "permission"
    FINISHED = "finished"
    READY = "ready"
    LOST = "lost"


NOTIFY_KINDS = frozenset({TransitionKind.PERMISSION, TransitionKind.FINISHED})
AUTO_JUMP_KINDS = frozenset({TransitionKind.PERMISSION})


def classify_transition(previous: Optional[str], new: str) -> Optional[TransitionKind]:
    """Classify a status change. None means "no event".

    Pure function - no side effects, fully testable.
    """
    if previous is None or previous == new:
        return None
    if new == STATUS_PERMISSION:
        return TransitionKind.PERMISSION
    if new == STATUS_WAITING_INPUT:
        if previous == STATUS_WORKING:
            return TransitionKind.FINISHED
        if previous == STATUS_NOT_DETECTED:
            return TransitionKind.READY
        return None
    if new == STATUS_NOT_DETECTED:
        return TransitionKind.LOST
    return None


@dataclass(frozen=True)
class TransitionEvent:
    """A classified status change for one pane."""
    kind: TransitionKind
    pane_id: str
    display_name: str
    folder_name: str
    provider: str
    previous_status: str
    new_status: str
    task: Optional[str] = None
    at: float = 0.0

    @property
    def notify(self) -> bool:
        return self.kind in NOTIFY_KINDS

    @property
    def auto_jump(self) -> bool:
        return self.kind in AUTO_JUMP_KINDS

    def notification_text(self) -> tuple:
        """(title, body) for a desktop notification."""
        folder = self.folder_name or self.display_name
        if self.kind == TransitionKind.PERMISSION:
            return f"⚠️ Permission: {folder}", f"{self.display_name} needs approval"
        return f"Agent ready: {folder}", f"{self.display_name} is waiting for input"


def build_event(state_before, state_after, now: Optional[float] = None) -> Optional[TransitionEvent]:
    """Event for a pane whose PaneState went from state_before to state_after.

    state_before is None for panes first seen this cycle.
    """
    if state_before is None:
        return None
    kind = classify_transition(state_before.status, state_after.status)
    if kind is None:
        return None
    pane = state_after.pane
    return TransitionEvent(
        kind=kind,
        pane_id=pane.id,
        display_name=pane.display_name,
        folder_name=pane.folder_name,
        provider=state_after.provider if state_after.provider != PROVIDER_NONE else state_before.provider,
        previous_status=state_before.status,
        new_status=state_after.status,
        task=state_after.task,
        at=time.time() if now is None else now,
    )


TransitionObserver = Callable[[TransitionEvent], None]
