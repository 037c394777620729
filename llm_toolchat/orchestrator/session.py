"""
Orchestration session value and its state table.

A session is the mutable context for one user send, covering every
tool-continuation turn that send triggers. Its state only changes through
ChatOrchestrator, which checks each move against TRANSITIONS.
"""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import ChatError
from ..streaming import CancelToken, ToolCall


class SessionState(Enum):
    """Orchestrator states."""
    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_DETECTED = "tool_detected"
    VALIDATING = "validating"
    EXECUTING = "executing"
    FINALIZING = "finalizing"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SessionOutcome(Enum):
    """How a session ended, or ACTIVE while it runs."""
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({SessionState.CANCELLED, SessionState.FAILED})

TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    # TOOL_DETECTED straight from IDLE is the direct tool mode.
    SessionState.IDLE: frozenset({SessionState.STREAMING, SessionState.TOOL_DETECTED}),
    SessionState.STREAMING: frozenset({SessionState.TOOL_DETECTED, SessionState.FINALIZING}),
    SessionState.TOOL_DETECTED: frozenset({SessionState.VALIDATING}),
    SessionState.VALIDATING: frozenset({
        SessionState.EXECUTING,
        SessionState.VALIDATING,
        SessionState.STREAMING,
    }),
    SessionState.EXECUTING: frozenset({
        SessionState.VALIDATING,
        SessionState.STREAMING,
        SessionState.FINALIZING,
    }),
    SessionState.FINALIZING: frozenset({SessionState.IDLE}),
    SessionState.CANCELLED: frozenset(),
    SessionState.FAILED: frozenset(),
}


def is_valid_transition(old: SessionState, new: SessionState) -> bool:
    """
    Check a state change against the table.

    CANCELLED and FAILED are reachable from every non-terminal state.

    Args:
        old: Current state
        new: Proposed state

    Returns:
        True if the move is allowed
    """
    if old in TERMINAL_STATES:
        return False
    if new in TERMINAL_STATES:
        return True
    return new in TRANSITIONS[old]


@dataclass
class OrchestrationSession:
    """Mutable context of one user send.

    Attributes:
        id: Short unique id, used in logs.
        state: Current SessionState.
        cancel_token: Token checked at every suspension point.
        pending_tool_calls: Completed tool calls of the current turn, in completion order.
        executed_tool_calls: Calls that ran successfully, in execution order.
        turn_count: Number of transport rounds opened so far.
        accumulated_text: Text streamed in the current turn; reset at each turn start.
        assistant_message_id: Id of the log message this session writes.
        context: Prior turns sent with every request of this session.
        history: Synthetic assistant/tool turns added by tool continuations.
        error: The failure that ended the session, if any.
        finished: Set once the session reached its last state.
    """
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = SessionState.IDLE
    cancel_token: CancelToken = field(default_factory=CancelToken)
    pending_tool_calls: list[ToolCall] = field(default_factory=list)
    executed_tool_calls: list[ToolCall] = field(default_factory=list)
    turn_count: int = 0
    accumulated_text: str = ""
    assistant_message_id: Optional[str] = None
    context: list[dict[str, Any]] = field(default_factory=list, repr=False)
    history: list[dict[str, Any]] = field(default_factory=list, repr=False)
    error: Optional[ChatError] = None
    finished: bool = False
    started_at: float = field(default_factory=time.time)

    @property
    def cancelled(self) -> bool:
        return self.state == SessionState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state == SessionState.FAILED

    @property
    def outcome(self) -> SessionOutcome:
        if not self.finished:
            return SessionOutcome.ACTIVE
        if self.state == SessionState.CANCELLED:
            return SessionOutcome.CANCELLED
        if self.state == SessionState.FAILED:
            return SessionOutcome.FAILED
        return SessionOutcome.COMPLETED

    def request_messages(self) -> list[dict[str, Any]]:
        """Messages for the next transport round."""
        return list(self.context) + list(self.history)
