"""Multi-turn chat orchestration for llm_toolchat."""
from .chat_orchestrator import ChatOrchestrator, ToolFailurePolicy
from .continuation import ContinuationController, ContinuationState
from .runtime import RuntimeStatus
from .session import (
    TRANSITIONS,
    OrchestrationSession,
    SessionOutcome,
    SessionState,
    is_valid_transition,
)
from .summaries import summarize_tool_result

__all__ = [
    'ChatOrchestrator', 'ToolFailurePolicy',
    'ContinuationController', 'ContinuationState',
    'RuntimeStatus',
    'OrchestrationSession', 'SessionOutcome', 'SessionState', 'TRANSITIONS', 'is_valid_transition',
    'summarize_tool_result',
]
