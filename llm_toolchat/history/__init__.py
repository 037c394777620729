"""Conversation history for llm_toolchat."""
from .message_log import LogEvent, LogEventKind, Message, MessageLog

__all__ = ['LogEvent', 'LogEventKind', 'Message', 'MessageLog']
