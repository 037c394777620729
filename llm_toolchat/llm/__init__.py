"""Chat transports for llm_toolchat."""
from .base import ChatRequest, ChatTransport, PingResult, ProviderConfig
from .openai_client import OpenAIClient

__all__ = ['ChatRequest', 'ChatTransport', 'PingResult', 'ProviderConfig', 'OpenAIClient']
