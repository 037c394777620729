"""
Base classes for chat transports in llm_toolchat.
Defines the request value and the abstract interface the orchestrator streams through.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Optional

from ..constants import (
    DEFAULT_API_ENDPOINT,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    SYSTEM_PROMPT,
)
from ..errors import ErrorCategory


@dataclass
class ProviderConfig:
    """Configuration for a chat-completions endpoint."""
    name: str
    base_url: str = DEFAULT_API_ENDPOINT
    api_key: Optional[str] = None
    timeout: float = 60.0
    connect_timeout: float = 10.0


@dataclass
class ChatRequest:
    """One transport round: prior turns plus model parameters."""
    messages: list[dict[str, Any]]
    system_prompt: Optional[str] = SYSTEM_PROMPT
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    top_p: float = DEFAULT_TOP_P
    tools: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Build the chat-completions request body."""
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend(self.messages)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "stream": True,
        }
        if self.tools:
            payload["tools"] = self.tools
            payload["tool_choice"] = "auto"
        return payload


@dataclass
class PingResult:
    """Outcome of an endpoint/key check."""
    ok: bool
    status_code: Optional[int] = None
    category: Optional[ErrorCategory] = None
    model_count: int = 0
    latency_ms: float = 0.0
    message: str = ""


class ChatTransport(ABC):
    """
    Abstract base class for chat transports.

    ``stream_chat`` is an async context manager: entering it sends the
    request and yields the raw response bytes; leaving it, on any path,
    closes the connection.
    """

    @abstractmethod
    def stream_chat(self, request: ChatRequest) -> AsyncContextManager[AsyncIterator[bytes]]:
        """
        Open a streaming chat completion.

        Args:
            request: The request to send

        Returns:
            Async context manager yielding the response byte iterator

        Raises:
            TransportError: On network or HTTP failure
        """
        pass

    async def ping(self) -> PingResult:
        """
        Check that the endpoint accepts our credentials.

        Returns:
            PingResult
        """
        return PingResult(ok=True, message="Ping not supported by this transport")

    async def aclose(self) -> None:
        """Release any pooled resources."""
        return None
