"""
OpenAI-compatible chat-completions transport for llm_toolchat.
"""
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from ..constants import CONNECT_TIMEOUT_SECONDS, DEFAULT_API_ENDPOINT, STREAM_TIMEOUT_SECONDS
from ..errors import ErrorCategory, TransportError, classify_status
from .base import ChatRequest, ChatTransport, PingResult, ProviderConfig

logger = logging.getLogger(__name__)


class OpenAIClient(ChatTransport):
    """
    Streams chat completions from an OpenAI-compatible endpoint.

    Any ``base_url`` speaking the same protocol (OpenAI, proxies, local
    servers) works. HTTP failures are raised as TransportError with a
    category; the response body is only logged.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_API_ENDPOINT,
        timeout: float = STREAM_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the endpoint
            base_url: API root, e.g. https://api.openai.com/v1
            timeout: Read timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self._config = ProviderConfig(
            name="OpenAI",
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            timeout=timeout,
            connect_timeout=CONNECT_TIMEOUT_SECONDS,
        )
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def api_key(self) -> Optional[str]:
        return self._config.api_key

    @api_key.setter
    def api_key(self, value: Optional[str]) -> None:
        self._config.api_key = value

    def _build_headers(self) -> dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout, connect=self._config.connect_timeout),
            transport=self._transport,
        )

    @asynccontextmanager
    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """Send a streaming chat completion request and yield its body bytes."""
        payload = request.to_payload()
        logger.debug(
            f"POST /chat/completions model={request.model} "
            f"messages={len(payload['messages'])} tools={len(request.tools)}"
        )
        async with self._client() as client:
            try:
                async with client.stream(
                    "POST",
                    "/chat/completions",
                    headers=self._build_headers(),
                    json=payload,
                ) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        detail = _error_detail(body)
                        logger.debug(f"Chat request failed with HTTP {response.status_code}: {detail}")
                        raise TransportError.from_status(response.status_code, detail)
                    yield _guard_stream(response.aiter_bytes())
            except httpx.TimeoutException as e:
                raise TransportError(f"Request timed out: {e}", ErrorCategory.TIMEOUT) from e
            except httpx.HTTPError as e:
                raise TransportError(f"Network error: {e}", ErrorCategory.NETWORK) from e

    async def ping(self) -> PingResult:
        """List models to check the key and endpoint."""
        start_time = time.perf_counter()
        async with self._client() as client:
            try:
                response = await client.get("/models", headers=self._build_headers())
            except httpx.TimeoutException:
                return PingResult(ok=False, category=ErrorCategory.TIMEOUT, message="Request timed out")
            except httpx.HTTPError as e:
                return PingResult(ok=False, category=ErrorCategory.NETWORK, message=f"Network error: {e}")

        latency_ms = (time.perf_counter() - start_time) * 1000
        if response.status_code >= 400:
            return PingResult(
                ok=False,
                status_code=response.status_code,
                category=classify_status(response.status_code),
                latency_ms=latency_ms,
                message=f"HTTP {response.status_code}",
            )

        try:
            models = response.json().get("data", [])
        except ValueError:
            models = []
        return PingResult(
            ok=True,
            status_code=response.status_code,
            model_count=len(models),
            latency_ms=latency_ms,
            message="Key OK",
        )


async def _guard_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Re-raise httpx failures during body reads as TransportError."""
    try:
        async for chunk in chunks:
            yield chunk
    except httpx.TimeoutException as e:
        raise TransportError(f"Timed out reading the response stream: {e}", ErrorCategory.TIMEOUT) from e
    except httpx.HTTPError as e:
        raise TransportError(f"Response stream interrupted: {e}", ErrorCategory.NETWORK) from e


def _error_detail(body: bytes) -> str:
    try:
        data: Any = json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")[:200]
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message", ""))
    return str(data)[:200]
