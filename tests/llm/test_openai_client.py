"""
Tests for the OpenAI-compatible transport, using httpx.MockTransport.
"""
import asyncio
import json

import allure
import httpx
import pytest

from llm_toolchat.errors import ErrorCategory, TransportError
from llm_toolchat.llm import ChatRequest, OpenAIClient
from llm_toolchat.orchestrator import ChatOrchestrator, SessionOutcome
from llm_toolchat.tools import BUILTIN_TOOLS, ToolExecutionGateway, create_default_registry

from tests.fakes import DONE, finish_frame, make_config, text_frame


BASE_URL = "https://api.test/v1"


def make_client(handler) -> OpenAIClient:
    return OpenAIClient(api_key="sk-test", base_url=BASE_URL, transport=httpx.MockTransport(handler))


def read_stream(client: OpenAIClient, request: ChatRequest) -> bytes:
    async def run():
        async with client.stream_chat(request) as body:
            return b"".join([chunk async for chunk in body])

    return asyncio.run(run())


def sse_response(*frames: bytes) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=b"".join(frames))


@allure.feature("OpenAI Transport")
@allure.story("Request shape")
@allure.severity(allure.severity_level.CRITICAL)
def test_stream_chat_posts_payload_and_yields_body():
    seen = []
    body = text_frame("hi") + DONE

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return sse_response(body)

    request = ChatRequest(
        messages=[{"role": "user", "content": "hello"}],
        system_prompt="be brief",
        model="test-model",
        tools=BUILTIN_TOOLS,
    )

    assert read_stream(make_client(handler), request) == body

    sent = seen[0]
    assert sent.method == "POST"
    assert sent.url.path == "/v1/chat/completions"
    assert sent.headers["Authorization"] == "Bearer sk-test"
    assert sent.headers["Accept"] == "text/event-stream"
    payload = json.loads(sent.content)
    assert payload["model"] == "test-model"
    assert payload["stream"] is True
    assert payload["messages"][0] == {"role": "system", "content": "be brief"}
    assert payload["messages"][1] == {"role": "user", "content": "hello"}
    assert payload["tool_choice"] == "auto"
    assert len(payload["tools"]) == len(BUILTIN_TOOLS)


def test_payload_omits_tools_and_empty_system_prompt():
    payload = ChatRequest(messages=[{"role": "user", "content": "x"}], system_prompt=None).to_payload()

    assert payload["messages"] == [{"role": "user", "content": "x"}]
    assert "tools" not in payload
    assert "tool_choice" not in payload


def test_client_without_key_sends_no_authorization():
    seen = []

    def handler(request):
        seen.append(request)
        return sse_response(DONE)

    client = OpenAIClient(base_url=BASE_URL + "/", transport=httpx.MockTransport(handler))
    read_stream(client, ChatRequest(messages=[]))

    assert "Authorization" not in seen[0].headers
    assert client.base_url == BASE_URL


@allure.feature("OpenAI Transport")
@allure.story("HTTP failures are categorized")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.parametrize(
    "status, category",
    [
        (401, ErrorCategory.AUTHENTICATION),
        (403, ErrorCategory.AUTHENTICATION),
        (404, ErrorCategory.NOT_FOUND),
        (429, ErrorCategory.QUOTA_LIMIT),
        (500, ErrorCategory.SERVER_ERROR),
        (503, ErrorCategory.SERVER_ERROR),
        (418, ErrorCategory.UNKNOWN),
    ],
)
def test_http_status_maps_to_category(status: int, category: ErrorCategory):
    def handler(request):
        return httpx.Response(status, json={"error": {"message": "provider detail"}})

    with pytest.raises(TransportError) as exc_info:
        read_stream(make_client(handler), ChatRequest(messages=[]))

    assert exc_info.value.category == category
    assert exc_info.value.status_code == status
    assert "provider detail" in str(exc_info.value)


def test_non_json_error_body_is_kept_as_detail():
    def handler(request):
        return httpx.Response(502, content=b"<html>bad gateway</html>")

    with pytest.raises(TransportError, match="bad gateway"):
        read_stream(make_client(handler), ChatRequest(messages=[]))


@pytest.mark.parametrize(
    "exception, category",
    [
        (httpx.ConnectError, ErrorCategory.NETWORK),
        (httpx.ReadTimeout, ErrorCategory.TIMEOUT),
        (httpx.ConnectTimeout, ErrorCategory.TIMEOUT),
    ],
)
def test_network_failures_map_to_category(exception, category: ErrorCategory):
    def handler(request):
        raise exception("simulated", request=request)

    with pytest.raises(TransportError) as exc_info:
        read_stream(make_client(handler), ChatRequest(messages=[]))

    assert exc_info.value.category == category
    assert exc_info.value.status_code is None


def test_ping_counts_models():
    def handler(request):
        assert request.url.path == "/v1/models"
        return httpx.Response(200, json={"data": [{"id": "a"}, {"id": "b"}]})

    result = asyncio.run(make_client(handler).ping())

    assert result.ok
    assert result.model_count == 2
    assert result.message == "Key OK"
    assert result.latency_ms >= 0


def test_ping_reports_rejected_key():
    result = asyncio.run(make_client(lambda request: httpx.Response(401)).ping())

    assert not result.ok
    assert result.status_code == 401
    assert result.category == ErrorCategory.AUTHENTICATION


def test_ping_reports_network_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = asyncio.run(make_client(handler).ping())

    assert not result.ok
    assert result.category == ErrorCategory.NETWORK


@allure.feature("OpenAI Transport")
@allure.story("Orchestrated over HTTP")
@allure.severity(allure.severity_level.NORMAL)
def test_orchestrator_streams_reply_over_http():
    def handler(request):
        return sse_response(text_frame("Hello"), text_frame(", wörld"), finish_frame("stop"), DONE)

    orchestrator = ChatOrchestrator(
        make_client(handler),
        ToolExecutionGateway(create_default_registry()),
        config=make_config(),
    )

    session = asyncio.run(orchestrator.send("hi"))

    assert session.outcome == SessionOutcome.COMPLETED
    assert orchestrator.log.get_by_role("assistant")[0].content == "Hello, wörld"


def test_orchestrator_reports_http_failure():
    orchestrator = ChatOrchestrator(
        make_client(lambda request: httpx.Response(429, json={"error": {"message": "slow down"}})),
        ToolExecutionGateway(create_default_registry()),
        config=make_config(),
    )

    session = asyncio.run(orchestrator.send("hi"))

    assert session.outcome == SessionOutcome.FAILED
    assert session.error.category == ErrorCategory.QUOTA_LIMIT
    reply = orchestrator.log.get_by_role("assistant")[0]
    assert "slow down" not in reply.error_message
