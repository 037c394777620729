"""
Tests for the rich renderer driven by message log events.
"""
import io

import pytest
from rich.console import Console

from llm_toolchat.history import MessageLog
from llm_toolchat.rich_ui import ChatRenderer


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def renderer(output: io.StringIO) -> ChatRenderer:
    return ChatRenderer(console=Console(file=output, width=100, color_system=None), markdown=False)


def test_finished_reply_is_printed_once(renderer: ChatRenderer, output: io.StringIO):
    log = MessageLog()
    renderer.attach(log)

    reply = log.add_message("assistant", "", streaming=True)
    log.update_message(reply.id, content="Hel")
    log.update_message(reply.id, content="Hello")
    log.update_message(reply.id, streaming=False)

    assert output.getvalue().count("Hello") == 1
    assert "Assistant" in output.getvalue()


def test_errors_and_cancellation_are_annotated(renderer: ChatRenderer, output: io.StringIO):
    log = MessageLog()
    renderer.attach(log)

    log.add_message("assistant", "partial", error=True, error_message="Network problem.")
    log.add_message("assistant", "so far", metadata={"cancelled": "user"})

    text = output.getvalue()
    assert "partial" in text and "Network problem." in text
    assert "Stopped (user)" in text


def test_tool_results_can_be_hidden(output: io.StringIO):
    console = Console(file=output, width=100, color_system=None)
    log = MessageLog()
    ChatRenderer(console=console, show_tool_results=False).attach(log)

    log.add_message("tool", '{"result": 4}', tool_name="calculate")

    assert output.getvalue() == ""


def test_tool_results_are_previewed(renderer: ChatRenderer, output: io.StringIO):
    log = MessageLog()
    renderer.attach(log)

    log.add_message("tool", "x" * 300, tool_name="calculate")
    log.add_message("tool", '{"error": "boom"}', tool_name="boom", error=True, error_message="Tool 'boom' failed: boom")

    text = output.getvalue()
    assert "calculate" in text and "..." in text
    assert "Tool 'boom' failed: boom" in text


def test_print_table_and_empty_table(renderer: ChatRenderer, output: io.StringIO):
    renderer.print_table([{"name": "calculate", "description": "math"}], title="Tools")
    renderer.print_table([])

    text = output.getvalue()
    assert "calculate" in text
    assert "No data to display" in text
