"""
Tests for the built-in tools and their argument validators.
"""
import operator
from datetime import datetime, timezone

import allure
import pytest
from hypothesis import given, settings, strategies as st

from llm_toolchat.tools import (
    BuiltinTools,
    NoteStore,
    ToolError,
    ToolValidators,
    ValidationOutcome,
    evaluate_expression,
)


FIXED_NOW = datetime(2024, 5, 17, 9, 30, 15, tzinfo=timezone.utc)

ARITHMETIC = {"+": operator.add, "-": operator.sub, "*": operator.mul, "/": operator.truediv}


@pytest.fixture
def tools() -> BuiltinTools:
    return BuiltinTools(clock=lambda: FIXED_NOW)


@allure.feature("Built-in Tools")
@allure.story("Calculator matches arithmetic")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=200)
@given(
    a=st.integers(min_value=-10_000, max_value=10_000),
    b=st.integers(min_value=-10_000, max_value=10_000),
    op=st.sampled_from(["+", "-", "*", "/"]),
)
def test_calculator_agrees_with_python_arithmetic(a: int, b: int, op: str):
    expression = f"{a} {op} ({b})"
    if op == "/" and b == 0:
        with pytest.raises(ToolError, match="division by zero"):
            evaluate_expression(expression)
        return

    expected = ARITHMETIC[op](a, b)

    assert evaluate_expression(expression) == pytest.approx(expected)


def test_integral_results_are_returned_as_int():
    result = evaluate_expression("10 / 4 * 2")

    assert result == 5
    assert isinstance(result, int)


def test_fractional_results_stay_float():
    assert evaluate_expression("7 / 2") == 3.5


def test_precedence_and_parentheses():
    assert evaluate_expression("2 + 3 * 4") == 14
    assert evaluate_expression("(2 + 3) * 4") == 20
    assert evaluate_expression("-(1.5 + 0.5)") == -2


@pytest.mark.parametrize("expression", ["2 +", "((1)", "", "1 2"])
def test_malformed_expression_raises(expression: str):
    with pytest.raises(ToolError, match="invalid expression"):
        evaluate_expression(expression)


@pytest.mark.parametrize("expression", ["2 ** 3", "abs(1)", "x + 1", "'a' + 'b'"])
def test_unsupported_syntax_raises(expression: str):
    with pytest.raises(ToolError, match="unsupported syntax"):
        evaluate_expression(expression)


def test_calculate_handler_formats_result(tools: BuiltinTools):
    result = tools.calculate({"expression": " 2+2 "})

    assert result == {"expression": "2+2", "result": 4, "formatted": "Result: 4"}


def test_current_time_formats(tools: BuiltinTools):
    human = tools.get_current_time({})
    iso = tools.get_current_time({"format": "iso"})
    stamp = tools.get_current_time({"format": "timestamp"})

    assert human["currentTime"] == "2024-05-17 09:30:15 UTC"
    assert iso["currentTime"] == "2024-05-17T09:30:15+00:00"
    assert stamp["currentTime"] == str(int(FIXED_NOW.timestamp()))
    assert human["formatted"] == iso["formatted"] == stamp["formatted"]
    assert human["timestamp"] == int(FIXED_NOW.timestamp())


def test_saved_notes_can_be_found_by_title_or_content(tools: BuiltinTools):
    saved = tools.save_note({"title": "Groceries", "content": "milk and eggs"})
    tools.save_note({"title": "Work", "content": "finish the report"})

    by_title = tools.read_note({"title": "grocer"})
    by_content = tools.read_note({"title": "REPORT"})
    missing = tools.read_note({"title": "holiday"})

    assert saved["success"] is True
    assert by_title["found"] == 1
    assert by_title["notes"][0]["id"] == saved["noteId"]
    assert by_content["notes"][0]["title"] == "Work"
    assert missing["found"] == 0
    assert missing["notes"] == []


def test_note_store_strips_and_lists():
    store = NoteStore()
    store.save("  Title  ", " body ")

    assert len(store) == 1
    assert store.all()[0].title == "Title"
    assert store.all()[0].content == "body"
    assert store.search("   ") == store.all()


def test_open_ui_invokes_callback():
    opened = []
    tools = BuiltinTools(on_open_ui=lambda component, data: opened.append((component, data)))

    result = tools.open_ui({"component": "settings", "data": {"tab": "model"}})

    assert opened == [("settings", {"tab": "model"})]
    assert result["success"] is True
    assert result["data"] == {"tab": "model"}


def test_open_ui_without_callback_still_succeeds(tools: BuiltinTools):
    assert tools.open_ui({"component": "about"})["data"] == {}


@allure.feature("Built-in Tools")
@allure.story("Validators reject bad arguments")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.parametrize(
    "name, args, reason",
    [
        ("calculate", {}, "non-empty string"),
        ("calculate", {"expression": "import os"}, "invalid characters"),
        ("calculate", {"expression": 42}, "non-empty string"),
        ("get_current_time", {"format": "unix"}, "Invalid format"),
        ("save_note", {"title": " ", "content": "x"}, "Title"),
        ("save_note", {"title": "t", "content": ""}, "Content"),
        ("read_note", {}, "Title"),
        ("open_ui", {"component": "terminal"}, "Component"),
        ("open_ui", {"component": "help", "data": [1]}, "Data"),
        ("calculate", ["2+2"], "must be an object"),
    ],
)
def test_default_validators_reject(name: str, args, reason: str):
    outcome = ToolValidators.with_defaults().validate(name, args)

    assert not outcome.ok
    assert reason in outcome.reason


@pytest.mark.parametrize(
    "name, args",
    [
        ("calculate", {"expression": "(1 + 2) * 3.5"}),
        ("get_current_time", {}),
        ("get_current_time", {"format": "iso"}),
        ("save_note", {"title": "t", "content": "c"}),
        ("read_note", {"title": "t"}),
        ("open_ui", {"component": "help", "data": {}}),
        ("unvalidated_tool", {"anything": True}),
    ],
)
def test_default_validators_accept(name: str, args):
    assert ToolValidators.with_defaults().validate(name, args).ok


def test_registered_validator_overrides_fallback():
    validators = ToolValidators()
    validators.register("echo", lambda args: ValidationOutcome.failed("no"))

    assert validators.get("echo") is not None
    assert validators.validate("echo", {}).reason == "no"
