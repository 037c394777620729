"""
Tests for the error taxonomy.
"""
import logging

import pytest
from hypothesis import given, strategies as st

from llm_toolchat.errors import (
    HUMAN_MESSAGES,
    ChatError,
    ErrorCategory,
    SessionCancelled,
    ToolExecutionError,
    TransportError,
    ValidationError,
    classify_status,
    report_error,
)
from llm_toolchat.streaming import CancelReason


@given(status=st.integers(min_value=500, max_value=599))
def test_every_5xx_is_a_server_error(status: int):
    assert classify_status(status) == ErrorCategory.SERVER_ERROR


@pytest.mark.parametrize("status", [400, 402, 405, 418, 422, 600])
def test_unmapped_statuses_are_unknown(status: int):
    assert classify_status(status) == ErrorCategory.UNKNOWN


def test_every_category_has_a_human_message():
    assert set(HUMAN_MESSAGES) == set(ErrorCategory)


def test_transport_error_hides_detail_from_user():
    error = TransportError.from_status(401, "Incorrect API key provided: sk-abc")

    assert "sk-abc" in str(error)
    assert error.human_message == HUMAN_MESSAGES[ErrorCategory.AUTHENTICATION]
    assert error.to_dict()["category"] == "authentication"
    assert error.to_dict()["details"] == {"status_code": 401}


def test_validation_error_shows_its_own_message():
    error = ValidationError("Message cannot be empty")

    assert error.category == ErrorCategory.VALIDATION
    assert error.human_message == "Message cannot be empty"
    assert error.field == "input"


def test_tool_errors_name_the_tool():
    error = ToolExecutionError("calculate", "division by zero")

    assert error.category == ErrorCategory.TOOL
    assert error.human_message == "Tool 'calculate' failed: division by zero"


@pytest.mark.parametrize(
    "reason, category",
    [
        (CancelReason.USER, ErrorCategory.CANCELLED),
        (CancelReason.SUPERSEDED, ErrorCategory.CANCELLED),
        (CancelReason.TIMEOUT, ErrorCategory.TIMEOUT),
    ],
)
def test_cancellation_category_follows_reason(reason, category):
    error = SessionCancelled(reason)

    assert error.category == category
    assert error.details == {"reason": reason.value}


def test_report_error_redacts_secrets(caplog):
    with caplog.at_level(logging.ERROR, logger="llm_toolchat.errors"):
        report_error(ChatError("boom"), {"api_key": "sk-secret", "Authorization": "Bearer x", "tool": "calc"})

    assert "sk-secret" not in caplog.text
    assert "Bearer x" not in caplog.text
    assert "[REDACTED]" in caplog.text
    assert "calc" in caplog.text


def test_report_error_skips_cancellations(caplog):
    with caplog.at_level(logging.ERROR, logger="llm_toolchat.errors"):
        report_error(SessionCancelled(CancelReason.USER))

    assert caplog.records == []
