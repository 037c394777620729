"""
Error taxonomy for llm_toolchat.

Every failure the chat engine can surface is a ChatError carrying an
ErrorCategory. Users only ever see the category's mapped message; raw
HTTP or protocol detail stays in the logs.
"""
import logging
import time
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories used to pick user-facing messaging."""
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    QUOTA_LIMIT = "quota_limit"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    TOOL = "tool"
    PROTOCOL = "protocol"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


HUMAN_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.AUTHENTICATION: "Invalid API key or missing permissions (check the key and organization).",
    ErrorCategory.NOT_FOUND: "Wrong endpoint or path (check the base URL).",
    ErrorCategory.QUOTA_LIMIT: "Quota or rate limit exhausted (check billing or wait and retry).",
    ErrorCategory.SERVER_ERROR: "Problem at the provider. Please try again.",
    ErrorCategory.NETWORK: "Network problem. Check your connection and try again.",
    ErrorCategory.TIMEOUT: "The request timed out. Please try again.",
    ErrorCategory.VALIDATION: "The input is not valid.",
    ErrorCategory.TOOL: "A tool could not complete the request.",
    ErrorCategory.PROTOCOL: "The response stream was malformed.",
    ErrorCategory.CANCELLED: "The request was stopped.",
    ErrorCategory.UNKNOWN: "Unexpected error. Please try again.",
}

_STATUS_CATEGORIES: dict[int, ErrorCategory] = {
    401: ErrorCategory.AUTHENTICATION,
    403: ErrorCategory.AUTHENTICATION,
    404: ErrorCategory.NOT_FOUND,
    429: ErrorCategory.QUOTA_LIMIT,
}


def classify_status(status_code: int) -> ErrorCategory:
    """
    Map an HTTP status code to an error category.

    Args:
        status_code: HTTP status code of a failed response

    Returns:
        The matching ErrorCategory
    """
    if status_code in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status_code]
    if 500 <= status_code <= 599:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.UNKNOWN


class ChatError(Exception):
    """Base class for all errors raised by the chat engine."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if category is not None:
            self.category = category
        self.details = details or {}
        self.timestamp = time.time()

    @property
    def human_message(self) -> str:
        """Message safe to show to the user."""
        return HUMAN_MESSAGES[self.category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": str(self),
            "category": self.category.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class ValidationError(ChatError):
    """Bad user input; raised before any session is opened."""

    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, field: str = "input") -> None:
        super().__init__(message, details={"field": field})
        self.field = field

    @property
    def human_message(self) -> str:
        # Input problems are the user's own text, so the detail is safe to show.
        return str(self)


class TransportError(ChatError):
    """Network or HTTP failure while talking to the model endpoint."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, category=category, details={"status_code": status_code})
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int, detail: str = "") -> "TransportError":
        """Build a TransportError from a failed HTTP response."""
        message = f"HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        return cls(message, category=classify_status(status_code), status_code=status_code)


class ProtocolAnomaly(ChatError):
    """Malformed frame or tool-call fragment. Recovered locally, never escalated."""

    category = ErrorCategory.PROTOCOL


class ToolValidationError(ChatError):
    """A proposed tool call failed argument validation."""

    category = ErrorCategory.TOOL

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' rejected arguments: {reason}", details={"tool": tool_name})
        self.tool_name = tool_name
        self.reason = reason

    @property
    def human_message(self) -> str:
        return f"Tool '{self.tool_name}' could not run: {self.reason}"


class ToolExecutionError(ChatError):
    """A tool raised or reported a failure while executing."""

    category = ErrorCategory.TOOL

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {reason}", details={"tool": tool_name})
        self.tool_name = tool_name
        self.reason = reason

    @property
    def human_message(self) -> str:
        return f"Tool '{self.tool_name}' failed: {self.reason}"


class SessionCancelled(ChatError):
    """The session was stopped by the user, a timeout, or a newer send."""

    category = ErrorCategory.CANCELLED

    def __init__(self, reason: Any) -> None:
        reason_value = getattr(reason, "value", reason)
        super().__init__(f"Session cancelled ({reason_value})", details={"reason": reason_value})
        self.reason = reason
        if reason_value == "timeout":
            self.category = ErrorCategory.TIMEOUT


_REDACTED_KEYS = {"api_key", "apikey", "authorization", "headers", "token"}


def report_error(error: ChatError, context: Optional[dict[str, Any]] = None) -> None:
    """
    Log an error with sensitive context redacted.

    Cancellations are a UI state, not an error, and are never reported.

    Args:
        error: The error to report
        context: Extra context (session id, tool name, ...)
    """
    if isinstance(error, SessionCancelled):
        return

    safe_context = {
        key: ("[REDACTED]" if key.lower() in _REDACTED_KEYS else value)
        for key, value in (context or {}).items()
    }
    record = error.to_dict()
    record["context"] = safe_context
    logger.error(f"Chat error reported: {record}")
