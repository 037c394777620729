"""
Argument validators for tool calls.

Validators never execute anything; they return a ValidationOutcome that
the gateway passes back to the orchestrator.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one tool call.

    Attributes:
        ok: Whether the arguments were accepted.
        reason: Why they were rejected, when ok is False.
    """
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def passed(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> "ValidationOutcome":
        return cls(ok=False, reason=reason)


Validator = Callable[[Any], ValidationOutcome]

TIME_FORMATS = ("iso", "human", "timestamp")
UI_COMPONENTS = ("settings", "help", "about")
EXPRESSION_PATTERN = re.compile(r"^[0-9+\-*/().\s]+$")


def validate_get_current_time(args: dict) -> ValidationOutcome:
    fmt = args.get("format")
    if fmt is not None and fmt not in TIME_FORMATS:
        return ValidationOutcome.failed("Invalid format. Must be iso, human, or timestamp")
    return ValidationOutcome.passed()


def validate_calculate(args: dict) -> ValidationOutcome:
    expression = args.get("expression")
    if not expression or not isinstance(expression, str):
        return ValidationOutcome.failed("Expression must be a non-empty string")
    if not EXPRESSION_PATTERN.match(expression):
        return ValidationOutcome.failed("Expression contains invalid characters")
    return ValidationOutcome.passed()


def validate_save_note(args: dict) -> ValidationOutcome:
    title = args.get("title")
    if not isinstance(title, str) or not title.strip():
        return ValidationOutcome.failed("Title must be a non-empty string")
    if not isinstance(args.get("content"), str) or not args["content"]:
        return ValidationOutcome.failed("Content must be a non-empty string")
    return ValidationOutcome.passed()


def validate_read_note(args: dict) -> ValidationOutcome:
    title = args.get("title")
    if not isinstance(title, str) or not title.strip():
        return ValidationOutcome.failed("Title must be a non-empty string")
    return ValidationOutcome.passed()


def validate_open_ui(args: dict) -> ValidationOutcome:
    if args.get("component") not in UI_COMPONENTS:
        return ValidationOutcome.failed("Component must be settings, help, or about")
    data = args.get("data")
    if data is not None and not isinstance(data, dict):
        return ValidationOutcome.failed("Data must be an object")
    return ValidationOutcome.passed()


DEFAULT_VALIDATORS: dict[str, Validator] = {
    "get_current_time": validate_get_current_time,
    "calculate": validate_calculate,
    "save_note": validate_save_note,
    "read_note": validate_read_note,
    "open_ui": validate_open_ui,
}


class ToolValidators:
    """Per-tool validators with a structural fallback.

    Tools without a registered validator only need their arguments to be
    a JSON object.
    """

    def __init__(self, validators: Optional[dict[str, Validator]] = None) -> None:
        self._validators: dict[str, Validator] = dict(validators or {})

    @classmethod
    def with_defaults(cls) -> "ToolValidators":
        """Validators for the built-in tools."""
        return cls(DEFAULT_VALIDATORS)

    def register(self, tool_name: str, validator: Validator) -> None:
        self._validators[tool_name] = validator

    def get(self, tool_name: str) -> Optional[Validator]:
        return self._validators.get(tool_name)

    def validate(self, tool_name: str, args: Any) -> ValidationOutcome:
        """
        Validate arguments for a tool call.

        Args:
            tool_name: Name of the tool being called
            args: Parsed arguments from the model

        Returns:
            ValidationOutcome describing whether the call may run
        """
        if not isinstance(args, dict):
            return ValidationOutcome.failed("Arguments must be an object")
        validator = self._validators.get(tool_name)
        if validator is None:
            return ValidationOutcome.passed()
        return validator(args)
