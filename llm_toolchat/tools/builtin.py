"""Built-in tools: clock, calculator, notes and UI panels."""
import ast
import logging
import math
import operator
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from .catalog import BUILTIN_TOOLS, ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """Raised by a tool body when it cannot produce a result."""


@dataclass
class Note:
    """A saved note."""
    title: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: float = field(default_factory=time.time)


class NoteStore:
    """In-memory note storage for one client session."""

    def __init__(self) -> None:
        self._notes: list[Note] = []

    def save(self, title: str, content: str) -> Note:
        note = Note(title=title.strip(), content=content.strip())
        self._notes.append(note)
        return note

    def search(self, query: str) -> list[Note]:
        """Notes whose title or content contains the query, case-insensitively."""
        needle = query.strip().lower()
        if not needle:
            return list(self._notes)
        return [
            note for note in self._notes
            if needle in note.title.lower() or needle in note.content.lower()
        ]

    def all(self) -> list[Note]:
        return list(self._notes)

    def __len__(self) -> int:
        return len(self._notes)


_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def evaluate_expression(expression: str) -> float:
    """
    Evaluate an arithmetic expression without eval().

    Only numbers, + - * /, unary signs and parentheses are accepted.

    Args:
        expression: The expression text

    Returns:
        The numeric result; integral floats are returned as int

    Raises:
        ToolError: If the expression is malformed or the result is not finite
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError:
        raise ToolError(f"Calculation failed: invalid expression '{expression}'")

    try:
        result = _evaluate_node(tree.body)
    except ZeroDivisionError:
        raise ToolError("Calculation failed: division by zero")

    if isinstance(result, float):
        if not math.isfinite(result):
            raise ToolError("Invalid calculation result")
        if result.is_integer():
            return int(result)
    return result


def _evaluate_node(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        return _BINARY_OPERATORS[type(node.op)](_evaluate_node(node.left), _evaluate_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate_node(node.operand))
    raise ToolError(f"Calculation failed: unsupported syntax ({type(node).__name__})")


class BuiltinTools:
    """Handlers for the built-in tools.

    Each handler takes the parsed argument dict and returns a JSON-friendly
    dict, raising ToolError on failure.
    """

    def __init__(
        self,
        notes: Optional[NoteStore] = None,
        on_open_ui: Optional[Callable[[str, dict], None]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ) -> None:
        self.notes = notes or NoteStore()
        self._on_open_ui = on_open_ui
        self._clock = clock

    def handlers(self) -> dict[str, Callable[[dict[str, Any]], Any]]:
        return {
            "get_current_time": self.get_current_time,
            "calculate": self.calculate,
            "save_note": self.save_note,
            "read_note": self.read_note,
            "open_ui": self.open_ui,
        }

    def get_current_time(self, args: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        fmt = args.get("format") or "human"
        human = now.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
        if fmt == "iso":
            current = now.isoformat()
        elif fmt == "timestamp":
            current = str(int(now.timestamp()))
        else:
            current = human
        return {
            "currentTime": current,
            "formatted": human,
            "timestamp": int(now.timestamp()),
        }

    def calculate(self, args: dict[str, Any]) -> dict[str, Any]:
        expression = args.get("expression", "")
        result = evaluate_expression(expression)
        return {
            "expression": expression.strip(),
            "result": result,
            "formatted": f"Result: {result}",
        }

    def save_note(self, args: dict[str, Any]) -> dict[str, Any]:
        note = self.notes.save(args["title"], args["content"])
        logger.info(f"Saved note '{note.title}' ({note.id})")
        return {
            "success": True,
            "noteId": note.id,
            "message": f"Note \"{note.title}\" saved successfully",
        }

    def read_note(self, args: dict[str, Any]) -> dict[str, Any]:
        query = args.get("title", "")
        found = self.notes.search(query)
        return {
            "found": len(found),
            "notes": [asdict(note) for note in found],
            "message": f"Found {len(found)} note(s) matching \"{query}\"",
        }

    def open_ui(self, args: dict[str, Any]) -> dict[str, Any]:
        component = args["component"]
        data = args.get("data") or {}
        if self._on_open_ui is not None:
            self._on_open_ui(component, data)
        return {
            "success": True,
            "component": component,
            "message": f"UI component \"{component}\" opened successfully",
            "data": data,
        }


def create_default_registry(tools: Optional[BuiltinTools] = None) -> ToolRegistry:
    """
    Build a registry holding every built-in tool.

    Args:
        tools: Handler object to bind; a fresh one is created if omitted

    Returns:
        A new ToolRegistry
    """
    tools = tools or BuiltinTools()
    handlers = tools.handlers()
    registry = ToolRegistry()
    for schema in BUILTIN_TOOLS:
        name = schema["function"]["name"]
        registry.register(ToolDefinition.from_openai_format(schema, handler=handlers[name]))
    return registry
