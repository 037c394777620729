"""
Tool catalog and registry.

Holds the tool definitions the model may call, in OpenAI function-calling
format, together with the local handler that runs each one. A registry is
an ordinary value handed to the execution gateway, so tests can build one
with fake tools.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Any]


# Built-in tool schemas in OpenAI format
BUILTIN_TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "get_current_time",
            "description": "Returns the current date and time",
            "parameters": {
                "type": "object",
                "properties": {
                    "format": {
                        "type": "string",
                        "enum": ["iso", "human", "timestamp"],
                        "description": "Preferred format (defaults to human)"
                    }
                },
                "required": []
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "calculate",
            "description": "Evaluate an arithmetic expression safely",
            "parameters": {
                "type": "object",
                "properties": {
                    "expression": {
                        "type": "string",
                        "description": "Arithmetic expression to evaluate (e.g. \"2 + 2 * 3\")"
                    }
                },
                "required": ["expression"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "save_note",
            "description": "Save a note with a title and content",
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "Title of the note"
                    },
                    "content": {
                        "type": "string",
                        "description": "Content of the note"
                    }
                },
                "required": ["title", "content"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "read_note",
            "description": "Find saved notes whose title or content matches the query",
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "Title (or text) to search for"
                    }
                },
                "required": ["title"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "open_ui",
            "description": "Open a panel of the client user interface",
            "parameters": {
                "type": "object",
                "properties": {
                    "component": {
                        "type": "string",
                        "enum": ["settings", "help", "about"],
                        "description": "Panel to open"
                    },
                    "data": {
                        "type": "object",
                        "description": "Optional data for the panel"
                    }
                },
                "required": ["component"]
            }
        }
    },
]

# Tools that would ask the user before running in an interactive client
CONFIRM_REQUIRED = {"save_note", "open_ui"}


@dataclass
class ToolDefinition:
    """Definition of a tool available to the LLM.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: JSON schema for the tool's parameters.
        handler: Callable run with the parsed arguments; may be async.
        requires_confirm: Whether an interactive client should confirm first.
        enabled: Whether the tool is offered to the model and may run.
    """
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    handler: Optional[ToolHandler] = None
    requires_confirm: bool = False
    enabled: bool = True

    @classmethod
    def from_openai_format(
        cls,
        tool_dict: dict[str, Any],
        handler: Optional[ToolHandler] = None,
    ) -> "ToolDefinition":
        """Create a ToolDefinition from OpenAI-style tool format.

        Args:
            tool_dict: Tool definition with 'type' and 'function' keys.
            handler: Callable that executes the tool.

        Returns:
            A new ToolDefinition instance.
        """
        func = tool_dict.get("function", {})
        name = func.get("name", "")
        return cls(
            name=name,
            description=func.get("description", ""),
            parameters=func.get("parameters", {}),
            handler=handler,
            requires_confirm=name in CONFIRM_REQUIRED,
        )

    def to_openai_format(self) -> dict[str, Any]:
        """Convert this ToolDefinition to OpenAI-style tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            }
        }


class ToolRegistry:
    """Named collection of tool definitions."""

    def __init__(self, tools: Optional[list[ToolDefinition]] = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.debug(f"Replacing registered tool: {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        """
        Remove a tool.

        Args:
            name: Tool name

        Returns:
            True if the tool was registered
        """
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return list(self._tools)

    def to_openai_format(self) -> list[dict[str, Any]]:
        """Schemas of the enabled tools, for the request's ``tools`` field."""
        return [tool.to_openai_format() for tool in self._tools.values() if tool.enabled]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
