"""
Tool execution gateway.

The only surface through which the orchestrator touches tools:
validate(name, args) and execute(name, args). Tool internals stay behind
this boundary.
"""
import inspect
import logging
from typing import Any, Optional, Protocol

from ..errors import ToolExecutionError
from .catalog import ToolRegistry
from .validators import ToolValidators, ValidationOutcome

logger = logging.getLogger(__name__)


class ToolGateway(Protocol):
    """Contract the orchestrator depends on."""

    def validate(self, name: str, args: Any) -> ValidationOutcome: ...

    async def execute(self, name: str, args: Any) -> Any: ...

    def tool_schemas(self) -> list[dict[str, Any]]: ...


class ToolExecutionGateway:
    """Validates and executes tool calls against an injected registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        validators: Optional[ToolValidators] = None,
    ) -> None:
        self._registry = registry
        self._validators = validators or ToolValidators.with_defaults()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def tool_schemas(self) -> list[dict[str, Any]]:
        return self._registry.to_openai_format()

    def validate(self, name: str, args: Any) -> ValidationOutcome:
        """
        Check that a tool exists, is enabled, and accepts the arguments.

        Args:
            name: Tool name proposed by the model
            args: Parsed arguments

        Returns:
            ValidationOutcome
        """
        tool = self._registry.get(name)
        if tool is None:
            return ValidationOutcome.failed(f"Unknown tool '{name}'")
        if not tool.enabled:
            return ValidationOutcome.failed(f"Tool '{name}' is disabled")
        outcome = self._validators.validate(name, args)
        if not outcome.ok:
            logger.info(f"Validation rejected {name}: {outcome.reason}")
        return outcome

    async def execute(self, name: str, args: Any) -> Any:
        """
        Run a tool.

        Args:
            name: Tool name
            args: Validated arguments

        Returns:
            The tool's structured result

        Raises:
            ToolExecutionError: If the tool is missing or its handler fails
        """
        tool = self._registry.get(name)
        if tool is None or tool.handler is None:
            raise ToolExecutionError(name, "tool is not available")
        if tool.requires_confirm:
            logger.info(f"Tool {name} is marked for confirmation; running without a prompt")

        try:
            result = tool.handler(args)
            if inspect.isawaitable(result):
                result = await result
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.debug(f"Tool {name} raised {type(e).__name__}: {e}")
            raise ToolExecutionError(name, str(e) or type(e).__name__) from e
        return result
