"""Tool catalog, validation and execution for llm_toolchat."""
from .builtin import BuiltinTools, Note, NoteStore, ToolError, create_default_registry, evaluate_expression
from .catalog import BUILTIN_TOOLS, ToolDefinition, ToolRegistry
from .gateway import ToolExecutionGateway, ToolGateway
from .validators import ToolValidators, ValidationOutcome

__all__ = [
    'BUILTIN_TOOLS', 'ToolDefinition', 'ToolRegistry',
    'ToolValidators', 'ValidationOutcome',
    'ToolExecutionGateway', 'ToolGateway',
    'BuiltinTools', 'Note', 'NoteStore', 'ToolError',
    'create_default_registry', 'evaluate_expression',
]
