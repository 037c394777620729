"""
Constants and configuration defaults for llm_toolchat.
"""
from pathlib import Path
from typing import Final

APP_NAME: Final[str] = "llm_toolchat"
APP_VERSION: Final[str] = "1.0.0"
APP_DESCRIPTION: Final[str] = "Streaming LLM chat client with tool calling"

CONFIG_DIR: Final[Path] = Path.home() / ".llm_toolchat"
CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"

API_KEY_ENV_VAR: Final[str] = "OPENAI_API_KEY"
BASE_URL_ENV_VAR: Final[str] = "OPENAI_BASE_URL"

# Input limits
MAX_INPUT_LENGTH: Final[int] = 4000
MAX_SYSTEM_PROMPT_LENGTH: Final[int] = 2000

# API defaults
DEFAULT_API_ENDPOINT: Final[str] = "https://api.openai.com/v1"
DEFAULT_MODEL: Final[str] = "gpt-4o-mini"
DEFAULT_MAX_TOKENS: Final[int] = 1000
DEFAULT_TEMPERATURE: Final[float] = 0.7
DEFAULT_TOP_P: Final[float] = 0.9
MIN_TEMPERATURE: Final[float] = 0.0
MAX_TEMPERATURE: Final[float] = 2.0
MIN_TOP_P: Final[float] = 0.0
MAX_TOP_P: Final[float] = 1.0
MIN_MAX_TOKENS: Final[int] = 1
MAX_MAX_TOKENS: Final[int] = 4000

# Timeouts (seconds)
STREAM_TIMEOUT_SECONDS: Final[float] = 60.0
TOOL_TIMEOUT_SECONDS: Final[float] = 15.0
CONNECT_TIMEOUT_SECONDS: Final[float] = 10.0

# Tool-calling loop
MAX_TOOL_CONTINUATIONS: Final[int] = 3

# Wire protocol
SSE_DATA_PREFIX: Final[str] = "data:"
SSE_DONE_SENTINEL: Final[str] = "[DONE]"

SYSTEM_PROMPT: Final[str] = """You are a helpful assistant.
You can tell the time, do arithmetic, and save or look up short notes using the tools provided.
Prefer calling a tool over guessing when a tool can answer the question."""

HELP_TEXT: Final[str] = """
Available Commands:
  /help               - Show this help message
  /tools              - List the tools the assistant can call
  /tool <name> <text> - Run a tool directly, bypassing the model
  /ping               - Check the API key and endpoint
  /status             - Show runtime status
  /clear              - Clear the conversation
  /quit               - Exit

Press Ctrl+C while a reply is streaming to stop it.
"""
