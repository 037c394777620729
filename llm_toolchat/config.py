"""
Configuration management for llm_toolchat.
Handles loading, saving, and accessing configuration from a JSON file and environment variables.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from .constants import (
    API_KEY_ENV_VAR,
    BASE_URL_ENV_VAR,
    CONFIG_FILE,
    DEFAULT_API_ENDPOINT,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    MAX_INPUT_LENGTH,
    MAX_MAX_TOKENS,
    MAX_SYSTEM_PROMPT_LENGTH,
    MAX_TEMPERATURE,
    MAX_TOOL_CONTINUATIONS,
    MAX_TOP_P,
    MIN_MAX_TOKENS,
    MIN_TEMPERATURE,
    MIN_TOP_P,
    STREAM_TIMEOUT_SECONDS,
    TOOL_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """Model endpoint and sampling parameters."""
    base_url: str = DEFAULT_API_ENDPOINT
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    system_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        self.temperature = min(max(float(self.temperature), MIN_TEMPERATURE), MAX_TEMPERATURE)
        self.top_p = min(max(float(self.top_p), MIN_TOP_P), MAX_TOP_P)
        self.max_tokens = min(max(int(self.max_tokens), MIN_MAX_TOKENS), MAX_MAX_TOKENS)
        if self.system_prompt:
            self.system_prompt = self.system_prompt[:MAX_SYSTEM_PROMPT_LENGTH]


@dataclass
class ChatConfig:
    """Chat engine limits and policies."""
    max_input_length: int = MAX_INPUT_LENGTH
    max_tool_continuations: int = MAX_TOOL_CONTINUATIONS
    stream_timeout: Optional[float] = STREAM_TIMEOUT_SECONDS
    tool_timeout: Optional[float] = TOOL_TIMEOUT_SECONDS
    context_messages: int = 20
    tools_enabled: bool = True
    tool_failure_policy: str = "abort_turn"
    require_api_key: bool = True


@dataclass
class UIConfig:
    """UI-specific configuration."""
    markdown_rendering: bool = True
    show_tool_results: bool = True
    show_status: bool = True


@dataclass
class AppConfig:
    """Main application configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    api_keys: dict = field(default_factory=dict)

    @property
    def api_key(self) -> Optional[str]:
        return self.api_keys.get(API_KEY_ENV_VAR)


class ConfigManager:
    """
    Manages application configuration with support for JSON files and environment variables.

    Environment variables take precedence over config file values. Keys
    loaded from the environment are never written back to the file.
    """

    _instance: Optional['ConfigManager'] = None

    def __new__(cls, config_file: Optional[Path] = None) -> 'ConfigManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_file: Optional[Path] = None) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._config_file = config_file or CONFIG_FILE
        self._env_keys: set[str] = set()
        self._config: AppConfig = AppConfig()
        self._ensure_config_dir()
        self._load_config()
        self._load_env_vars()

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the singleton; the next ConfigManager() reloads from disk."""
        cls._instance = None

    def _ensure_config_dir(self) -> None:
        """Create configuration directory if it doesn't exist."""
        self._config_file.parent.mkdir(parents=True, exist_ok=True)

    def _load_config(self) -> None:
        """Load configuration from JSON file."""
        if not self._config_file.exists():
            self._save_config()
            return

        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if 'llm' in data:
                self._config.llm = LLMConfig(**data['llm'])
            if 'chat' in data:
                self._config.chat = ChatConfig(**data['chat'])
            if 'ui' in data:
                self._config.ui = UIConfig(**data['ui'])
            if 'api_keys' in data:
                self._config.api_keys = dict(data['api_keys'])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load config file {self._config_file}: {e}")
            self._config = AppConfig()

    def _load_env_vars(self) -> None:
        """Load the API key and endpoint from environment variables."""
        api_key = os.environ.get(API_KEY_ENV_VAR)
        if api_key:
            self._config.api_keys[API_KEY_ENV_VAR] = api_key
            self._env_keys.add(API_KEY_ENV_VAR)

        base_url = os.environ.get(BASE_URL_ENV_VAR)
        if base_url:
            self._config.llm.base_url = base_url

    def _save_config(self) -> None:
        """Save current configuration to JSON file."""
        data = {
            'llm': asdict(self._config.llm),
            'chat': asdict(self._config.chat),
            'ui': asdict(self._config.ui),
            'api_keys': {k: v for k, v in self._config.api_keys.items()
                         if k not in self._env_keys},
        }

        with open(self._config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self._config

    @property
    def llm(self) -> LLMConfig:
        return self._config.llm

    @property
    def chat(self) -> ChatConfig:
        return self._config.chat

    @property
    def ui(self) -> UIConfig:
        return self._config.ui

    def get_api_key(self, key_name: str = API_KEY_ENV_VAR) -> Optional[str]:
        """
        Get an API key by name.

        Args:
            key_name: The name of the API key (e.g., 'OPENAI_API_KEY')

        Returns:
            The API key value or None if not found
        """
        return self._config.api_keys.get(key_name) or os.environ.get(key_name)

    def set_api_key(self, value: str, key_name: str = API_KEY_ENV_VAR, persist: bool = False) -> None:
        """
        Set an API key.

        Args:
            value: The API key value
            key_name: The name of the API key
            persist: Whether to save to config file
        """
        self._config.api_keys[key_name] = value
        if persist:
            self._env_keys.discard(key_name)
            self._save_config()
        else:
            self._env_keys.add(key_name)

    def update_llm(self, **kwargs: Any) -> None:
        """Update LLM configuration."""
        for key, value in kwargs.items():
            if hasattr(self._config.llm, key):
                setattr(self._config.llm, key, value)
        self._config.llm.__post_init__()
        self._save_config()

    def update_chat(self, **kwargs: Any) -> None:
        """Update chat engine configuration."""
        for key, value in kwargs.items():
            if hasattr(self._config.chat, key):
                setattr(self._config.chat, key, value)
        self._save_config()

    def save(self) -> None:
        """Explicitly save configuration."""
        self._save_config()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()
        self._load_env_vars()

    def reset(self) -> None:
        """Reset configuration to defaults."""
        self._config = AppConfig()
        self._env_keys.clear()
        self._save_config()
        self._load_env_vars()


def get_config() -> ConfigManager:
    """Get the global configuration manager instance."""
    return ConfigManager()
