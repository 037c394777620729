"""Rich UI components for llm_toolchat."""
from .renderer import ChatRenderer

__all__ = ['ChatRenderer']
