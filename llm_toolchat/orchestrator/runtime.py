"""
Runtime status shared with the UI.

Mirrors what the client shows in its status line: whether a reply is
streaming, which tool is running, and the last error.
"""
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass
class RuntimeStatus:
    """Live status of the chat engine."""
    is_streaming: bool = False
    stream_started_at: Optional[float] = None
    last_stream_duration: Optional[float] = None
    active_tool: Optional[str] = None
    last_error: Optional[str] = None
    error_count: int = 0

    def start_streaming(self) -> None:
        self.is_streaming = True
        self.stream_started_at = time.time()

    def stop_streaming(self) -> None:
        if self.is_streaming and self.stream_started_at is not None:
            self.last_stream_duration = time.time() - self.stream_started_at
        self.is_streaming = False
        self.stream_started_at = None

    def start_tool(self, name: str) -> None:
        self.active_tool = name

    def complete_tool(self) -> None:
        self.active_tool = None

    def set_error(self, message: str) -> None:
        self.last_error = message
        self.error_count += 1

    def clear_error(self) -> None:
        self.last_error = None

    def reset(self) -> None:
        """Back to the initial status, error count included."""
        self.is_streaming = False
        self.stream_started_at = None
        self.last_stream_duration = None
        self.active_tool = None
        self.last_error = None
        self.error_count = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
