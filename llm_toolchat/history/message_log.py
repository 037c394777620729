"""
Conversation log for llm_toolchat.

Holds the messages shown to the user. The orchestrator mutates the one
assistant message it is writing through update_message(); everything
else is append-only. Listeners are told about every change so a UI can
re-render.
"""
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant", "tool", "system")


@dataclass
class Message:
    """Represents a single chat message."""
    role: str
    content: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = 0
    tool_name: Optional[str] = None
    error: bool = False
    error_message: Optional[str] = None
    streaming: bool = False
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role}")
        if self.timestamp == 0:
            self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


class LogEventKind(Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"


@dataclass(frozen=True)
class LogEvent:
    """A change to the log. ``message`` is None for CLEARED."""
    kind: LogEventKind
    message: Optional[Message] = None


LogListener = Callable[[LogEvent], None]

_UPDATABLE_FIELDS = {"content", "tool_name", "error", "error_message", "streaming", "metadata"}


class MessageLog:
    """Ordered, observable list of chat messages."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._listeners: list[LogListener] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            listener: Called with a LogEvent after every change

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_message(
        self,
        role: str,
        content: str = "",
        **fields: Any,
    ) -> Message:
        """
        Append a message.

        Args:
            role: 'user', 'assistant', 'tool' or 'system'
            content: Message text
            **fields: Any other Message field

        Returns:
            The created Message
        """
        message = Message(role=role, content=content, **fields)
        self._messages.append(message)
        self._emit(LogEvent(LogEventKind.ADDED, message))
        return message

    def update_message(self, message_id: str, **changes: Any) -> Optional[Message]:
        """
        Update fields of an existing message in place.

        Args:
            message_id: Id of the message to update
            **changes: Field values; only content, tool_name, error,
                error_message, streaming and metadata may change

        Returns:
            The updated Message, or None if no message has that id
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        message = self.get(message_id)
        if message is None:
            logger.debug(f"update_message: no message {message_id}")
            return None
        for name, value in changes.items():
            setattr(message, name, value)
        self._emit(LogEvent(LogEventKind.UPDATED, message))
        return message

    def remove_message(self, message_id: str) -> bool:
        message = self.get(message_id)
        if message is None:
            return False
        self._messages.remove(message)
        self._emit(LogEvent(LogEventKind.REMOVED, message))
        return True

    def clear(self) -> None:
        self._messages.clear()
        self._emit(LogEvent(LogEventKind.CLEARED))

    def get(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def get_by_role(self, role: str) -> list[Message]:
        return [m for m in self._messages if m.role == role]

    def last_message(self, role: Optional[str] = None) -> Optional[Message]:
        for message in reversed(self._messages):
            if role is None or message.role == role:
                return message
        return None

    def search(self, query: str) -> list[Message]:
        """Case-insensitive substring search over message content."""
        needle = query.lower()
        return [m for m in self._messages if needle in m.content.lower()]

    def export(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    def import_messages(self, data: list[dict[str, Any]]) -> int:
        """
        Append exported messages.

        Args:
            data: Output of export()

        Returns:
            Number of messages imported
        """
        imported = [Message.from_dict(item) for item in data]
        for message in imported:
            self._messages.append(message)
            self._emit(LogEvent(LogEventKind.ADDED, message))
        return len(imported)

    def get_context(self, max_messages: Optional[int] = None) -> list[dict[str, str]]:
        """
        Get prior turns formatted for the next model request.

        Only user messages and finished assistant messages are included.
        Errored and cancelled replies are left out, and tool results of
        earlier sends are summarized in the assistant text that followed them.

        Args:
            max_messages: Optional limit on number of messages

        Returns:
            List of {"role", "content"} dicts
        """
        turns = [
            m for m in self._messages
            if m.role == "user"
            or (
                m.role == "assistant" and m.content
                and not (m.error or m.streaming or m.metadata.get("cancelled"))
            )
        ]
        if max_messages:
            turns = turns[-max_messages:]
        return [{"role": m.role, "content": m.content} for m in turns]

    def _emit(self, event: LogEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
