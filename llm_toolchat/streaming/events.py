"""Typed events produced by the stream frame decoder."""
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class TextDelta:
    """An incremental fragment of assistant text."""
    content: str


@dataclass(frozen=True)
class ToolCallDelta:
    """An incremental fragment of one proposed tool call.

    Attributes:
        index: Position of the tool call within the model turn.
        name: Name fragment, if this delta carries one.
        arguments: Arguments-string fragment, if this delta carries one.
        call_id: Provider-assigned call id, usually only on the first delta.
    """
    index: int
    name: Optional[str] = None
    arguments: Optional[str] = None
    call_id: Optional[str] = None


@dataclass(frozen=True)
class StreamEnd:
    """Marks normal completion of a stream."""
    finish_reason: Optional[str] = None


StreamEvent = Union[TextDelta, ToolCallDelta, StreamEnd]
