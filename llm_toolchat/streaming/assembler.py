"""
Tool-call assembler.

Folds ToolCallDelta events into complete ToolCall values. Deltas for
different calls arrive interleaved and keyed by index; a call completes
the moment its accumulated argument string parses as JSON, which may
happen for a later index before an earlier one.
"""
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from .events import ToolCallDelta

logger = logging.getLogger(__name__)


@dataclass
class ToolCallFragment:
    """A tool call still being streamed.

    Attributes:
        index: Position of the call within the model turn.
        name: Tool name received so far (later deltas may overwrite it).
        args_buffer: Concatenation of every arguments chunk received so far.
        call_id: Provider call id, if one has been received.
    """
    index: int
    name: str = ""
    args_buffer: str = ""
    call_id: Optional[str] = None


@dataclass(frozen=True)
class ToolCall:
    """A complete, parsed tool invocation proposed by the model."""
    id: str
    name: str
    args: Any
    index: int = 0

    def to_openai_format(self) -> dict[str, Any]:
        """Render as an entry of an assistant message's ``tool_calls`` list."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.args),
            },
        }


@dataclass
class ToolCallAssembler:
    """Accumulates fragments for one model turn.

    ``ingest`` never raises. Deltas for an index that has already been
    completed are protocol anomalies and are ignored.
    """
    _pending: dict[int, ToolCallFragment] = field(default_factory=dict, repr=False)
    _retired: set[int] = field(default_factory=set, repr=False)
    _completed: list[ToolCall] = field(default_factory=list, repr=False)
    anomaly_count: int = 0

    @property
    def completed(self) -> list[ToolCall]:
        """Completed calls in the order they completed."""
        return list(self._completed)

    @property
    def pending(self) -> list[ToolCallFragment]:
        """Fragments still waiting for parseable arguments, in index order."""
        return [self._pending[index] for index in sorted(self._pending)]

    def ingest(self, delta: ToolCallDelta) -> Optional[ToolCall]:
        """
        Apply one delta.

        Args:
            delta: The next tool-call delta, in arrival order

        Returns:
            The ToolCall completed by this delta, or None
        """
        if delta.index in self._retired:
            self.anomaly_count += 1
            logger.debug(f"Ignoring delta for already completed tool call #{delta.index}")
            return None

        fragment = self._pending.get(delta.index)
        if fragment is None:
            fragment = ToolCallFragment(index=delta.index)
            self._pending[delta.index] = fragment

        if delta.name:
            fragment.name = delta.name
        if delta.call_id and fragment.call_id is None:
            fragment.call_id = delta.call_id
        if delta.arguments:
            fragment.args_buffer += delta.arguments

        return self._try_complete(fragment)

    def finish(self) -> list[ToolCallFragment]:
        """
        Close the turn.

        Returns:
            Fragments that never became parseable; they are dropped.
        """
        leftovers = self.pending
        for fragment in leftovers:
            logger.warning(
                f"Dropping incomplete tool call #{fragment.index} "
                f"({fragment.name or 'unnamed'}, {len(fragment.args_buffer)} chars of arguments)"
            )
        self._pending.clear()
        return leftovers

    def _try_complete(self, fragment: ToolCallFragment) -> Optional[ToolCall]:
        if not fragment.name or not fragment.args_buffer:
            return None
        try:
            args = json.loads(fragment.args_buffer)
        except ValueError:
            # Arguments still streaming.
            return None
        if not isinstance(args, (dict, list)):
            # A bare number or string prefix like "12" is not a finished argument object.
            return None

        call = ToolCall(
            id=fragment.call_id or f"call_{uuid.uuid4().hex[:24]}",
            name=fragment.name,
            args=args,
            index=fragment.index,
        )
        del self._pending[fragment.index]
        self._retired.add(fragment.index)
        self._completed.append(call)
        logger.debug(f"Tool call #{call.index} complete: {call.name}")
        return call
