"""
Continuation controller for the tool-calling loop.

Caps how many tool-continuation turns a single user send may open, so a
model that keeps asking for tools cannot loop forever.
"""
from dataclasses import dataclass
from typing import Optional

from ..constants import MAX_TOOL_CONTINUATIONS


@dataclass
class ContinuationState:
    """Tracks the current state of the continuation loop.

    Attributes:
        continuations_used: Tool-continuation turns opened so far.
        max_continuations: The maximum allowed continuations.
        can_continue: Whether another continuation may be opened.
        warning_message: Optional warning message to display.
    """
    continuations_used: int
    max_continuations: int
    can_continue: bool
    warning_message: Optional[str] = None


class ContinuationController:
    """Counts tool-continuation turns for one send.

    The first streamed turn is not a continuation; each round opened to
    feed tool results back to the model is.
    """

    DEFAULT_MAX_CONTINUATIONS: int = MAX_TOOL_CONTINUATIONS

    def __init__(self, max_continuations: int = MAX_TOOL_CONTINUATIONS) -> None:
        """Initialize the continuation controller.

        Args:
            max_continuations: Maximum number of continuation turns.
                Zero disables tool continuations entirely.
        """
        if max_continuations < 0:
            raise ValueError("max_continuations must be >= 0")
        self.max_continuations = max_continuations
        self.continuations_used = 0

    def can_continue(self) -> bool:
        """Whether another continuation turn may be opened."""
        return self.continuations_used < self.max_continuations

    def on_continuation(self) -> None:
        """Record that a continuation turn is being opened."""
        self.continuations_used += 1

    def is_at_cap(self) -> bool:
        return not self.can_continue()

    def on_cap_reached(self) -> str:
        """Warning text logged when a turn asks for tools past the cap."""
        return (
            f"Tool continuation limit ({self.max_continuations}) reached; "
            f"finishing with the text streamed so far"
        )

    def get_state(self) -> ContinuationState:
        """Get the current continuation state.

        Returns:
            ContinuationState with current tracking information.
        """
        warning = self.on_cap_reached() if self.is_at_cap() else None
        return ContinuationState(
            continuations_used=self.continuations_used,
            max_continuations=self.max_continuations,
            can_continue=self.can_continue(),
            warning_message=warning,
        )
