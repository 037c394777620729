"""
Cooperative cancellation for streaming sessions.

A CancelToken is created per orchestration session and checked at every
suspension point: awaiting the next network chunk, awaiting validation,
awaiting tool execution.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional

from ..errors import SessionCancelled

logger = logging.getLogger(__name__)


class CancelReason(Enum):
    """Why a session was cancelled."""
    USER = "user"
    TIMEOUT = "timeout"
    SUPERSEDED = "superseded"


class CancelToken:
    """One-shot cancellation signal.

    The first call to cancel() wins; its reason is kept and later calls
    are ignored.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[CancelReason] = None

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.USER) -> bool:
        """
        Signal cancellation.

        Args:
            reason: Why the session is being cancelled

        Returns:
            True if this call cancelled the token, False if it already was
        """
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancel token fired: {reason.value}")
        return True

    async def wait(self) -> CancelReason:
        """Block until the token is cancelled and return the reason."""
        await self._event.wait()
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise SessionCancelled if the token has fired."""
        if self._reason is not None:
            raise SessionCancelled(self._reason)

    def __repr__(self) -> str:
        state = self._reason.value if self._reason else "active"
        return f"CancelToken({state})"
