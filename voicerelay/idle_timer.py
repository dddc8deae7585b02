"""
Single-shot, rearmable idle timer used for turn-taking.

Every inbound audio frame rearms the timer. When the caller has been quiet
for the whole period the callback runs once; the bridge uses it to commit the
input buffer and ask for a response.
"""

import asyncio
from typing import Callable, Optional


class IdleTimer:
    """Debounce timer bound to the running event loop.

    Args:
        duration: Default quiet period in seconds
        callback: Called with no arguments on expiry. It runs inside the event
            loop and must not block; the bridge only enqueues an event from it.
    """

    def __init__(self, duration: float, callback: Callable[[], None]):
        self.duration = duration
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        """Whether a fire is pending."""
        return self._handle is not None

    def arm(self, duration: Optional[float] = None) -> None:
        """Schedule the callback, cancelling any pending fire first."""
        self.cancel()
        delay = self.duration if duration is None else duration
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)

    def cancel(self) -> None:
        """Cancel a pending fire. Safe to call when nothing is pending."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
