"""
Periodic keepalive for both legs of a call.

Idle sockets get dropped by proxies and load balancers during long silences
on the line. The monitor pings every open leg on a fixed interval; it never
tears anything down itself. A leg that is really gone surfaces through its
reader, which the bridge already turns into teardown.
"""

import asyncio
from typing import Optional, Sequence

from voicerelay.config.logging_config import configure_logging
from voicerelay.exceptions import RelayError
from voicerelay.legs import Leg

logger = configure_logging("liveness")


class LivenessMonitor:
    """Pings each open leg every ``interval`` seconds."""

    def __init__(self, legs: Sequence[Leg], interval: float):
        self.legs = list(legs)
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the keepalive task. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            for leg in self.legs:
                if not leg.is_open:
                    continue
                try:
                    await leg.ping()
                except RelayError as e:
                    logger.warning(f"Keepalive on {leg.name} leg failed: {e}")
