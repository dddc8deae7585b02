"""Shared test doubles for the bridge and its legs."""

import asyncio
import json

import pytest

from voicerelay.legs import Leg


class FakeLeg(Leg):
    """In-memory leg: inbound frames are fed by the test, sends are recorded."""

    def __init__(self, name: str = "fake"):
        super().__init__()
        self.name = name
        self.stream_sid = None
        self.sent = []
        self.pings = 0
        self.transport_closes = 0
        self.send_error = None
        self._inbound = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def _send_text(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(json.loads(text))

    async def iter_text(self):
        while True:
            item = await self._inbound.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def ping(self) -> None:
        self.pings += 1

    async def _close_transport(self) -> None:
        self.transport_closes += 1
        self._inbound.put_nowait(None)

    def feed(self, message) -> None:
        """Queue an inbound frame; dicts are JSON encoded, strings sent raw."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbound.put_nowait(message)

    def hang_up(self) -> None:
        """Simulate the peer closing the connection cleanly."""
        self._inbound.put_nowait(None)

    def fail(self, error: Exception) -> None:
        """Simulate a transport fault surfacing on the reader."""
        self._inbound.put_nowait(error)


@pytest.fixture
def telephony_leg():
    return FakeLeg("telephony")


@pytest.fixture
def realtime_leg():
    return FakeLeg("realtime")


@pytest.fixture
def make_leg():
    """Factory for additional fake legs."""
    return FakeLeg
