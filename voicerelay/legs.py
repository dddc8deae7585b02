"""
Leg wrappers around the two sockets a call owns.

A leg hides which WebSocket library sits underneath and gives the bridge the
same small surface for both sides of the call:

- ``is_open``: whether sends can still succeed
- ``send_json``: send one JSON object, dropping it when the leg is not open
- ``iter_text``: async iteration over inbound text frames
- ``ping``: keepalive for the liveness monitor
- ``close``: idempotent close

Library-specific failures are converted to ``PeerClosed`` (the peer went
away) or ``TransportError`` (anything else), so the bridge only ever deals
with the relay's own exception types.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from voicerelay.config.constants import KEEPALIVE_MARK_NAME
from voicerelay.config.logging_config import configure_logging
from voicerelay.exceptions import PeerClosed, TransportError
from voicerelay.models.openai_api import ClientEventType, ServerEventType
from voicerelay.translator import MessageTranslator

logger = configure_logging("legs")


class Leg(ABC):
    """One side of a bridged call."""

    name: str = "leg"

    def __init__(self):
        self._closed = False

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def _send_text(self, text: str) -> None:
        ...

    @abstractmethod
    def iter_text(self) -> AsyncIterator[str]:
        ...

    @abstractmethod
    async def ping(self) -> None:
        ...

    @abstractmethod
    async def _close_transport(self) -> None:
        ...

    async def send_json(self, data: Dict[str, Any]) -> bool:
        """Send ``data`` if the leg is open.

        Returns:
            bool: False when the frame was dropped because the leg is not open

        Raises:
            PeerClosed: the peer closed while sending
            TransportError: any other send failure
        """
        if not self.is_open:
            logger.debug(f"Dropping {self.name} frame, leg not open")
            return False
        await self._send_text(json.dumps(data))
        return True

    async def close(self) -> None:
        """Close the leg. Calling it again, or on a leg the peer closed, is a no-op."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._close_transport()
        except (RuntimeError, OSError, ConnectionClosed) as e:
            # The peer may have gone already; closing is best effort
            logger.debug(f"Error closing {self.name} leg: {e}")
        logger.info(f"{self.name} leg closed")


class TelephonyLeg(Leg):
    """Twilio Media Streams socket accepted by the FastAPI app.

    Starlette cannot send protocol-level pings, so ``ping`` sends a Twilio
    ``mark`` once the stream SID is known. Protocol pings on this socket come
    from uvicorn (``ws_ping_interval``).
    """

    name = "telephony"

    def __init__(self, websocket: WebSocket):
        super().__init__()
        self.websocket = websocket
        self.stream_sid: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def _send_text(self, text: str) -> None:
        try:
            await self.websocket.send_text(text)
        except WebSocketDisconnect as e:
            raise PeerClosed(self.name, e.code, e.reason or "")
        except (RuntimeError, OSError) as e:
            raise TransportError(self.name, str(e))

    async def iter_text(self) -> AsyncIterator[str]:
        # Raw ASGI messages: Starlette's iter_text fails on binary frames.
        # Binary frames are decoded and left to the parser to reject.
        while True:
            try:
                message = await self.websocket.receive()
            except (RuntimeError, OSError) as e:
                if self._closed:
                    return
                raise TransportError(self.name, str(e))

            if message["type"] == "websocket.disconnect":
                return
            text = message.get("text")
            if text is None:
                text = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            yield text

    async def ping(self) -> None:
        if self.stream_sid is None:
            return
        await self.send_json(
            MessageTranslator.telephony_mark(self.stream_sid, KEEPALIVE_MARK_NAME)
        )

    async def _close_transport(self) -> None:
        if (
            self.websocket.client_state != WebSocketState.DISCONNECTED
            and self.websocket.application_state != WebSocketState.DISCONNECTED
        ):
            await self.websocket.close()


class RealtimeLeg(Leg):
    """Client connection to the OpenAI Realtime API (``websockets`` asyncio client)."""

    name = "realtime"

    def __init__(self, websocket):
        super().__init__()
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return not self._closed and self.websocket.close_code is None

    async def _send_text(self, text: str) -> None:
        try:
            await self.websocket.send(text)
        except ConnectionClosed as e:
            raise PeerClosed(self.name, _close_code(e), _close_reason(e))
        except OSError as e:
            raise TransportError(self.name, str(e))

    async def iter_text(self) -> AsyncIterator[str]:
        try:
            async for message in self.websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                yield message
        except ConnectionClosedOK:
            return
        except ConnectionClosed as e:
            if self._closed:
                return
            raise PeerClosed(self.name, _close_code(e), _close_reason(e))
        except OSError as e:
            if self._closed:
                return
            raise TransportError(self.name, str(e))

    async def ping(self) -> None:
        if not self.is_open:
            return
        try:
            await self.websocket.ping()
        except ConnectionClosed as e:
            raise PeerClosed(self.name, _close_code(e), _close_reason(e))
        except OSError as e:
            raise TransportError(self.name, str(e))

    async def _close_transport(self) -> None:
        if self.websocket.close_code is None:
            await self.websocket.close()


class LoopbackLeg(Leg):
    """In-process stand-in for the Realtime API used by the self-test mode.

    Appended input audio is echoed straight back as
    ``output_audio_buffer.delta``, so a caller hears themselves with the
    relay's own latency. Everything else sent to it is accepted and ignored.
    """

    name = "loopback"

    def __init__(self):
        super().__init__()
        self._outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def _send_text(self, text: str) -> None:
        data = json.loads(text)
        if data.get("type") == ClientEventType.INPUT_AUDIO_BUFFER_APPEND.value:
            echo = {
                "type": ServerEventType.OUTPUT_AUDIO_BUFFER_DELTA.value,
                "audio": data["audio"],
            }
            self._outbox.put_nowait(json.dumps(echo))

    async def iter_text(self) -> AsyncIterator[str]:
        while True:
            message = await self._outbox.get()
            if message is None:
                return
            yield message

    async def ping(self) -> None:
        return None

    async def _close_transport(self) -> None:
        self._outbox.put_nowait(None)


def _close_code(error: ConnectionClosed) -> Optional[int]:
    frame = error.rcvd or error.sent
    return frame.code if frame is not None else None


def _close_reason(error: ConnectionClosed) -> str:
    frame = error.rcvd or error.sent
    return frame.reason if frame is not None else ""
