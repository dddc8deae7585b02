"""
Per-call bridge between a Twilio Media Stream and the OpenAI Realtime API.

Each call gets one BridgeSession. The session owns both legs and runs as a
small actor: the telephony reader, the Realtime reader and the idle timer
all push events into a single inbox, and one consumer loop handles them in
arrival order. Handlers therefore never interleave, and state changes need no
locking.

Lifecycle::

    CONNECTING --(AI leg open and streamSid known)--> ACTIVE
    CONNECTING / ACTIVE --(stop, close or error on either leg)--> DRAINING
    DRAINING --(both legs closed)--> CLOSED

Turn-taking is a debounce: every inbound media frame rearms the idle timer,
and when the caller has been quiet for ``idle_commit_ms`` the session sends
one ``input_audio_buffer.commit`` followed by one ``response.create``.
"""

import asyncio
import enum
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from voicerelay.config.logging_config import configure_logging
from voicerelay.config.models import ApplicationConfig
from voicerelay.exceptions import ParseError, PeerClosed, RelayError, TransportError
from voicerelay.idle_timer import IdleTimer
from voicerelay.legs import Leg, LoopbackLeg
from voicerelay.liveness import LivenessMonitor
from voicerelay.models.openai_api import (
    COMPLETION_TYPES,
    TEXT_DELTA_TYPES,
    ErrorEvent,
    ServerEventType,
)
from voicerelay.models.twilio_api import (
    DTMFMessage,
    MarkMessage,
    MediaMessage,
    StartMessage,
    StopMessage,
    TelephonyMessage,
    TwilioEventType,
)
from voicerelay.realtime_client import connect_realtime
from voicerelay.translator import MessageTranslator

logger = configure_logging("bridge")

RealtimeFactory = Callable[[], Awaitable[Leg]]


class SessionState(str, enum.Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


class EventKind(enum.Enum):
    TELEPHONY_MESSAGE = "telephony_message"
    REALTIME_MESSAGE = "realtime_message"
    IDLE_TIMEOUT = "idle_timeout"
    LEG_CLOSED = "leg_closed"
    LEG_ERROR = "leg_error"
    SHUTDOWN = "shutdown"


@dataclass
class BridgeEvent:
    """One entry in the session inbox."""

    kind: EventKind
    leg: Optional[str] = None
    raw: Optional[str] = None
    error: Optional[Exception] = None


async def _open_loopback() -> Leg:
    return LoopbackLeg()


class BridgeSession:
    """Relays one phone call between the telephony leg and the AI leg.

    Args:
        telephony: The accepted Twilio Media Streams leg
        config: Application configuration, read once at startup
        loopback: Replace the AI leg with an in-process echo
        realtime_factory: Coroutine function opening the AI leg. Defaults to
            connecting to the Realtime API, or to a LoopbackLeg in loopback mode.
    """

    def __init__(
        self,
        telephony: Leg,
        config: ApplicationConfig,
        loopback: bool = False,
        realtime_factory: Optional[RealtimeFactory] = None,
    ):
        self.telephony = telephony
        self.config = config
        self.loopback = loopback
        if realtime_factory is None:
            if loopback:
                realtime_factory = _open_loopback
            else:
                realtime_factory = lambda: connect_realtime(config.openai)
        self._realtime_factory = realtime_factory
        self.realtime: Optional[Leg] = None

        self.session_id = str(uuid.uuid4())
        self.created_at = time.time()
        self.state = SessionState.CONNECTING
        self.stream_sid: Optional[str] = None
        self.call_sid: Optional[str] = None

        self.session_config = MessageTranslator.build_session_config(config.bridge)

        self._inbox: "asyncio.Queue[BridgeEvent]" = asyncio.Queue()
        self.idle_timer = IdleTimer(
            config.bridge.idle_commit_seconds, self._on_idle_timeout
        )
        self.liveness: Optional[LivenessMonitor] = None
        self._telephony_reader: Optional[asyncio.Task] = None
        self._realtime_reader: Optional[asyncio.Task] = None
        self._closing = False

        # Statistics
        self.frames_in = 0
        self.frames_out = 0
        self.frames_dropped = 0
        self.malformed_frames = 0
        self.commits_sent = 0
        self.close_reason: Optional[str] = None

        self.telephony_event_handlers = {
            TwilioEventType.CONNECTED: self.handle_connected,
            TwilioEventType.START: self.handle_start,
            TwilioEventType.MEDIA: self.handle_media,
            TwilioEventType.STOP: self.handle_stop,
            TwilioEventType.DTMF: self.handle_dtmf,
            TwilioEventType.MARK: self.handle_mark,
        }

    @property
    def _tag(self) -> str:
        return f"[{self.session_id[:8]}]"

    async def run(self) -> None:
        """Run the call until teardown. Never raises for call-level failures."""
        logger.info(
            f"{self._tag} Bridge session started"
            + (" (loopback)" if self.loopback else "")
        )
        self._telephony_reader = asyncio.create_task(
            self._read_leg(self.telephony, EventKind.TELEPHONY_MESSAGE)
        )
        try:
            await self._open_realtime()
            while self.state in (SessionState.CONNECTING, SessionState.ACTIVE):
                event = await self._inbox.get()
                await self._dispatch(event)
        except PeerClosed as e:
            logger.info(f"{self._tag} {e}")
            self.close_reason = self.close_reason or f"{e.leg} closed"
        except TransportError as e:
            logger.error(f"{self._tag} Transport error: {e}")
            self.close_reason = self.close_reason or f"{e.leg} error"
        except RelayError as e:
            logger.error(f"{self._tag} Bridge error: {e}")
            self.close_reason = self.close_reason or "error"
        except Exception as e:
            logger.exception(f"{self._tag} Unexpected error in bridge session: {e}")
            self.close_reason = self.close_reason or "error"
        finally:
            await self.close()

    async def close(self, reason: Optional[str] = None) -> None:
        """Tear the session down: stop timers, close both legs, stop readers.

        Idempotent; safe to call from any exit path and more than once.
        """
        if self._closing:
            return
        self._closing = True
        if reason and not self.close_reason:
            self.close_reason = reason

        self.state = SessionState.DRAINING
        logger.info(f"{self._tag} Draining ({self.close_reason or 'closed'})")

        self.idle_timer.cancel()
        try:
            if self.liveness is not None:
                await self.liveness.stop()
            if self.realtime is not None:
                await self.realtime.close()
        finally:
            try:
                await self.telephony.close()
            finally:
                await self._stop_readers()
                self.state = SessionState.CLOSED
                # Wake the consumer loop if close() came from outside it
                self._inbox.put_nowait(BridgeEvent(EventKind.SHUTDOWN))
                logger.info(f"{self._tag} Bridge session closed: {self.get_statistics()}")

    async def _stop_readers(self) -> None:
        current = asyncio.current_task()
        for task in (self._telephony_reader, self._realtime_reader):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "stream_sid": self.stream_sid,
            "call_sid": self.call_sid,
            "state": self.state.value,
            "loopback": self.loopback,
            "duration": round(time.time() - self.created_at, 3),
            "frames_in": self.frames_in,
            "frames_out": self.frames_out,
            "frames_dropped": self.frames_dropped,
            "malformed_frames": self.malformed_frames,
            "commits_sent": self.commits_sent,
            "close_reason": self.close_reason,
        }

    # Event sources

    async def _open_realtime(self) -> None:
        realtime = await self._realtime_factory()
        if self._closing:
            await realtime.close()
            return
        self.realtime = realtime
        logger.info(f"{self._tag} {self.realtime.name} leg open")

        await self.realtime.send_json(
            MessageTranslator.session_update(self.session_config)
        )
        if self.config.greets_on_connect():
            await self.realtime.send_json(MessageTranslator.response_create())

        self._realtime_reader = asyncio.create_task(
            self._read_leg(self.realtime, EventKind.REALTIME_MESSAGE)
        )
        self.liveness = LivenessMonitor(
            [self.telephony, self.realtime], self.config.bridge.keepalive_interval
        )
        self.liveness.start()
        self._refresh_state()

    async def _read_leg(self, leg: Leg, kind: EventKind) -> None:
        try:
            async for raw in leg.iter_text():
                self._inbox.put_nowait(BridgeEvent(kind, leg=leg.name, raw=raw))
        except PeerClosed as e:
            self._inbox.put_nowait(BridgeEvent(EventKind.LEG_CLOSED, leg=leg.name, error=e))
        except TransportError as e:
            self._inbox.put_nowait(BridgeEvent(EventKind.LEG_ERROR, leg=leg.name, error=e))
        except Exception as e:
            logger.exception(f"{self._tag} Unexpected error reading {leg.name} leg: {e}")
            self._inbox.put_nowait(BridgeEvent(EventKind.LEG_ERROR, leg=leg.name, error=e))
        else:
            self._inbox.put_nowait(BridgeEvent(EventKind.LEG_CLOSED, leg=leg.name))

    def _on_idle_timeout(self) -> None:
        self._inbox.put_nowait(BridgeEvent(EventKind.IDLE_TIMEOUT))

    def _refresh_state(self) -> None:
        if (
            self.state == SessionState.CONNECTING
            and self.stream_sid is not None
            and self.realtime is not None
            and self.realtime.is_open
        ):
            self.state = SessionState.ACTIVE
            logger.info(f"{self._tag} Session active (streamSid={self.stream_sid})")

    async def _dispatch(self, event: BridgeEvent) -> None:
        if event.kind == EventKind.TELEPHONY_MESSAGE:
            await self.handle_telephony_frame(event.raw)
        elif event.kind == EventKind.REALTIME_MESSAGE:
            await self.handle_realtime_frame(event.raw)
        elif event.kind == EventKind.IDLE_TIMEOUT:
            await self.handle_idle_timeout()
        elif event.kind == EventKind.LEG_CLOSED:
            logger.info(f"{self._tag} {event.leg} leg closed by peer")
            await self.close(f"{event.leg} closed")
        elif event.kind == EventKind.LEG_ERROR:
            logger.error(f"{self._tag} {event.leg} leg failed: {event.error}")
            await self.close(f"{event.leg} error")

    # Telephony side

    async def handle_telephony_frame(self, raw: str) -> None:
        try:
            message = MessageTranslator.parse_telephony(raw)
        except ParseError as e:
            self.malformed_frames += 1
            logger.warning(f"{self._tag} Discarding telephony frame: {e}")
            return

        event_type = TwilioEventType(message.event)
        if event_type == TwilioEventType.MEDIA:
            logger.debug(f"{self._tag} Received telephony event: {event_type.value}")
        else:
            logger.info(f"{self._tag} Received telephony event: {event_type.value}")

        handler = self.telephony_event_handlers.get(event_type)
        if handler:
            await handler(message)

    async def handle_connected(self, message: TelephonyMessage) -> None:
        logger.info(f"{self._tag} Telephony stream connected")

    async def handle_start(self, message: StartMessage) -> None:
        if self.stream_sid is not None:
            logger.warning(
                f"{self._tag} Ignoring repeated start (streamSid={message.stream_sid})"
            )
            return
        self.stream_sid = message.stream_sid
        self.call_sid = message.call_sid
        self.telephony.stream_sid = self.stream_sid
        logger.info(
            f"{self._tag} Stream started: streamSid={self.stream_sid}, callSid={self.call_sid}"
        )
        self._refresh_state()

    async def handle_media(self, message: MediaMessage) -> None:
        self.frames_in += 1
        sent = await self.realtime.send_json(MessageTranslator.audio_append(message))
        if not sent:
            self.frames_dropped += 1
        # Audio before start is forwarded but uncommitted; the next turn's
        # commit after start covers it
        if self.state == SessionState.ACTIVE:
            self.idle_timer.arm()

    async def handle_stop(self, message: StopMessage) -> None:
        logger.info(f"{self._tag} Telephony stream stopped")
        self.idle_timer.cancel()
        if self.realtime is not None and self.realtime.is_open:
            await self._commit_turn()
        await self.close("stop")

    async def handle_dtmf(self, message: DTMFMessage) -> None:
        digit = (message.dtmf or {}).get("digit")
        logger.info(f"{self._tag} DTMF digit received: {digit}")

    async def handle_mark(self, message: MarkMessage) -> None:
        name = message.mark.name if message.mark else None
        logger.debug(f"{self._tag} Mark received: {name}")

    # Turn-taking

    async def handle_idle_timeout(self) -> None:
        # A media frame handled after the timer fired rearmed it; the fire is stale
        if self.idle_timer.armed or self.state != SessionState.ACTIVE:
            return
        logger.debug(f"{self._tag} Caller quiet, committing turn")
        await self._commit_turn()

    async def _commit_turn(self) -> None:
        await self.realtime.send_json(MessageTranslator.audio_commit())
        await self.realtime.send_json(MessageTranslator.response_create())
        self.commits_sent += 1

    # Realtime side

    async def handle_realtime_frame(self, raw: str) -> None:
        try:
            message = MessageTranslator.parse_realtime(raw)
        except ParseError as e:
            self.malformed_frames += 1
            logger.warning(f"{self._tag} Discarding realtime frame: {e}")
            return

        audio = MessageTranslator.audio_of(message)
        if audio is not None:
            await self.handle_audio_delta(audio)
        elif isinstance(message, ErrorEvent):
            logger.error(f"{self._tag} Realtime API error: {message.message}")
        elif message.type in COMPLETION_TYPES:
            logger.info(f"{self._tag} Response completed")
        elif message.type in TEXT_DELTA_TYPES:
            logger.debug(f"{self._tag} Text delta: {getattr(message, 'delta', '')}")
        elif message.type in (
            ServerEventType.SESSION_CREATED.value,
            ServerEventType.SESSION_UPDATED.value,
        ):
            logger.info(f"{self._tag} Realtime event: {message.type}")
        else:
            logger.debug(f"{self._tag} Ignoring realtime event: {message.type}")

    async def handle_audio_delta(self, audio: str) -> None:
        if self.stream_sid is None:
            self.frames_dropped += 1
            logger.info(f"{self._tag} Dropping AI audio, streamSid not known yet")
            return
        sent = await self.telephony.send_json(
            MessageTranslator.telephony_media(self.stream_sid, audio)
        )
        if sent:
            self.frames_out += 1
        else:
            self.frames_dropped += 1
