"""
Pydantic models for Twilio Media Streams WebSocket message structures.

This module defines data models for the incoming and outgoing messages of the
Twilio Media Streams WebSocket protocol that the relay understands.

Twilio sends the caller's audio as JSON text frames with base64 payloads. The
relay only needs a small part of each message: the stream identifier from
``start``, the payload from ``media`` and the fact that ``stop`` arrived.
Everything else is accepted and ignored, so the models here are lenient about
optional metadata and strict about the fields the relay actually reads.

Reference: https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

import base64
import binascii
import enum
import logging
import re
from typing import Any, Dict, List, Literal, Optional, Pattern, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from voicerelay.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class TwilioEventType(str, enum.Enum):
    """Enumeration of the Twilio Media Streams event names."""

    CONNECTED = "connected"
    START = "start"
    MEDIA = "media"
    STOP = "stop"
    DTMF = "dtmf"
    MARK = "mark"


SID_PATTERN: Pattern = re.compile(r"^[A-Z]{2}[a-f0-9]{32}$")


def _check_base64(value: str) -> str:
    if not value:
        raise ValueError("Media payload cannot be empty")
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 encoded audio data")
    return value


def _note_unusual_sid(value: Optional[str]) -> Optional[str]:
    # Test tooling uses other SID shapes; note it and move on
    if value is not None and not SID_PATTERN.match(value):
        logger.debug(f"Stream SID does not match expected pattern: {value}")
    return value


class BaseTwilioMessage(BaseModel):
    """Base model for all Twilio Media Streams WebSocket messages.

    Unknown fields are kept rather than rejected; Twilio adds metadata over
    time and none of it should make a frame unusable.
    """

    model_config = ConfigDict(extra="allow")

    event: str = Field(..., description="Message event type identifier")
    sequenceNumber: Optional[str] = Field(
        None, description="Number used to keep track of message sending order"
    )


# Messages from Twilio to WebSocket server


class ConnectedMessage(BaseTwilioMessage):
    """Model for 'connected' message from Twilio.

    Example:
    {
      "event": "connected",
      "protocol": "Call",
      "version": "1.0.0"
    }
    """

    event: Literal["connected"]
    protocol: Optional[str] = None
    version: Optional[str] = None


class StartMetadata(BaseModel):
    """Model for the ``start`` block of a start message."""

    model_config = ConfigDict(extra="allow")

    streamSid: Optional[str] = Field(None, description="The unique identifier of the Stream")
    accountSid: Optional[str] = None
    callSid: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, Any] = Field(default_factory=dict)
    mediaFormat: Optional[Dict[str, Any]] = None


class StartMessage(BaseTwilioMessage):
    """Model for 'start' message from Twilio.

    The stream identifier may appear at the top level, inside the ``start``
    block, or both. At least one of them is required.

    Example:
    {
      "event": "start",
      "sequenceNumber": "1",
      "start": {
        "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
        "callSid": "CAXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
        "tracks": ["inbound"],
        "mediaFormat": {"encoding": "audio/x-mulaw", "sampleRate": 8000, "channels": 1}
      },
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
    }
    """

    event: Literal["start"]
    streamSid: Optional[str] = None
    start: StartMetadata = Field(default_factory=StartMetadata)

    @model_validator(mode="after")
    def require_stream_sid(self):
        if not self.stream_sid:
            raise ValueError("start message carries no streamSid")
        _note_unusual_sid(self.stream_sid)
        return self

    @property
    def stream_sid(self) -> Optional[str]:
        return self.streamSid or self.start.streamSid

    @property
    def call_sid(self) -> Optional[str]:
        return self.start.callSid


class MediaPayload(BaseModel):
    """Model for media payload in media messages."""

    model_config = ConfigDict(extra="allow")

    track: Optional[str] = Field(None, description="The track of the media (inbound or outbound)")
    chunk: Optional[str] = None
    timestamp: Optional[str] = None
    payload: str = Field(..., description="Base64-encoded audio data")

    @field_validator("payload")
    def validate_payload(cls, v):
        """Validate that payload is valid base64."""
        return _check_base64(v)


class MediaMessage(BaseTwilioMessage):
    """Model for 'media' message from Twilio.

    Example:
    {
      "event": "media",
      "sequenceNumber": "4",
      "media": {
        "track": "inbound",
        "chunk": "2",
        "timestamp": "5",
        "payload": "no+JhoaJjpzS..."
      },
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
    }
    """

    event: Literal["media"]
    streamSid: Optional[str] = None
    media: MediaPayload = Field(..., description="Media payload data")


class StopMessage(BaseTwilioMessage):
    """Model for 'stop' message from Twilio.

    Sent when the Stream has stopped or the call has ended. No field other
    than ``event`` is required.
    """

    event: Literal["stop"]
    streamSid: Optional[str] = None
    stop: Optional[Dict[str, Any]] = None


class DTMFMessage(BaseTwilioMessage):
    """Model for 'dtmf' message from Twilio (logged, never forwarded)."""

    event: Literal["dtmf"]
    streamSid: Optional[str] = None
    dtmf: Optional[Dict[str, Any]] = None


class MarkPayload(BaseModel):
    """Model for mark payload in mark messages."""

    name: str = Field(..., description="A custom value")


class MarkMessage(BaseTwilioMessage):
    """Model for 'mark' message from Twilio, echoing a mark we sent."""

    event: Literal["mark"]
    streamSid: Optional[str] = None
    mark: Optional[MarkPayload] = None


# Messages from WebSocket server to Twilio


class OutgoingMediaPayload(BaseModel):
    """Model for media payload in outgoing media messages."""

    payload: str = Field(..., description="Audio in the call's format, base64 encoded")


class OutgoingMediaMessage(BaseModel):
    """Model for 'media' message to Twilio.

    Example:
    {
      "event": "media",
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
      "media": {
        "payload": "a3242sa..."
      }
    }
    """

    event: Literal["media"] = "media"
    streamSid: str
    media: OutgoingMediaPayload


class OutgoingMarkMessage(BaseModel):
    """Model for 'mark' message to Twilio.

    Twilio echoes the mark back once playback reaches it, which makes it a
    cheap application-level keepalive.

    Example:
    {
      "event": "mark",
      "streamSid": "MZXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX",
      "mark": {
        "name": "keepalive"
      }
    }
    """

    event: Literal["mark"] = "mark"
    streamSid: str
    mark: MarkPayload


# Messages received from Twilio
TelephonyMessage = Union[
    ConnectedMessage,
    StartMessage,
    MediaMessage,
    StopMessage,
    DTMFMessage,
    MarkMessage,
]

TELEPHONY_MESSAGE_MODELS = {
    TwilioEventType.CONNECTED: ConnectedMessage,
    TwilioEventType.START: StartMessage,
    TwilioEventType.MEDIA: MediaMessage,
    TwilioEventType.STOP: StopMessage,
    TwilioEventType.DTMF: DTMFMessage,
    TwilioEventType.MARK: MarkMessage,
}
