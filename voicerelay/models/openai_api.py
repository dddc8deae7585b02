"""
OpenAI Realtime API models.

Pydantic models for the part of the Realtime WebSocket protocol the relay
speaks: the session configuration sent once per call, the four client events
that carry audio and turn boundaries, and the server events whose audio is
forwarded back to the caller.

The relay accepts the audio delta under several names. Agent deployments emit
``output_audio_buffer.delta {audio}``; the public Realtime API emits
``response.audio.delta {delta}`` (and ``response.output_audio.delta`` in the
GA naming). All of them carry a base64 chunk in the call's audio format.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionConfig(BaseModel):
    """Configuration sent in ``session.update`` when the AI leg opens.

    Immutable once built; the bridge sends it exactly once per call. The agent
    identifier is not part of it, it travels as a connection header.
    """

    model_config = ConfigDict(frozen=True)

    input_audio_format: str = "g711_ulaw"
    output_audio_format: str = "g711_ulaw"
    voice: Optional[str] = None
    instructions: Optional[str] = None


class ClientEventType(str, Enum):
    """Types of events the relay sends to the server."""

    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    INPUT_AUDIO_BUFFER_COMMIT = "input_audio_buffer.commit"
    RESPONSE_CREATE = "response.create"


class ServerEventType(str, Enum):
    """Types of server events the relay acts on."""

    ERROR = "error"
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    OUTPUT_AUDIO_BUFFER_DELTA = "output_audio_buffer.delta"
    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    RESPONSE_OUTPUT_AUDIO_DELTA = "response.output_audio.delta"
    RESPONSE_COMPLETED = "response.completed"
    RESPONSE_DONE = "response.done"
    OUTPUT_TEXT_DELTA = "output_text.delta"
    RESPONSE_TEXT_DELTA = "response.text.delta"


AUDIO_DELTA_TYPES = frozenset(
    {
        ServerEventType.OUTPUT_AUDIO_BUFFER_DELTA.value,
        ServerEventType.RESPONSE_AUDIO_DELTA.value,
        ServerEventType.RESPONSE_OUTPUT_AUDIO_DELTA.value,
    }
)
COMPLETION_TYPES = frozenset(
    {ServerEventType.RESPONSE_COMPLETED.value, ServerEventType.RESPONSE_DONE.value}
)
TEXT_DELTA_TYPES = frozenset(
    {ServerEventType.OUTPUT_TEXT_DELTA.value, ServerEventType.RESPONSE_TEXT_DELTA.value}
)


class ClientEvent(BaseModel):
    """Base model for events sent to the server."""

    type: str
    event_id: Optional[str] = None


class ServerEvent(BaseModel):
    """Base model for events received from the server.

    Also used as-is for every event type the relay does not act on.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    event_id: Optional[str] = None


# Client events


class SessionUpdateEvent(ClientEvent):
    """Event to set the session's audio formats, voice and instructions."""

    type: str = ClientEventType.SESSION_UPDATE.value
    session: SessionConfig


class InputAudioBufferAppendEvent(ClientEvent):
    """Event to append audio to the input buffer.

    The server does not send a confirmation response to this event.
    """

    type: str = ClientEventType.INPUT_AUDIO_BUFFER_APPEND.value
    audio: str  # Base64 encoded audio


class InputAudioBufferCommitEvent(ClientEvent):
    """Event to commit the audio buffer as one user turn.

    The relay sends this after the caller has been quiet for the idle period.
    """

    type: str = ClientEventType.INPUT_AUDIO_BUFFER_COMMIT.value


class ResponseCreateEvent(ClientEvent):
    """Event to ask the model for a response."""

    type: str = ClientEventType.RESPONSE_CREATE.value


# Server events


class OutputAudioBufferDeltaEvent(ServerEvent):
    """Audio chunk from an agent deployment."""

    type: str = ServerEventType.OUTPUT_AUDIO_BUFFER_DELTA.value
    audio: str = Field(..., description="Base64 encoded audio chunk")


class ResponseAudioDeltaEvent(ServerEvent):
    """Audio chunk from the public Realtime API."""

    type: str = ServerEventType.RESPONSE_AUDIO_DELTA.value
    response_id: Optional[str] = None
    item_id: Optional[str] = None
    delta: str = Field(..., description="Base64 encoded audio chunk")


class ResponseCompletedEvent(ServerEvent):
    """The model finished a response (``response.completed`` or ``response.done``)."""

    type: str = ServerEventType.RESPONSE_COMPLETED.value
    response: Optional[Dict[str, Any]] = None


class TextDeltaEvent(ServerEvent):
    """Text emitted alongside audio; logged, never forwarded."""

    type: str = ServerEventType.OUTPUT_TEXT_DELTA.value
    delta: str = ""


class ErrorEvent(ServerEvent):
    """Error reported by the server. It does not end the call on its own."""

    type: str = ServerEventType.ERROR.value
    error: Dict[str, Any] = Field(default_factory=dict)

    @property
    def message(self) -> str:
        return str(self.error.get("message", "unknown error"))
