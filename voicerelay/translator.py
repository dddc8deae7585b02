"""
Message translation between Twilio Media Streams and the OpenAI Realtime API.

The translator is stateless: every method maps one message to another and the
only piece of call state it ever needs, the stream SID, is passed in by the
caller. Audio payloads pass through untouched; both legs are configured with
the same audio format, so nothing is decoded or resampled here.
"""

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from voicerelay.config.models import BridgeConfig
from voicerelay.exceptions import ParseError
from voicerelay.models.openai_api import (
    AUDIO_DELTA_TYPES,
    COMPLETION_TYPES,
    TEXT_DELTA_TYPES,
    ErrorEvent,
    InputAudioBufferAppendEvent,
    InputAudioBufferCommitEvent,
    OutputAudioBufferDeltaEvent,
    ResponseAudioDeltaEvent,
    ResponseCompletedEvent,
    ResponseCreateEvent,
    ServerEvent,
    ServerEventType,
    SessionConfig,
    SessionUpdateEvent,
    TextDeltaEvent,
)
from voicerelay.models.twilio_api import (
    TELEPHONY_MESSAGE_MODELS,
    MarkPayload,
    MediaMessage,
    OutgoingMarkMessage,
    OutgoingMediaMessage,
    OutgoingMediaPayload,
    TelephonyMessage,
    TwilioEventType,
)


def _load_object(raw: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Invalid JSON: {e}", raw=raw)
    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object", raw=raw)
    return data


class MessageTranslator:
    """Maps telephony events to Realtime client events and back."""

    @staticmethod
    def parse_telephony(raw: str) -> TelephonyMessage:
        """Parse one telephony text frame.

        Raises:
            ParseError: invalid JSON, unknown event name, or missing required fields
        """
        data = _load_object(raw)
        event = data.get("event")
        try:
            event_type = TwilioEventType(event)
            model = TELEPHONY_MESSAGE_MODELS[event_type]
        except (ValueError, KeyError, TypeError):
            raise ParseError(f"Unknown telephony event: {event!r}", raw=raw)

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"Invalid {event_type.value} message: {e}", raw=raw)

    @staticmethod
    def parse_realtime(raw: str) -> ServerEvent:
        """Parse one Realtime server frame.

        Event types the relay does not act on come back as plain ServerEvent.

        Raises:
            ParseError: invalid JSON, no ``type``, or a known type missing its fields
        """
        data = _load_object(raw)
        event_type = data.get("type")
        if not isinstance(event_type, str):
            raise ParseError("Realtime event has no type", raw=raw)

        if event_type == ServerEventType.OUTPUT_AUDIO_BUFFER_DELTA.value:
            model = OutputAudioBufferDeltaEvent
        elif event_type in AUDIO_DELTA_TYPES:
            model = ResponseAudioDeltaEvent
        elif event_type in COMPLETION_TYPES:
            model = ResponseCompletedEvent
        elif event_type in TEXT_DELTA_TYPES:
            model = TextDeltaEvent
        elif event_type == ServerEventType.ERROR.value:
            model = ErrorEvent
        else:
            model = ServerEvent

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"Invalid {event_type} event: {e}", raw=raw)

    @staticmethod
    def build_session_config(bridge_config: BridgeConfig) -> SessionConfig:
        return SessionConfig(
            input_audio_format=bridge_config.audio_format,
            output_audio_format=bridge_config.audio_format,
            voice=bridge_config.voice,
            instructions=bridge_config.instructions,
        )

    @staticmethod
    def session_update(session_config: SessionConfig) -> Dict[str, Any]:
        return SessionUpdateEvent(session=session_config).model_dump(exclude_none=True)

    @staticmethod
    def audio_append(media_message: MediaMessage) -> Dict[str, Any]:
        return InputAudioBufferAppendEvent(
            audio=media_message.media.payload
        ).model_dump(exclude_none=True)

    @staticmethod
    def audio_commit() -> Dict[str, Any]:
        return InputAudioBufferCommitEvent().model_dump(exclude_none=True)

    @staticmethod
    def response_create() -> Dict[str, Any]:
        return ResponseCreateEvent().model_dump(exclude_none=True)

    @staticmethod
    def telephony_media(stream_sid: str, audio: str) -> Dict[str, Any]:
        return OutgoingMediaMessage(
            streamSid=stream_sid, media=OutgoingMediaPayload(payload=audio)
        ).model_dump()

    @staticmethod
    def telephony_mark(stream_sid: str, name: str) -> Dict[str, Any]:
        return OutgoingMarkMessage(
            streamSid=stream_sid, mark=MarkPayload(name=name)
        ).model_dump()

    @staticmethod
    def audio_of(message: ServerEvent) -> Optional[str]:
        """Return the base64 audio chunk of a delta event, or None."""
        if isinstance(message, OutputAudioBufferDeltaEvent):
            return message.audio
        if isinstance(message, ResponseAudioDeltaEvent):
            return message.delta
        return None
