"""Unit tests for the MessageTranslator."""

import json

import pytest

from voicerelay.config.models import BridgeConfig
from voicerelay.exceptions import ParseError
from voicerelay.models.openai_api import (
    ErrorEvent,
    OutputAudioBufferDeltaEvent,
    ResponseAudioDeltaEvent,
    ResponseCompletedEvent,
    ServerEvent,
    SessionConfig,
    TextDeltaEvent,
)
from voicerelay.models.twilio_api import (
    ConnectedMessage,
    MediaMessage,
    StartMessage,
    StopMessage,
)
from voicerelay.translator import MessageTranslator

TEST_STREAM_SID = "MZtest1234567890abcdef1234567890ab"


class TestParseTelephony:
    def test_start_with_top_level_sid(self):
        message = MessageTranslator.parse_telephony(
            json.dumps({"event": "start", "streamSid": "SS1"})
        )
        assert isinstance(message, StartMessage)
        assert message.stream_sid == "SS1"

    def test_start_with_nested_sid_and_call_sid(self):
        message = MessageTranslator.parse_telephony(
            json.dumps(
                {
                    "event": "start",
                    "start": {"streamSid": TEST_STREAM_SID, "callSid": "CA123"},
                }
            )
        )
        assert message.stream_sid == TEST_STREAM_SID
        assert message.call_sid == "CA123"

    def test_start_without_sid_is_rejected(self):
        with pytest.raises(ParseError):
            MessageTranslator.parse_telephony(json.dumps({"event": "start", "start": {}}))

    def test_media(self):
        message = MessageTranslator.parse_telephony(
            json.dumps({"event": "media", "media": {"payload": "AAAA"}})
        )
        assert isinstance(message, MediaMessage)
        assert message.media.payload == "AAAA"

    def test_media_requires_payload(self):
        with pytest.raises(ParseError):
            MessageTranslator.parse_telephony(json.dumps({"event": "media", "media": {}}))

    def test_media_rejects_invalid_base64(self):
        with pytest.raises(ParseError):
            MessageTranslator.parse_telephony(
                json.dumps({"event": "media", "media": {"payload": "not base64!"}})
            )

    def test_stop_needs_no_fields(self):
        assert isinstance(
            MessageTranslator.parse_telephony('{"event": "stop"}'), StopMessage
        )

    def test_connected(self):
        message = MessageTranslator.parse_telephony(
            '{"event": "connected", "protocol": "Call", "version": "1.0.0"}'
        )
        assert isinstance(message, ConnectedMessage)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            '{"no_event": true}',
            '{"event": "bogus"}',
            '{"event": ["media"]}',
            '{"event": "clear"}',
        ],
    )
    def test_rejects_malformed_frames(self, raw):
        with pytest.raises(ParseError) as exc_info:
            MessageTranslator.parse_telephony(raw)
        assert exc_info.value.raw == raw


class TestParseRealtime:
    def test_output_audio_buffer_delta(self):
        message = MessageTranslator.parse_realtime(
            '{"type": "output_audio_buffer.delta", "audio": "BBBB"}'
        )
        assert isinstance(message, OutputAudioBufferDeltaEvent)
        assert MessageTranslator.audio_of(message) == "BBBB"

    @pytest.mark.parametrize("event_type", ["response.audio.delta", "response.output_audio.delta"])
    def test_response_audio_delta_aliases(self, event_type):
        message = MessageTranslator.parse_realtime(
            json.dumps({"type": event_type, "response_id": "resp_1", "delta": "CCCC"})
        )
        assert isinstance(message, ResponseAudioDeltaEvent)
        assert message.type == event_type
        assert MessageTranslator.audio_of(message) == "CCCC"

    @pytest.mark.parametrize("event_type", ["response.completed", "response.done"])
    def test_completion(self, event_type):
        message = MessageTranslator.parse_realtime(json.dumps({"type": event_type}))
        assert isinstance(message, ResponseCompletedEvent)
        assert MessageTranslator.audio_of(message) is None

    @pytest.mark.parametrize("event_type", ["output_text.delta", "response.text.delta"])
    def test_text_delta(self, event_type):
        message = MessageTranslator.parse_realtime(
            json.dumps({"type": event_type, "delta": "hello"})
        )
        assert isinstance(message, TextDeltaEvent)
        assert message.delta == "hello"

    def test_error(self):
        message = MessageTranslator.parse_realtime(
            '{"type": "error", "error": {"type": "invalid_request_error", "message": "nope"}}'
        )
        assert isinstance(message, ErrorEvent)
        assert message.message == "nope"

    def test_unknown_type_is_plain_server_event(self):
        message = MessageTranslator.parse_realtime(
            '{"type": "rate_limits.updated", "rate_limits": []}'
        )
        assert type(message) is ServerEvent
        assert message.type == "rate_limits.updated"

    @pytest.mark.parametrize(
        "raw",
        [
            "{broken",
            '"just a string"',
            '{"audio": "BBBB"}',
            '{"type": 5}',
            '{"type": "output_audio_buffer.delta"}',
            '{"type": "response.audio.delta"}',
        ],
    )
    def test_rejects_malformed_frames(self, raw):
        with pytest.raises(ParseError):
            MessageTranslator.parse_realtime(raw)


class TestBuilders:
    def test_build_session_config_from_bridge_config(self):
        config = BridgeConfig(audio_format="g711_alaw", voice="amber", instructions="Hi")
        session_config = MessageTranslator.build_session_config(config)

        assert session_config == SessionConfig(
            input_audio_format="g711_alaw",
            output_audio_format="g711_alaw",
            voice="amber",
            instructions="Hi",
        )

    def test_session_update_omits_unset_fields(self):
        assert MessageTranslator.session_update(SessionConfig()) == {
            "type": "session.update",
            "session": {
                "input_audio_format": "g711_ulaw",
                "output_audio_format": "g711_ulaw",
            },
        }

    def test_audio_append_passes_payload_through(self):
        media = MessageTranslator.parse_telephony(
            '{"event": "media", "media": {"payload": "AAAA"}}'
        )
        assert MessageTranslator.audio_append(media) == {
            "type": "input_audio_buffer.append",
            "audio": "AAAA",
        }

    def test_commit_and_response_create(self):
        assert MessageTranslator.audio_commit() == {"type": "input_audio_buffer.commit"}
        assert MessageTranslator.response_create() == {"type": "response.create"}

    def test_telephony_media(self):
        assert MessageTranslator.telephony_media("SS1", "BBBB") == {
            "event": "media",
            "streamSid": "SS1",
            "media": {"payload": "BBBB"},
        }

    def test_telephony_mark(self):
        assert MessageTranslator.telephony_mark("SS1", "keepalive") == {
            "event": "mark",
            "streamSid": "SS1",
            "mark": {"name": "keepalive"},
        }
