"""
Model Tests
===========

Inbound message validation, outbound event serialization and upstream
message classification.
"""

import json

import pytest

from gemini_relay.errors import MessageFormatError
from gemini_relay.models import (
    ConnectMessage,
    DirectText,
    DisconnectMessage,
    EventType,
    InputTranscription,
    ModelTurnParts,
    OutputTranscription,
    RelayEvent,
    SendTextMessage,
    SendTextWithFrameSequenceMessage,
    SessionState,
    TurnCompleteSignal,
    parse_inbound,
    parse_upstream_message,
)


class TestParseInbound:
    """Tests for inbound message parsing."""

    @pytest.mark.parametrize("message_type", ["connect", "connect_gemini"])
    def test_connect_aliases(self, message_type):
        message = parse_inbound({"type": message_type, "systemInstruction": "be brief"})
        assert isinstance(message, ConnectMessage)
        assert message.system_instruction == "be brief"

    def test_connect_without_instruction(self):
        message = parse_inbound('{"type": "connect_gemini"}')
        assert message.system_instruction is None

    @pytest.mark.parametrize("message_type", ["disconnect", "disconnect_gemini"])
    def test_disconnect_aliases(self, message_type):
        assert isinstance(parse_inbound({"type": message_type}), DisconnectMessage)

    def test_send_text(self):
        message = parse_inbound(json.dumps({"type": "sendText", "text": "2+2?"}))
        assert isinstance(message, SendTextMessage)
        assert message.text == "2+2?"

    def test_frame_sequence(self):
        raw = {
            "type": "sendTextWithFrameSequence",
            "text": "what is this?",
            "frames": [
                {"data": "AAAA", "mimeType": "image/jpeg", "timestamp": 1, "size": 3},
                {"data": "BBBB", "mimeType": "image/png", "timestamp": 2, "size": 3},
            ],
            "totalFrames": 2,
            "totalSize": 6,
        }
        message = parse_inbound(raw)

        assert isinstance(message, SendTextWithFrameSequenceMessage)
        assert [f.data for f in message.frames] == ["AAAA", "BBBB"]
        assert message.frames[1].mime_type == "image/png"
        assert message.total_frames == 2
        assert message.total_size == 6

    def test_summary_fields_not_cross_checked(self):
        """totalFrames/totalSize mismatches are accepted."""
        message = parse_inbound({
            "type": "sendTextWithFrameSequence",
            "text": "hi",
            "frames": [{"data": "AAAA", "mimeType": "image/jpeg", "timestamp": 1, "size": 3}],
            "totalFrames": 99,
            "totalSize": 1,
        })
        assert message.total_frames == 99
        assert len(message.frames) == 1

    def test_invalid_json(self):
        with pytest.raises(MessageFormatError):
            parse_inbound("{not json")

    def test_unknown_type(self):
        with pytest.raises(MessageFormatError):
            parse_inbound({"type": "sendAudio", "data": "..."})

    def test_missing_text(self):
        with pytest.raises(MessageFormatError):
            parse_inbound({"type": "sendText"})

    def test_non_object(self):
        with pytest.raises(MessageFormatError):
            parse_inbound("[1, 2]")


class TestRelayEvent:
    """Tests for outbound events."""

    def test_text_chunk_wire_shape(self):
        assert RelayEvent.text_chunk("Xin ").to_wire() == {"type": "textChunk", "text": "Xin "}

    def test_turn_complete_has_no_fields(self):
        assert RelayEvent.turn_complete().to_wire() == {"type": "turnComplete"}

    def test_message_events(self):
        assert RelayEvent.error("boom").to_wire() == {"type": "error", "message": "boom"}
        assert RelayEvent.connected("ok").to_wire()["type"] == "connected"
        assert RelayEvent.processing("wait").to_wire()["type"] == "processing"
        assert RelayEvent.disconnected("bye").to_wire()["type"] == "disconnected"

    def test_from_wire(self):
        event = RelayEvent.from_wire({"type": "textChunk", "text": "hi"})
        assert event.type == EventType.TEXT_CHUNK
        assert event.text == "hi"

    def test_from_wire_unknown(self):
        with pytest.raises(MessageFormatError):
            RelayEvent.from_wire({"type": "nope"})


class TestParseUpstreamMessage:
    """Tests for upstream message classification."""

    def test_direct_text(self):
        assert parse_upstream_message({"text": "hello"}) == [DirectText(text="hello")]

    def test_model_turn_parts_joined_with_space(self):
        variants = parse_upstream_message({
            "serverContent": {"modelTurn": {"parts": [{"text": "a"}, {"inlineData": {}}, {"text": "b"}]}}
        })
        assert variants == [ModelTurnParts(texts=["a", "b"])]
        assert variants[0].joined() == "a b"

    def test_turn_complete_only(self):
        variants = parse_upstream_message({"serverContent": {"turnComplete": True}})
        assert variants == [TurnCompleteSignal()]

    def test_text_and_turn_complete_together(self):
        variants = parse_upstream_message({
            "serverContent": {"modelTurn": {"parts": [{"text": "done"}]}, "turnComplete": True}
        })
        assert variants == [ModelTurnParts(texts=["done"]), TurnCompleteSignal()]

    def test_snake_case_keys(self):
        variants = parse_upstream_message({
            "server_content": {"model_turn": {"parts": [{"text": "x"}]}, "turn_complete": True}
        })
        assert variants == [ModelTurnParts(texts=["x"]), TurnCompleteSignal()]

    def test_transcriptions(self):
        variants = parse_upstream_message({
            "serverContent": {
                "inputTranscription": {"text": "question"},
                "outputTranscription": {"text": "answer"},
            }
        })
        assert variants == [InputTranscription(text="question"), OutputTranscription(text="answer")]

    def test_empty_message(self):
        assert parse_upstream_message({"setupComplete": {}}) == []


class TestSessionState:
    def test_can_connect(self):
        assert SessionState.IDLE.can_connect
        assert SessionState.CLOSED.can_connect
        assert not SessionState.OPEN.can_connect
        assert not SessionState.CONNECTING.can_connect
        assert not SessionState.CLOSING.can_connect
