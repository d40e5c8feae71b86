"""
Data Models
===========

Typed models for the relay.

Models:
    Inbound:
        - ConnectMessage, SendTextMessage,
          SendTextWithFrameSequenceMessage, DisconnectMessage
        - FrameData: One base64 frame on the wire

    Outbound:
        - EventType: Event names
        - RelayEvent: One event sent to the client

    Session:
        - SessionState: Upstream session lifecycle

    Upstream:
        - DirectText, ModelTurnParts, TurnCompleteSignal,
          InputTranscription, OutputTranscription
"""

from gemini_relay.models.messages import (
    ConnectMessage,
    DisconnectMessage,
    FrameData,
    SendTextMessage,
    SendTextWithFrameSequenceMessage,
    parse_inbound,
)
from gemini_relay.models.events import EventType, RelayEvent
from gemini_relay.models.session import SessionState
from gemini_relay.models.upstream import (
    DirectText,
    InputTranscription,
    ModelTurnParts,
    OutputTranscription,
    TurnCompleteSignal,
    parse_upstream_message,
)

__all__ = [
    # Inbound
    "ConnectMessage",
    "DisconnectMessage",
    "FrameData",
    "SendTextMessage",
    "SendTextWithFrameSequenceMessage",
    "parse_inbound",
    # Outbound
    "EventType",
    "RelayEvent",
    # Session
    "SessionState",
    # Upstream
    "DirectText",
    "InputTranscription",
    "ModelTurnParts",
    "OutputTranscription",
    "TurnCompleteSignal",
    "parse_upstream_message",
]
