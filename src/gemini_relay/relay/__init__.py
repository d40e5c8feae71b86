"""
Relay Module
============

Server-side bridge between one client connection and one upstream
Gemini Live session.

    - SessionRelay: Session state machine and turn submission
    - EventChannel: Ordered multi-subscriber event delivery
    - Turn: Immutable upstream request (text + inline images)
    - UpstreamClient / GenAILiveClient: Conversational API adapter
"""

from gemini_relay.relay.events import EventChannel, Listener
from gemini_relay.relay.turn import InlineImagePart, TextPart, Turn
from gemini_relay.relay.upstream import (
    GenAILiveClient,
    GenAILiveSession,
    UpstreamCallbacks,
    UpstreamClient,
    UpstreamConfig,
    UpstreamSession,
)
from gemini_relay.relay.session import SessionRelay, SessionRelayMetrics


__all__ = [
    "EventChannel",
    "GenAILiveClient",
    "GenAILiveSession",
    "InlineImagePart",
    "Listener",
    "SessionRelay",
    "SessionRelayMetrics",
    "TextPart",
    "Turn",
    "UpstreamCallbacks",
    "UpstreamClient",
    "UpstreamConfig",
    "UpstreamSession",
]
