"""
Client Module
=============

Client side of the relay: connection, frame encoding and chat state.

    - WebSocketTransport: Socket to the relay server
    - ClientCoordinator: Submission guard, streaming reassembly, transcript
    - encode_frames: Frame → FrameData (base64)
"""

from gemini_relay.client.coordinator import ClientCoordinator, EntryKind, TranscriptEntry
from gemini_relay.client.encoding import build_frame_sequence_message, encode_frame, encode_frames
from gemini_relay.client.transport import Transport, WebSocketTransport


__all__ = [
    "ClientCoordinator",
    "EntryKind",
    "TranscriptEntry",
    "Transport",
    "WebSocketTransport",
    "build_frame_sequence_message",
    "encode_frame",
    "encode_frames",
]
