"""
Frame Wire Encoding
===================

Converts buffered Frames into the FrameData records carried by a
``sendTextWithFrameSequence`` message.
"""

import base64
from typing import List, Sequence

from gemini_relay.models.messages import FrameData
from gemini_relay.stream.frame import Frame


def encode_frame(frame: Frame) -> FrameData:
    """Base64-encode one frame's payload."""
    return FrameData(
        data=base64.b64encode(frame.payload).decode("ascii"),
        mime_type=frame.mime_type,
        timestamp=frame.captured_at,
        size=frame.byte_size,
    )


def encode_frames(frames: Sequence[Frame]) -> List[FrameData]:
    """
    Encode frames individually, preserving order.

    Raises whatever the first failing frame raises; the caller decides
    whether to fall back to a text-only send.
    """
    return [encode_frame(frame) for frame in frames]


def build_frame_sequence_message(text: str, frames: Sequence[FrameData]) -> dict:
    """
    Build the JSON object for a text + frames submission.

    Args:
        text: User text
        frames: Encoded frames, oldest first

    Returns:
        Message dict with camelCase wire keys
    """
    return {
        "type": "sendTextWithFrameSequence",
        "text": text,
        "frames": [frame.model_dump(mode="json", by_alias=True) for frame in frames],
        "totalFrames": len(frames),
        "totalSize": sum(frame.size for frame in frames),
    }
