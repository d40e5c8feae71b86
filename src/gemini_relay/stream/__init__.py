"""
Stream Module
=============

Frame data model and client-side frame buffering.

    - Frame: Immutable encoded screen sample
    - FrameBuffer: Bounded FIFO (evicts oldest on overflow)

Example:
    from gemini_relay.stream import Frame, FrameBuffer

    buffer = FrameBuffer(max_frames=30)
    buffer.append(Frame.capture(jpeg_bytes))
    frames = buffer.drain_all()
"""

from gemini_relay.stream.frame import Frame, JPEG_MIME_TYPE, now_ms
from gemini_relay.stream.buffer import FrameBuffer


__all__ = [
    "Frame",
    "FrameBuffer",
    "JPEG_MIME_TYPE",
    "now_ms",
]
