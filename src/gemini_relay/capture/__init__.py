"""
Capture Module
==============

Periodic surface sampling and JPEG encoding.

    - VideoSurface: Protocol for live pixel sources
    - ScreenSurface: Monitor capture through mss
    - StaticSurface: Fixed image surface
    - FrameCapturer: Samples a surface into a FrameBuffer
    - compute_target_size / encode_jpeg: Downscale and encode helpers
"""

from gemini_relay.capture.encoder import compute_target_size, encode_jpeg
from gemini_relay.capture.surface import ScreenSurface, StaticSurface, VideoSurface
from gemini_relay.capture.capturer import FrameCapturer, FrameCapturerMetrics


__all__ = [
    "FrameCapturer",
    "FrameCapturerMetrics",
    "ScreenSurface",
    "StaticSurface",
    "VideoSurface",
    "compute_target_size",
    "encode_jpeg",
]
