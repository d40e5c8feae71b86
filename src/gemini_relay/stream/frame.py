"""
Frame Data Model
=================

Captured screen frame representation for the client pipeline.

This module defines the typed Frame class that is passed from the
capturer into the FrameBuffer and, on submission, to the wire encoder.

Design Rules:
    - Immutable once created
    - byte_size is computed once from the payload
    - captured_at is assigned at capture time and never renumbered
"""

import time
from dataclasses import dataclass, field
from typing import Optional


JPEG_MIME_TYPE = "image/jpeg"


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One encoded still-image sample of a captured surface.

    Attributes:
        payload: Encoded image bytes (JPEG)
        captured_at: Milliseconds since epoch when the frame was sampled
        mime_type: Declared MIME type of payload
        byte_size: len(payload), computed at creation
    """

    payload: bytes
    captured_at: int
    mime_type: str = JPEG_MIME_TYPE
    byte_size: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "byte_size", len(self.payload))

    @classmethod
    def capture(cls, payload: bytes, captured_at: Optional[int] = None) -> "Frame":
        """Create a JPEG frame stamped with the current time."""
        return cls(
            payload=payload,
            captured_at=captured_at if captured_at is not None else now_ms(),
        )

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(captured_at={self.captured_at}, "
            f"byte_size={self.byte_size}, "
            f"mime_type={self.mime_type!r})"
        )
