"""
Turn Model
==========

One request submitted upstream: the user's text followed by zero or more
inline images, closed with a turn-complete flag.

Part order is significant: text first, then images oldest first.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from gemini_relay.models.messages import FrameData


@dataclass(frozen=True)
class TextPart:
    """Text part of a turn."""

    text: str


@dataclass(frozen=True)
class InlineImagePart:
    """Inline image part of a turn (base64 payload + MIME type)."""

    data: str
    mime_type: str


Part = Union[TextPart, InlineImagePart]


@dataclass(frozen=True)
class Turn:
    """
    Immutable upstream turn.

    Attributes:
        parts: Ordered parts; the first is always a TextPart
        turn_complete: Whether the turn is closed (always True for this relay)
    """

    parts: Tuple[Part, ...]
    turn_complete: bool = True

    @classmethod
    def text_only(cls, text: str) -> "Turn":
        """Build a turn with a single text part."""
        return cls(parts=(TextPart(text=text),))

    @classmethod
    def with_frames(cls, text: str, frames: Sequence[FrameData]) -> "Turn":
        """Build a turn of text followed by one image part per frame, in order."""
        images = tuple(
            InlineImagePart(data=frame.data, mime_type=frame.mime_type)
            for frame in frames
        )
        return cls(parts=(TextPart(text=text),) + images)

    @property
    def text(self) -> str:
        """The user's text."""
        return self.parts[0].text

    @property
    def image_count(self) -> int:
        """Number of inline image parts."""
        return sum(1 for part in self.parts if isinstance(part, InlineImagePart))
