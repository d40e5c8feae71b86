"""
Outbound Event Schema
=====================

Events the relay sends back to the client, one JSON object per event:

    {"type": "connected", "message": "..."}
    {"type": "textChunk", "text": "Xin "}
    {"type": "turnComplete"}
    {"type": "processing", "message": "..."}
    {"type": "error", "message": "..."}
    {"type": "disconnected", "message": "..."}

Events are fire-and-forget: no identity, no acknowledgement.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from gemini_relay.errors import MessageFormatError


class EventType(str, Enum):
    """Names of outbound relay events."""

    CONNECTED = "connected"
    TEXT_CHUNK = "textChunk"
    TURN_COMPLETE = "turnComplete"
    PROCESSING = "processing"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class RelayEvent(BaseModel):
    """
    One event published by a SessionRelay.

    Attributes:
        type: Event name
        message: Human-readable text (connected, processing, error, disconnected)
        text: Partial assistant text (textChunk)
    """

    type: EventType
    message: Optional[str] = Field(default=None)
    text: Optional[str] = Field(default=None)

    @classmethod
    def connected(cls, message: str) -> "RelayEvent":
        return cls(type=EventType.CONNECTED, message=message)

    @classmethod
    def text_chunk(cls, text: str) -> "RelayEvent":
        return cls(type=EventType.TEXT_CHUNK, text=text)

    @classmethod
    def turn_complete(cls) -> "RelayEvent":
        return cls(type=EventType.TURN_COMPLETE)

    @classmethod
    def processing(cls, message: str) -> "RelayEvent":
        return cls(type=EventType.PROCESSING, message=message)

    @classmethod
    def error(cls, message: str) -> "RelayEvent":
        return cls(type=EventType.ERROR, message=message)

    @classmethod
    def disconnected(cls, message: str) -> "RelayEvent":
        return cls(type=EventType.DISCONNECTED, message=message)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the JSON object sent over the transport."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "RelayEvent":
        """
        Parse an event received over the transport.

        Raises:
            MessageFormatError: If the event type is unknown
        """
        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise MessageFormatError(f"Invalid relay event: {e}")
