"""
Inbound Message Schema
======================

Pydantic models for the JSON messages a client sends over the WebSocket.

Every message is a JSON object tagged by ``type``:

    {"type": "connect_gemini", "systemInstruction": "..."}
    {"type": "sendText", "text": "2+2?"}
    {"type": "sendTextWithFrameSequence",
     "text": "what is on screen?",
     "frames": [{"data": "<base64>", "mimeType": "image/jpeg",
                 "timestamp": 1707321234567, "size": 48213}],
     "totalFrames": 1,
     "totalSize": 48213}
    {"type": "disconnect_gemini"}

``connect`` / ``disconnect`` are accepted as aliases of the ``_gemini``
forms. ``totalFrames`` / ``totalSize`` are caller-supplied summaries and
are never validated against ``frames``.

Example:
    from gemini_relay.models.messages import parse_inbound

    message = parse_inbound(raw_text)
    if isinstance(message, SendTextMessage):
        print(message.text)
"""

import json
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from gemini_relay.errors import MessageFormatError


class FrameData(BaseModel):
    """
    One base64-encoded frame as carried on the wire.

    Attributes:
        data: Base64-encoded image bytes
        mime_type: Declared MIME type (wire name ``mimeType``)
        timestamp: Capture time in milliseconds since epoch
        size: Size of the decoded image in bytes
    """

    model_config = ConfigDict(populate_by_name=True)

    data: str = Field(..., description="Base64-encoded image bytes")
    mime_type: str = Field(
        default="image/jpeg",
        alias="mimeType",
        description="Declared MIME type of the image",
    )
    timestamp: float = Field(default=0, ge=0, description="Capture time (ms since epoch)")
    size: int = Field(default=0, ge=0, description="Decoded image size in bytes")


class ConnectMessage(BaseModel):
    """Request to open the upstream session."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["connect", "connect_gemini"] = "connect_gemini"
    system_instruction: Optional[str] = Field(
        default=None,
        alias="systemInstruction",
        description="System instruction for the session",
    )


class SendTextMessage(BaseModel):
    """Submit a text-only turn."""

    type: Literal["sendText"] = "sendText"
    text: str = Field(..., description="User text")


class SendTextWithFrameSequenceMessage(BaseModel):
    """Submit a text turn followed by buffered frames, oldest first."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["sendTextWithFrameSequence"] = "sendTextWithFrameSequence"
    text: str = Field(..., description="User text")
    frames: List[FrameData] = Field(default_factory=list, description="Frames, oldest first")
    total_frames: Optional[int] = Field(
        default=None,
        alias="totalFrames",
        description="Caller-supplied frame count (advisory)",
    )
    total_size: Optional[int] = Field(
        default=None,
        alias="totalSize",
        description="Caller-supplied byte total (advisory)",
    )


class DisconnectMessage(BaseModel):
    """Request to close the upstream session."""

    type: Literal["disconnect", "disconnect_gemini"] = "disconnect_gemini"


InboundMessage = Annotated[
    Union[
        ConnectMessage,
        SendTextMessage,
        SendTextWithFrameSequenceMessage,
        DisconnectMessage,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes, dict]) -> Any:
    """
    Parse and validate one inbound transport message.

    Args:
        raw: JSON text, bytes, or an already-decoded dict

    Returns:
        One of ConnectMessage, SendTextMessage,
        SendTextWithFrameSequenceMessage, DisconnectMessage

    Raises:
        MessageFormatError: If the payload is not valid JSON or matches no message type
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MessageFormatError(f"Invalid JSON message: {e}")

    if not isinstance(raw, dict):
        raise MessageFormatError("Message must be a JSON object")

    try:
        return _inbound_adapter.validate_python(raw)
    except ValidationError as e:
        message_type = raw.get("type", "<missing>")
        raise MessageFormatError(
            f"Invalid '{message_type}' message: {e.error_count()} validation error(s)"
        )
