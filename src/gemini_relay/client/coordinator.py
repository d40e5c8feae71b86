"""
Client Coordinator
==================

Client-side application state for a relay chat.

This module provides the ClientCoordinator class which:
    - Tracks the socket, upstream-session and waiting-for-response flags
    - Composes submissions (text-only or text + buffered frames)
    - Reassembles streamed textChunk events into one assistant message
    - Keeps a transcript of user, assistant, system and error entries
    - Starts and stops screen capture into its FrameBuffer

Submission Guard:
    submit(text) does nothing unless the text is non-blank, the upstream
    session is open and no response is pending. A guarded no-op never
    touches the transport.

Design Rules:
    - waiting_for_response is set on submit and cleared only by
      turnComplete, error, or loss of the session
    - At most one assistant message streams at a time
    - textChunk text is appended as-is, with no separator
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from gemini_relay.capture.capturer import FrameCapturer
from gemini_relay.capture.surface import VideoSurface
from gemini_relay.client.encoding import build_frame_sequence_message, encode_frames
from gemini_relay.client.transport import Transport
from gemini_relay.errors import CaptureError, TransportError
from gemini_relay.models.events import EventType, RelayEvent
from gemini_relay.stream.buffer import FrameBuffer


logger = logging.getLogger(__name__)


WELCOME_MESSAGE = (
    "Welcome! Connect to Gemini Live, share your screen, and ask about what you see."
)


class EntryKind(str, Enum):
    """Transcript entry types."""

    USER = "user"
    AI = "ai"
    SYSTEM = "system"
    ERROR = "error"


@dataclass
class TranscriptEntry:
    """
    One line in the conversation transcript.

    Attributes:
        kind: Who or what produced the entry
        content: Entry text
        streaming: True while an assistant message is still receiving chunks
        timestamp: Creation time (seconds since epoch)
    """

    kind: EntryKind
    content: str
    streaming: bool = False
    timestamp: float = field(default_factory=time.time)


class ClientCoordinator:
    """
    Orchestrates capture, submission and event handling for one client.

    Attributes:
        transport: Connection to the relay server
        buffer: FrameBuffer shared with the capturer
        capturer: FrameCapturer feeding the buffer (optional)
        transcript: Conversation so far
        capture_status: Human-readable capture state

    Example:
        transport = WebSocketTransport("ws://localhost:5000/ws")
        buffer = FrameBuffer(max_frames=30)
        coordinator = ClientCoordinator(transport, buffer, FrameCapturer(buffer))

        await coordinator.connect()
        await coordinator.connect_upstream()
        await coordinator.start_capture(ScreenSurface())
        await coordinator.submit("What is on my screen?")
    """

    def __init__(
        self,
        transport: Transport,
        buffer: FrameBuffer,
        capturer: Optional[FrameCapturer] = None,
        system_instruction: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.buffer = buffer
        self.capturer = capturer
        self.system_instruction = system_instruction

        self.socket_connected: bool = transport.is_connected
        self.upstream_open: bool = False
        self.waiting_for_response: bool = False
        self.current_ai_message: Optional[TranscriptEntry] = None
        self.transcript: List[TranscriptEntry] = [
            TranscriptEntry(kind=EntryKind.SYSTEM, content=WELCOME_MESSAGE)
        ]
        self.capture_status: str = "Not sharing"

        self._unsubscribe: Callable[[], None] = transport.events.subscribe(self.handle_event)
        self._unsubscribe_close: Optional[Callable[[], None]] = None

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """
        Open the relay socket.

        Returns:
            True if the socket is open
        """
        try:
            await self.transport.connect()
        except TransportError as e:
            logger.error(f"Relay connection failed: {e}")
            self._add(EntryKind.ERROR, str(e))
            return False

        self.socket_connected = True
        if self._unsubscribe_close is None:
            self._unsubscribe_close = self.transport.subscribe_close(self._on_transport_closed)
        self._add(EntryKind.SYSTEM, "Connected to relay server")
        return True

    async def connect_upstream(self, system_instruction: Optional[str] = None) -> None:
        """Ask the relay to open the Gemini Live session."""
        if not self.socket_connected:
            logger.debug("connect_upstream ignored: socket not connected")
            return

        message = {"type": "connect_gemini"}
        instruction = system_instruction or self.system_instruction
        if instruction:
            message["systemInstruction"] = instruction
        await self._send(message)

    async def disconnect_upstream(self) -> None:
        """Ask the relay to close the Gemini Live session."""
        if not self.socket_connected:
            return
        await self._send({"type": "disconnect_gemini"})

    async def disconnect(self) -> None:
        """Stop capture and close the relay socket."""
        await self.stop_capture()
        await self.transport.close()
        self._on_socket_lost()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self, text: str) -> bool:
        """
        Send the user's text, with any buffered frames.

        Returns:
            True if a message was sent, False if the guard rejected it
        """
        text = text.strip()
        if not text or not self.upstream_open or self.waiting_for_response:
            return False

        message = None
        if self.buffer.size() > 0:
            frames = self.buffer.drain_all()
            try:
                encoded = encode_frames(frames)
                message = build_frame_sequence_message(text, encoded)
                logger.info(
                    f"Sending text with {len(encoded)} frames "
                    f"({message['totalSize'] // 1024}KB)"
                )
            except Exception as e:
                logger.error(f"Frame encoding failed, sending text only: {e}")
                message = None

        if message is None:
            message = {"type": "sendText", "text": text}

        self._add(EntryKind.USER, text)
        self.waiting_for_response = True

        if not await self._send(message):
            self.waiting_for_response = False
            return False
        return True

    # -------------------------------------------------------------------------
    # Event handling
    # -------------------------------------------------------------------------

    async def handle_event(self, event: RelayEvent) -> None:
        """Apply one server event to the client state."""
        if event.type == EventType.TEXT_CHUNK:
            self._append_chunk(event.text or "")

        elif event.type == EventType.TURN_COMPLETE:
            self._finalize_ai_message()
            self.waiting_for_response = False

        elif event.type == EventType.ERROR:
            self._finalize_ai_message()
            self._add(EntryKind.ERROR, event.message or "Unknown error")
            self.waiting_for_response = False

        elif event.type == EventType.CONNECTED:
            self.upstream_open = True
            self._add(EntryKind.SYSTEM, event.message or "Connected")

        elif event.type == EventType.PROCESSING:
            self._add(EntryKind.SYSTEM, event.message or "Processing...")

        elif event.type == EventType.DISCONNECTED:
            self.upstream_open = False
            self.waiting_for_response = False
            self._finalize_ai_message()
            self._add(EntryKind.SYSTEM, event.message or "Disconnected")

    def _append_chunk(self, text: str) -> None:
        if self.current_ai_message is None:
            self.current_ai_message = self._add(EntryKind.AI, "", streaming=True)
        self.current_ai_message.content += text
        self.current_ai_message.streaming = True

    def _finalize_ai_message(self) -> None:
        if self.current_ai_message is not None:
            self.current_ai_message.streaming = False
            self.current_ai_message = None

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    async def start_capture(self, surface: VideoSurface) -> bool:
        """
        Start sampling surface into the buffer.

        Returns:
            True if capture started
        """
        if self.capturer is None:
            self.capture_status = "Capture unavailable"
            return False

        try:
            await self.capturer.start(surface)
        except CaptureError as e:
            logger.error(f"Screen capture failed: {e}")
            self.capture_status = f"Capture error: {e}"
            self._add(EntryKind.SYSTEM, f"Screen sharing failed: {e}")
            return False

        width, height = self.capturer.target_size
        self.capture_status = (
            f"Sharing {width}x{height} every {self.capturer.interval_ms / 1000:g}s"
        )
        self._add(EntryKind.SYSTEM, "Screen sharing started")
        return True

    async def stop_capture(self) -> None:
        """Stop capture and discard buffered frames."""
        if self.capturer is None or not self.capturer.is_capturing:
            return
        await self.capturer.stop()
        cleared = self.buffer.clear()
        self.capture_status = "Not sharing"
        self._add(EntryKind.SYSTEM, f"Screen sharing stopped ({cleared} frames discarded)")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _add(self, kind: EntryKind, content: str, streaming: bool = False) -> TranscriptEntry:
        entry = TranscriptEntry(kind=kind, content=content, streaming=streaming)
        self.transcript.append(entry)
        return entry

    async def _send(self, message: dict) -> bool:
        try:
            await self.transport.send(message)
        except TransportError as e:
            logger.error(f"Send failed: {e}")
            self._add(EntryKind.ERROR, str(e))
            return False
        return True

    async def _on_transport_closed(self, reason: str) -> None:
        if self.socket_connected:
            self._add(EntryKind.SYSTEM, f"Relay connection closed: {reason}")
        self._on_socket_lost()

    def _on_socket_lost(self) -> None:
        self.socket_connected = False
        self.upstream_open = False
        self.waiting_for_response = False
        self._finalize_ai_message()
