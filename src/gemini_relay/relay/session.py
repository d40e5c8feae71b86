"""
Session Relay
=============

Owns the single upstream Live session for one client connection.

This module provides the SessionRelay class which:
    - Runs the session state machine (IDLE → CONNECTING → OPEN → CLOSED)
    - Turns client requests into upstream turns
    - Degrades oversized frame batches to a text-only turn
    - Reassembles streamed upstream messages into relay events
    - Publishes every event on its EventChannel

State Machine:
    IDLE / CLOSED → CONNECTING   connect()
    CONNECTING    → OPEN         upstream on_open
    OPEN          → CLOSING      disconnect()
    any           → CLOSED       upstream on_error / on_close, disconnect()

Design Rules:
    - At most one upstream handle per relay
    - Upstream failures become ``error`` events, never exceptions
    - Oversized batches are not errors: warning log + text-only turn
    - Callbacks from a superseded handle are ignored
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from gemini_relay.errors import (
    AlreadyConnectingError,
    AlreadyOpenError,
    SessionStateError,
    UpstreamError,
)
from gemini_relay.models.events import RelayEvent
from gemini_relay.models.messages import FrameData
from gemini_relay.models.session import SessionState
from gemini_relay.models.upstream import (
    DirectText,
    InputTranscription,
    ModelTurnParts,
    OutputTranscription,
    TurnCompleteSignal,
    parse_upstream_message,
)
from gemini_relay.relay.events import EventChannel
from gemini_relay.relay.turn import Turn
from gemini_relay.relay.upstream import (
    UpstreamCallbacks,
    UpstreamClient,
    UpstreamConfig,
    UpstreamSession,
)


logger = logging.getLogger(__name__)


DEFAULT_MAX_PAYLOAD_BYTES = 15 * 1024 * 1024

MSG_CONNECTED = "Connected to Gemini Live (text only)"
MSG_DISCONNECTED = "Disconnected from Gemini Live"
MSG_NOT_CONNECTED = "Not connected to Gemini Live"
MSG_PROCESSING = "Processing message..."


def frame_byte_size(frame: FrameData) -> int:
    """
    Bytes a frame contributes to the payload ceiling.

    The larger of the declared ``size`` and the decoded length implied by
    the base64 data.
    """
    data = frame.data
    padding = len(data) - len(data.rstrip("="))
    decoded = max(0, (len(data) * 3) // 4 - padding)
    return max(frame.size, decoded)


class SessionRelayMetrics:
    """Metrics for SessionRelay observability."""

    __slots__ = (
        "turns_submitted",
        "frames_submitted",
        "degraded_turns",
        "text_chunks",
        "turns_completed",
        "errors",
        "timeouts",
    )

    def __init__(self) -> None:
        self.turns_submitted: int = 0
        self.frames_submitted: int = 0
        self.degraded_turns: int = 0
        self.text_chunks: int = 0
        self.turns_completed: int = 0
        self.errors: int = 0
        self.timeouts: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class SessionRelay:
    """
    Relay between one local connection and one upstream Live session.

    Attributes:
        events: Channel receiving every emitted RelayEvent
        model: Upstream model name
        max_payload_bytes: Frame batch ceiling before degrading to text-only
        max_frames_per_request: Most recent frames kept per turn
        turn_timeout_seconds: Watchdog for turnComplete (0 = disabled)
        metrics: Operational metrics

    Example:
        relay = SessionRelay(client=GenAILiveClient(api_key), model="...")
        relay.events.subscribe(send_to_socket)

        await relay.connect("You are a helpful assistant.")
        await relay.send_text("2+2?")
        await relay.disconnect()
    """

    def __init__(
        self,
        client: UpstreamClient,
        model: str,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        max_frames_per_request: int = 30,
        default_system_instruction: str = "",
        turn_timeout_seconds: float = 120.0,
        connection_id: str = "local",
    ) -> None:
        """
        Initialize session relay.

        Args:
            client: UpstreamClient used to open sessions
            model: Upstream model name
            max_payload_bytes: Summed frame bytes above which frames are dropped
            max_frames_per_request: Maximum frames per turn (oldest dropped)
            default_system_instruction: Used when connect() gets none
            turn_timeout_seconds: Seconds to wait for turnComplete (0 = disabled)
            connection_id: Identifier used in log lines
        """
        self.events = EventChannel()
        self.model = model
        self.max_payload_bytes = max_payload_bytes
        self.max_frames_per_request = max_frames_per_request
        self.default_system_instruction = default_system_instruction
        self.turn_timeout_seconds = turn_timeout_seconds
        self.connection_id = connection_id

        self._client = client
        self._state: SessionState = SessionState.IDLE
        self._handle: Optional[UpstreamSession] = None
        self._system_instruction: Optional[str] = None
        self._generation: int = 0
        self._turn_watchdog: Optional[asyncio.Task] = None

        self.metrics = SessionRelayMetrics()

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether turns can be submitted."""
        return self._state == SessionState.OPEN and self._handle is not None

    @property
    def system_instruction(self) -> Optional[str]:
        """Instruction the current session was opened with."""
        return self._system_instruction

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, system_instruction: Optional[str] = None) -> None:
        """
        Open the upstream session.

        Upstream failures are published as ``error`` events.

        Args:
            system_instruction: Session instruction; falls back to the default

        Raises:
            AlreadyConnectingError: If a connect is already in flight
            AlreadyOpenError: If the session is already open
            SessionStateError: If the session is closing
        """
        if self._state == SessionState.CONNECTING:
            raise AlreadyConnectingError("Already connecting to Gemini Live")
        if self._state == SessionState.OPEN:
            raise AlreadyOpenError("Already connected to Gemini Live")
        if not self._state.can_connect:
            raise SessionStateError(f"Cannot connect while {self._state.value}")

        self._generation += 1
        generation = self._generation
        self._state = SessionState.CONNECTING
        self._system_instruction = system_instruction or self.default_system_instruction

        logger.info(f"[{self.connection_id}] Connecting to Gemini Live (model={self.model})")

        config = UpstreamConfig(system_instruction=self._system_instruction)
        try:
            handle = await self._client.connect(
                self.model, config, self._make_callbacks(generation)
            )
        except Exception as e:
            if generation == self._generation:
                self._state = SessionState.CLOSED
                self.metrics.errors += 1
                logger.error(f"[{self.connection_id}] Failed to connect to Gemini: {e}")
                await self._emit(RelayEvent.error(f"Could not connect to Gemini Live: {e}"))
            return

        # disconnect() or an upstream error won the race
        if generation != self._generation:
            logger.info(f"[{self.connection_id}] Discarding upstream handle opened after close")
            await self._close_handle(handle)
            return

        self._handle = handle

    async def disconnect(self) -> None:
        """
        Close the upstream session from any state.

        Close errors are logged and swallowed.
        """
        self._generation += 1
        self._cancel_turn_watchdog()

        had_session = self._handle is not None or self._state in (
            SessionState.CONNECTING,
            SessionState.OPEN,
        )
        handle = self._handle
        self._handle = None

        if handle is not None:
            self._state = SessionState.CLOSING
            await self._close_handle(handle)

        if self._state != SessionState.IDLE or had_session:
            self._state = SessionState.CLOSED

        if had_session:
            logger.info(f"[{self.connection_id}] Gemini session disconnected")
            await self._emit(RelayEvent.disconnected(MSG_DISCONNECTED))

    # -------------------------------------------------------------------------
    # Turn submission
    # -------------------------------------------------------------------------

    async def send_text(self, text: str) -> None:
        """
        Submit a text-only turn.

        Args:
            text: User text
        """
        if not self.is_open:
            await self._emit(RelayEvent.error(MSG_NOT_CONNECTED))
            return

        logger.info(f"[{self.connection_id}] Sending text to Gemini ({len(text)} chars)")
        await self._submit(Turn.text_only(text), MSG_PROCESSING)

    async def send_text_with_frames(
        self,
        text: str,
        frames: Sequence[FrameData],
        total_frames: Optional[int] = None,
        total_size: Optional[int] = None,
    ) -> None:
        """
        Submit a turn of text followed by frames, oldest first.

        Falls back to a text-only turn when the summed frame size exceeds
        max_payload_bytes.

        Args:
            text: User text
            frames: Frames in capture order
            total_frames: Caller-supplied frame count (advisory)
            total_size: Caller-supplied byte total (advisory)
        """
        if not self.is_open:
            await self._emit(RelayEvent.error(MSG_NOT_CONNECTED))
            return

        frames = list(frames)
        actual_size = sum(frame.size for frame in frames)

        if total_frames is not None and total_frames != len(frames):
            logger.warning(
                f"[{self.connection_id}] totalFrames={total_frames} "
                f"but {len(frames)} frames received"
            )
        if total_size is not None and total_size != actual_size:
            logger.warning(
                f"[{self.connection_id}] totalSize={total_size} "
                f"but frames sum to {actual_size} bytes"
            )

        if len(frames) > self.max_frames_per_request:
            dropped = len(frames) - self.max_frames_per_request
            frames = frames[-self.max_frames_per_request:]
            logger.warning(
                f"[{self.connection_id}] Frame sequence exceeds "
                f"{self.max_frames_per_request} frames, dropped {dropped} oldest"
            )

        payload_bytes = sum(frame_byte_size(frame) for frame in frames)
        logger.info(
            f"[{self.connection_id}] Sending text with {len(frames)} frames "
            f"({payload_bytes // 1024}KB)"
        )

        if payload_bytes > self.max_payload_bytes:
            self.metrics.degraded_turns += 1
            logger.warning(
                f"[{self.connection_id}] Frame sequence too large "
                f"({payload_bytes} > {self.max_payload_bytes} bytes), sending text only"
            )
            await self._submit(Turn.text_only(text), MSG_PROCESSING)
            return

        if not frames:
            await self._submit(Turn.text_only(text), MSG_PROCESSING)
            return

        await self._submit(
            Turn.with_frames(text, frames),
            f"Processing message with {len(frames)} frames...",
        )

    async def _submit(self, turn: Turn, processing_message: str) -> None:
        """Announce processing and send one complete turn upstream."""
        handle = self._handle
        if handle is None:
            await self._emit(RelayEvent.error(MSG_NOT_CONNECTED))
            return

        await self._emit(RelayEvent.processing(processing_message))

        try:
            await handle.send_content(turn)
        except Exception as e:
            self.metrics.errors += 1
            logger.error(f"[{self.connection_id}] Error sending turn: {e}")
            await self._emit(RelayEvent.error(f"Failed to send message: {e}"))
            return

        self.metrics.turns_submitted += 1
        self.metrics.frames_submitted += turn.image_count
        self._arm_turn_watchdog()

    # -------------------------------------------------------------------------
    # Upstream callbacks
    # -------------------------------------------------------------------------

    def _make_callbacks(self, generation: int) -> UpstreamCallbacks:
        """Build callbacks bound to one connect() generation."""

        async def on_open() -> None:
            if generation != self._generation:
                return
            self._state = SessionState.OPEN
            logger.info(f"[{self.connection_id}] Gemini Live session opened")
            await self._emit(RelayEvent.connected(MSG_CONNECTED))

        async def on_message(raw: Dict[str, Any]) -> None:
            if generation != self._generation or self._state != SessionState.OPEN:
                logger.debug(f"[{self.connection_id}] Dropping upstream message for closed session")
                return
            await self._handle_upstream_message(raw)

        async def on_error(error: UpstreamError) -> None:
            if generation != self._generation:
                return
            self.metrics.errors += 1
            logger.error(f"[{self.connection_id}] Gemini session error: {error}")
            await self._close_after_upstream_end()
            await self._emit(RelayEvent.error(str(error)))

        async def on_close(reason: str) -> None:
            if generation != self._generation:
                return
            logger.info(f"[{self.connection_id}] Gemini connection closed: {reason}")
            await self._close_after_upstream_end()
            await self._emit(RelayEvent.disconnected(MSG_DISCONNECTED))

        return UpstreamCallbacks(
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )

    async def _close_after_upstream_end(self) -> None:
        """Move to CLOSED after the upstream ended on its own."""
        self._generation += 1
        self._state = SessionState.CLOSED
        self._cancel_turn_watchdog()
        handle = self._handle
        self._handle = None
        if handle is not None:
            await self._close_handle(handle)

    async def _handle_upstream_message(self, raw: Dict[str, Any]) -> None:
        """Translate one streamed upstream message into relay events."""
        variants = parse_upstream_message(raw)

        direct = next((v for v in variants if isinstance(v, DirectText)), None)
        model_turn = next((v for v in variants if isinstance(v, ModelTurnParts)), None)

        if direct is not None:
            text = direct.text
        elif model_turn is not None:
            text = model_turn.joined()
        else:
            text = ""

        if text:
            self.metrics.text_chunks += 1
            logger.debug(f"[{self.connection_id}] Text chunk: {text!r}")
            await self._emit(RelayEvent.text_chunk(text))

        for variant in variants:
            if isinstance(variant, InputTranscription):
                logger.debug(f"[{self.connection_id}] Input transcription: {variant.text!r}")
            elif isinstance(variant, OutputTranscription):
                logger.debug(f"[{self.connection_id}] Output transcription: {variant.text!r}")

        if any(isinstance(v, TurnCompleteSignal) for v in variants):
            self._cancel_turn_watchdog()
            self.metrics.turns_completed += 1
            logger.debug(f"[{self.connection_id}] Turn complete")
            await self._emit(RelayEvent.turn_complete())

    # -------------------------------------------------------------------------
    # Turn watchdog
    # -------------------------------------------------------------------------

    def _arm_turn_watchdog(self) -> None:
        self._cancel_turn_watchdog()
        if self.turn_timeout_seconds <= 0:
            return
        self._turn_watchdog = asyncio.create_task(
            self._watch_turn(self._generation),
            name=f"turn_watchdog_{self.connection_id}",
        )

    def _cancel_turn_watchdog(self) -> None:
        watchdog = self._turn_watchdog
        self._turn_watchdog = None
        if watchdog is not None and watchdog is not asyncio.current_task():
            watchdog.cancel()

    async def _watch_turn(self, generation: int) -> None:
        """Report an error if turnComplete does not arrive in time."""
        try:
            await asyncio.sleep(self.turn_timeout_seconds)
        except asyncio.CancelledError:
            return

        if generation != self._generation or self._state != SessionState.OPEN:
            return

        self._turn_watchdog = None
        self.metrics.timeouts += 1
        logger.warning(
            f"[{self.connection_id}] No turnComplete within {self.turn_timeout_seconds}s"
        )
        await self._emit(
            RelayEvent.error(
                f"Gemini did not finish responding within {self.turn_timeout_seconds:g}s"
            )
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _close_handle(self, handle: UpstreamSession) -> None:
        try:
            await handle.close()
        except Exception as e:
            logger.warning(f"[{self.connection_id}] Error closing Gemini session: {e}")

    async def _emit(self, event: RelayEvent) -> None:
        await self.events.publish(event)
