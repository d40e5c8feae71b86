"""
Test Configuration
==================

Pytest fixtures and test doubles for the Gemini Live relay.
"""

import base64
from typing import Callable, List, Optional, Tuple

import numpy as np
import pytest

from gemini_relay.errors import CaptureError, TransportError, UpstreamError
from gemini_relay.models.events import RelayEvent
from gemini_relay.models.messages import FrameData
from gemini_relay.relay.events import EventChannel
from gemini_relay.relay.session import SessionRelay
from gemini_relay.relay.turn import Turn
from gemini_relay.relay.upstream import UpstreamCallbacks, UpstreamConfig
from gemini_relay.stream.frame import Frame


# =============================================================================
# Upstream doubles
# =============================================================================

class FakeUpstreamSession:
    """Records submitted turns instead of talking to Gemini."""

    def __init__(self, callbacks: UpstreamCallbacks) -> None:
        self.callbacks = callbacks
        self.turns: List[Turn] = []
        self.close_calls: int = 0
        self.send_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None

    async def send_content(self, turn: Turn) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.turns.append(turn)

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error

    # Helpers that play the upstream side
    async def emit_message(self, message: dict) -> None:
        await self.callbacks.on_message(message)

    async def emit_error(self, message: str) -> None:
        await self.callbacks.on_error(UpstreamError(message))

    async def emit_close(self, reason: str = "Connection closed") -> None:
        await self.callbacks.on_close(reason)


class FakeUpstreamClient:
    """
    UpstreamClient double.

    Args:
        open_on_connect: Fire on_open before connect() returns
        connect_error: Raise this from connect()
    """

    def __init__(
        self,
        open_on_connect: bool = True,
        connect_error: Optional[Exception] = None,
    ) -> None:
        self.open_on_connect = open_on_connect
        self.connect_error = connect_error
        self.sessions: List[FakeUpstreamSession] = []
        self.configs: List[Tuple[str, UpstreamConfig]] = []

    @property
    def session(self) -> FakeUpstreamSession:
        """Most recently opened session."""
        return self.sessions[-1]

    async def connect(
        self,
        model: str,
        config: UpstreamConfig,
        callbacks: UpstreamCallbacks,
    ) -> FakeUpstreamSession:
        self.configs.append((model, config))
        if self.connect_error is not None:
            raise self.connect_error
        session = FakeUpstreamSession(callbacks)
        self.sessions.append(session)
        if self.open_on_connect:
            await callbacks.on_open()
        return session


# =============================================================================
# Capture doubles
# =============================================================================

class FakeSurface:
    """Synthetic video surface yielding a solid BGRA image."""

    def __init__(
        self,
        width: int = 1920,
        height: int = 1080,
        fail_resolution: bool = False,
    ) -> None:
        self.width = width
        self.height = height
        self.fail_resolution = fail_resolution
        self.fail_reads: bool = False
        self.read_error: Optional[Exception] = None
        self.reads: int = 0
        self.releases: int = 0

    def resolution(self) -> Tuple[int, int]:
        if self.fail_resolution:
            raise CaptureError("Permission denied")
        return self.width, self.height

    def read(self) -> np.ndarray:
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        if self.fail_reads:
            raise CaptureError("Surface went away")
        image = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        image[:, :, 1] = 128
        image[:, :, 3] = 255
        return image

    def release(self) -> None:
        self.releases += 1


# =============================================================================
# Client transport double
# =============================================================================

class FakeTransport:
    """Records outbound messages; tests push events with deliver()."""

    def __init__(self, connected: bool = False, connect_error: bool = False) -> None:
        self.events = EventChannel()
        self.sent: List[dict] = []
        self.connect_calls: int = 0
        self.close_calls: int = 0
        self._connected = connected
        self._connect_error = connect_error
        self._close_listeners: List[Callable] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self._connect_error:
            raise TransportError("Cannot connect to relay")
        self._connected = True

    async def send(self, message: dict) -> None:
        if not self._connected:
            raise TransportError("Not connected to relay server")
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self._connected = False

    def subscribe_close(self, listener: Callable) -> Callable[[], None]:
        self._close_listeners.append(listener)
        return lambda: self._close_listeners.remove(listener)

    async def deliver(self, event: RelayEvent) -> None:
        await self.events.publish(event)

    async def drop(self, reason: str = "Connection lost") -> None:
        self._connected = False
        for listener in list(self._close_listeners):
            await listener(reason)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def upstream_client() -> FakeUpstreamClient:
    return FakeUpstreamClient()


@pytest.fixture
def relay(upstream_client) -> SessionRelay:
    """SessionRelay on a fake upstream, watchdog disabled."""
    return SessionRelay(
        client=upstream_client,
        model="test-model",
        max_payload_bytes=1000,
        max_frames_per_request=30,
        default_system_instruction="default instruction",
        turn_timeout_seconds=0,
        connection_id="test",
    )


@pytest.fixture
def relay_events(relay) -> List[RelayEvent]:
    """Every event the relay publishes, in order."""
    events: List[RelayEvent] = []

    async def record(event: RelayEvent) -> None:
        events.append(event)

    relay.events.subscribe(record)
    return events


@pytest.fixture
def make_frame() -> Callable[..., Frame]:
    """Factory for Frames with a synthetic payload."""

    def factory(captured_at: int, size: int = 10) -> Frame:
        return Frame(payload=bytes([captured_at % 256]) * size, captured_at=captured_at)

    return factory


@pytest.fixture
def make_frame_data() -> Callable[..., FrameData]:
    """Factory for wire FrameData with a real base64 payload."""

    def factory(tag: str = "a", size: int = 10, timestamp: float = 1707321234567) -> FrameData:
        payload = tag.encode("ascii") * size
        return FrameData(
            data=base64.b64encode(payload).decode("ascii"),
            mime_type="image/jpeg",
            timestamp=timestamp,
            size=len(payload),
        )

    return factory


@pytest.fixture
def fake_surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
