"""
FrameBuffer Tests
=================

FIFO capacity, drain ordering and metrics of the client frame buffer.
"""

import pytest

from gemini_relay.stream import Frame, FrameBuffer


class TestFrame:
    """Tests for the Frame model."""

    def test_byte_size_computed_from_payload(self):
        """byte_size equals the payload length."""
        frame = Frame(payload=b"\xff\xd8abc", captured_at=1)
        assert frame.byte_size == 5
        assert frame.mime_type == "image/jpeg"

    def test_frame_is_immutable(self):
        """Frames cannot be modified after creation."""
        frame = Frame(payload=b"x", captured_at=1)
        with pytest.raises(AttributeError):
            frame.captured_at = 2

    def test_capture_stamps_time(self):
        """Frame.capture assigns a timestamp when none is given."""
        frame = Frame.capture(b"jpeg")
        assert frame.captured_at > 0

    def test_repr_omits_payload(self):
        frame = Frame(payload=b"x" * 1000, captured_at=7)
        assert "xxxx" not in repr(frame)


class TestFrameBuffer:
    """Tests for FrameBuffer."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            FrameBuffer(max_frames=0)

    def test_fifo_eviction_keeps_most_recent(self, make_frame):
        """maxFrames=3, append [1,2,3,4] -> [2,3,4]."""
        buffer = FrameBuffer(max_frames=3)
        for ts in [1, 2, 3, 4]:
            buffer.append(make_frame(ts))

        assert [f.captured_at for f in buffer.snapshot()] == [2, 3, 4]
        assert buffer.evicted_count == 1

    def test_size_never_exceeds_capacity(self, make_frame):
        """size() <= max_frames after every append."""
        buffer = FrameBuffer(max_frames=5)
        for ts in range(1, 50):
            buffer.append(make_frame(ts))
            assert buffer.size() <= 5

        assert [f.captured_at for f in buffer.snapshot()] == [45, 46, 47, 48, 49]

    def test_drain_empties_and_preserves_order(self, make_frame):
        """append(f1); append(f2); drain_all() == [f1, f2]; size() == 0."""
        buffer = FrameBuffer()
        f1, f2 = make_frame(1), make_frame(2)
        buffer.append(f1)
        buffer.append(f2)

        assert buffer.drain_all() == [f1, f2]
        assert buffer.size() == 0
        assert buffer.drain_all() == []

    def test_clear_returns_count(self, make_frame):
        buffer = FrameBuffer()
        buffer.append(make_frame(1))
        buffer.append(make_frame(2))

        assert buffer.clear() == 2
        assert len(buffer) == 0

    def test_backwards_timestamp_still_admitted(self, make_frame):
        """Out-of-order frames are logged, never rejected."""
        buffer = FrameBuffer()
        buffer.append(make_frame(10))
        buffer.append(make_frame(5))
        assert buffer.size() == 2

    def test_metrics(self, make_frame):
        buffer = FrameBuffer(max_frames=2)
        for ts in [1, 2, 3]:
            buffer.append(make_frame(ts, size=100))

        metrics = buffer.metrics()
        assert metrics == {
            "size": 2,
            "max_frames": 2,
            "evicted_count": 1,
            "total_appended": 3,
            "total_bytes": 200,
        }
