"""
Frame Buffer
=============

Bounded FIFO store of captured frames.

This module provides the FrameBuffer class, which sits between the
FrameCapturer (producer) and the ClientCoordinator, which drains it
when the user submits a question.

Design Rules:
    - Fixed maximum size (evicts oldest on overflow)
    - Insertion order is capture order
    - Never fails on append
    - Does NOT process or modify frames

All mutation happens on the event loop thread, so append/drain/clear
need no lock. Guard with a lock before sharing across threads.
"""

import logging
from collections import deque
from typing import Deque, List

from gemini_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


class FrameBuffer:
    """
    Bounded FIFO of frames, oldest first.

    Uses a drop-oldest policy when the buffer is full so it always holds
    the most recently captured max_frames frames.

    Attributes:
        max_frames: Maximum number of frames to hold
        evicted_count: Number of frames evicted due to overflow

    Example:
        buffer = FrameBuffer(max_frames=30)

        # Producer
        buffer.append(frame)

        # Consumer
        frames = buffer.drain_all()
    """

    def __init__(self, max_frames: int = 30) -> None:
        """
        Initialize frame buffer.

        Args:
            max_frames: Maximum frames to buffer. Must be >= 1.
        """
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")

        self._max_frames = max_frames
        self._frames: Deque[Frame] = deque()
        self._evicted_count: int = 0
        self._total_appended: int = 0

    @property
    def max_frames(self) -> int:
        """Maximum buffer size."""
        return self._max_frames

    @property
    def evicted_count(self) -> int:
        """Number of frames evicted due to overflow."""
        return self._evicted_count

    @property
    def total_appended(self) -> int:
        """Total frames ever appended."""
        return self._total_appended

    def size(self) -> int:
        """Current number of frames in buffer."""
        return len(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def append(self, frame: Frame) -> None:
        """
        Add frame to the tail, evicting the oldest if over capacity.

        Args:
            frame: Frame to add
        """
        if self._frames and frame.captured_at < self._frames[-1].captured_at:
            logger.warning(
                f"Frame timestamp went backwards: {frame.captured_at} < "
                f"{self._frames[-1].captured_at}"
            )

        self._frames.append(frame)
        self._total_appended += 1

        while len(self._frames) > self._max_frames:
            self._frames.popleft()
            self._evicted_count += 1
            if self._evicted_count == 1 or self._evicted_count % 100 == 0:
                logger.warning(
                    f"Buffer full, evicted oldest frame. "
                    f"Total evicted: {self._evicted_count}"
                )

    def drain_all(self) -> List[Frame]:
        """
        Return every buffered frame in capture order and empty the buffer.

        Returns:
            Frames oldest first.
        """
        frames = list(self._frames)
        self._frames.clear()
        return frames

    def snapshot(self) -> List[Frame]:
        """Return buffered frames without removing them."""
        return list(self._frames)

    def clear(self) -> int:
        """
        Clear all frames from buffer.

        Returns:
            Number of frames cleared.
        """
        cleared = len(self._frames)
        self._frames.clear()
        return cleared

    def total_bytes(self) -> int:
        """Summed byte size of buffered frames."""
        return sum(frame.byte_size for frame in self._frames)

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, max_frames, evicted_count, total_appended, total_bytes
        """
        return {
            "size": self.size(),
            "max_frames": self._max_frames,
            "evicted_count": self._evicted_count,
            "total_appended": self._total_appended,
            "total_bytes": self.total_bytes(),
        }
