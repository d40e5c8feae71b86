"""
Frame Capturer
==============

Periodic sampling of a live video surface into the FrameBuffer.

This module provides the FrameCapturer class which:
    - Computes the render target once from the surface's native resolution
    - Captures one frame immediately on start, then every interval
    - Reads and JPEG-encodes each sample off the event loop
    - Appends successful encodes to the FrameBuffer
    - Logs and skips frames that fail to read or encode

Design Rules:
    - Does NOT clear the FrameBuffer on stop (caller decides)
    - An encode that finishes after stop() is discarded
    - Encode failures are never fatal to the capture loop
"""

import asyncio
import logging
from typing import Optional, Tuple

from gemini_relay.capture.encoder import compute_target_size, encode_jpeg
from gemini_relay.capture.surface import VideoSurface
from gemini_relay.errors import CaptureError, FrameEncodeError
from gemini_relay.stream.buffer import FrameBuffer
from gemini_relay.stream.frame import Frame, now_ms


logger = logging.getLogger(__name__)


MIN_INTERVAL_MS = 1000
MAX_INTERVAL_MS = 10000


class FrameCapturerMetrics:
    """Metrics for FrameCapturer observability."""

    __slots__ = (
        "frames_captured",
        "encode_failures",
        "large_frames",
        "discarded_after_stop",
    )

    def __init__(self) -> None:
        self.frames_captured: int = 0
        self.encode_failures: int = 0
        self.large_frames: int = 0
        self.discarded_after_stop: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_captured": self.frames_captured,
            "encode_failures": self.encode_failures,
            "large_frames": self.large_frames,
            "discarded_after_stop": self.discarded_after_stop,
        }


class FrameCapturer:
    """
    Samples a VideoSurface on a fixed period and buffers JPEG frames.

    Attributes:
        buffer: FrameBuffer receiving encoded frames
        interval_ms: Milliseconds between capture ticks
        jpeg_quality: JPEG quality in (0, 1]
        metrics: Operational metrics

    Example:
        buffer = FrameBuffer(max_frames=30)
        capturer = FrameCapturer(buffer, interval_ms=1000)

        await capturer.start(ScreenSurface(monitor_index=1))
        ...
        await capturer.stop()
    """

    def __init__(
        self,
        buffer: FrameBuffer,
        interval_ms: int = 1000,
        jpeg_quality: float = 0.7,
        max_width: int = 1280,
        max_height: int = 720,
        large_frame_warning_bytes: int = 500 * 1024,
    ) -> None:
        """
        Initialize frame capturer.

        Args:
            buffer: FrameBuffer to append frames into
            interval_ms: Capture period, 1000-10000 ms
            jpeg_quality: JPEG quality in (0, 1]
            max_width: Bounding box width for downscaling
            max_height: Bounding box height for downscaling
            large_frame_warning_bytes: Size above which a frame is logged as large
        """
        if not MIN_INTERVAL_MS <= interval_ms <= MAX_INTERVAL_MS:
            raise ValueError(
                f"interval_ms must be between {MIN_INTERVAL_MS} and {MAX_INTERVAL_MS}"
            )
        if not 0 < jpeg_quality <= 1:
            raise ValueError("jpeg_quality must be in (0, 1]")

        self.buffer = buffer
        self.interval_ms = interval_ms
        self.jpeg_quality = jpeg_quality
        self.max_width = max_width
        self.max_height = max_height
        self.large_frame_warning_bytes = large_frame_warning_bytes

        self._surface: Optional[VideoSurface] = None
        self._target_size: Optional[Tuple[int, int]] = None
        self._capturing: bool = False
        self._task: Optional[asyncio.Task] = None

        self.metrics = FrameCapturerMetrics()

    @property
    def is_capturing(self) -> bool:
        """Whether the periodic capture is running."""
        return self._capturing

    @property
    def target_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) every frame is rendered at, set on start."""
        return self._target_size

    async def start(self, surface: VideoSurface) -> None:
        """
        Start periodic capture of surface.

        Reads the surface's native resolution, fixes the render target,
        captures one frame immediately and schedules the periodic loop.

        Args:
            surface: Live video source

        Raises:
            CaptureError: If the surface cannot be read at setup time
        """
        if self._capturing:
            logger.warning("FrameCapturer already running")
            return

        try:
            src_width, src_height = surface.resolution()
            target_size = compute_target_size(
                src_width, src_height, self.max_width, self.max_height
            )
        except CaptureError:
            surface.release()
            raise
        except Exception as e:
            surface.release()
            raise CaptureError(f"Cannot read video surface: {e}") from e

        self._surface = surface
        self._target_size = target_size
        self._capturing = True

        logger.info(
            f"FrameCapturer started: source={src_width}x{src_height}, "
            f"target={target_size[0]}x{target_size[1]}, "
            f"interval={self.interval_ms}ms, quality={self.jpeg_quality}"
        )

        try:
            await self.capture_once()
        except Exception as e:
            self._capturing = False
            self._surface = None
            self._target_size = None
            surface.release()
            logger.error(f"First capture failed, FrameCapturer not started: {e}")
            raise CaptureError(f"Cannot read video surface: {e}") from e

        self._task = asyncio.create_task(self._run(), name="frame_capturer")

    async def stop(self) -> None:
        """
        Stop capturing and release the surface.

        Cancels the periodic timer immediately. The FrameBuffer is left
        untouched.
        """
        if not self._capturing and self._surface is None:
            return

        self._capturing = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._surface is not None:
            try:
                self._surface.release()
            except Exception as e:
                logger.warning(f"Error releasing video surface: {e}")
            self._surface = None

        self._target_size = None
        logger.info(
            f"FrameCapturer stopped: captured={self.metrics.frames_captured}, "
            f"failures={self.metrics.encode_failures}"
        )

    async def capture_once(self) -> Optional[Frame]:
        """
        Sample, encode and buffer a single frame.

        Returns:
            The buffered Frame, or None if the tick was skipped
        """
        surface = self._surface
        target_size = self._target_size
        if not self._capturing or surface is None or target_size is None:
            return None

        try:
            captured_at, payload = await asyncio.to_thread(
                self._grab, surface, target_size
            )
        except (CaptureError, FrameEncodeError) as e:
            self.metrics.encode_failures += 1
            logger.error(f"Frame capture skipped: {e}")
            return None

        # stop() may have run while the encode was in flight
        if not self._capturing:
            self.metrics.discarded_after_stop += 1
            logger.debug("Discarding frame encoded after stop")
            return None

        frame = Frame.capture(payload, captured_at=captured_at)

        if frame.byte_size > self.large_frame_warning_bytes:
            self.metrics.large_frames += 1
            logger.warning(f"Frame size large: {frame.byte_size // 1024}KB")

        self.buffer.append(frame)
        self.metrics.frames_captured += 1
        logger.debug(
            f"Frame captured: {frame.byte_size // 1024}KB "
            f"(buffered={self.buffer.size()})"
        )
        return frame

    def _grab(self, surface: VideoSurface, target_size: Tuple[int, int]) -> Tuple[int, bytes]:
        """Read and encode one sample. Runs in a worker thread."""
        image = surface.read()
        captured_at = now_ms()
        return captured_at, encode_jpeg(image, target_size, self.jpeg_quality)

    async def _run(self) -> None:
        """Periodic loop: wait for the next tick, capture, repeat."""
        loop = asyncio.get_running_loop()
        interval = self.interval_ms / 1000.0
        next_tick = loop.time() + interval

        while self._capturing:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += interval

            if not self._capturing:
                break

            try:
                await self.capture_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.metrics.encode_failures += 1
                logger.error(f"Unexpected capture error: {e}")
