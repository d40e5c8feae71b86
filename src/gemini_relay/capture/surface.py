"""
Video Surfaces
==============

Sources of raw pixel frames for the FrameCapturer.

A surface exposes its native resolution, yields a BGR(A) numpy array on
demand, and releases its device handle when capture stops.

    - VideoSurface: Protocol every surface implements
    - ScreenSurface: Monitor capture through mss
    - StaticSurface: A fixed image (array or file)
"""

import logging
from typing import Optional, Protocol, Tuple

import cv2
import mss
from mss.exception import ScreenShotError
import numpy as np

from gemini_relay.errors import CaptureError


logger = logging.getLogger(__name__)


class VideoSurface(Protocol):
    """Protocol for live video sources."""

    def resolution(self) -> Tuple[int, int]:
        """Native (width, height) of the surface."""
        ...

    def read(self) -> np.ndarray:
        """Return the current frame as a BGR or BGRA uint8 array."""
        ...

    def release(self) -> None:
        """Release the underlying device handle."""
        ...


class ScreenSurface:
    """
    Screen capture of one monitor using mss.

    Each grab opens its own mss handle, so read() is safe from whichever
    worker thread the capturer schedules it on.

    Args:
        monitor_index: Index of the monitor to capture (1 = primary,
            0 = all monitors combined).
    """

    def __init__(self, monitor_index: int = 1) -> None:
        self._monitor_index = monitor_index
        self._monitor: Optional[dict] = None
        self._released: bool = False

    def _ensure_monitor(self) -> dict:
        if self._released:
            raise CaptureError("Surface has been released")
        if self._monitor is not None:
            return self._monitor
        try:
            with mss.mss() as sct:
                # mss monitor list: index 0 = all monitors combined, 1+ = individual
                self._monitor = dict(sct.monitors[self._monitor_index])
        except IndexError:
            raise CaptureError(f"Monitor {self._monitor_index} not found")
        except ScreenShotError as e:
            raise CaptureError(f"Cannot open screen for capture: {e}")
        return self._monitor

    def resolution(self) -> Tuple[int, int]:
        monitor = self._ensure_monitor()
        return monitor["width"], monitor["height"]

    def read(self) -> np.ndarray:
        monitor = self._ensure_monitor()
        try:
            with mss.mss() as sct:
                raw = sct.grab(monitor)
        except ScreenShotError as e:
            raise CaptureError(f"Screen grab failed: {e}")
        # mss returns BGRA pixels
        return np.asarray(raw, dtype=np.uint8)

    def release(self) -> None:
        self._released = True
        self._monitor = None
        logger.debug(f"Released screen surface (monitor={self._monitor_index})")


class StaticSurface:
    """
    Surface that always yields the same image.

    Used for replaying a saved screenshot through the capture pipeline.

    Args:
        image: BGR or BGRA uint8 array
    """

    def __init__(self, image: np.ndarray) -> None:
        if not isinstance(image, np.ndarray) or image.ndim != 3:
            raise CaptureError("StaticSurface needs an HxWxC image array")
        self._image: Optional[np.ndarray] = image

    @classmethod
    def from_file(cls, path: str) -> "StaticSurface":
        """Load an image file with OpenCV."""
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None:
            raise CaptureError(f"Cannot read image file: {path}")
        return cls(image)

    def resolution(self) -> Tuple[int, int]:
        image = self._require_open()
        height, width = image.shape[:2]
        return width, height

    def read(self) -> np.ndarray:
        return self._require_open().copy()

    def release(self) -> None:
        self._image = None

    def _require_open(self) -> np.ndarray:
        if self._image is None:
            raise CaptureError("Surface has been released")
        return self._image
