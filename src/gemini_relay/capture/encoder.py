"""
Frame Encoder
=============

JPEG encoding and downscaling of raw surface images.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Target size is computed once per capture session
    - Aspect ratio is preserved; images are never upscaled
    - Fails loudly with FrameEncodeError on bad input
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from gemini_relay.errors import FrameEncodeError


logger = logging.getLogger(__name__)


def compute_target_size(
    src_width: int,
    src_height: int,
    max_width: int = 1280,
    max_height: int = 720,
) -> Tuple[int, int]:
    """
    Fit a source resolution inside a bounding box.

    ratio = min(max_width / src_width, max_height / src_height); the
    source is scaled by ratio (floored) only when ratio < 1.

    Args:
        src_width: Native surface width in pixels
        src_height: Native surface height in pixels
        max_width: Bounding box width
        max_height: Bounding box height

    Returns:
        (width, height) of the render target
    """
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid source resolution: {src_width}x{src_height}")

    ratio = min(max_width / src_width, max_height / src_height)
    if ratio < 1:
        return max(1, int(src_width * ratio)), max(1, int(src_height * ratio))
    return src_width, src_height


def encode_jpeg(
    image: np.ndarray,
    target_size: Tuple[int, int],
    quality: float = 0.7,
) -> bytes:
    """
    Resize a BGR image to target_size and encode it as JPEG.

    Args:
        image: BGR (H, W, 3) or BGRA (H, W, 4) uint8 array
        target_size: (width, height) render target
        quality: JPEG quality in (0, 1]

    Returns:
        Encoded JPEG bytes

    Raises:
        FrameEncodeError: If the image is invalid or encoding fails
    """
    if image is None or not isinstance(image, np.ndarray):
        raise FrameEncodeError("No image data to encode")

    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise FrameEncodeError(f"Invalid image shape: {image.shape}")

    if image.dtype != np.uint8:
        raise FrameEncodeError(f"Invalid dtype: {image.dtype}")

    try:
        if image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        width, height = target_size
        if (image.shape[1], image.shape[0]) != (width, height):
            image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)

        jpeg_quality = max(1, min(100, int(round(quality * 100))))
        ok, encoded = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), jpeg_quality]
        )
    except cv2.error as e:
        raise FrameEncodeError(f"OpenCV failed to encode frame: {e}")

    if not ok:
        raise FrameEncodeError("cv2.imencode returned no data")

    return encoded.tobytes()
