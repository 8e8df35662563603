"""Image preparation before upload to the vision model.

1. Decode image bytes
2. Downscale so the longest side fits the configured maximum
3. Encode as JPEG

Pixels are otherwise left untouched (no crop, deskew or contrast change).
Each step degrades gracefully and the original bytes are
returned when the image cannot be handled.
"""

import logging

import cv2
import numpy as np

from config import settings

logger = logging.getLogger(__name__)


def preprocess(
    image_bytes: bytes,
    max_dimension: int | None = None,
    jpeg_quality: int | None = None,
) -> bytes:
    """Run the preparation pipeline on raw image bytes.

    Returns JPEG bytes, or the original bytes if decoding fails.
    """
    max_dim = max_dimension if max_dimension is not None else settings.IMAGE_MAX_DIMENSION
    quality = jpeg_quality if jpeg_quality is not None else settings.IMAGE_JPEG_QUALITY

    img = _decode(image_bytes)
    if img is None:
        logger.warning("preprocessing: could not decode image, returning original")
        return image_bytes

    img = _downscale(img, max_dim)
    return _encode(img, quality=quality, fallback=image_bytes)


def _decode(image_bytes: bytes) -> np.ndarray | None:
    """Decode raw bytes into an OpenCV BGR array."""
    if not image_bytes:
        return None
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _downscale(img: np.ndarray, max_dimension: int) -> np.ndarray:
    """Shrink so that max(h, w) <= max_dimension, keeping the aspect ratio."""
    try:
        h, w = img.shape[:2]
        longest = max(h, w)
        if max_dimension <= 0 or longest <= max_dimension:
            return img

        scale = max_dimension / longest
        size = (max(1, round(w * scale)), max(1, round(h * scale)))
        logger.debug("preprocessing: downscaling %dx%d -> %dx%d", w, h, size[0], size[1])
        return cv2.resize(img, size, interpolation=cv2.INTER_AREA)

    except Exception as e:
        logger.warning("preprocessing: resize failed: %s", e)
        return img


def _encode(img: np.ndarray, quality: int, fallback: bytes) -> bytes:
    """Encode image as JPEG bytes."""
    try:
        success, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if success:
            return buf.tobytes()
    except Exception as e:
        logger.warning("preprocessing: JPEG encode failed: %s", e)

    return fallback
