"""
Image processing for screenshots.

Turns raw pixel buffers (numpy arrays in OpenCV's BGR/BGRA layout) into
size- and quality-bounded JPEG data URLs, and back.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np


JPEG_MIME = "image/jpeg"

# Light gray, matches what guests draw when they cannot render the page
PLACEHOLDER_COLOR = (240, 240, 240)


class ImageProcessingError(Exception):
    """The image could not be processed (e.g. zero area, encoder failure)."""


@dataclass
class EncodedImage:
    """An encoded image ready to be sent to the controller."""

    data_url: str
    width: int
    height: int


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Normalize grayscale and BGRA images to 3-channel BGR."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    channels = image.shape[2]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image


def fit_width(image: np.ndarray, max_width: int) -> np.ndarray:
    """Downscale to max_width preserving aspect ratio. Never upscales."""
    h, w = image.shape[:2]
    if w <= max_width:
        return image
    new_h = max(1, round(h * max_width / w))
    return cv2.resize(image, (max_width, new_h), interpolation=cv2.INTER_AREA)


def process_image(image: np.ndarray, quality: int = 85, max_width: int = 1920) -> EncodedImage:
    """
    Resize, encode and wrap an image as a JPEG data URL.

    Args:
        image: Pixel buffer (BGR, BGRA or grayscale)
        quality: JPEG quality, must already be clamped to 0-100
        max_width: Maximum output width, must be positive

    Raises:
        ValueError: quality or max_width outside their contract (caller bug)
        ImageProcessingError: zero-area image or encoder failure
    """
    if not 0 <= quality <= 100:
        raise ValueError(f"quality must be within 0-100, got {quality}")
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")

    if image is None or image.size == 0 or image.shape[0] == 0 or image.shape[1] == 0:
        raise ImageProcessingError("Cannot process a zero-area image")

    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    image = fit_width(to_bgr(image), max_width)

    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageProcessingError("JPEG encoding failed")

    encoded = base64.b64encode(buffer.tobytes()).decode("ascii")
    height, width = image.shape[:2]
    return EncodedImage(
        data_url=f"data:{JPEG_MIME};base64,{encoded}",
        width=width,
        height=height,
    )


def decode_data_url(data_url: str) -> np.ndarray:
    """
    Decode a base64 image data URL into a BGR pixel buffer.

    Raises:
        ImageProcessingError: not a base64 data URL or not a decodable image
    """
    if not isinstance(data_url, str) or not data_url.startswith("data:"):
        raise ImageProcessingError("Not a data URL")

    header, sep, body = data_url.partition(",")
    if not sep or ";base64" not in header:
        raise ImageProcessingError("Data URL is not base64 encoded")

    try:
        raw = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError(f"Invalid base64 payload: {e}") from e

    image = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ImageProcessingError("Data URL does not contain a decodable image")
    return image


def placeholder_image(
    width: int = 800,
    height: int = 600,
    color: Optional[tuple[int, int, int]] = None,
) -> np.ndarray:
    """Deterministic solid-color placeholder image."""
    fill = color or PLACEHOLDER_COLOR
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:] = fill
    return image
