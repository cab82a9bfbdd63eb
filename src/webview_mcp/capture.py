"""
Native window capture.

Grabs the pixels of an on-screen window with MSS. Every call is blocking
and is meant to run in the capture worker pool, never on the event loop.
"""

import time
from dataclasses import dataclass

import cv2
import mss
import numpy as np

from .errors import HostOperationFailed
from .models import BoundingBox, WindowInfo
from . import windows


@dataclass
class CapturedFrame:
    """A captured frame."""

    image: np.ndarray
    timestamp: float
    # Strategy that produced the pixels
    source: str = "native"
    # True when real window pixels were not obtained
    degraded: bool = False

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def is_empty(self) -> bool:
        return self.image.size == 0 or self.width == 0 or self.height == 0


class WindowCapture:
    """
    Native window source: enumeration plus pixel capture.

    MSS handles are not shareable across threads, so one is opened per grab.
    """

    def list_windows(self) -> list[WindowInfo]:
        """Enumerate on-screen windows."""
        return windows.get_all_windows()

    def capture_region(self, bounds: BoundingBox) -> np.ndarray:
        """Capture a screen region and return it as a BGR array."""
        if bounds.width <= 0 or bounds.height <= 0:
            raise HostOperationFailed(
                f"Window has no visible area ({bounds.width}x{bounds.height})"
            )

        region = {
            "left": bounds.x,
            "top": bounds.y,
            "width": bounds.width,
            "height": bounds.height,
        }

        try:
            with mss.mss() as sct:
                screenshot = sct.grab(region)
        except Exception as e:
            raise HostOperationFailed(f"Failed to capture window image: {e}") from e

        # MSS gives BGRA
        image = np.array(screenshot)
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    def capture_window(self, window: WindowInfo) -> CapturedFrame:
        """Capture the pixels currently shown by a window."""
        image = self.capture_region(window.bounds)
        return CapturedFrame(
            image=image,
            timestamp=time.time(),
            source="native",
        )
