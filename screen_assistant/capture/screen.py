"""Screen grabbing and JPEG encoding via Pillow.

All methods are blocking; the capture loop calls them through
``asyncio.to_thread``.
"""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path

from PIL import Image, ImageGrab

from screen_assistant.errors import CaptureError

logger = logging.getLogger(__name__)


def _to_rgb(image: Image.Image) -> Image.Image:
    # JPEG has no alpha channel
    return image if image.mode == "RGB" else image.convert("RGB")


class ScreenCapture:
    """Captures the primary screen and encodes frames."""

    def capture_primary(self) -> Image.Image:
        """Grab the primary screen.

        Raises:
            CaptureError: If the platform refuses or fails the grab.
        """
        try:
            return ImageGrab.grab()
        except (OSError, RuntimeError) as e:
            raise CaptureError(f"Screen capture failed: {e}") from e

    def image_to_base64(self, image: Image.Image, quality: int) -> str:
        """Encode ``image`` as base64 JPEG at ``quality`` (1-100)."""
        buffer = io.BytesIO()
        try:
            _to_rgb(image).save(buffer, format="JPEG", quality=quality)
        except (OSError, ValueError) as e:
            raise CaptureError(f"Image encoding failed: {e}") from e
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def save_to_file(self, image: Image.Image, path: Path, quality: int) -> None:
        try:
            _to_rgb(image).save(path, format="JPEG", quality=quality)
        except (OSError, ValueError) as e:
            raise CaptureError(f"Failed to save screenshot {path}: {e}") from e
