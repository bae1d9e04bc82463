"""Screen sampling: grab, difference, and the capture loop."""

from screen_assistant.capture.differ import FrameDiffer, compute_image_hash, hash_similarity
from screen_assistant.capture.manager import CaptureManager, CaptureState
from screen_assistant.capture.screen import ScreenCapture

__all__ = [
    "CaptureManager",
    "CaptureState",
    "FrameDiffer",
    "ScreenCapture",
    "compute_image_hash",
    "hash_similarity",
]
