"""Perceptual frame differencing.

Each frame is reduced to a 64-bit average hash: an 8x8 nearest-neighbour
grayscale thumbnail where bit i is set when pixel i is brighter than the
mean. The hash ignores compression noise and small cursor movements but
changes when the layout or content of the screen changes.
"""

from __future__ import annotations

import logging

from PIL import Image

logger = logging.getLogger(__name__)

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE
DEFAULT_CHANGE_THRESHOLD = 0.95


def compute_image_hash(image: Image.Image) -> int:
    """Return the 64-bit average hash of ``image``."""
    small = image.resize((HASH_SIZE, HASH_SIZE), Image.Resampling.NEAREST).convert("L")
    pixels = list(small.tobytes())
    avg = sum(pixels) // len(pixels)

    value = 0
    for i, pixel in enumerate(pixels):
        if pixel > avg:
            value |= 1 << i
    return value


def hash_similarity(hash1: int, hash2: int) -> float:
    """Fraction of equal bits between two hashes, in [0, 1]."""
    diff_bits = bin(hash1 ^ hash2).count("1")
    return 1.0 - diff_bits / HASH_BITS


class FrameDiffer:
    """Remembers the last analysed frame and flags near-identical successors."""

    def __init__(self, threshold: float = DEFAULT_CHANGE_THRESHOLD) -> None:
        self.threshold = threshold
        self._prev_hash: int | None = None

    @property
    def previous_hash(self) -> int | None:
        return self._prev_hash

    def reset(self) -> None:
        self._prev_hash = None

    def should_skip(self, image: Image.Image) -> bool:
        """True if ``image`` is similar enough to the previous frame to skip.

        The first frame is never skipped. A frame that is not skipped becomes
        the new reference; skipped frames leave the reference unchanged.
        """
        current = compute_image_hash(image)
        if self._prev_hash is not None:
            similarity = hash_similarity(self._prev_hash, current)
            if similarity >= self.threshold:
                logger.debug("Frame unchanged (similarity=%.3f), skipping", similarity)
                return True
        self._prev_hash = current
        return False
