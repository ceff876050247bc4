"""
DCT-based perceptual hashing for near-duplicate image detection.

The hash follows the classic pHash recipe: shrink to 32x32, grayscale with
standard luma weights, 2D DCT, keep the 8x8 low-frequency block and threshold
each coefficient against the block mean. Hashes travel as 16-char hex strings
(the `imagehash.ImageHash` text form) so they can be stored in records and
the catalog.
"""
import logging
from pathlib import Path
from typing import Optional

import imagehash
import numpy
import scipy.fftpack
from PIL import Image

from .. import config


class PerceptualHasher:
    def __init__(self,
                 threshold: int = config.PHASH_HAMMING_THRESHOLD,
                 image_size: int = config.PHASH_IMAGE_SIZE,
                 dct_size: int = config.PHASH_DCT_SIZE):
        self.threshold = threshold
        self.image_size = image_size
        self.dct_size = dct_size

    def compute_hash(self, path: Path) -> Optional[str]:
        """
        Returns the 64-bit hash as hex, or None if the image cannot be decoded.
        Decode failures are logged, never raised.
        """
        try:
            with Image.open(path) as im:
                return str(self.hash_image(im))
        except Exception as e:
            logging.warning(f"Perceptual hash unavailable for {path}: {e}")
            return None

    def hash_image(self, image: Image.Image) -> imagehash.ImageHash:
        small = image.convert("RGB").resize(
            (self.image_size, self.image_size), Image.Resampling.LANCZOS
        )
        # PIL's "L" mode is ITU-R 601-2 luma: 0.299 R + 0.587 G + 0.114 B
        pixels = numpy.asarray(small.convert("L"), dtype=numpy.float64)

        dct = scipy.fftpack.dct(
            scipy.fftpack.dct(pixels, axis=0, norm="ortho"), axis=1, norm="ortho"
        )
        low = dct[:self.dct_size, :self.dct_size]

        # The DC term only encodes overall brightness; leave it out of the mean
        # so it cannot drag the threshold up, but still emit a bit for it.
        mean = (low.sum() - low[0, 0]) / (low.size - 1)
        return imagehash.ImageHash(low > mean)

    def distance(self, h1: str, h2: str) -> Optional[int]:
        """Hamming distance between two hex hashes, None if either is malformed."""
        try:
            return imagehash.hex_to_hash(h1) - imagehash.hex_to_hash(h2)
        except (ValueError, TypeError) as e:
            logging.warning(f"Invalid perceptual hash pair {h1!r}/{h2!r}: {e}")
            return None

    def are_similar(self, h1: Optional[str], h2: Optional[str]) -> bool:
        if not h1 or not h2:
            return False
        if h1 == h2:
            return True
        dist = self.distance(h1, h2)
        if dist is None:
            return False
        similar = dist <= self.threshold
        if similar:
            logging.debug(f"Perceptual match {h1} ~ {h2} (distance {dist})")
        return similar
