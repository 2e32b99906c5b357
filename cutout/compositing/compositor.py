"""
Compositor.

Applies the alpha mask to the source RGBA buffer and encodes the result.
RGB is copied byte-for-byte; only the alpha channel changes.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numpy.typing import NDArray
from loguru import logger

from cutout.core.contracts import SourceImage
from cutout.core.pixels import round_half_up, row_bands
from .codec import encode_png


def apply_alpha(
    original_alpha: NDArray[np.uint8],
    alpha_mask: NDArray[np.uint8],
) -> NDArray[np.uint8]:
    """new_alpha = round(original_alpha * alpha_mask / 255)."""
    scaled = original_alpha.astype(np.float64) * (alpha_mask.astype(np.float64) / 255.0)
    return round_half_up(scaled)


class Compositor:
    """
    Alpha compositing + PNG encoding.

    The source image is never mutated. With workers > 1 the alpha
    multiply runs on disjoint row bands; all bands finish before
    encoding starts.
    """

    def __init__(self, workers: int = 1, png_compression: int = 3):
        self.workers = max(1, workers)
        self.png_compression = png_compression

    def composite(
        self,
        image: SourceImage,
        alpha_mask: NDArray[np.uint8],
    ) -> NDArray[np.uint8]:
        """
        Combine source pixels with an alpha mask.

        Args:
            image: Source image
            alpha_mask: H x W uint8, same size as the image

        Returns:
            New H x W x 4 RGBA buffer

        Raises:
            ValueError: If the mask size does not match the image
        """
        if alpha_mask.shape != (image.height, image.width):
            raise ValueError(
                f"Alpha mask shape {alpha_mask.shape} does not match "
                f"image {image.height}x{image.width}"
            )

        output = image.pixels.copy()
        source_alpha = image.pixels[..., 3]

        if self.workers == 1 or image.height < 2:
            output[..., 3] = apply_alpha(source_alpha, alpha_mask)
            return output

        def _band(bounds):
            start, stop = bounds
            output[start:stop, :, 3] = apply_alpha(source_alpha[start:stop], alpha_mask[start:stop])

        # Leaving the executor block joins every band (barrier before encoding)
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            list(executor.map(_band, row_bands(image.height, self.workers)))

        return output

    def encode(self, pixels: NDArray[np.uint8]) -> bytes:
        """Encode composited pixels as PNG."""
        encoded = encode_png(pixels, self.png_compression)
        logger.debug(f"Encoded {pixels.shape[1]}x{pixels.shape[0]} cutout ({len(encoded)} bytes)")
        return encoded
