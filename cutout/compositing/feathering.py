"""
Feathering Engine.

Turns the resampled foreground mask into an alpha curve:
1. Gaussian blur at full source resolution (edge softening)
2. Inverted, gamma-shaped falloff: alpha = 255 * (1 - v/255) ** gamma
3. Threshold: alpha below epsilon snaps to 0 (removes faint speckle)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from cutout.config import FeatherConfig
from cutout.core.pixels import round_half_up, row_bands
from cutout.segmentation.mask_resampler import ResampledMask


def threshold_alpha(alpha: NDArray[np.uint8], epsilon: int) -> NDArray[np.uint8]:
    """Snap alpha values below epsilon to 0. Idempotent."""
    result = alpha.copy()
    result[result < epsilon] = 0
    return result


def gamma_falloff(blurred: NDArray[np.float32], gamma: float) -> NDArray[np.uint8]:
    """Map blurred mask values v in [0, 255] to round(255 * (1 - v/255) ** gamma)."""
    m = np.clip(blurred.astype(np.float64) / 255.0, 0.0, 1.0)
    return round_half_up(255.0 * np.power(1.0 - m, gamma))


class FeatheringEngine:
    """
    Blur + gamma + threshold stage.

    Output alpha is monotonically non-increasing in the pre-blur mask
    value for any gamma > 0: mask 0 gives 255, mask 1 gives 0.
    """

    def __init__(
        self,
        config: Optional[FeatherConfig] = None,
        workers: int = 1,
    ):
        """
        Initialize feathering engine.

        Args:
            config: Blur radius, gamma and alpha epsilon
            workers: Row bands processed in parallel for the per-pixel map
        """
        self.config = config or FeatherConfig()
        self.workers = max(1, workers)

    def blur(self, values: NDArray[np.uint8]) -> NDArray[np.float32]:
        """Gaussian low-pass with sigma = blur_radius (0 disables)."""
        radius = self.config.blur_radius
        source = values.astype(np.float32)
        if radius <= 0:
            return source

        blurred = cv2.GaussianBlur(
            source,
            (0, 0),
            sigmaX=radius,
            sigmaY=radius,
            borderType=cv2.BORDER_REPLICATE,
        )
        return np.clip(blurred, 0.0, 255.0)

    def shape(self, blurred: NDArray[np.float32]) -> NDArray[np.uint8]:
        """Apply gamma falloff and threshold, optionally in parallel row bands."""
        gamma = self.config.gamma
        epsilon = self.config.alpha_epsilon

        if self.workers == 1 or blurred.shape[0] < 2:
            return threshold_alpha(gamma_falloff(blurred, gamma), epsilon)

        alpha = np.empty(blurred.shape, dtype=np.uint8)

        def _band(bounds):
            start, stop = bounds
            # Bands are disjoint row ranges, so writes never overlap
            alpha[start:stop] = threshold_alpha(gamma_falloff(blurred[start:stop], gamma), epsilon)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            list(executor.map(_band, row_bands(blurred.shape[0], self.workers)))

        return alpha

    def feather(self, resampled: ResampledMask) -> NDArray[np.uint8]:
        """
        Produce the alpha mask for a resampled foreground mask.

        Args:
            resampled: Mask already at source resolution

        Returns:
            H x W uint8 alpha mask
        """
        blurred = self.blur(resampled.values)
        alpha = self.shape(blurred)

        transparent = float(np.mean(alpha == 0)) if alpha.size else 0.0
        logger.debug(
            f"Feathered {resampled.width}x{resampled.height} mask "
            f"(r={self.config.blur_radius}, gamma={self.config.gamma}, "
            f"eps={self.config.alpha_epsilon}): {transparent:.1%} transparent"
        )
        return alpha
