"""
Mask resampling to source resolution.

Segmentation models usually produce masks smaller than the source image,
so the mask is upscaled with smooth interpolation before any blur.
Nearest-neighbour is never used: it leaves visible blocks at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from cutout.core.contracts import Mask
from cutout.core.pixels import round_half_up


_INTERPOLATION = {
    "linear": cv2.INTER_LINEAR,
    "area": cv2.INTER_AREA,
    "cubic": cv2.INTER_CUBIC,
    "lanczos": cv2.INTER_LANCZOS4,
}


@dataclass(frozen=True)
class ResampledMask:
    """Grayscale mask at source resolution, values 0-255."""
    width: int
    height: int
    values: NDArray[np.uint8]  # H x W

    def as_rgba(self) -> NDArray[np.uint8]:
        """Gray replicated into R, G and B with alpha fixed at 255."""
        rgba = np.empty((self.height, self.width, 4), dtype=np.uint8)
        rgba[..., :3] = self.values[..., None]
        rgba[..., 3] = 255
        return rgba


def _pick_interpolation(
    src_size: Tuple[int, int],
    dst_size: Tuple[int, int],
    method: str,
) -> int:
    if method == "auto":
        src_w, src_h = src_size
        dst_w, dst_h = dst_size
        # Area averaging only when shrinking on both axes
        if dst_w <= src_w and dst_h <= src_h:
            return cv2.INTER_AREA
        return cv2.INTER_LINEAR

    if method not in _INTERPOLATION:
        raise ValueError(
            f"Unsupported interpolation '{method}'. "
            f"Available: auto, {', '.join(_INTERPOLATION)}"
        )
    return _INTERPOLATION[method]


def mask_to_gray(mask: Mask) -> NDArray[np.uint8]:
    """Scale a [0, 1] mask to an 8-bit grayscale image at mask resolution."""
    return round_half_up(np.clip(mask.data, 0.0, 1.0) * 255.0)


def resample_mask(
    mask: Mask,
    width: int,
    height: int,
    method: str = "auto",
) -> ResampledMask:
    """
    Resample a foreground mask to the source image size.

    Args:
        mask: Selected foreground mask (any resolution)
        width: Target width (source image width)
        height: Target height (source image height)
        method: "auto", "linear", "area", "cubic" or "lanczos"

    Returns:
        ResampledMask at width x height
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Target size must be positive, got {width}x{height}")

    gray = mask_to_gray(mask)

    if (mask.width, mask.height) == (width, height):
        return ResampledMask(width=width, height=height, values=gray)

    interpolation = _pick_interpolation((mask.width, mask.height), (width, height), method)
    resized = cv2.resize(gray, (width, height), interpolation=interpolation)

    logger.debug(
        f"Resampled mask {mask.width}x{mask.height} -> {width}x{height} "
        f"(interpolation={interpolation})"
    )
    return ResampledMask(width=width, height=height, values=resized)
