"""
Image decoding and lossless encoding.

Input bytes in any format OpenCV can read become 8-bit RGBA.
Output is always PNG: no chroma subsampling, no re-quantization.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from cutout.core.contracts import SourceImage
from cutout.core.errors import ImageDecodeError, EncodingError
from cutout.core.pixels import round_half_up


def _to_uint8(image: NDArray) -> NDArray[np.uint8]:
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return round_half_up(image / 257.0)
    if np.issubdtype(image.dtype, np.floating):
        return round_half_up(np.clip(image, 0.0, 1.0) * 255.0)
    raise ImageDecodeError(f"Unsupported image depth: {image.dtype}")


def _to_rgba(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)

    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(np.ascontiguousarray(image[..., 0]), cv2.COLOR_GRAY2RGBA)
    if channels == 2:
        # Gray + alpha
        rgba = cv2.cvtColor(np.ascontiguousarray(image[..., 0]), cv2.COLOR_GRAY2RGBA)
        rgba[..., 3] = image[..., 1]
        return rgba
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    raise ImageDecodeError(f"Unsupported channel count: {channels}")


def decode_image(data: bytes) -> SourceImage:
    """
    Decode file bytes into a SourceImage.

    Args:
        data: Encoded image (PNG, JPEG, WebP, BMP, TIFF, ...)

    Returns:
        SourceImage with RGBA pixels (alpha 255 when the file has none)

    Raises:
        ImageDecodeError: If the bytes are empty or not a readable image
    """
    if not data:
        raise ImageDecodeError("Empty image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e

    if image is None or image.size == 0:
        raise ImageDecodeError("Unrecognized image format")

    rgba = _to_rgba(_to_uint8(image))
    h, w = rgba.shape[:2]
    logger.debug(f"Decoded image {w}x{h} ({len(data)} bytes, source dtype {image.dtype})")
    return SourceImage(width=w, height=h, pixels=rgba)


def encode_png(pixels: NDArray[np.uint8], compression: int = 3) -> bytes:
    """
    Encode an RGBA buffer as PNG.

    Args:
        pixels: H x W x 4 uint8 RGBA
        compression: zlib level 0-9 (size/speed only, always lossless)

    Returns:
        PNG bytes

    Raises:
        EncodingError: If OpenCV cannot encode the buffer
    """
    if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
        raise EncodingError(
            f"Expected H x W x 4 uint8 RGBA, got {pixels.shape} {pixels.dtype}"
        )

    try:
        bgra = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA)
        ok, encoded = cv2.imencode(".png", bgra, [cv2.IMWRITE_PNG_COMPRESSION, compression])
    except cv2.error as e:
        raise EncodingError(f"PNG encoding failed: {e}") from e

    if not ok:
        raise EncodingError("PNG encoding failed")

    return encoded.tobytes()
