"""
Boundary validation for raw inference results.

Inference backends may hand back Segment objects, plain mappings
({"label": ..., "mask": ...}) or mask objects exposing width/height/data.
Everything is normalized to Segment here, or rejected with
InvalidSegmentationResult.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, List

import numpy as np
from loguru import logger

from cutout.core.contracts import Mask, Segment
from cutout.core.errors import InvalidSegmentationResult


# Float noise allowed above 1.0 / below 0.0 before a mask is rejected
_RANGE_TOLERANCE = 1e-4


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def validate_mask(raw: Any, index: int = 0) -> Mask:
    """
    Normalize one raw mask into a Mask.

    Accepts a Mask, a 2-D array, or any object with width, height and a
    flat or 2-D data buffer.

    Raises:
        InvalidSegmentationResult: On shape or value violations
    """
    if isinstance(raw, np.ndarray):
        if raw.ndim != 2:
            raise InvalidSegmentationResult(
                f"Segment {index}: mask array must be 2-D, got shape {raw.shape}"
            )
        height, width = raw.shape
        data = raw
    else:
        width = _get(raw, "width")
        height = _get(raw, "height")
        data = _get(raw, "data")
        if width is None or height is None or data is None:
            raise InvalidSegmentationResult(
                f"Segment {index}: mask must provide width, height and data"
            )

    try:
        width = int(width)
        height = int(height)
    except (TypeError, ValueError) as e:
        raise InvalidSegmentationResult(f"Segment {index}: non-integer mask size") from e

    if width <= 0 or height <= 0:
        raise InvalidSegmentationResult(
            f"Segment {index}: mask size must be positive, got {width}x{height}"
        )

    try:
        buffer = np.asarray(data, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise InvalidSegmentationResult(f"Segment {index}: mask data is not numeric") from e

    if buffer.size != width * height:
        raise InvalidSegmentationResult(
            f"Segment {index}: mask buffer length {buffer.size} != "
            f"{width}x{height} = {width * height}"
        )

    buffer = buffer.reshape(height, width)

    if not np.all(np.isfinite(buffer)):
        raise InvalidSegmentationResult(f"Segment {index}: mask contains NaN or inf")

    lo, hi = float(buffer.min()), float(buffer.max())
    if lo < -_RANGE_TOLERANCE or hi > 1.0 + _RANGE_TOLERANCE:
        raise InvalidSegmentationResult(
            f"Segment {index}: mask values must be in [0, 1], got [{lo:.4f}, {hi:.4f}]"
        )

    buffer = np.clip(buffer, 0.0, 1.0)
    buffer.setflags(write=False)
    return Mask(width=width, height=height, data=buffer)


def validate_segments(raw_segments: Any) -> List[Segment]:
    """
    Validate a raw inference result into a list of Segments.

    Order is preserved. An empty result is valid here; the selector
    decides what an empty list means.

    Raises:
        InvalidSegmentationResult: If the result or any segment is malformed
    """
    if raw_segments is None:
        raise InvalidSegmentationResult("Inference returned no result")
    if isinstance(raw_segments, (str, bytes, Mapping)) or not isinstance(raw_segments, Sequence):
        raise InvalidSegmentationResult(
            f"Inference result must be a sequence of segments, got {type(raw_segments).__name__}"
        )

    segments = []
    for i, raw in enumerate(raw_segments):
        if isinstance(raw, Segment):
            label, mask = raw.label, raw.mask
        else:
            label, mask = _get(raw, "label"), _get(raw, "mask")

        if not isinstance(label, str):
            raise InvalidSegmentationResult(
                f"Segment {i}: label must be a string, got {type(label).__name__}"
            )
        if mask is None:
            raise InvalidSegmentationResult(f"Segment {i}: missing mask")

        segments.append(Segment(label=label, mask=validate_mask(mask, i)))

    logger.debug(f"Validated {len(segments)} segments: {[s.label for s in segments]}")
    return segments
