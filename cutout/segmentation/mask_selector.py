"""
Foreground mask selection.

Picks the single segment to cut out from a multi-segment result.
"""

from __future__ import annotations

from typing import Optional, Sequence

from loguru import logger

from cutout.core.contracts import Segment
from cutout.core.errors import NoForegroundError


def select_foreground(segments: Sequence[Segment]) -> Segment:
    """
    Select the foreground segment.

    Background-labelled segments are skipped. Among the rest, the one
    whose mask buffer has the largest width x height wins; on a tie the
    first one in input order is kept.

    Args:
        segments: Segments from one inference call (may be empty)

    Returns:
        The chosen Segment (the same object as in the input)

    Raises:
        NoForegroundError: If there is no non-background segment
    """
    best: Optional[Segment] = None
    best_area = -1

    for segment in segments:
        if segment.is_background:
            continue
        area = segment.mask.area
        # Strict comparison keeps the earliest segment on ties
        if area > best_area:
            best = segment
            best_area = area

    if best is None:
        raise NoForegroundError(
            f"No foreground object detected ({len(segments)} segments, all background)"
            if segments else "No segmentation results returned"
        )

    logger.debug(
        f"Selected foreground '{best.label}' "
        f"({best.mask.width}x{best.mask.height}) from {len(segments)} segments"
    )
    return best
