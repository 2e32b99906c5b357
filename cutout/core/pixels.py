"""
Small pixel-buffer helpers shared across stages.
"""

from __future__ import annotations

from typing import Iterator, Tuple

import numpy as np
from numpy.typing import NDArray


def round_half_up(values: NDArray, out_dtype=np.uint8) -> NDArray:
    """Round non-negative values to the nearest integer, .5 going up.

    np.rint rounds half to even, which would turn 127.5 into 128 but
    126.5 into 126; image math expects half-up.
    """
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5).astype(out_dtype)


def row_bands(height: int, workers: int) -> Iterator[Tuple[int, int]]:
    """Split [0, height) into at most `workers` contiguous, disjoint row ranges."""
    workers = max(1, min(workers, height))
    step, extra = divmod(height, workers)
    start = 0
    for i in range(workers):
        stop = start + step + (1 if i < extra else 0)
        if stop > start:
            yield start, stop
        start = stop
