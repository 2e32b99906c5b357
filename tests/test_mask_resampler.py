"""Tests for mask resampling."""

import numpy as np
import pytest

from cutout.core.contracts import Mask
from cutout.segmentation.mask_resampler import mask_to_gray, resample_mask

from conftest import make_mask


def test_same_size_scales_to_gray():
    mask = Mask(width=2, height=1, data=np.array([[0.0, 1.0]], dtype=np.float32))

    resampled = resample_mask(mask, 2, 1)

    assert resampled.values.dtype == np.uint8
    np.testing.assert_array_equal(resampled.values, [[0, 255]])


def test_gray_rounds_half_up():
    # 0.5 * 255 = 127.5
    mask = make_mask(1, 1, 0.5)

    assert mask_to_gray(mask)[0, 0] == 128


@pytest.mark.parametrize("value,expected", [(0.0, 0), (1.0, 255)])
def test_uniform_mask_stays_uniform(value, expected):
    resampled = resample_mask(make_mask(3, 2, value), 17, 11)

    assert resampled.values.shape == (11, 17)
    assert np.all(resampled.values == expected)


def test_upscale_is_smooth_not_blocky():
    mask = Mask(width=2, height=1, data=np.array([[0.0, 1.0]], dtype=np.float32))

    row = resample_mask(mask, 8, 1).values[0].astype(int)

    # Intermediate values at the transition, and a monotonic ramp
    assert np.any((row > 0) & (row < 255))
    assert np.all(np.diff(row) >= 0)
    assert row[0] == 0 and row[-1] == 255


def test_downscale_uses_area_average():
    data = np.zeros((4, 4), dtype=np.float32)
    data[:, 2:] = 1.0
    mask = Mask(width=4, height=4, data=data)

    values = resample_mask(mask, 2, 2).values

    np.testing.assert_array_equal(values, [[0, 255], [0, 255]])


def test_as_rgba_replicates_gray_with_opaque_alpha():
    mask = Mask(width=2, height=1, data=np.array([[0.2, 0.8]], dtype=np.float32))

    rgba = resample_mask(mask, 2, 1).as_rgba()

    assert rgba.shape == (1, 2, 4)
    for channel in range(3):
        np.testing.assert_array_equal(rgba[..., channel], [[51, 204]])
    assert np.all(rgba[..., 3] == 255)


@pytest.mark.parametrize("method", ["linear", "area", "cubic", "lanczos"])
def test_explicit_methods(method):
    resampled = resample_mask(make_mask(4, 4, 1.0), 9, 7, method=method)

    assert resampled.values.shape == (7, 9)


def test_nearest_neighbour_rejected():
    with pytest.raises(ValueError, match="Unsupported interpolation"):
        resample_mask(make_mask(2, 2), 4, 4, method="nearest")


def test_invalid_target_size():
    with pytest.raises(ValueError):
        resample_mask(make_mask(2, 2), 0, 4)
