"""Tests for alpha compositing."""

import numpy as np
import pytest

from cutout.compositing.codec import decode_image
from cutout.compositing.compositor import Compositor, apply_alpha
from cutout.core.contracts import SourceImage

from conftest import make_image


def _random_image(width: int, height: int, seed: int = 0) -> SourceImage:
    rng = np.random.default_rng(seed)
    return SourceImage.from_rgba(rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8))


def test_zero_alpha_mask_makes_transparent_red(red_image):
    pixels = Compositor().composite(red_image, np.zeros((2, 2), dtype=np.uint8))

    assert np.all(pixels[..., 3] == 0)
    assert np.all(pixels[..., :3] == [255, 0, 0])


def test_opaque_alpha_mask_keeps_original_alpha():
    image = _random_image(7, 5)

    pixels = Compositor().composite(image, np.full((5, 7), 255, dtype=np.uint8))

    np.testing.assert_array_equal(pixels, image.pixels)


def test_rgb_never_modified():
    image = _random_image(9, 6, seed=3)
    rng = np.random.default_rng(4)
    alpha_mask = rng.integers(0, 256, size=(6, 9), dtype=np.uint8)

    pixels = Compositor().composite(image, alpha_mask)

    np.testing.assert_array_equal(pixels[..., :3], image.pixels[..., :3])


def test_alpha_rounding_half_up():
    original = np.array([[255, 3, 1, 200]], dtype=np.uint8)
    mask = np.array([[128, 128, 128, 0]], dtype=np.uint8)

    # 255*128/255 = 128, 3*128/255 = 1.506, 1*128/255 = 0.502
    np.testing.assert_array_equal(apply_alpha(original, mask), [[128, 2, 1, 0]])


def test_source_image_untouched():
    image = _random_image(4, 4, seed=5)
    before = image.pixels.copy()

    Compositor().composite(image, np.zeros((4, 4), dtype=np.uint8))

    np.testing.assert_array_equal(image.pixels, before)
    assert not image.pixels.flags.writeable


def test_mask_shape_mismatch_is_contract_violation():
    with pytest.raises(ValueError, match="does not match"):
        Compositor().composite(make_image(4, 3), np.zeros((4, 3), dtype=np.uint8))


def test_parallel_bands_match_single_thread():
    image = _random_image(13, 29, seed=6)
    alpha_mask = np.random.default_rng(7).integers(0, 256, size=(29, 13), dtype=np.uint8)

    single = Compositor(workers=1).composite(image, alpha_mask)
    banded = Compositor(workers=5).composite(image, alpha_mask)

    np.testing.assert_array_equal(single, banded)


def test_encode_is_lossless_png():
    image = _random_image(11, 8, seed=8)
    alpha_mask = np.random.default_rng(9).integers(0, 256, size=(8, 11), dtype=np.uint8)
    compositor = Compositor()

    pixels = compositor.composite(image, alpha_mask)
    encoded = compositor.encode(pixels)

    assert encoded.startswith(b"\x89PNG")
    np.testing.assert_array_equal(decode_image(encoded).pixels, pixels)
