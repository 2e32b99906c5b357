"""Tests for the transformers backend adapter (no model download)."""

import numpy as np
import pytest

from cutout.segmentation.backends import get_backend, list_backends, normalize_label
from cutout.segmentation.backends.transformers_backend import (
    TransformersSegmentationBackend,
    TransformersSegmentationModel,
)

from conftest import make_image


@pytest.mark.parametrize("raw, expected", [
    ("Background", "background"),
    (" BACKGROUND ", "background"),
    ("Upper-clothes", "Upper-clothes"),
    ("Hair", "Hair"),
])
def test_normalize_label(raw, expected):
    assert normalize_label(raw) == expected


def test_registry():
    assert "transformers" in list_backends()
    assert isinstance(get_backend("transformers"), TransformersSegmentationBackend)

    with pytest.raises(ValueError, match="Unknown backend"):
        get_backend("sam")


def test_infer_converts_pipeline_output():
    Image = pytest.importorskip("PIL.Image")
    seen = []

    def fake_pipe(pil_image):
        seen.append(pil_image)
        full = Image.fromarray(np.full((2, 3), 255, dtype=np.uint8))
        half = Image.fromarray(np.array([[0, 255, 0], [255, 0, 255]], dtype=np.uint8))
        return [
            {"label": "Background", "score": None, "mask": full},
            {"label": "Face", "score": None, "mask": half},
        ]

    model = TransformersSegmentationModel(fake_pipe, "test/model")
    segments = model.infer(make_image(3, 2))

    assert seen[0].size == (3, 2)
    assert seen[0].mode == "RGB"
    assert [s.label for s in segments] == ["background", "Face"]
    assert segments[0].is_background
    np.testing.assert_allclose(segments[1].mask.data, [[0, 1, 0], [1, 0, 1]])
    assert (segments[1].mask.width, segments[1].mask.height) == (3, 2)
