"""Test configuration for cutout."""

import threading
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np
import pytest

from cutout.config import FeatherConfig, PipelineConfig
from cutout.core.contracts import Mask, Segment, SourceImage
from cutout.segmentation.backends import SegmentationBackend, SegmentationModel
from cutout.segmentation.session import SegmentationSession


def make_mask(width: int, height: int, value: float = 1.0) -> Mask:
    return Mask(width=width, height=height, data=np.full((height, width), value, dtype=np.float32))


def make_segment(label: str, width: int, height: int, value: float = 1.0) -> Segment:
    return Segment(label=label, mask=make_mask(width, height, value))


def make_image(width: int, height: int, rgba=(255, 0, 0, 255)) -> SourceImage:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[...] = rgba
    return SourceImage.from_rgba(pixels)


def png_bytes(rgba: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    assert ok
    return buf.tobytes()


class FakeModel(SegmentationModel):
    """Returns a fixed result (or the result of a callable) for every image."""

    def __init__(self, result):
        self.result = result
        self.calls = 0
        self.closed = False

    def infer(self, image: SourceImage) -> Sequence:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        if callable(self.result):
            return self.result(image)
        return self.result

    def close(self) -> None:
        self.closed = True


class FakeBackend(SegmentationBackend):
    """
    Backend double.

    Args:
        result: What the model's infer() returns (or raises)
        failures: Number of load() calls that raise before one succeeds
        progress: (stage, percent) pairs reported during load
        gate: If set, load() blocks until the event is set
    """

    name = "fake"

    def __init__(
        self,
        result=None,
        failures: int = 0,
        progress: Optional[List] = None,
        gate: Optional[threading.Event] = None,
        error: Optional[Exception] = None,
    ):
        self.result = result if result is not None else []
        self.failures = failures
        self.progress = progress if progress is not None else [("Initializing AI model...", 10), ("Model loaded successfully!", 100)]
        self.gate = gate
        self.error = error
        self.load_calls = 0
        self.started = threading.Event()
        self.models: List[FakeModel] = []

    def load(self, reporter) -> FakeModel:
        self.load_calls += 1
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        for stage, percent in self.progress:
            reporter.report(stage, percent)
        if self.failures > 0:
            self.failures -= 1
            raise self.error or RuntimeError("network unreachable")
        model = FakeModel(self.result)
        self.models.append(model)
        return model


@pytest.fixture
def red_image() -> SourceImage:
    return make_image(2, 2, (255, 0, 0, 255))


@pytest.fixture
def sharp_config() -> PipelineConfig:
    """No blur, gamma 2: exact per-pixel math."""
    return PipelineConfig(feathering=FeatherConfig(blur_radius=0.0, gamma=2.0, alpha_epsilon=10))


@pytest.fixture
def session_factory() -> Callable[..., SegmentationSession]:
    def _make(**kwargs) -> SegmentationSession:
        return SegmentationSession(FakeBackend(**kwargs))
    return _make
