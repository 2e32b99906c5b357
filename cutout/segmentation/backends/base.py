"""
Base classes for segmentation backends.

A backend knows how to load a model (slow, possibly downloading weights)
and the loaded model knows how to run inference on one image. The
pipeline treats both as opaque.

To add a new backend:
1. Create a new file in the backends/ directory
2. Inherit from SegmentationBackend and SegmentationModel
3. Implement all abstract methods
4. Register in backends/__init__.py BACKENDS dict

Example implementation:
    class MyModel(SegmentationModel):
        def __init__(self, net):
            self.net = net

        def infer(self, image):
            masks = self.net(image.pixels[..., :3])
            return [{"label": name, "mask": m} for name, m in masks.items()]

    class MyBackend(SegmentationBackend):
        def load(self, reporter):
            reporter.report("Loading my model...", 50)
            return MyModel(load_my_net())
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from cutout.core.contracts import SourceImage
from cutout.core.progress import ProgressReporter


class SegmentationModel(ABC):
    """A ready-to-use segmentation model handle."""

    @abstractmethod
    def infer(self, image: SourceImage) -> Sequence[Any]:
        """Segment an image.

        Args:
            image: Decoded source image

        Returns:
            Ordered segments. Either Segment objects or mappings with
            "label" (str) and "mask" (2-D array or width/height/data
            object with values in [0, 1]).
        """
        pass

    def close(self) -> None:
        """Release model resources (optional)."""
        pass


class SegmentationBackend(ABC):
    """Factory that initializes a SegmentationModel."""

    name = "base"

    @abstractmethod
    def load(self, reporter: ProgressReporter) -> SegmentationModel:
        """Load the model.

        Called at most once per successful session initialization.
        May block on network and disk I/O.

        Args:
            reporter: Receives (stage, percent 0-100) progress

        Returns:
            Loaded model handle

        Raises:
            Exception: Any failure; the session wraps it in ModelInitError
        """
        pass
