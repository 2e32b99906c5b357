"""
Hugging Face transformers segmentation backend.

Uses an image-segmentation pipeline (SegFormer clothes/person parser by
default). Weights are fetched through huggingface_hub so download
progress can be reported.

Requirements:
    - transformers
    - torch
    - huggingface_hub
    - Pillow
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
from loguru import logger

from cutout.config import ModelConfig
from cutout.core.contracts import BACKGROUND_LABEL, Mask, Segment, SourceImage
from cutout.core.progress import ProgressReporter
from .base import SegmentationBackend, SegmentationModel


# Only the files the pytorch pipeline needs
_IGNORE_PATTERNS = ["*.onnx", "onnx/*", "*.msgpack", "*.h5", "*.ot", "*.tflite"]


def _detect_device() -> str:
    """Pick the best available torch device (CUDA > MPS > CPU)."""
    import torch

    if torch.cuda.is_available():
        logger.info(f"Using CUDA ({torch.cuda.get_device_name(0)}) for segmentation")
        return "cuda"
    if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        logger.info("Using MPS (Apple Metal GPU) for segmentation")
        return "mps"
    logger.info("Using CPU for segmentation (no GPU detected)")
    return "cpu"


def _reporting_tqdm(reporter: ProgressReporter):
    """Build a tqdm class that forwards download progress to the reporter."""
    from tqdm.auto import tqdm

    class _ReportingTqdm(tqdm):
        def update(self, n=1):
            result = super().update(n)
            if self.total:
                fraction = min(self.n / self.total, 1.0)
                reporter.report("Downloading model...", 10 + round(80 * fraction))
            return result

    return _ReportingTqdm


def normalize_label(label: str) -> str:
    """Map any-case "Background" to the reserved background label."""
    label = label.strip()
    if label.lower() == BACKGROUND_LABEL:
        return BACKGROUND_LABEL
    return label


class TransformersSegmentationModel(SegmentationModel):
    """Wraps a loaded transformers image-segmentation pipeline."""

    def __init__(self, pipe, model_id: str):
        self._pipe = pipe
        self.model_id = model_id

    def infer(self, image: SourceImage) -> List[Segment]:
        from PIL import Image

        rgb = np.ascontiguousarray(image.pixels[..., :3])
        results = self._pipe(Image.fromarray(rgb))

        segments = []
        for item in results:
            pil_mask = item["mask"].convert("L")
            data = np.asarray(pil_mask, dtype=np.float32) / 255.0
            segments.append(Segment(
                label=normalize_label(str(item["label"])),
                mask=Mask(width=pil_mask.width, height=pil_mask.height, data=data),
            ))

        logger.debug(f"{self.model_id} returned {len(segments)} segments")
        return segments

    def close(self) -> None:
        self._pipe = None
        try:
            import torch
            if torch.cuda.is_available():
                torch.cuda.empty_cache()
        except ImportError:
            pass


class TransformersSegmentationBackend(SegmentationBackend):
    """
    Loads a transformers image-segmentation pipeline.

    Progress:
        10      "Initializing AI model..."
        10-90   "Downloading model..."
        90      "Model ready!"
        100     "Model loaded successfully!"
    """

    name = "transformers"

    def __init__(self, config: Optional[ModelConfig] = None):
        self.config = config or ModelConfig()

    def load(self, reporter: ProgressReporter) -> TransformersSegmentationModel:
        from huggingface_hub import snapshot_download
        from transformers import pipeline

        reporter.report("Initializing AI model...", 10)
        logger.info(f"Fetching segmentation model: {self.config.model_id}")

        local_dir = snapshot_download(
            self.config.model_id,
            revision=self.config.revision,
            cache_dir=self.config.cache_dir,
            ignore_patterns=_IGNORE_PATTERNS,
            tqdm_class=_reporting_tqdm(reporter),
        )
        reporter.report("Model ready!", 90)

        device = self.config.device or _detect_device()
        pipe = pipeline("image-segmentation", model=local_dir, device=device)

        reporter.report("Model loaded successfully!", 100)
        logger.info(f"Segmentation model loaded on {device}")
        return TransformersSegmentationModel(pipe, self.config.model_id)
