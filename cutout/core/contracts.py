"""
Core data contracts for the background removal pipeline.

All components must adhere to these contracts for:
- Shape safety (every buffer carries its own width/height)
- Deterministic behavior
- No retention of per-request pixel data
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
import numpy as np
from numpy.typing import NDArray


BACKGROUND_LABEL = "background"


# ============================================================
# ENUMERATIONS
# ============================================================

class PipelineStage(Enum):
    """States of a single background removal request."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    SEGMENTING = "segmenting"
    RESAMPLING = "resampling"
    FEATHERING = "feathering"
    COMPOSITING = "compositing"
    ENCODING = "encoding"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.COMPLETE, PipelineStage.FAILED)


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class SourceImage:
    """
    A decoded input image.

    Pixels are RGBA, 4 bytes/pixel, row-major, not premultiplied.
    The pixel array is made read-only on construction.
    """
    width: int
    height: int
    pixels: NDArray[np.uint8]  # H x W x 4

    def __post_init__(self):
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"SourceImage pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"SourceImage pixels shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height}x4"
            )
        self.pixels.setflags(write=False)

    @classmethod
    def from_rgba(cls, pixels: NDArray[np.uint8]) -> SourceImage:
        """Wrap an H x W x 4 RGBA array (copied, so the caller keeps ownership)."""
        pixels = np.array(pixels, dtype=np.uint8, copy=True)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected H x W x 4 RGBA array, got shape {pixels.shape}")
        h, w = pixels.shape[:2]
        return cls(width=w, height=h, pixels=pixels)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def alpha(self) -> NDArray[np.uint8]:
        return self.pixels[..., 3]


@dataclass(frozen=True)
class Mask:
    """Single-channel confidence buffer, values normalized to [0, 1]."""
    width: int
    height: int
    data: NDArray[np.float32]  # H x W

    @property
    def area(self) -> int:
        """Buffer area (width x height), not a probability-weighted measure."""
        return self.width * self.height


@dataclass(frozen=True)
class Segment:
    """A labeled region candidate from segmentation inference."""
    label: str
    mask: Mask

    @property
    def is_background(self) -> bool:
        return self.label == BACKGROUND_LABEL


@dataclass(frozen=True)
class ProgressEvent:
    """Advisory progress notification: stage text plus percent 0-100."""
    stage: str
    percent: int


@dataclass
class CompositeOutput:
    """
    Final output of one pipeline invocation.

    RGB channels are byte-identical to the source; only alpha differs.
    """
    width: int
    height: int
    pixels: NDArray[np.uint8]  # H x W x 4
    encoded: bytes = b""
    label: Optional[str] = None


@dataclass
class PipelineRun:
    """
    Record of a single request moving through the state machine.

    Used for:
    - Debugging
    - Reporting which stage failed and why
    """
    stage: PipelineStage = PipelineStage.IDLE
    history: List[PipelineStage] = field(default_factory=lambda: [PipelineStage.IDLE])
    failure_kind: Optional[str] = None
    error_message: Optional[str] = None
    stage_times_ms: dict = field(default_factory=dict)
    stage_started_at: Optional[float] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.stage == PipelineStage.COMPLETE
