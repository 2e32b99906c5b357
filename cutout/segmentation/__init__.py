"""
Segmentation module.

Responsibilities:
- Model session lifecycle (lazy, single-flight initialization)
- Boundary validation of inference results
- Foreground mask selection
- Mask resampling to source resolution
"""

from .session import SegmentationSession
from .validation import validate_segments, validate_mask
from .mask_selector import select_foreground
from .mask_resampler import ResampledMask, resample_mask
