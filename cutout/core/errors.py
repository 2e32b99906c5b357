"""
Error taxonomy for the background removal pipeline.

Each stage raises its own kind and never recovers locally.
The caller decides whether to retry.
"""

from __future__ import annotations


class CutoutError(Exception):
    """Base class for all pipeline failures."""

    kind = "error"


class ModelInitError(CutoutError):
    """The segmentation backend failed to initialize (download or load)."""

    kind = "model_init"


class ImageDecodeError(CutoutError):
    """The input bytes could not be decoded into an image."""

    kind = "decode"


class SegmentationError(CutoutError):
    """The inference call failed or returned unusable data."""

    kind = "segmentation"


class InvalidSegmentationResult(SegmentationError):
    """A segment violated shape invariants (width x height != buffer length, etc.)."""

    kind = "invalid_segmentation"


class NoForegroundError(CutoutError):
    """The segmentation result contained no non-background segment."""

    kind = "no_foreground"


class EncodingError(CutoutError):
    """Serializing the composite output failed."""

    kind = "encoding"


class ConfigError(ValueError):
    """Invalid configuration value."""
