"""
Segmentation backends.

Provides model loaders consumed by SegmentationSession.

To add a new backend:
1. Create a new file in this directory
2. Implement SegmentationBackend / SegmentationModel
3. Register it in BACKENDS dict below
"""

from typing import Optional

from cutout.config import ModelConfig
from .base import SegmentationBackend, SegmentationModel
from .transformers_backend import (
    TransformersSegmentationBackend,
    TransformersSegmentationModel,
    normalize_label,
)

# Registry of available backends
BACKENDS = {
    "transformers": TransformersSegmentationBackend,
}


def get_backend(name: str, config: Optional[ModelConfig] = None) -> SegmentationBackend:
    """Get a backend instance by name.

    Args:
        name: Backend name (e.g., "transformers")
        config: Model configuration

    Returns:
        Backend instance (model not loaded yet)

    Raises:
        ValueError: If backend name is not registered
    """
    if name not in BACKENDS:
        available = ", ".join(BACKENDS.keys())
        raise ValueError(f"Unknown backend '{name}'. Available: {available}")

    return BACKENDS[name](config)


def list_backends() -> list:
    """List available backend names."""
    return list(BACKENDS.keys())


__all__ = ['SegmentationBackend', 'SegmentationModel', 'TransformersSegmentationBackend',
           'TransformersSegmentationModel', 'normalize_label', 'get_backend', 'list_backends']
