"""
Compositing module.

Responsibilities:
- Feathering (blur, gamma falloff, threshold)
- Alpha compositing onto source pixels
- Image decode / lossless PNG encode
"""

from .feathering import FeatheringEngine, gamma_falloff, threshold_alpha
from .compositor import Compositor, apply_alpha
from .codec import decode_image, encode_png
