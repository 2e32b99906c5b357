"""
Cutout: transparent-background images from segmentation masks.

Turns a segmentation result for an image into a clean RGBA cutout by
converting a coarse foreground/background mask into a smooth per-pixel
alpha channel and compositing it onto the original pixels.

Processing order (NEVER REORDER):
1. Initialize the segmentation session (once per process)
2. Run inference on the source image
3. Select the foreground mask
4. Resample the mask to source resolution
5. Feather (blur + gamma falloff + threshold)
6. Composite alpha onto the source pixels
7. Encode losslessly to PNG
"""

__version__ = "0.1.0"
__author__ = "Cutout Team"
