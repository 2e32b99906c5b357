#!/usr/bin/env python3
"""
Cutout: transparent-background images from segmentation masks.

Main entry point for command-line background removal.

Usage:
    python main.py INPUT [-o OUTPUT] [--config CONFIG_PATH]
"""

import sys

from cutout.cli import main


if __name__ == "__main__":
    sys.exit(main())
