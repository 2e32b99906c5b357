"""
Command-line interface for background removal.

Usage:
    python main.py INPUT [-o OUTPUT] [--config CONFIG_PATH]

Examples:
    python main.py photo.jpg
    python main.py photo.jpg -o cutouts/photo.png --blur-radius 4 --gamma 2.0
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, List

from loguru import logger

from cutout.config import (
    PipelineConfig,
    config_from_dict,
    load_settings,
    logging_config_from_dict,
)
from cutout.core.errors import CutoutError, ConfigError
from cutout.core.progress import CallbackSink
from cutout.pipeline.orchestrator import BackgroundRemovalPipeline
from cutout.segmentation.backends import list_backends


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# CONFIG
# ============================================================

def build_config(args: argparse.Namespace, settings: dict) -> PipelineConfig:
    """Merge YAML settings with command-line overrides."""
    config = config_from_dict(settings)

    feather_overrides = {}
    if args.blur_radius is not None:
        feather_overrides["blur_radius"] = args.blur_radius
    if args.gamma is not None:
        feather_overrides["gamma"] = args.gamma
    if args.epsilon is not None:
        feather_overrides["alpha_epsilon"] = args.epsilon
    if feather_overrides:
        config = replace(config, feathering=replace(config.feathering, **feather_overrides))

    if args.workers is not None:
        config = replace(config, workers=args.workers)
    if args.model is not None:
        config = replace(config, model=replace(config.model, model_id=args.model))
    if args.device is not None:
        config = replace(config, model=replace(config.model, device=args.device))

    return config


def default_output_path(input_path: Path) -> Path:
    """photo.jpg -> photo_cutout.png next to the input."""
    return input_path.with_name(f"{input_path.stem}_cutout.png")


def _log_progress(stage: str, percent: int):
    logger.info(f"[{percent:3d}%] {stage}")


# ============================================================
# ENTRY POINT
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Remove image backgrounds using a segmentation model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("input", type=str, help="Input image path")

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output PNG path (default: <input>_cutout.png)",
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--backend",
        type=str,
        default="transformers",
        choices=list_backends(),
        help="Segmentation backend (default: transformers)",
    )

    parser.add_argument("--model", type=str, default=None, help="Model id override")
    parser.add_argument("--device", type=str, default=None, help="Inference device (cuda, mps, cpu)")

    parser.add_argument("--blur-radius", type=float, default=None, help="Feather blur radius in pixels")
    parser.add_argument("--gamma", type=float, default=None, help="Alpha falloff exponent")
    parser.add_argument("--epsilon", type=int, default=None, help="Alpha snap-to-zero threshold (0-255)")
    parser.add_argument("--workers", type=int, default=None, help="Row bands processed in parallel")

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, else INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns a process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
        logging_config = logging_config_from_dict(settings.get("logging"))
        setup_logging(
            args.log_level or logging_config.level,
            args.log_file or logging_config.file,
        )
        config = build_config(args, settings)
    except ConfigError as e:
        setup_logging("ERROR")
        logger.error(f"Invalid configuration: {e}")
        return 2

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input image not found: {input_path}")
        return 2

    output_path = Path(args.output) if args.output else default_output_path(input_path)

    pipeline = BackgroundRemovalPipeline.from_config(config, backend_name=args.backend)
    try:
        pipeline.process_file(input_path, output_path, CallbackSink(_log_progress))
    except CutoutError as e:
        logger.error(f"Background removal failed: {e}")
        return 1
    finally:
        pipeline.session.drop()

    return 0
