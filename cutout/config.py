"""
Configuration for the background removal pipeline.

Settings come from config/settings.yaml (or a user-supplied YAML file)
and may be overridden from the command line.

Example settings.yaml:
    feathering:
      blur_radius: 2.0
      gamma: 1.5
      alpha_epsilon: 10
    model:
      model_id: mattmdjaga/segformer_b2_clothes
      device: cpu
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Dict, Any

import yaml
from loguru import logger

from cutout.core.errors import ConfigError


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"

RESAMPLE_METHODS = ("auto", "linear", "area", "cubic", "lanczos")

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _require_number(name: str, value, integer: bool = False) -> None:
    """Reject strings, bools and other non-numeric YAML values."""
    allowed = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, allowed):
        expected = "an integer" if integer else "a number"
        raise ConfigError(f"{name} must be {expected}, got {value!r}")
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be finite, got {value!r}")


def _require_optional_str(name: str, value) -> None:
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")


@dataclass(frozen=True)
class FeatherConfig:
    """Feathering parameters.

    Attributes:
        blur_radius: Gaussian blur radius (sigma) in source pixels, 0 disables
        gamma: Falloff exponent applied to the inverted mask
        alpha_epsilon: Alpha values below this are snapped to 0
    """
    blur_radius: float = 2.0
    gamma: float = 1.5
    alpha_epsilon: int = 10

    def __post_init__(self):
        _require_number("blur_radius", self.blur_radius)
        _require_number("gamma", self.gamma)
        _require_number("alpha_epsilon", self.alpha_epsilon, integer=True)

        if self.blur_radius < 0:
            raise ConfigError(f"blur_radius must be >= 0, got {self.blur_radius}")
        if self.gamma <= 0:
            raise ConfigError(f"gamma must be > 0, got {self.gamma}")
        if not 0 <= self.alpha_epsilon <= 255:
            raise ConfigError(f"alpha_epsilon must be in [0, 255], got {self.alpha_epsilon}")


@dataclass(frozen=True)
class ModelConfig:
    """Segmentation backend settings."""
    model_id: str = "mattmdjaga/segformer_b2_clothes"
    revision: Optional[str] = None
    device: Optional[str] = None  # None = let the backend pick
    cache_dir: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.model_id, str) or not self.model_id:
            raise ConfigError(f"model_id must be a non-empty string, got {self.model_id!r}")
        for name in ("revision", "device", "cache_dir"):
            _require_optional_str(name, getattr(self, name))


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the pipeline."""
    feathering: FeatherConfig = field(default_factory=FeatherConfig)
    model: ModelConfig = field(default_factory=ModelConfig)

    # Resampling
    resample_method: str = "auto"

    # Row-band parallelism for pixel stages (1 = single-threaded)
    workers: int = 1

    # PNG zlib level 0-9; any level is lossless
    png_compression: int = 3

    def __post_init__(self):
        _require_number("workers", self.workers, integer=True)
        _require_number("png_compression", self.png_compression, integer=True)

        if self.resample_method not in RESAMPLE_METHODS:
            raise ConfigError(
                f"Unknown resample_method '{self.resample_method}'. "
                f"Available: {', '.join(RESAMPLE_METHODS)}"
            )
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        if not 0 <= self.png_compression <= 9:
            raise ConfigError(f"png_compression must be in [0, 9], got {self.png_compression}")


@dataclass(frozen=True)
class LoggingConfig:
    """Log sink settings. Level names are case-insensitive."""
    level: str = "INFO"
    file: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.level, str) or self.level.upper() not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log level {self.level!r}. Available: {', '.join(LOG_LEVELS)}"
            )
        _require_optional_str("file", self.file)
        object.__setattr__(self, "level", self.level.upper())


def _section(cls, raw: Optional[Dict[str, Any]], name: str):
    """Build a dataclass from a YAML mapping, rejecting unknown keys."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{name}' must be a mapping, got {type(raw).__name__}")

    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {', '.join(sorted(map(str, unknown)))}")
    return cls(**raw)


def config_from_dict(raw: Optional[Dict[str, Any]]) -> PipelineConfig:
    """Build a PipelineConfig from a parsed settings mapping."""
    raw = dict(raw or {})
    pipeline_raw = raw.pop("pipeline", None) or {}
    if not isinstance(pipeline_raw, dict):
        raise ConfigError("Section 'pipeline' must be a mapping")

    feathering = _section(FeatherConfig, raw.pop("feathering", None), "feathering")
    model = _section(ModelConfig, raw.pop("model", None), "model")
    logging_config_from_dict(raw.pop("logging", None))

    # Remaining top-level keys are ignored
    if raw:
        logger.debug(f"Ignoring config sections: {', '.join(sorted(map(str, raw)))}")

    known = {f.name for f in fields(PipelineConfig)} - {"feathering", "model"}
    unknown = set(pipeline_raw) - known
    if unknown:
        raise ConfigError(f"Unknown keys in 'pipeline': {', '.join(sorted(map(str, unknown)))}")

    return PipelineConfig(feathering=feathering, model=model, **pipeline_raw)


def logging_config_from_dict(raw: Optional[Dict[str, Any]]) -> LoggingConfig:
    """Build the logging settings from the 'logging' section."""
    return _section(LoggingConfig, raw, "logging")


def load_settings(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the raw settings mapping from YAML.

    Falls back to config/settings.yaml, then to an empty mapping.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            logger.debug("No settings.yaml found, using defaults")
            return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    logger.debug(f"Loaded settings from {path}")
    return data


def load_config(config_path: Optional[str] = None) -> PipelineConfig:
    """Load and validate pipeline configuration."""
    return config_from_dict(load_settings(config_path))
