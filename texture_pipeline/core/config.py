"""Configuration module for the texture map generator."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import InvalidParameter

LOGGER = logging.getLogger("texture_pipeline.config")

BASE_DIR = Path(__file__).resolve().parent.parent

PATH_OUTPUT = BASE_DIR / "maps"

DEFAULT_SIGMA1 = 1.0
DEFAULT_SIGMA2 = 2.0
DEFAULT_HEIGHT_SCALE = 1.0
DEFAULT_THRESHOLD = 0.1
DEFAULT_GRADIENT_METHOD = "central"
DEFAULT_STRENGTH = 1.0

STRENGTH_MIN = 0.01
STRENGTH_MAX = 10.0

GRADIENT_METHODS = ("central", "sobel", "prewitt")

# camelCase names used by the external UI layer
_KEY_ALIASES: Dict[str, str] = {
    "sigma1": "sigma1",
    "sigma2": "sigma2",
    "heightScale": "height_scale",
    "height_scale": "height_scale",
    "threshold": "threshold",
    "gradientMethod": "gradient_method",
    "gradient_method": "gradient_method",
    "strength": "strength",
    "threads": "threads",
    "output_path": "output_path",
    "outputPath": "output_path",
    "log_file": "log_file",
    "logFile": "log_file",
    "generate_normal": "generate_normal",
    "generateNormal": "generate_normal",
}


def clamp_strength(value: float) -> float:
    return max(STRENGTH_MIN, min(STRENGTH_MAX, float(value)))


def validate_sigma(value: float, name: str = "sigma") -> float:
    """Return *value* as a float, rejecting non-positive or non-finite sigmas."""

    try:
        sigma = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(sigma) or sigma <= 0.0:
        raise InvalidParameter(f"{name} must be a positive finite number, got {value!r}")
    return sigma


def validate_finite(value: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise InvalidParameter(f"{name} must be finite, got {value!r}")
    return number


def validate_whole_number(value: int, name: str) -> int:
    """Return *value* as an int, rejecting booleans and fractional values."""

    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a whole number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"{name} must be a whole number, got {value!r}") from exc
    if not number.is_integer():
        raise InvalidParameter(f"{name} must be a whole number, got {value!r}")
    return int(number)


def normalize_gradient_method(method: str) -> str:
    if not isinstance(method, str) or method.strip().lower() not in GRADIENT_METHODS:
        raise InvalidParameter(
            f"Unknown gradient method {method!r}; expected one of {', '.join(GRADIENT_METHODS)}"
        )
    return method.strip().lower()


@dataclass(frozen=True)
class GeneratorConfig:
    """Runtime configuration for height and normal map generation."""

    sigma1: float = DEFAULT_SIGMA1
    sigma2: float = DEFAULT_SIGMA2
    height_scale: float = DEFAULT_HEIGHT_SCALE
    threshold: float = DEFAULT_THRESHOLD
    gradient_method: str = DEFAULT_GRADIENT_METHOD
    strength: float = DEFAULT_STRENGTH
    threads: int = 1
    generate_normal: bool = True
    output_path: Path = PATH_OUTPUT
    log_file: Path = BASE_DIR / "processing.log"

    def __post_init__(self) -> None:
        object.__setattr__(self, "sigma1", validate_sigma(self.sigma1, "sigma1"))
        object.__setattr__(self, "sigma2", validate_sigma(self.sigma2, "sigma2"))
        object.__setattr__(self, "height_scale", validate_finite(self.height_scale, "height_scale"))
        object.__setattr__(self, "threshold", validate_finite(self.threshold, "threshold"))
        object.__setattr__(self, "gradient_method", normalize_gradient_method(self.gradient_method))
        object.__setattr__(self, "strength", clamp_strength(validate_finite(self.strength, "strength")))
        object.__setattr__(self, "threads", max(1, validate_whole_number(self.threads, "threads")))
        object.__setattr__(self, "output_path", Path(self.output_path))
        object.__setattr__(self, "log_file", Path(self.log_file))

    def as_dict(self) -> Dict[str, object]:
        """Return the configuration as a plain dictionary."""

        return {
            "SIGMA1": self.sigma1,
            "SIGMA2": self.sigma2,
            "HEIGHT_SCALE": self.height_scale,
            "THRESHOLD": self.threshold,
            "GRADIENT_METHOD": self.gradient_method,
            "STRENGTH": self.strength,
            "THREADS": self.threads,
            "GENERATE_NORMAL": self.generate_normal,
            "PATH_OUTPUT": self.output_path,
            "LOG_FILE": self.log_file,
        }

    def with_overrides(self, overrides: Optional[Mapping[str, object]]) -> "GeneratorConfig":
        return replace(self, **_translate_overrides(overrides))


def _translate_overrides(overrides: Optional[Mapping[str, object]]) -> Dict[str, object]:
    known = {item.name for item in fields(GeneratorConfig)}
    translated: Dict[str, object] = {}
    for key, value in (overrides or {}).items():
        target = _KEY_ALIASES.get(key, key)
        if target not in known:
            LOGGER.debug("Ignoring unrecognized configuration key %r", key)
            continue
        if value is None:
            continue
        translated[target] = value
    return translated


def build_config(overrides: Optional[Mapping[str, object]] = None) -> GeneratorConfig:
    """Create a validated configuration with optional overrides."""

    return GeneratorConfig(**_translate_overrides(overrides))


__all__ = [
    "DEFAULT_GRADIENT_METHOD",
    "DEFAULT_HEIGHT_SCALE",
    "DEFAULT_SIGMA1",
    "DEFAULT_SIGMA2",
    "DEFAULT_STRENGTH",
    "DEFAULT_THRESHOLD",
    "GRADIENT_METHODS",
    "GeneratorConfig",
    "STRENGTH_MAX",
    "STRENGTH_MIN",
    "build_config",
    "clamp_strength",
    "normalize_gradient_method",
    "validate_finite",
    "validate_sigma",
]
