"""Immutable image and vector buffers exchanged between pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from PIL import Image

from .errors import InvalidInput

CHANNELS = 4
OPAQUE = 255.0


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """RGBA pixels stored as a read-only ``(H, W, 4)`` float32 array in [0, 255]."""

    data: np.ndarray

    def __post_init__(self) -> None:
        array = self.data
        if not isinstance(array, np.ndarray):
            raise InvalidInput(f"PixelBuffer expects a numpy array, got {type(array).__name__}")
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise InvalidInput(f"PixelBuffer expects shape (H, W, 4), got {array.shape}")
        if array.shape[0] == 0 or array.shape[1] == 0:
            raise InvalidInput(f"PixelBuffer dimensions must be positive, got {array.shape[1]}x{array.shape[0]}")
        if array.dtype != np.float32 or array.flags.writeable:
            array = _freeze(np.array(array, dtype=np.float32, copy=True))
            object.__setattr__(self, "data", array)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        """Return ``(width, height)`` in Pillow order."""

        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self.data[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.data[..., 3]

    def channel(self, index: int) -> np.ndarray:
        return self.data[..., index]

    def to_uint8(self) -> np.ndarray:
        """Round and clamp into an ``(H, W, 4)`` uint8 array."""

        return np.clip(np.rint(self.data), 0.0, 255.0).astype(np.uint8)

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.to_uint8(), mode="RGBA")

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = self.to_uint8()[y, x]
        return int(r), int(g), int(b), int(a)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build a buffer from a grayscale, RGB or RGBA array."""

        if array is None:
            raise InvalidInput("Cannot build a PixelBuffer from None")
        values = np.asarray(array, dtype=np.float32)
        if values.ndim == 2:
            values = np.repeat(values[..., None], 3, axis=2)
        if values.ndim != 3:
            raise InvalidInput(f"Unsupported array shape for PixelBuffer: {values.shape}")
        channels = values.shape[2]
        if channels == 3:
            alpha = np.full(values.shape[:2] + (1,), OPAQUE, dtype=np.float32)
            values = np.concatenate([values, alpha], axis=2)
        elif channels != CHANNELS:
            raise InvalidInput(f"Unsupported channel count: {channels}")
        return cls(np.clip(values, 0.0, 255.0))

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        if image is None:
            raise InvalidInput("Cannot build a PixelBuffer from None")
        rgba = image.convert("RGBA")
        return cls.from_array(np.asarray(rgba, dtype=np.float32))

    @classmethod
    def filled(cls, width: int, height: int, color: Sequence[float]) -> "PixelBuffer":
        """Create a uniform buffer; a 3-component *color* is made opaque."""

        if width <= 0 or height <= 0:
            raise InvalidInput(f"PixelBuffer dimensions must be positive, got {width}x{height}")
        rgba = list(color) + [OPAQUE] * (CHANNELS - len(color))
        values = np.empty((height, width, CHANNELS), dtype=np.float32)
        values[...] = np.asarray(rgba[:CHANNELS], dtype=np.float32)
        return cls(values)


@dataclass(frozen=True, eq=False)
class GradientField:
    """Per-pixel ``(dx, dy)`` pairs already scaled by the gradient strength."""

    dx: np.ndarray
    dy: np.ndarray

    def __post_init__(self) -> None:
        dx = np.asarray(self.dx, dtype=np.float32)
        dy = np.asarray(self.dy, dtype=np.float32)
        if dx.ndim != 2 or dx.shape != dy.shape or dx.size == 0:
            raise InvalidInput(f"GradientField components must share a non-empty 2-D shape, got {dx.shape} and {dy.shape}")
        object.__setattr__(self, "dx", _freeze(dx.copy()))
        object.__setattr__(self, "dy", _freeze(dy.copy()))

    @property
    def width(self) -> int:
        return int(self.dx.shape[1])

    @property
    def height(self) -> int:
        return int(self.dx.shape[0])


@dataclass(frozen=True, eq=False)
class VectorField:
    """Per-pixel 3-vectors stored as an ``(H, W, 3)`` float32 array."""

    vectors: np.ndarray

    def __post_init__(self) -> None:
        vectors = np.asarray(self.vectors, dtype=np.float32)
        if vectors.ndim != 3 or vectors.shape[2] != 3 or vectors.shape[0] == 0 or vectors.shape[1] == 0:
            raise InvalidInput(f"VectorField expects shape (H, W, 3), got {vectors.shape}")
        object.__setattr__(self, "vectors", _freeze(vectors.copy()))

    @property
    def width(self) -> int:
        return int(self.vectors.shape[1])

    @property
    def height(self) -> int:
        return int(self.vectors.shape[0])

    def lengths(self) -> np.ndarray:
        return np.linalg.norm(self.vectors.astype(np.float64), axis=2)


def require_pixel_buffer(image: object, stage: str) -> PixelBuffer:
    """Validate a stage entry point argument."""

    if image is None:
        raise InvalidInput(f"{stage} received no image buffer")
    if not isinstance(image, PixelBuffer):
        raise InvalidInput(f"{stage} expects a PixelBuffer, got {type(image).__name__}")
    return image


__all__ = [
    "CHANNELS",
    "OPAQUE",
    "PixelBuffer",
    "GradientField",
    "VectorField",
    "require_pixel_buffer",
]
