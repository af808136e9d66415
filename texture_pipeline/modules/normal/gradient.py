"""Gradient estimation over height maps (central difference, Sobel, Prewitt)."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from ...core.buffers import GradientField, PixelBuffer, require_pixel_buffer
from ...core.config import DEFAULT_GRADIENT_METHOD, DEFAULT_STRENGTH, normalize_gradient_method, validate_finite
from ...core.utils_parallel import DEFAULT_CHUNK_ROWS, run_row_chunks

LOGGER = logging.getLogger("texture_pipeline.normal.gradient")

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.int8)
PREWITT_X = np.array([[-1, 0, 1], [-1, 0, 1], [-1, 0, 1]], dtype=np.int8)

# integer taps per axis and the divisor applied once to the summed taps
STENCILS: Dict[str, Tuple[np.ndarray, np.ndarray, float]] = {
    "sobel": (SOBEL_X, SOBEL_X.T.copy(), 8.0),
    "prewitt": (PREWITT_X, PREWITT_X.T.copy(), 6.0),
}

RowKernel = Callable[[int, int], Tuple[np.ndarray, np.ndarray]]


def normalized_heights(height: PixelBuffer) -> np.ndarray:
    """Red channel scaled to [0, 1]; height maps carry the same value in R, G and B."""

    return height.channel(0).astype(np.float64) / 255.0


def _central_rows(heights: np.ndarray) -> RowKernel:
    rows = heights.shape[0]

    def _rows(start: int, stop: int) -> Tuple[np.ndarray, np.ndarray]:
        centre = heights[start:stop]
        left = centre.copy()
        left[:, 1:] = centre[:, :-1]
        right = centre.copy()
        right[:, :-1] = centre[:, 1:]

        # a missing neighbour falls back to the centre sample itself
        top = centre.copy()
        first = max(start, 1)
        top[first - start :] = heights[first - 1 : stop - 1]
        bottom = centre.copy()
        last = min(stop, rows - 1)
        if last > start:
            bottom[: last - start] = heights[start + 1 : last + 1]

        return (right - left) * 0.5, (bottom - top) * 0.5

    return _rows


def _stencil_rows(heights: np.ndarray, kernel_x: np.ndarray, kernel_y: np.ndarray, divisor: float) -> RowKernel:
    padded = np.pad(heights, 1, mode="edge")
    width = heights.shape[1]

    def _apply(kernel: np.ndarray, start: int, stop: int) -> np.ndarray:
        # both sides accumulate the same weights in the same order, so a flat
        # neighbourhood cancels to exactly zero
        positive = np.zeros((stop - start, width), dtype=np.float64)
        negative = np.zeros_like(positive)
        for i in range(3):
            for j in range(3):
                weight = float(kernel[i, j])
                if weight > 0.0:
                    positive += weight * padded[start + i : stop + i, j : j + width]
                elif weight < 0.0:
                    negative -= weight * padded[start + i : stop + i, j : j + width]
        return (positive - negative) / divisor

    def _rows(start: int, stop: int) -> Tuple[np.ndarray, np.ndarray]:
        return _apply(kernel_x, start, stop), _apply(kernel_y, start, stop)

    return _rows


def compute_gradient(
    height: PixelBuffer,
    method: str = DEFAULT_GRADIENT_METHOD,
    strength: float = DEFAULT_STRENGTH,
    *,
    max_workers: Optional[int] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    cancel_event: Optional[threading.Event] = None,
) -> GradientField:
    """Estimate ``(dx, dy)`` for every pixel of *height*, scaled by *strength*.

    ``central`` replaces a missing border neighbour with the centre value,
    while ``sobel`` and ``prewitt`` clamp sample coordinates to the image.
    """

    source = require_pixel_buffer(height, "compute_gradient")
    method = normalize_gradient_method(method)
    strength = validate_finite(strength, "strength")

    heights = normalized_heights(source)
    if method == "central":
        row_kernel = _central_rows(heights)
    else:
        row_kernel = _stencil_rows(heights, *STENCILS[method])

    dx = np.empty(heights.shape, dtype=np.float32)
    dy = np.empty(heights.shape, dtype=np.float32)

    def _fill(start: int, stop: int) -> None:
        gx, gy = row_kernel(start, stop)
        dx[start:stop] = gx * strength
        dy[start:stop] = gy * strength

    run_row_chunks(_fill, heights.shape[0], max_workers=max_workers, chunk_rows=chunk_rows, cancel_event=cancel_event)
    LOGGER.debug("Computed %s gradients for %dx%d height map (strength=%s)", method, source.width, source.height, strength)
    return GradientField(dx=dx, dy=dy)


class GradientOperator:
    """Callable wrapper selecting a gradient method and strength once."""

    def __init__(
        self,
        method: str = DEFAULT_GRADIENT_METHOD,
        strength: float = DEFAULT_STRENGTH,
        *,
        max_workers: Optional[int] = None,
    ) -> None:
        self.method = normalize_gradient_method(method)
        self.strength = validate_finite(strength, "strength")
        self.max_workers = max_workers

    def __call__(self, height: PixelBuffer, *, cancel_event: Optional[threading.Event] = None) -> GradientField:
        return compute_gradient(
            height,
            self.method,
            self.strength,
            max_workers=self.max_workers,
            cancel_event=cancel_event,
        )
