"""Two-pass separable Gaussian blur with mirror boundary handling."""
from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from ...core.buffers import PixelBuffer, require_pixel_buffer
from ...core.config import validate_sigma
from ...core.utils_parallel import DEFAULT_CHUNK_ROWS, run_row_chunks
from .kernel_cache import WEIGHT_SUM_EPSILON, KernelCache, kernel_size_for_sigma

LOGGER = logging.getLogger("texture_pipeline.filters.blur")


def mirror_indices(length: int, half_width: int) -> np.ndarray:
    """Return a ``(length, 2 * half_width + 1)`` table of reflected source indices.

    Negative indices are negated and indices past the end reflect as
    ``2 * length - index - 2``. The reflection repeats until every tap lands
    inside ``[0, length)``, and a single-pixel axis maps every tap to 0.
    """

    offsets = np.arange(-half_width, half_width + 1, dtype=np.int64)
    indices = np.arange(length, dtype=np.int64)[:, None] + offsets[None, :]
    if length == 1:
        return np.zeros_like(indices)
    period = 2 * (length - 1)
    indices = np.abs(indices) % period
    return np.where(indices >= length, period - indices, indices)


def _weight_scale(weights: np.ndarray) -> float:
    # every tap is remapped in range, so the used weights are the whole kernel
    total = float(weights.sum())
    return 1.0 / total if total > WEIGHT_SUM_EPSILON else 0.0


def blur(
    image: PixelBuffer,
    sigma: float,
    *,
    cache: Optional[KernelCache] = None,
    max_workers: Optional[int] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    cancel_event: Optional[threading.Event] = None,
) -> PixelBuffer:
    """Blur the RGB channels of *image* with a Gaussian of standard deviation *sigma*.

    The horizontal pass writes into a float32 scratch buffer; the vertical
    pass reads only that completed buffer and clamps into [0, 255]. Alpha is
    copied unchanged from the source.
    """

    source = require_pixel_buffer(image, "blur")
    sigma = validate_sigma(sigma)
    cache = cache if cache is not None else KernelCache()

    size = kernel_size_for_sigma(sigma)
    kernel = cache.get_kernel(sigma, size)
    weights = kernel.weights
    scale = _weight_scale(weights)

    height, width = source.height, source.width
    columns = mirror_indices(width, kernel.half_width)
    rows = mirror_indices(height, kernel.half_width)
    src_rgb = source.rgb
    alpha = source.alpha

    scratch = np.empty((height, width, 3), dtype=np.float32)
    output = np.empty((height, width, 4), dtype=np.float32)

    def _horizontal(start: int, stop: int) -> None:
        block = src_rgb[start:stop]
        acc = np.zeros(block.shape, dtype=np.float64)
        for tap, weight in enumerate(weights):
            acc += weight * block[:, columns[:, tap], :]
        scratch[start:stop] = acc * scale

    def _vertical(start: int, stop: int) -> None:
        acc = np.zeros((stop - start, width, 3), dtype=np.float64)
        for tap, weight in enumerate(weights):
            acc += weight * scratch[rows[start:stop, tap]]
        output[start:stop, :, :3] = np.clip(acc * scale, 0.0, 255.0)
        output[start:stop, :, 3] = alpha[start:stop]

    LOGGER.debug("Blurring %dx%d buffer sigma=%s kernel=%d", width, height, sigma, size)
    run_row_chunks(_horizontal, height, max_workers=max_workers, chunk_rows=chunk_rows, cancel_event=cancel_event)
    run_row_chunks(_vertical, height, max_workers=max_workers, chunk_rows=chunk_rows, cancel_event=cancel_event)

    output.setflags(write=False)
    return PixelBuffer(output)


class SeparableBlur:
    """Blur helper bound to a shared :class:`KernelCache`."""

    def __init__(self, cache: Optional[KernelCache] = None, *, max_workers: Optional[int] = None) -> None:
        self.cache = cache if cache is not None else KernelCache()
        self.max_workers = max_workers

    def __call__(
        self, image: PixelBuffer, sigma: float, *, cancel_event: Optional[threading.Event] = None
    ) -> PixelBuffer:
        return blur(image, sigma, cache=self.cache, max_workers=self.max_workers, cancel_event=cancel_event)
