"""Generate height maps from a Difference of Gaussians."""
from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from ...core.buffers import OPAQUE, PixelBuffer, require_pixel_buffer
from ...core.errors import InvalidInput
from ...core.config import (
    DEFAULT_HEIGHT_SCALE,
    DEFAULT_SIGMA1,
    DEFAULT_SIGMA2,
    DEFAULT_THRESHOLD,
    validate_finite,
    validate_sigma,
)
from ..filters.kernel_cache import KernelCache
from ..filters.separable_blur import blur

LOGGER = logging.getLogger("texture_pipeline.height.dog")

NEUTRAL_HEIGHT = 128.0


def difference_of_gaussians(first: PixelBuffer, second: PixelBuffer) -> PixelBuffer:
    """Per-channel absolute difference of two blurred buffers with opaque alpha."""

    if first.data.shape != second.data.shape:
        raise InvalidInput(f"DoG inputs differ in shape: {first.data.shape} vs {second.data.shape}")
    result = np.empty_like(first.data)
    result[..., :3] = np.abs(first.rgb - second.rgb)
    result[..., 3] = OPAQUE
    return PixelBuffer(result)


def apply_height_policy(dog_values: np.ndarray, threshold: float, height_scale: float) -> np.ndarray:
    """Map scalar DoG values to heights.

    Values whose magnitude is strictly above *threshold* become
    ``clamp(128 + dog * height_scale, 0, 255)``; everything else is the
    neutral height 128.
    """

    dog = np.asarray(dog_values, dtype=np.float64)
    scaled = np.clip(NEUTRAL_HEIGHT + dog * height_scale, 0.0, 255.0)
    return np.where(np.abs(dog) > threshold, scaled, NEUTRAL_HEIGHT)


def generate_height(
    image: PixelBuffer,
    sigma1: float = DEFAULT_SIGMA1,
    sigma2: float = DEFAULT_SIGMA2,
    threshold: float = DEFAULT_THRESHOLD,
    height_scale: float = DEFAULT_HEIGHT_SCALE,
    *,
    cache: Optional[KernelCache] = None,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PixelBuffer:
    """Build a grayscale height map (RGB = height, A = 255) from *image*.

    Both blurs start from the original image rather than being chained, so
    ``sigma1 == sigma2`` yields an exactly zero DoG and a uniform 128 map.
    """

    source = require_pixel_buffer(image, "generate_height")
    sigma1 = validate_sigma(sigma1, "sigma1")
    sigma2 = validate_sigma(sigma2, "sigma2")
    threshold = validate_finite(threshold, "threshold")
    height_scale = validate_finite(height_scale, "height_scale")
    cache = cache if cache is not None else KernelCache()

    fine = blur(source, sigma1, cache=cache, max_workers=max_workers, cancel_event=cancel_event)
    coarse = blur(source, sigma2, cache=cache, max_workers=max_workers, cancel_event=cancel_event)
    dog = difference_of_gaussians(fine, coarse)
    dog_value = dog.rgb.astype(np.float64).mean(axis=2)

    heights = apply_height_policy(dog_value, threshold, height_scale)
    output = np.empty_like(source.data)
    # heights are stored as whole byte levels so later stages see what gets saved
    output[..., :3] = np.clip(np.rint(heights), 0.0, 255.0)[..., None]
    output[..., 3] = OPAQUE

    LOGGER.debug(
        "Height map %dx%d: sigma1=%s sigma2=%s threshold=%s scale=%s, %d pixels above threshold",
        source.width,
        source.height,
        sigma1,
        sigma2,
        threshold,
        height_scale,
        int(np.count_nonzero(np.abs(dog_value) > threshold)),
    )
    return PixelBuffer(output)


class DoGHeightExtractor:
    """Height extraction bound to a kernel cache and a fixed parameter set."""

    def __init__(
        self,
        sigma1: float = DEFAULT_SIGMA1,
        sigma2: float = DEFAULT_SIGMA2,
        threshold: float = DEFAULT_THRESHOLD,
        height_scale: float = DEFAULT_HEIGHT_SCALE,
        *,
        cache: Optional[KernelCache] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.sigma1 = validate_sigma(sigma1, "sigma1")
        self.sigma2 = validate_sigma(sigma2, "sigma2")
        self.threshold = validate_finite(threshold, "threshold")
        self.height_scale = validate_finite(height_scale, "height_scale")
        self.cache = cache if cache is not None else KernelCache()
        self.max_workers = max_workers

    def __call__(self, image: PixelBuffer, *, cancel_event: Optional[threading.Event] = None) -> PixelBuffer:
        return generate_height(
            image,
            self.sigma1,
            self.sigma2,
            self.threshold,
            self.height_scale,
            cache=self.cache,
            max_workers=self.max_workers,
            cancel_event=cancel_event,
        )
