"""Memoized 1-D Gaussian kernels shared by every blur invocation."""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from ...core.config import validate_sigma, validate_whole_number
from ...core.errors import InvalidParameter

LOGGER = logging.getLogger("texture_pipeline.filters.kernel_cache")

WEIGHT_SUM_EPSILON = 1e-5

KernelKey = Tuple[float, int]


@dataclass(frozen=True, eq=False)
class Kernel:
    """Normalized Gaussian weights for a given ``(sigma, size)`` pair."""

    sigma: float
    size: int
    weights: np.ndarray

    @property
    def half_width(self) -> int:
        return self.size // 2

    def __len__(self) -> int:
        return self.size


def kernel_size_for_sigma(sigma: float) -> int:
    """Return ``max(3, ceil(6 * sigma))`` rounded up to the next odd value."""

    size = max(3, int(math.ceil(6.0 * float(sigma))))
    return size + 1 if size % 2 == 0 else size


def build_gaussian_kernel(sigma: float, size: int) -> np.ndarray:
    if sigma <= 0 or not math.isfinite(sigma):
        raise InvalidParameter(f"Kernel sigma must be positive, got {sigma!r}")
    if size < 1:
        raise InvalidParameter(f"Kernel size must be at least 1, got {size!r}")

    center = size // 2
    offsets = np.arange(size, dtype=np.float64) - center
    weights = np.exp(-(offsets * offsets) / (2.0 * sigma * sigma))
    total = float(weights.sum())
    if total < WEIGHT_SUM_EPSILON:
        weights = np.full(size, 1.0 / size, dtype=np.float64)
    else:
        weights = weights / total
    weights.setflags(write=False)
    return weights


class KernelCache:
    """Thread-safe compute-once cache of Gaussian kernels keyed by ``(sigma, size)``."""

    def __init__(self) -> None:
        self._kernels: Dict[KernelKey, Kernel] = {}
        self._lock = threading.Lock()
        self.generated = 0
        self.hits = 0

    def get_kernel(self, sigma: float, size: int) -> Kernel:
        key: KernelKey = (validate_sigma(sigma), validate_whole_number(size, "kernel size"))
        with self._lock:
            kernel = self._kernels.get(key)
            if kernel is not None:
                self.hits += 1
                return kernel
            weights = build_gaussian_kernel(*key)
            kernel = Kernel(sigma=key[0], size=key[1], weights=weights)
            self._kernels[key] = kernel
            self.generated += 1
        LOGGER.debug("Generated Gaussian kernel sigma=%s size=%s", key[0], key[1])
        return kernel

    def clear(self) -> None:
        with self._lock:
            self._kernels.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._kernels

    def __len__(self) -> int:
        with self._lock:
            return len(self._kernels)
