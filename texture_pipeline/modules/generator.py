"""Orchestration of the height and normal map stages."""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Mapping, Optional

from ..core.buffers import PixelBuffer, require_pixel_buffer
from ..core.config import GeneratorConfig, build_config
from .filters.kernel_cache import KernelCache
from .height.dog_height import generate_height
from .normal.gradient import compute_gradient
from .normal.normal_map import synthesize

LOGGER = logging.getLogger("texture_pipeline.generator")


class TextureMapGenerator:
    """Generate height and normal maps while sharing one kernel cache.

    The generator holds no per-image state: every call recomputes its maps
    from the buffer it is given. Only Gaussian kernels persist, until
    :meth:`clear_cache` is called.
    """

    def __init__(
        self,
        config: GeneratorConfig | Mapping[str, object] | None = None,
        *,
        max_workers: Optional[int] = None,
        cache: Optional[KernelCache] = None,
    ) -> None:
        if isinstance(config, GeneratorConfig):
            self.config = config
        else:
            self.config = build_config(config)
        self.max_workers = max_workers if max_workers is not None else self.config.threads
        self.cache = cache if cache is not None else KernelCache()

    def generate_height(self, image: PixelBuffer, *, cancel_event: Optional[threading.Event] = None) -> PixelBuffer:
        cfg = self.config
        return generate_height(
            image,
            cfg.sigma1,
            cfg.sigma2,
            cfg.threshold,
            cfg.height_scale,
            cache=self.cache,
            max_workers=self.max_workers,
            cancel_event=cancel_event,
        )

    def generate_normal(self, height: PixelBuffer, *, cancel_event: Optional[threading.Event] = None) -> PixelBuffer:
        gradients = compute_gradient(
            height,
            self.config.gradient_method,
            self.config.strength,
            max_workers=self.max_workers,
            cancel_event=cancel_event,
        )
        return synthesize(gradients, max_workers=self.max_workers, cancel_event=cancel_event)

    def generate_maps(self, image: PixelBuffer, *, cancel_event: Optional[threading.Event] = None) -> Dict[str, object]:
        """Run every stage in order and return the maps with timing diagnostics."""

        source = require_pixel_buffer(image, "generate_maps")
        maps: Dict[str, PixelBuffer] = {}
        timings: Dict[str, float] = {}

        started = time.perf_counter()
        maps["height"] = self.generate_height(source, cancel_event=cancel_event)
        timings["height"] = time.perf_counter() - started

        if self.config.generate_normal:
            started = time.perf_counter()
            maps["normal"] = self.generate_normal(maps["height"], cancel_event=cancel_event)
            timings["normal"] = time.perf_counter() - started

        LOGGER.info(
            "Generated %s for %dx%d image in %.3fs",
            ", ".join(maps),
            source.width,
            source.height,
            sum(timings.values()),
        )
        return {"maps": maps, "config": self.config.as_dict(), "timings": timings}

    def clear_cache(self) -> None:
        LOGGER.debug("Clearing %d cached kernels", len(self.cache))
        self.cache.clear()

    def dispose(self) -> None:
        self.clear_cache()


__all__ = ["TextureMapGenerator"]
