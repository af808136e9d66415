"""Height and normal map generation from a single source image."""
from __future__ import annotations

from .core.buffers import GradientField, PixelBuffer, VectorField
from .core.config import GeneratorConfig, build_config
from .core.errors import InvalidInput, InvalidParameter, PipelineCancelled, TexturePipelineError
from .modules.filters.kernel_cache import Kernel, KernelCache
from .modules.filters.separable_blur import SeparableBlur, blur
from .modules.generator import TextureMapGenerator
from .modules.height.dog_height import DoGHeightExtractor, generate_height
from .modules.normal.gradient import GradientOperator, compute_gradient
from .modules.normal.normal_map import NormalSynthesizer, synthesize

__all__ = [
    "DoGHeightExtractor",
    "GeneratorConfig",
    "GradientField",
    "GradientOperator",
    "InvalidInput",
    "InvalidParameter",
    "Kernel",
    "KernelCache",
    "NormalSynthesizer",
    "PipelineCancelled",
    "PixelBuffer",
    "SeparableBlur",
    "TextureMapGenerator",
    "TexturePipelineError",
    "VectorField",
    "blur",
    "build_config",
    "compute_gradient",
    "generate_height",
    "synthesize",
]
