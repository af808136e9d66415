"""Generate tangent-space normal maps from gradient fields."""
from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from ...core.buffers import OPAQUE, GradientField, PixelBuffer, VectorField
from ...core.errors import InvalidInput
from ...core.utils_parallel import DEFAULT_CHUNK_ROWS, run_row_chunks

LOGGER = logging.getLogger("texture_pipeline.normal.synthesis")

SURFACE_Z = 1.0


def _require_gradients(gradients: object) -> GradientField:
    if gradients is None:
        raise InvalidInput("synthesize received no gradient field")
    if not isinstance(gradients, GradientField):
        raise InvalidInput(f"synthesize expects a GradientField, got {type(gradients).__name__}")
    return gradients


def lift_gradients(gradients: GradientField) -> VectorField:
    """Form ``(dx, dy, 1)`` for every pixel."""

    field = _require_gradients(gradients)
    vectors = np.empty((field.height, field.width, 3), dtype=np.float32)
    vectors[..., 0] = field.dx
    vectors[..., 1] = field.dy
    vectors[..., 2] = SURFACE_Z
    return VectorField(vectors)


def normalize_vectors(field: VectorField) -> VectorField:
    """Scale every vector to unit length; zero-length vectors are left untouched."""

    vectors = field.vectors.astype(np.float64)
    length = np.sqrt(np.sum(vectors * vectors, axis=2, keepdims=True))
    length = np.where(length == 0.0, 1.0, length)
    return VectorField(vectors / length)


def encode_normals(
    field: VectorField,
    *,
    max_workers: Optional[int] = None,
    chunk_rows: int = DEFAULT_CHUNK_ROWS,
    cancel_event: Optional[threading.Event] = None,
) -> PixelBuffer:
    """Encode ``[-1, 1]`` components as ``floor(clamp(c * 0.5 + 0.5, 0, 1) * 255)``."""

    vectors = field.vectors
    output = np.empty((field.height, field.width, 4), dtype=np.float32)

    def _encode(start: int, stop: int) -> None:
        unit = np.clip(vectors[start:stop].astype(np.float64) * 0.5 + 0.5, 0.0, 1.0)
        output[start:stop, :, :3] = np.floor(unit * 255.0)
        output[start:stop, :, 3] = OPAQUE

    run_row_chunks(_encode, field.height, max_workers=max_workers, chunk_rows=chunk_rows, cancel_event=cancel_event)
    return PixelBuffer(output)


def synthesize(
    gradients: GradientField,
    *,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PixelBuffer:
    """Turn a gradient field into an RGBA normal map (R = x, G = y, B = z, A = 255).

    A flat field lifts to ``(0, 0, 1)`` everywhere and encodes to
    ``(127, 127, 255)``.
    """

    vectors = normalize_vectors(lift_gradients(gradients))
    normal = encode_normals(vectors, max_workers=max_workers, cancel_event=cancel_event)
    LOGGER.debug("Synthesized %dx%d normal map", normal.width, normal.height)
    return normal


class NormalSynthesizer:
    """Callable wrapper around :func:`synthesize` with a fixed worker count."""

    def __init__(self, *, max_workers: Optional[int] = None) -> None:
        self.max_workers = max_workers

    def __call__(self, gradients: GradientField, *, cancel_event: Optional[threading.Event] = None) -> PixelBuffer:
        return synthesize(gradients, max_workers=self.max_workers, cancel_event=cancel_event)
