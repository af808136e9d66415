"""Tests for lifting, normalizing and encoding normal vectors."""
from __future__ import annotations

import numpy as np
import pytest

from texture_pipeline.core.buffers import GradientField, PixelBuffer, VectorField
from texture_pipeline.core.errors import InvalidInput
from texture_pipeline.modules.normal.gradient import compute_gradient
from texture_pipeline.modules.normal.normal_map import (
    NormalSynthesizer,
    encode_normals,
    lift_gradients,
    normalize_vectors,
    synthesize,
)


def _random_gradients(seed: int = 11) -> GradientField:
    rng = np.random.default_rng(seed)
    return GradientField(dx=rng.normal(0.0, 3.0, size=(6, 5)), dy=rng.normal(0.0, 3.0, size=(6, 5)))


@pytest.mark.parametrize("method", ["central", "sobel", "prewitt"])
def test_flat_height_gives_straight_up_normal(method: str) -> None:
    flat = PixelBuffer.filled(6, 4, (128, 128, 128))
    normal = synthesize(compute_gradient(flat, method, 1.0))
    assert normal.size == flat.size
    pixels = {normal.pixel(x, y) for x in range(6) for y in range(4)}
    assert pixels == {(127, 127, 255, 255)}


def test_lift_sets_unit_z() -> None:
    field = lift_gradients(GradientField(dx=np.full((2, 2), 0.5), dy=np.full((2, 2), -0.25)))
    np.testing.assert_allclose(field.vectors[0, 0], [0.5, -0.25, 1.0])


def test_normalized_vectors_have_unit_length() -> None:
    vectors = normalize_vectors(lift_gradients(_random_gradients()))
    np.testing.assert_allclose(vectors.lengths(), 1.0, atol=1e-4)
    assert np.all(vectors.vectors[..., 2] > 0.0)


def test_zero_length_vector_is_left_finite() -> None:
    field = VectorField(np.zeros((1, 2, 3)))
    normalized = normalize_vectors(field)
    assert np.all(np.isfinite(normalized.vectors))
    np.testing.assert_array_equal(normalized.vectors, np.zeros((1, 2, 3)))


def test_encoding_uses_floor_and_clamps() -> None:
    field = VectorField(np.array([[[1.0, -1.0, 0.0], [2.0, -3.0, 0.5]]]))
    encoded = encode_normals(field)
    assert encoded.pixel(0, 0) == (255, 0, 127, 255)
    assert encoded.pixel(1, 0) == (255, 0, 191, 255)


def test_steep_slope_tilts_normal() -> None:
    field = GradientField(dx=np.full((1, 1), 1.0), dy=np.zeros((1, 1)))
    r, g, b, a = synthesize(field).pixel(0, 0)
    component = 1.0 / np.sqrt(2.0)
    assert r == int(np.floor((component * 0.5 + 0.5) * 255))
    assert g == 127
    assert b == int(np.floor((component * 0.5 + 0.5) * 255))
    assert a == 255


def test_threaded_encoding_matches_serial() -> None:
    vectors = normalize_vectors(lift_gradients(_random_gradients()))
    serial = encode_normals(vectors)
    threaded = encode_normals(vectors, max_workers=2, chunk_rows=1)
    np.testing.assert_array_equal(serial.data, threaded.data)


def test_synthesizer_callable() -> None:
    normal = NormalSynthesizer(max_workers=2)(_random_gradients())
    np.testing.assert_array_equal(normal.alpha, np.full((6, 5), 255.0, dtype=np.float32))


def test_missing_gradients() -> None:
    with pytest.raises(InvalidInput):
        synthesize(None)  # type: ignore[arg-type]
