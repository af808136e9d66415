"""Tests for the central, Sobel and Prewitt gradient stencils."""
from __future__ import annotations

import numpy as np
import pytest

from texture_pipeline.core.buffers import PixelBuffer
from texture_pipeline.core.errors import InvalidInput, InvalidParameter
from texture_pipeline.modules.normal.gradient import GradientOperator, compute_gradient

RAMP = (0.0, 64.0, 128.0, 192.0, 255.0)


def _height_from_values(values: np.ndarray) -> PixelBuffer:
    return PixelBuffer.from_array(np.asarray(values, dtype=np.float32))


@pytest.fixture(scope="module")
def ramp() -> PixelBuffer:
    return _height_from_values(np.tile(np.array(RAMP), (4, 1)))


@pytest.fixture(scope="module")
def random_height() -> PixelBuffer:
    rng = np.random.default_rng(3)
    return _height_from_values(rng.integers(0, 256, size=(6, 7)))


def _clamped(heights: np.ndarray, y: int, x: int) -> float:
    rows, cols = heights.shape
    return float(heights[min(max(y, 0), rows - 1), min(max(x, 0), cols - 1)])


def test_central_ramp_interior(ramp: PixelBuffer) -> None:
    field = compute_gradient(ramp, "central", 1.0)
    assert field.dx[1, 2] == pytest.approx((192.0 / 255.0 - 64.0 / 255.0) / 2.0, abs=1e-6)
    assert field.dx[1, 2] == pytest.approx(0.251, abs=1e-3)
    np.testing.assert_array_equal(field.dy, np.zeros_like(field.dy))


def test_central_border_uses_centre_value(ramp: PixelBuffer) -> None:
    field = compute_gradient(ramp, "central", 1.0)
    assert field.dx[0, 0] == pytest.approx((64.0 / 255.0 - 0.0) / 2.0, abs=1e-6)
    assert field.dx[0, 4] == pytest.approx((255.0 / 255.0 - 192.0 / 255.0) / 2.0, abs=1e-6)


def test_strength_scales_gradient(ramp: PixelBuffer) -> None:
    base = compute_gradient(ramp, "central", 1.0)
    scaled = compute_gradient(ramp, "central", 2.5)
    np.testing.assert_allclose(scaled.dx, base.dx * 2.5, rtol=1e-6)


@pytest.mark.parametrize("method,divisor,centre_weight", [("sobel", 8.0, 2.0), ("prewitt", 6.0, 1.0)])
def test_stencils_match_clamped_reference(random_height: PixelBuffer, method: str, divisor: float, centre_weight: float) -> None:
    heights = random_height.channel(0).astype(np.float64) / 255.0
    field = compute_gradient(random_height, method, 1.7)
    rows, cols = heights.shape
    for y in range(rows):
        for x in range(cols):
            s = lambda dy, dx: _clamped(heights, y + dy, x + dx)  # noqa: E731
            gx = (-s(-1, -1) + s(-1, 1) - centre_weight * s(0, -1) + centre_weight * s(0, 1) - s(1, -1) + s(1, 1)) / divisor
            gy = (-s(-1, -1) - centre_weight * s(-1, 0) - s(-1, 1) + s(1, -1) + centre_weight * s(1, 0) + s(1, 1)) / divisor
            assert field.dx[y, x] == pytest.approx(gx * 1.7, abs=1e-6)
            assert field.dy[y, x] == pytest.approx(gy * 1.7, abs=1e-6)


def test_border_policies_stay_distinct_per_method() -> None:
    values = np.zeros((3, 3))
    values[0, 0] = 255.0
    height = _height_from_values(values)
    assert compute_gradient(height, "central", 1.0).dx[0, 0] == pytest.approx(-0.5)
    assert compute_gradient(height, "sobel", 1.0).dx[0, 0] == pytest.approx(-3.0 / 8.0)
    assert compute_gradient(height, "prewitt", 1.0).dx[0, 0] == pytest.approx(-2.0 / 6.0)


@pytest.mark.parametrize("method", ["central", "sobel", "prewitt"])
def test_flat_height_has_zero_gradient(method: str) -> None:
    field = compute_gradient(PixelBuffer.filled(5, 4, (128, 128, 128)), method, 10.0)
    assert field.width == 5 and field.height == 4
    assert not np.any(field.dx) and not np.any(field.dy)


@pytest.mark.parametrize("method", ["sobel", "prewitt"])
@pytest.mark.parametrize("level", [1, 77, 128, 200, 255])
def test_flat_stencil_gradient_is_exactly_zero(method: str, level: int) -> None:
    field = compute_gradient(PixelBuffer.filled(6, 5, (level, level, level)), method, 10.0)
    assert float(np.abs(field.dx).max()) == 0.0
    assert float(np.abs(field.dy).max()) == 0.0


def test_stencil_divides_summed_taps_once() -> None:
    values = np.zeros((3, 3))
    values[:, 2] = 255.0
    field = compute_gradient(_height_from_values(values), "prewitt", 1.0)
    # interior pixel sees three +1 taps on full height: 3 / 6
    assert field.dx[1, 1] == 0.5
    assert field.dy[1, 1] == 0.0


@pytest.mark.parametrize("method", ["central", "sobel", "prewitt"])
def test_threaded_gradient_matches_serial(random_height: PixelBuffer, method: str) -> None:
    serial = compute_gradient(random_height, method, 1.0)
    threaded = compute_gradient(random_height, method, 1.0, max_workers=3, chunk_rows=2)
    np.testing.assert_array_equal(serial.dx, threaded.dx)
    np.testing.assert_array_equal(serial.dy, threaded.dy)


def test_single_pixel_gradient_is_zero() -> None:
    field = compute_gradient(PixelBuffer.filled(1, 1, (77, 77, 77)), "central", 1.0)
    assert field.dx[0, 0] == 0.0 and field.dy[0, 0] == 0.0


def test_method_names_are_case_insensitive(ramp: PixelBuffer) -> None:
    operator = GradientOperator("Sobel", 1.0)
    assert operator.method == "sobel"
    operator(ramp)


def test_unknown_method(ramp: PixelBuffer) -> None:
    with pytest.raises(InvalidParameter):
        compute_gradient(ramp, "scharr", 1.0)


def test_missing_height() -> None:
    with pytest.raises(InvalidInput):
        compute_gradient(None, "central", 1.0)  # type: ignore[arg-type]
