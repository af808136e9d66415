"""Integration tests for the texture map generator."""
from __future__ import annotations

import threading

import numpy as np
import pytest

from texture_pipeline.core.buffers import PixelBuffer
from texture_pipeline.core.config import build_config
from texture_pipeline.core.errors import InvalidInput, InvalidParameter, PipelineCancelled
from texture_pipeline.modules.generator import TextureMapGenerator


@pytest.fixture(scope="module")
def sprite() -> PixelBuffer:
    data = np.full((24, 24, 4), (140.0, 160.0, 190.0, 255.0), dtype=np.float32)
    data[8:16, 8:16, :3] = (250.0, 40.0, 30.0)
    return PixelBuffer(data)


@pytest.fixture(scope="module")
def pipeline_result(sprite: PixelBuffer):
    return TextureMapGenerator({"sigma1": 1.0, "sigma2": 2.0, "heightScale": 4.0}).generate_maps(sprite)


@pytest.fixture(scope="module")
def out_maps(pipeline_result):
    return pipeline_result["maps"]


def test_maps_preserve_dimensions(sprite: PixelBuffer, out_maps) -> None:
    assert set(out_maps) == {"height", "normal"}
    for buffer in out_maps.values():
        assert buffer.size == sprite.size
        np.testing.assert_array_equal(buffer.alpha, np.full(buffer.alpha.shape, 255.0, dtype=np.float32))


def test_flat_regions_are_neutral(out_maps) -> None:
    assert out_maps["height"].pixel(0, 0) == (128, 128, 128, 255)
    assert out_maps["normal"].pixel(0, 0) == (127, 127, 255, 255)


def test_square_edges_tilt_normals(out_maps) -> None:
    normal = out_maps["normal"].to_uint8()
    assert np.any(normal[..., 2] < 255)


def test_result_reports_config_and_timings(pipeline_result) -> None:
    assert pipeline_result["config"]["HEIGHT_SCALE"] == 4.0
    assert set(pipeline_result["timings"]) == {"height", "normal"}


def test_normal_consumes_height(sprite: PixelBuffer) -> None:
    generator = TextureMapGenerator()
    height = generator.generate_height(sprite)
    normal = generator.generate_normal(height)
    maps = generator.generate_maps(sprite)["maps"]
    np.testing.assert_array_equal(maps["normal"].data, normal.data)


def test_saved_height_reproduces_normal() -> None:
    rng = np.random.default_rng(11)
    noisy = PixelBuffer.from_array(rng.integers(0, 256, size=(32, 32, 3)))
    generator = TextureMapGenerator({"heightScale": 3.0})
    height = generator.generate_height(noisy)
    np.testing.assert_array_equal(height.data, np.rint(height.data))
    reloaded = PixelBuffer(height.to_uint8())
    np.testing.assert_array_equal(generator.generate_normal(height).data, generator.generate_normal(reloaded).data)


def test_kernels_persist_until_cleared(sprite: PixelBuffer) -> None:
    generator = TextureMapGenerator()
    generator.generate_height(sprite)
    generator.generate_height(sprite)
    assert generator.cache.generated == 2
    generator.clear_cache()
    assert len(generator.cache) == 0


def test_height_only_configuration(sprite: PixelBuffer) -> None:
    result = TextureMapGenerator(build_config({"generate_normal": False})).generate_maps(sprite)
    assert set(result["maps"]) == {"height"}


def test_threaded_generator_matches_serial(sprite: PixelBuffer) -> None:
    serial = TextureMapGenerator({"gradientMethod": "sobel"}).generate_maps(sprite)["maps"]
    threaded = TextureMapGenerator({"gradientMethod": "sobel", "threads": 4}).generate_maps(sprite)["maps"]
    for name in serial:
        np.testing.assert_array_equal(serial[name].data, threaded[name].data)


def test_cancelled_generation_raises(sprite: PixelBuffer) -> None:
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(PipelineCancelled):
        TextureMapGenerator().generate_maps(sprite, cancel_event=cancel)


def test_invalid_configuration_fails_fast() -> None:
    with pytest.raises(InvalidParameter):
        TextureMapGenerator({"gradientMethod": "laplace"})


def test_missing_image_fails_fast() -> None:
    with pytest.raises(InvalidInput):
        TextureMapGenerator().generate_maps(None)  # type: ignore[arg-type]
