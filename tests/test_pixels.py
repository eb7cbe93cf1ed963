"""Tests for the grayscale pixel feature extractor (features/pixels.py).

Key properties:
  - output length is always width * height (16,384 by default)
  - undecodable input maps to the all-zero vector, never an exception
  - values are gray / 255 in [0, 1], flattened row-major
  - the transform is deterministic and safe to run from many threads
"""

from __future__ import annotations

import io
import pickle
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from PIL import Image

from pneumonia_classifier.features.pixels import (
    TARGET_HEIGHT,
    TARGET_WIDTH,
    ImageVectorizer,
    decode_image,
    image_to_vector,
)

N = TARGET_WIDTH * TARGET_HEIGHT


def _png(array: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(array.astype(np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


class TestDecodeFailures:
    def test_empty_bytes(self):
        v = image_to_vector(b"")
        assert v.shape == (N,)
        assert not v.any()

    def test_none(self):
        assert not image_to_vector(None).any()

    def test_garbage(self, rng):
        v = image_to_vector(rng.integers(0, 256, 4096, dtype=np.uint8).tobytes())
        assert v.shape == (N,)
        assert not v.any()

    def test_truncated_jpeg(self, make_image):
        data = make_image("white", size=(256, 256))
        v = image_to_vector(data[: len(data) // 3])
        assert v.shape == (N,)
        assert not v.any()

    def test_decode_image_returns_none(self):
        assert decode_image(b"not an image") is None

    def test_status_flag(self, make_image):
        vec = ImageVectorizer()
        _, ok = vec.transform_with_status(b"\x00\x01")
        assert ok is False
        _, ok = vec.transform_with_status(make_image("gray"))
        assert ok is True


class TestIntensities:
    @pytest.mark.parametrize("size", [(128, 128), (300, 200), (17, 45), (1024, 768)])
    def test_white_is_one(self, size, make_image):
        v = image_to_vector(make_image("white", size=size))
        assert v.shape == (N,)
        np.testing.assert_allclose(v, 1.0, atol=0.02)

    @pytest.mark.parametrize("size", [(128, 128), (300, 200), (17, 45)])
    def test_black_is_zero(self, size, make_image):
        v = image_to_vector(make_image("black", size=size))
        np.testing.assert_allclose(v, 0.0, atol=0.02)

    def test_range(self, rng):
        noise = rng.integers(0, 256, (90, 140), dtype=np.uint8)
        v = image_to_vector(_png(noise))
        assert v.min() >= 0.0
        assert v.max() <= 1.0
        assert v.dtype == np.float64

    def test_exact_gray_levels(self):
        arr = np.full((128, 128), 51, dtype=np.uint8)
        v = image_to_vector(_png(arr))
        np.testing.assert_allclose(v, 51 / 255.0)

    def test_grayscale_png_mode(self, make_image):
        data = make_image(200, size=(40, 40), fmt="PNG", mode="L")
        np.testing.assert_allclose(image_to_vector(data), 200 / 255.0)


class TestLayout:
    def test_row_major_top_half(self):
        arr = np.zeros((128, 128), dtype=np.uint8)
        arr[:64, :] = 255
        v = image_to_vector(_png(arr))
        half = 64 * 128
        np.testing.assert_allclose(v[:half], 1.0)
        np.testing.assert_allclose(v[half:], 0.0)

    def test_row_major_left_half(self):
        arr = np.zeros((128, 128), dtype=np.uint8)
        arr[:, :64] = 255
        img = image_to_vector(_png(arr)).reshape(128, 128)
        np.testing.assert_allclose(img[:, :64], 1.0)
        np.testing.assert_allclose(img[:, 64:], 0.0)

    def test_area_averaging_downscale(self):
        # 2x2 checkerboard blocks average to mid-gray under a box filter
        arr = np.indices((256, 256)).sum(axis=0) % 2 * 255
        v = image_to_vector(_png(arr))
        np.testing.assert_allclose(v, 127.5 / 255.0, atol=0.01)

    def test_custom_size(self, make_image):
        vec = ImageVectorizer(width=32, height=16)
        v = vec(make_image("white", size=(100, 100)))
        assert v.shape == (32 * 16,)
        assert vec.feature_dim == 512


class TestVectorizer:
    def test_deterministic(self, rng):
        data = _png(rng.integers(0, 256, (200, 150), dtype=np.uint8))
        vec = ImageVectorizer()
        np.testing.assert_array_equal(vec(data), vec(data))

    def test_concurrent_matches_serial(self, rng):
        payloads = [_png(rng.integers(0, 256, (60, 60), dtype=np.uint8)) for _ in range(12)]
        vec = ImageVectorizer()
        serial = [vec(p) for p in payloads]
        with ThreadPoolExecutor(max_workers=4) as pool:
            parallel = list(pool.map(vec, payloads))
        for a, b in zip(serial, parallel):
            np.testing.assert_array_equal(a, b)

    def test_picklable(self):
        vec = ImageVectorizer(width=64, height=64, resample="bicubic")
        clone = pickle.loads(pickle.dumps(vec))
        assert clone == vec

    def test_to_list(self):
        out = ImageVectorizer(width=4, height=4).to_list(b"")
        assert out == [0.0] * 16
        assert all(isinstance(x, float) for x in out)

    def test_invalid_size(self):
        with pytest.raises(ValueError, match="resize target"):
            ImageVectorizer(width=0)

    def test_unknown_filter(self):
        with pytest.raises(ValueError, match="nearest"):
            ImageVectorizer(resample="nearest")

    def test_from_config(self):
        from pneumonia_classifier.config import FeaturesConfig

        vec = ImageVectorizer.from_config(FeaturesConfig(width=8, height=4, resample="lanczos"))
        assert (vec.width, vec.height, vec.resample) == (8, 4, "lanczos")
        assert vec.name == "gray-8x4-lanczos"
