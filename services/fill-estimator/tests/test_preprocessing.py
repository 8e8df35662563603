"""Tests for the image preparation pipeline."""

import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from preprocessing import _decode, _downscale, _encode, preprocess


class TestDecode:
    def test_valid_jpeg(self, sample_image_bytes: bytes):
        img = _decode(sample_image_bytes)
        assert img is not None
        assert img.ndim == 3
        assert img.shape[2] == 3  # BGR

    def test_invalid_bytes(self, invalid_bytes: bytes):
        assert _decode(invalid_bytes) is None

    def test_empty_bytes(self):
        assert _decode(b"") is None


class TestDownscale:
    def test_landscape_longest_side_capped(self):
        img = np.ones((1500, 3000, 3), dtype=np.uint8)
        result = _downscale(img, 1000)
        assert result.shape == (500, 1000, 3)

    def test_portrait_longest_side_capped(self):
        img = np.ones((3000, 1500, 3), dtype=np.uint8)
        result = _downscale(img, 1000)
        assert result.shape == (1000, 500, 3)

    def test_small_image_untouched(self):
        img = np.ones((300, 200, 3), dtype=np.uint8)
        result = _downscale(img, 1000)
        assert result is img

    def test_non_positive_limit_disables(self):
        img = np.ones((3000, 1500, 3), dtype=np.uint8)
        assert _downscale(img, 0) is img


class TestEncode:
    def test_encode_success(self):
        img = np.ones((100, 100, 3), dtype=np.uint8) * 128
        result = _encode(img, quality=90, fallback=b"fallback")
        # JPEG magic bytes
        assert result[:3] == b"\xff\xd8\xff"

    def test_encode_fallback_on_failure(self):
        """Empty array should fail to encode, falling back."""
        img = np.array([], dtype=np.uint8)
        result = _encode(img, quality=90, fallback=b"fallback")
        assert result == b"fallback"


class TestFullPipeline:
    def test_valid_image_processed(self, sample_image_bytes: bytes):
        result = preprocess(sample_image_bytes, max_dimension=1024, jpeg_quality=90)
        assert isinstance(result, bytes)
        assert result[:3] == b"\xff\xd8\xff"
        img = _decode(result)
        assert img.shape[:2] == (300, 200)

    def test_invalid_bytes_returns_original(self, invalid_bytes: bytes):
        assert preprocess(invalid_bytes) == invalid_bytes

    def test_large_image_downscaled(self, large_image_bytes: bytes):
        result = preprocess(large_image_bytes, max_dimension=1024)
        img = _decode(result)
        assert img is not None
        h, w = img.shape[:2]
        assert (h, w) == (768, 1024)
