"""
Grayscale Pixel Feature Extractor
=================================

Turns encoded image bytes into a fixed-length vector of normalized
grayscale intensities: decode → resize (area averaging) → grayscale →
divide by 255 → flatten row-major.

Design Principles:
    - Total function: every byte sequence maps to a vector of exactly
      ``width * height`` floats in [0, 1]; nothing is raised
    - Undecodable input degrades to the all-zero vector so one bad file
      never aborts a large run (zero vectors are still valid samples)
    - Pure and stateless: ``ImageVectorizer`` is a frozen, picklable value
      that can be shipped to any number of Spark executors or threads
    - Smooth resampling only; nearest-neighbour is not offered

Output Layout::

    index = row * width + col      row in [0, height), col in [0, width)
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

TARGET_WIDTH = 128
TARGET_HEIGHT = 128

RESAMPLE_FILTERS = {
    "box": Image.Resampling.BOX,
    "bilinear": Image.Resampling.BILINEAR,
    "hamming": Image.Resampling.HAMMING,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


def decode_image(content: Optional[bytes]) -> Optional[Image.Image]:
    """Decode image bytes into a fully loaded RGB image.

    Returns None for empty, truncated, corrupt or unsupported input.
    """
    if not content:
        return None
    try:
        with Image.open(io.BytesIO(bytes(content))) as img:
            img.load()
            return img.convert("RGB")
    # Pillow surfaces corrupt data through many exception types
    # (OSError, SyntaxError, struct.error, DecompressionBombError, ...).
    except Exception as exc:
        logger.debug("decode_failed | n_bytes=%d error=%s", len(content), exc)
        return None


def image_to_vector(
    content: Optional[bytes],
    width: int = TARGET_WIDTH,
    height: int = TARGET_HEIGHT,
    resample: str = "box",
) -> np.ndarray:
    """Convert encoded image bytes to a normalized grayscale feature vector.

    Parameters
    ----------
    content : bytes or None
        Encoded image (JPEG, PNG, ...).
    width, height : int
        Resize target.
    resample : str
        Key of ``RESAMPLE_FILTERS``.

    Returns
    -------
    np.ndarray, shape (width * height,), float64
        Intensities in [0, 1], row-major. All zeros if decoding failed.
    """
    vector, _ = _vectorize(content, width, height, RESAMPLE_FILTERS[resample])
    return vector


def _vectorize(
    content: Optional[bytes],
    width: int,
    height: int,
    resample_filter: Image.Resampling,
) -> tuple[np.ndarray, bool]:
    img = decode_image(content)
    if img is None:
        return np.zeros(width * height, dtype=np.float64), False

    # "L" is single channel, so the one value per pixel is the gray level
    gray = img.resize((width, height), resample=resample_filter).convert("L")
    pixels = np.asarray(gray, dtype=np.float64)
    return (pixels / 255.0).reshape(-1), True


@dataclass(frozen=True)
class ImageVectorizer:
    """Configured, picklable feature transform.

    Instances are plain values: calling one is equivalent to
    ``image_to_vector(content, width, height, resample)``.
    """

    width: int = TARGET_WIDTH
    height: int = TARGET_HEIGHT
    resample: str = "box"

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Invalid resize target: {self.width}x{self.height}")
        if self.resample not in RESAMPLE_FILTERS:
            raise ValueError(
                f"Unknown resample filter: '{self.resample}'. "
                f"Available: {sorted(RESAMPLE_FILTERS)}"
            )

    @classmethod
    def from_config(cls, features_cfg) -> "ImageVectorizer":
        return cls(
            width=features_cfg.width,
            height=features_cfg.height,
            resample=features_cfg.resample,
        )

    @property
    def feature_dim(self) -> int:
        return self.width * self.height

    @property
    def name(self) -> str:
        return f"gray-{self.width}x{self.height}-{self.resample}"

    def __call__(self, content: Optional[bytes]) -> np.ndarray:
        return self.transform_with_status(content)[0]

    def transform_with_status(self, content: Optional[bytes]) -> tuple[np.ndarray, bool]:
        """Return ``(vector, decoded)``; ``decoded`` is False for the zero fallback."""
        return _vectorize(content, self.width, self.height, RESAMPLE_FILTERS[self.resample])

    def to_list(self, content: Optional[bytes]) -> list[float]:
        """Plain-float variant for serializers that reject numpy arrays."""
        return self(content).tolist()
