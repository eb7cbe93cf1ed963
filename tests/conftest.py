"""Shared pytest fixtures for pneumonia_classifier tests."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image


def encode_image(color, size=(64, 64), fmt="JPEG", mode="RGB") -> bytes:
    """Encode a solid-colour image to bytes."""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


def write_image_tree(
    root: Path,
    counts: dict[str, int],
    colors: dict[str, object],
    size=(64, 64),
    suffix=".jpeg",
) -> Path:
    """Write ``root/<class>/img_<i><suffix>`` solid-colour JPEGs."""
    for label, n in counts.items():
        d = root / label
        d.mkdir(parents=True, exist_ok=True)
        for i in range(n):
            (d / f"img_{i:03d}{suffix}").write_bytes(encode_image(colors[label], size))
    return root


@pytest.fixture()
def make_image():
    """Solid-colour image encoder: ``make_image(color, size, fmt, mode)``."""
    return encode_image


@pytest.fixture()
def write_tree():
    """Image-tree writer: ``write_tree(root, counts, colors, ...)``."""
    return write_image_tree


@pytest.fixture()
def rng():
    """Deterministic random generator."""
    return np.random.default_rng(42)


@pytest.fixture()
def image_tree(tmp_path):
    """10 images: 5 white NORMAL, 5 black PNEUMONIA."""
    return write_image_tree(
        tmp_path / "images",
        counts={"NORMAL": 5, "PNEUMONIA": 5},
        colors={"NORMAL": "white", "PNEUMONIA": "black"},
    )


@pytest.fixture()
def local_config(tmp_path, image_tree):
    """Config for the local engine reading ``image_tree``."""
    from pneumonia_classifier.config import PipelineConfig

    return PipelineConfig(
        paths={
            "input_path": str(image_tree),
            "model_path": str(tmp_path / "models" / "pneumonia_classifier"),
            "output_dir": str(tmp_path / "output"),
        },
        engine={"backend": "local", "n_workers": 2},
    )
