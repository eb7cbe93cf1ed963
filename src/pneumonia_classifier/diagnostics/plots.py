"""
Diagnostic Plots
================

Figures for sanity-checking a training run.

Design Principles:
    - One function per plot, each returns the saved path
    - ``matplotlib.use("Agg")`` so plotting works on headless cluster nodes
    - Dark theme shared by every figure

Figures:
    +-----------------------------+---------------------------------------+
    | Function                    | Content                               |
    +-----------------------------+---------------------------------------+
    | plot_confusion_matrix()     | Test-split confusion matrix           |
    | plot_feature_previews()     | Feature vectors rendered as images    |
    +-----------------------------+---------------------------------------+
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for headless nodes

import matplotlib.pyplot as plt
import numpy as np

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

STYLE: Dict[str, Any] = {
    "figure.facecolor":  "#0e1117",
    "axes.facecolor":    "#161b22",
    "axes.edgecolor":    "#30363d",
    "axes.labelcolor":   "#c9d1d9",
    "text.color":        "#c9d1d9",
    "xtick.color":       "#8b949e",
    "ytick.color":       "#8b949e",
    "font.family":       "monospace",
    "savefig.dpi":       150,
    "savefig.facecolor": "#0e1117",
    "savefig.bbox":      "tight",
}


def _apply_style() -> None:
    plt.rcParams.update(STYLE)


def _ensure_dir(save_dir: str | Path) -> Path:
    d = Path(save_dir)
    d.mkdir(parents=True, exist_ok=True)
    return d


def plot_confusion_matrix(
    true_labels: np.ndarray | list,
    pred_labels: np.ndarray | list,
    class_names: list[str],
    save_dir: str | Path,
    title: str = "Test Split Confusion Matrix",
    filename: str = "confusion_matrix.png",
    normalize: bool = False,
) -> str:
    """
    Confusion matrix of actual vs. predicted class names.

    Args:
        true_labels:  Ground-truth class names.
        pred_labels:  Predicted class names.
        class_names:  Ordered list of class names (label index order).
        save_dir:     Output directory.
        title:        Plot title.
        filename:     Output filename.
        normalize:    If True, normalize rows to proportions.

    Returns:
        Path to saved figure.
    """
    from sklearn.metrics import confusion_matrix

    _apply_style()
    save_dir = _ensure_dir(save_dir)

    cm = confusion_matrix(true_labels, pred_labels, labels=class_names).astype(float)
    if normalize:
        row_sums = cm.sum(axis=1, keepdims=True)
        row_sums[row_sums == 0] = 1
        cm = cm / row_sums

    n = len(class_names)
    fig, ax = plt.subplots(figsize=(max(4.5, n * 1.5), max(4, n * 1.3)))
    vmax = 1 if normalize else max(cm.max(), 1)
    im = ax.imshow(cm, cmap="Blues", vmin=0, vmax=vmax)

    for i in range(n):
        for j in range(n):
            val = cm[i, j]
            text = f"{val:.2f}" if normalize else f"{int(val)}"
            color = "white" if val > vmax / 2 else "#c9d1d9"
            ax.text(j, i, text, ha="center", va="center", fontsize=11, color=color)

    ax.set_xticks(range(n))
    ax.set_yticks(range(n))
    ax.set_xticklabels(class_names, fontsize=10)
    ax.set_yticklabels(class_names, fontsize=10)
    ax.set_xlabel("Predicted", fontsize=11)
    ax.set_ylabel("Actual", fontsize=11)
    ax.set_title(title, fontsize=13, pad=10)
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)

    path = str(save_dir / filename)
    fig.savefig(path)
    plt.close(fig)
    logger.info("plot_saved | path=%s", path)
    return path


def plot_feature_previews(
    vectors: np.ndarray,
    labels: list[str],
    width: int,
    height: int,
    save_dir: str | Path,
    filename: str = "feature_previews.png",
    n_cols: int = 4,
) -> str:
    """
    Render feature vectors back into ``height x width`` grayscale images.

    A quick check that decoding, resizing and row-major flattening
    behave: the previews should look like downsampled X-rays, and an
    all-black tile means the zero-vector decode fallback fired.

    Args:
        vectors:   (n, width * height) array of intensities in [0, 1].
        labels:    Class name per vector, used as tile titles.
        width:     Feature image width.
        height:    Feature image height.
        save_dir:  Output directory.
        filename:  Output filename.
        n_cols:    Tiles per row.

    Returns:
        Path to saved figure.
    """
    vectors = np.atleast_2d(np.asarray(vectors, dtype=float))
    if vectors.shape[1] != width * height:
        raise ValueError(
            f"Vector length {vectors.shape[1]} does not match {width}x{height}"
        )
    if len(labels) != vectors.shape[0]:
        raise ValueError(f"Got {len(labels)} labels for {vectors.shape[0]} vectors")

    _apply_style()
    save_dir = _ensure_dir(save_dir)

    n = vectors.shape[0]
    n_cols = max(1, min(n_cols, n))
    n_rows = math.ceil(n / n_cols)
    fig, axes = plt.subplots(
        n_rows, n_cols, figsize=(2.4 * n_cols, 2.6 * n_rows), squeeze=False
    )

    for k, ax in enumerate(axes.flat):
        ax.axis("off")
        if k >= n:
            continue
        ax.imshow(vectors[k].reshape(height, width), cmap="gray", vmin=0, vmax=1)
        ax.set_title(labels[k], fontsize=9)

    fig.suptitle(f"Feature previews ({width}x{height})", fontsize=12)
    path = str(save_dir / filename)
    fig.savefig(path)
    plt.close(fig)
    logger.info("plot_saved | path=%s", path)
    return path
