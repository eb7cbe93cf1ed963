"""
Seeded Dataset Splits
=====================

Partitions ``n`` records into disjoint train/test (or k-way) index sets for
the local engine. The Spark engine uses ``DataFrame.randomSplit`` instead.

Design Principles:
    - Same ``(n, ratios, seed)`` → identical partitions, always
    - Ratios are relative weights; they are normalized, not required to sum to 1
    - Partition sizes follow the ratios exactly up to rounding
      (shuffle then cut), so a 10-record 70/30 split is always 7/3
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_ratios(ratios: Sequence[float]) -> np.ndarray:
    """Return ``ratios`` scaled to sum to 1.

    Raises
    ------
    ValueError
        If fewer than two ratios are given or any ratio is not positive.
    """
    weights = np.asarray(ratios, dtype=np.float64)
    if weights.ndim != 1 or weights.size < 2:
        raise ValueError(f"Need at least two split ratios, got {list(ratios)}")
    if np.any(weights <= 0) or not np.all(np.isfinite(weights)):
        raise ValueError(f"Split ratios must be positive and finite: {list(ratios)}")
    return weights / weights.sum()


def random_split(
    n_samples: int,
    ratios: Sequence[float] = (0.7, 0.3),
    seed: int = 12345,
) -> list[np.ndarray]:
    """Randomly partition ``range(n_samples)`` according to ``ratios``.

    Parameters
    ----------
    n_samples : int
        Number of records.
    ratios : sequence of float
        Relative partition weights, e.g. ``(0.7, 0.3)``.
    seed : int
        Seed for ``np.random.default_rng``.

    Returns
    -------
    list[np.ndarray]
        One sorted index array per ratio. Arrays are disjoint and together
        cover ``0..n_samples-1``.
    """
    if n_samples < 0:
        raise ValueError(f"n_samples must be >= 0, got {n_samples}")
    weights = normalize_ratios(ratios)

    rng = np.random.default_rng(seed)
    order = rng.permutation(n_samples)

    bounds = np.rint(np.cumsum(weights) * n_samples).astype(int)
    bounds[-1] = n_samples
    parts = [np.sort(p) for p in np.split(order, bounds[:-1])]

    logger.debug(
        "random_split | n=%d seed=%d sizes=%s",
        n_samples, seed, [len(p) for p in parts],
    )
    return parts
