"""
Classification metrics: accuracy and confusion counts.

Accuracy is the fraction of records whose predicted label index equals
the actual label index; this matches Spark's
``MulticlassClassificationEvaluator(metricName="accuracy")``.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)


def accuracy(y_true: Sequence[float], y_pred: Sequence[float]) -> float:
    """Fraction of exact matches between actual and predicted labels.

    Raises
    ------
    ValueError
        On empty input or mismatched lengths.
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape != y_pred.shape:
        raise ValueError(f"Shape mismatch: true={y_true.shape}, pred={y_pred.shape}")
    if y_true.size == 0:
        raise ValueError("Cannot compute accuracy on an empty test partition")
    return float(accuracy_score(y_true, y_pred))


def confusion_counts(
    y_true: Sequence[float],
    y_pred: Sequence[float],
    labels: Sequence[str],
) -> pd.DataFrame:
    """Confusion matrix as a labeled DataFrame (rows = actual, cols = predicted).

    ``y_true`` / ``y_pred`` hold label *indices*; ``labels[i]`` names index i.
    """
    indices = list(range(len(labels)))
    cm = confusion_matrix(
        np.asarray(y_true).astype(int), np.asarray(y_pred).astype(int), labels=indices
    )
    names = [label or "<unlabeled>" for label in labels]
    return pd.DataFrame(
        cm,
        index=pd.Index(names, name="actual"),
        columns=pd.Index(names, name="predicted"),
    )
