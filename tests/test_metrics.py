"""Tests for classification metrics (eval/metrics.py)."""

from __future__ import annotations

import pytest

from pneumonia_classifier.eval.metrics import accuracy, confusion_counts


def test_accuracy_perfect():
    assert accuracy([0.0, 1.0, 1.0], [0.0, 1.0, 1.0]) == 1.0


def test_accuracy_fraction():
    assert accuracy([0, 1, 1, 0], [0, 1, 0, 1]) == pytest.approx(0.5)


def test_accuracy_empty():
    with pytest.raises(ValueError, match="empty test partition"):
        accuracy([], [])


def test_accuracy_shape_mismatch():
    with pytest.raises(ValueError, match="Shape mismatch"):
        accuracy([0, 1], [0])


def test_confusion_counts():
    cm = confusion_counts([0.0, 0.0, 1.0, 1.0], [0.0, 1.0, 1.0, 1.0], ["NORMAL", "PNEUMONIA"])
    assert cm.index.name == "actual"
    assert cm.columns.name == "predicted"
    assert cm.loc["NORMAL", "NORMAL"] == 1
    assert cm.loc["NORMAL", "PNEUMONIA"] == 1
    assert cm.loc["PNEUMONIA", "PNEUMONIA"] == 2
    assert cm.loc["PNEUMONIA", "NORMAL"] == 0


def test_confusion_counts_unlabeled_name():
    cm = confusion_counts([0, 1], [0, 1], ["", "NORMAL"])
    assert list(cm.index) == ["<unlabeled>", "NORMAL"]
