"""Tests for run artifact persistence (io/artifacts.py)."""

from __future__ import annotations

import json

import numpy as np
import pytest

from pneumonia_classifier.config import build_provenance, default_config
from pneumonia_classifier.io.artifacts import get_run_dir, load_run_artifacts, save_run_artifacts


def test_save_and_load(tmp_path):
    cfg = default_config()
    metrics = {"accuracy": np.float64(1.0), "n_train": np.int64(7), "sizes": np.array([7, 3])}
    run_dir = save_run_artifacts(
        tmp_path, metrics, build_provenance(cfg),
        config_snapshot=json.loads(cfg.model_dump_json()), run_id="run1",
    )
    assert run_dir == tmp_path / "runs" / "run1"

    loaded = load_run_artifacts(run_dir)
    assert loaded["metrics"] == {"accuracy": 1.0, "n_train": 7, "sizes": [7, 3]}
    assert loaded["provenance"]["engine"] == "spark"
    assert loaded["config"]["split"]["seed"] == 12345


def test_missing_files_are_empty(tmp_path):
    run_dir = get_run_dir(tmp_path, "bare")
    assert load_run_artifacts(run_dir) == {"metrics": {}, "provenance": {}, "config": {}}


def test_missing_run_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_run_artifacts(tmp_path / "runs" / "nope")


def test_default_run_id_is_timestamp(tmp_path):
    run_dir = get_run_dir(tmp_path)
    assert run_dir.parent == tmp_path / "runs"
    assert run_dir.is_dir()
    assert len(run_dir.name) == len("20260101_000000")
