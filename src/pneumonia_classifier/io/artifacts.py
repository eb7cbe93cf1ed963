"""
Run Artifact Persistence
========================

Saves and loads the small, human-readable side products of a training run:
metrics, provenance and the config snapshot. The model itself is written
by the engine in its native format (see ``PipelineEngine.save_model``).

Design Principles:
    - JSON for metrics and provenance (human-readable, git-diffable)
    - YAML snapshot of the exact config used for each run
    - One timestamped directory per run, never overwritten

Output Layout::

    output_dir/runs/<YYYYmmdd_HHMMSS>/
        metrics.json
        provenance.json
        config.yaml
        confusion_matrix.png   [--plots]
        feature_previews.png   [--plots]
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import numpy as np
import yaml

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)


def get_run_dir(output_dir: Path, run_id: Optional[str] = None) -> Path:
    """Create and return ``output_dir/runs/<run_id>``.

    ``run_id`` defaults to the current local timestamp.
    """
    if run_id is None:
        run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(output_dir) / "runs" / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def save_run_artifacts(
    output_dir: Path,
    metrics: dict,
    provenance: dict,
    config_snapshot: Optional[dict] = None,
    run_id: Optional[str] = None,
) -> Path:
    """Save metrics, provenance and config for one run.

    Parameters
    ----------
    output_dir : Path
        Root output directory.
    metrics : dict
        Evaluation metrics (numpy scalars are converted).
    provenance : dict
        Provenance metadata from ``build_provenance``.
    config_snapshot : dict or None
        Config to save as YAML.
    run_id : str or None
        Directory name under ``runs/``; defaults to a timestamp.

    Returns
    -------
    Path
        The run directory.
    """
    run_dir = get_run_dir(output_dir, run_id)

    _save_json(run_dir / "metrics.json", _make_serializable(metrics))
    _save_json(run_dir / "provenance.json", provenance)

    if config_snapshot is not None:
        with open(run_dir / "config.yaml", "w") as f:
            yaml.dump(config_snapshot, f, default_flow_style=False, sort_keys=False)

    logger.info("Saved run artifacts: %s", run_dir)
    return run_dir


def load_run_artifacts(run_dir: Path) -> dict:
    """Load the artifacts written by ``save_run_artifacts``.

    Returns
    -------
    dict with keys 'metrics', 'provenance', 'config' (missing files → {}).
    """
    run_dir = Path(run_dir)
    if not run_dir.exists():
        raise FileNotFoundError(f"Run directory not found: {run_dir}")

    result: dict[str, Any] = {}
    for key, name in (("metrics", "metrics.json"), ("provenance", "provenance.json")):
        path = run_dir / name
        if path.exists():
            with open(path) as f:
                result[key] = json.load(f)
        else:
            result[key] = {}

    cfg_path = run_dir / "config.yaml"
    if cfg_path.exists():
        with open(cfg_path) as f:
            result["config"] = yaml.safe_load(f) or {}
    else:
        result["config"] = {}
    return result


def _save_json(path: Path, data: dict) -> None:
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)


def _make_serializable(obj: Any) -> Any:
    """Make a nested dict/list JSON-serializable (convert numpy types)."""
    if isinstance(obj, dict):
        return {str(k): _make_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_make_serializable(v) for v in obj]
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    return obj
