"""
Training Pipeline
=================

Single linear pass from image files to a persisted classifier:

    load → label → index → featurize → select → split → fit → evaluate → save

Every stage is delegated to the ``PipelineEngine`` passed in by the caller;
this module only sequences the stages, logs what each one produced and
collects the numbers worth keeping into a ``PipelineResult``.

Usage::

    from pneumonia_classifier.config import load_config
    from pneumonia_classifier.engines.registry import create_engine
    from pneumonia_classifier.pipeline import run_pipeline

    cfg = load_config("configs/default.yaml")
    with create_engine(cfg.engine) as engine:
        result = run_pipeline(cfg, engine)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from pneumonia_classifier.config import PipelineConfig
from pneumonia_classifier.data.labels import build_label_pattern
from pneumonia_classifier.engines.base import (
    FEATURES_COL,
    LABEL_COL,
    LABEL_STRING_COL,
    PATH_COL,
    PipelineEngine,
)
from pneumonia_classifier.eval.metrics import confusion_counts
from pneumonia_classifier.features.pixels import ImageVectorizer
from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

N_SAMPLE_ROWS = 5


@dataclass
class PipelineResult:
    """Summary of one training run."""

    n_records: int
    n_train: int
    n_test: int
    labels: list[str]
    accuracy: float
    model_path: str
    sample_predictions: list[tuple[float, float]]
    confusion: pd.DataFrame
    n_unlabeled: int = 0
    plot_paths: list[str] = field(default_factory=list)

    def to_metrics(self) -> dict:
        """Flatten to a JSON-friendly dict for ``save_run_artifacts``."""
        return {
            "accuracy": self.accuracy,
            "n_records": self.n_records,
            "n_unlabeled": self.n_unlabeled,
            "n_train": self.n_train,
            "n_test": self.n_test,
            "labels": list(self.labels),
            "model_path": self.model_path,
            "confusion": {
                actual: {pred: int(n) for pred, n in row.items()}
                for actual, row in self.confusion.to_dict(orient="index").items()
            },
        }


def run_pipeline(
    cfg: PipelineConfig,
    engine: PipelineEngine,
    plot_dir: Optional[Path] = None,
) -> PipelineResult:
    """Train and evaluate the classifier, then save the model.

    Parameters
    ----------
    cfg : PipelineConfig
        Full pipeline configuration.
    engine : PipelineEngine
        A started engine. The caller owns its lifecycle.
    plot_dir : Path or None
        If given, write diagnostic figures there.

    Returns
    -------
    PipelineResult

    Raises
    ------
    ValueError
        If the data cannot support training (one class, empty test split).
    FileNotFoundError
        If the input path does not exist (local engine).
    """
    vectorizer = ImageVectorizer.from_config(cfg.features)
    pattern = build_label_pattern(cfg.labels.categories)

    # --- Load ---
    raw = engine.load_images(
        cfg.paths.input_path, cfg.loader.path_glob_filter, cfg.loader.recursive
    )
    n_records = engine.count(raw)
    logger.info(
        "load | path=%s glob=%s records=%d", cfg.paths.input_path,
        cfg.loader.path_glob_filter, n_records,
    )
    logger.info("load | schema=%s", engine.describe(raw))

    # --- Label ---
    labeled = engine.with_labels(raw, pattern)
    for path, label in engine.take(labeled, [PATH_COL, LABEL_STRING_COL], N_SAMPLE_ROWS):
        logger.info("label | %s → %r", path, label)

    n_unlabeled = n_records - engine.count(engine.drop_unlabeled(labeled))
    if n_unlabeled:
        action = "dropping" if cfg.labels.drop_unlabeled else "keeping with empty label"
        logger.warning(
            "label | unlabeled=%d of %d match no category in %s (%s)",
            n_unlabeled, n_records, cfg.labels.categories, action,
        )
        if cfg.labels.drop_unlabeled:
            labeled = engine.drop_unlabeled(labeled)

    # --- Index ---
    indexed, labels = engine.index_labels(labeled)
    logger.info(
        "index | %s", " ".join(f"{name or '<unlabeled>'}={i}" for i, name in enumerate(labels))
    )

    # --- Featurize ---
    featurized = engine.with_features(indexed, vectorizer)
    logger.info(
        "featurize | transform=%s dim=%d", vectorizer.name, vectorizer.feature_dim
    )
    data = engine.select_training_columns(featurized)
    logger.info("featurize | schema=%s", engine.describe(data))

    # --- Split ---
    try:
        parts = engine.split(data, cfg.split.ratios, cfg.split.seed)
        train, test = parts[0], parts[1]
        n_train, n_test = engine.count(train), engine.count(test)
        logger.info(
            "split | train=%d test=%d ratios=%s seed=%d",
            n_train, n_test, cfg.split.ratios, cfg.split.seed,
        )

        # --- Fit / evaluate ---
        model = engine.fit(train, cfg.model)
        logger.info("fit | model trained")

        predictions = engine.predict(model, test)
        acc = engine.accuracy(predictions)
        logger.info("evaluate | accuracy=%.4f n_test=%d", acc, n_test)

        pairs = engine.prediction_pairs(predictions)
        sample = pairs[:N_SAMPLE_ROWS]
        for actual, predicted in sample:
            logger.info("predict | label=%.1f prediction=%.1f", actual, predicted)

        confusion = confusion_counts(
            [a for a, _ in pairs], [p for _, p in pairs], labels
        )
    finally:
        engine.release(data)

    # --- Save ---
    engine.save_model(model, cfg.paths.model_path)

    result = PipelineResult(
        n_records=n_records,
        n_train=n_train,
        n_test=n_test,
        labels=labels,
        accuracy=acc,
        model_path=cfg.paths.model_path,
        sample_predictions=sample,
        confusion=confusion,
        n_unlabeled=n_unlabeled,
    )

    if plot_dir is not None:
        result.plot_paths = _make_plots(engine, featurized, pairs, labels, vectorizer, plot_dir)

    return result


def _make_plots(
    engine: PipelineEngine,
    featurized,
    pairs: list[tuple[float, float]],
    labels: list[str],
    vectorizer: ImageVectorizer,
    plot_dir: Path,
) -> list[str]:
    from pneumonia_classifier.diagnostics.plots import (
        plot_confusion_matrix,
        plot_feature_previews,
    )

    names = [name or "<unlabeled>" for name in labels]
    paths = [
        plot_confusion_matrix(
            [names[int(a)] for a, _ in pairs],
            [names[int(p)] for _, p in pairs],
            names,
            plot_dir,
        )
    ]

    rows = engine.take(featurized, [LABEL_COL, FEATURES_COL], 8)
    if rows:
        paths.append(
            plot_feature_previews(
                np.vstack([np.asarray(vec) for _, vec in rows]),
                [names[int(label)] for label, _ in rows],
                vectorizer.width,
                vectorizer.height,
                plot_dir,
            )
        )
    return paths
