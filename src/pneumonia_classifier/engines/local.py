"""
Local Engine
============

In-process implementation of ``PipelineEngine`` on pandas DataFrames and
scikit-learn. Useful for laptops, CI and datasets that fit in memory.

Design Principles:
    - Same column names and label / split semantics as the Spark engine
    - Feature extraction fans out over a thread pool; the transform is
      pure, so no coordination is needed and output order is preserved
    - The Spark logistic-regression objective
      ``mean(logloss) + reg_param / 2 * ||w||^2`` is translated to
      scikit-learn's ``C * sum(logloss) + 1/2 * ||w||^2`` via
      ``C = 1 / (reg_param * n_train)``. With ``standardization`` on (the
      Spark default) features are first divided by their standard deviation
      so the penalty lands on scaled coefficients, as in Spark. The match is
      close, not exact: Spark uses the sample (n-1) deviation and pins the
      coefficient of a zero-variance column to 0
    - Models persist as ``<path>/model.joblib`` + ``<path>/metadata.json``;
      an existing directory at ``path`` is replaced
"""

from __future__ import annotations

import json
import shutil
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import joblib
import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import StandardScaler

from pneumonia_classifier.data.labels import UNLABELED, extract_label, index_labels, ordered_labels
from pneumonia_classifier.data.loader import load_image_records, to_local_path
from pneumonia_classifier.engines.base import (
    CONTENT_COL,
    FEATURES_COL,
    LABEL_COL,
    LABEL_STRING_COL,
    PATH_COL,
    PREDICTION_COL,
    PipelineEngine,
)
from pneumonia_classifier.eval.metrics import accuracy
from pneumonia_classifier.eval.splits import random_split
from pneumonia_classifier.features.pixels import ImageVectorizer
from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

MODEL_FILENAME = "model.joblib"
METADATA_FILENAME = "metadata.json"


class LocalEngine(PipelineEngine):
    """pandas + scikit-learn engine.

    Parameters
    ----------
    n_workers : int
        Threads used for feature extraction.
    """

    name = "local"

    def __init__(self, n_workers: int = 4):
        super().__init__()
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self.n_workers = n_workers
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_config(cls, engine_cfg) -> "LocalEngine":
        return cls(n_workers=engine_cfg.n_workers)

    def _start(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.n_workers, thread_name_prefix="featurize"
        )

    def _stop(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def load_images(self, path: str, glob_filter: str, recursive: bool) -> pd.DataFrame:
        self._require_started()
        return load_image_records(path, glob_filter, recursive)

    def with_labels(self, frame: pd.DataFrame, pattern: str) -> pd.DataFrame:
        return frame.assign(
            **{LABEL_STRING_COL: [extract_label(p, pattern) for p in frame[PATH_COL]]}
        )

    def drop_unlabeled(self, frame: pd.DataFrame) -> pd.DataFrame:
        return frame[frame[LABEL_STRING_COL] != UNLABELED].reset_index(drop=True)

    def index_labels(self, frame: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
        mapping = index_labels(frame[LABEL_STRING_COL])
        labels = frame[LABEL_STRING_COL].map(mapping).astype(np.float64)
        return frame.assign(**{LABEL_COL: labels}), ordered_labels(mapping)

    def with_features(self, frame: pd.DataFrame, vectorizer: ImageVectorizer) -> pd.DataFrame:
        self._require_started()
        results = list(self._executor.map(vectorizer.transform_with_status, frame[CONTENT_COL]))
        n_failed = sum(1 for _, decoded in results if not decoded)
        if n_failed:
            logger.warning(
                "featurize | decode_failures=%d of %d (zero vectors substituted)",
                n_failed, len(results),
            )
        features = pd.Series([vec for vec, _ in results], index=frame.index, dtype=object)
        return frame.assign(**{FEATURES_COL: features})

    def select_training_columns(self, frame: pd.DataFrame) -> pd.DataFrame:
        return frame[[LABEL_COL, FEATURES_COL]].copy()

    def split(self, frame: pd.DataFrame, ratios: Sequence[float], seed: int) -> list[pd.DataFrame]:
        parts = random_split(len(frame), ratios, seed)
        return [frame.iloc[idx].reset_index(drop=True) for idx in parts]

    def count(self, frame: pd.DataFrame) -> int:
        return int(len(frame))

    def fit(self, frame: pd.DataFrame, model_cfg) -> LogisticRegression | Pipeline:
        if len(frame) == 0:
            raise ValueError("Cannot fit on an empty training partition")
        X, y = _to_xy(frame)
        if np.unique(y).size < 2:
            raise ValueError(
                f"Training partition has a single class ({np.unique(y).tolist()}); "
                "logistic regression needs at least two"
            )
        if model_cfg.elastic_net_param > 0:
            raise ValueError("elastic_net_param > 0 is only supported by the spark backend")

        if model_cfg.reg_param > 0:
            clf = LogisticRegression(
                C=1.0 / (model_cfg.reg_param * len(y)),
                max_iter=model_cfg.max_iter,
            )
        else:
            clf = LogisticRegression(penalty=None, max_iter=model_cfg.max_iter)
        if model_cfg.standardization:
            clf = make_pipeline(StandardScaler(with_mean=False), clf)

        logger.info(
            "fit | n=%d dim=%d max_iter=%d reg_param=%g standardization=%s",
            X.shape[0], X.shape[1], model_cfg.max_iter, model_cfg.reg_param,
            model_cfg.standardization,
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            clf.fit(X, y)
        if any(issubclass(w.category, ConvergenceWarning) for w in caught):
            # same as Spark: stopping at maxIter is not an error
            logger.info("fit | solver stopped at max_iter=%d", model_cfg.max_iter)
        return clf

    def predict(self, model: LogisticRegression, frame: pd.DataFrame) -> pd.DataFrame:
        if len(frame) == 0:
            return frame.assign(**{PREDICTION_COL: pd.Series(dtype=np.float64)})
        X, _ = _to_xy(frame)
        return frame.assign(**{PREDICTION_COL: model.predict(X).astype(np.float64)})

    def accuracy(self, predictions: pd.DataFrame) -> float:
        return accuracy(predictions[LABEL_COL].to_numpy(), predictions[PREDICTION_COL].to_numpy())

    def take(self, frame: pd.DataFrame, columns: Sequence[str], limit: int) -> list[tuple]:
        return list(frame[list(columns)].head(limit).itertuples(index=False, name=None))

    def prediction_pairs(self, predictions: pd.DataFrame, limit: int | None = None) -> list[tuple[float, float]]:
        rows = predictions[[LABEL_COL, PREDICTION_COL]]
        if limit is not None:
            rows = rows.head(limit)
        return [(float(a), float(b)) for a, b in rows.itertuples(index=False)]

    def save_model(self, model: LogisticRegression, path: str) -> None:
        dest = to_local_path(path)
        if dest.is_dir():
            shutil.rmtree(dest)
        elif dest.exists():
            dest.unlink()
        dest.mkdir(parents=True)
        joblib.dump(model, dest / MODEL_FILENAME)
        metadata = {
            "class": type(model).__name__,
            "classes": [float(c) for c in model.classes_],
            "n_features": int(model.n_features_in_),
        }
        with open(dest / METADATA_FILENAME, "w") as f:
            json.dump(metadata, f, indent=2)
        logger.info("model_saved | path=%s", dest)

    def load_model(self, path: str) -> LogisticRegression:
        model_file = to_local_path(path) / MODEL_FILENAME
        if not model_file.exists():
            raise FileNotFoundError(f"No saved model at: {model_file}")
        return joblib.load(model_file)

    def describe(self, frame: pd.DataFrame) -> str:
        return ", ".join(f"{c}: {t}" for c, t in frame.dtypes.astype(str).items())


def _to_xy(frame: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    X = np.vstack(frame[FEATURES_COL].to_list())
    y = frame[LABEL_COL].to_numpy(dtype=np.float64)
    return X, y
