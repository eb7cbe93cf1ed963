"""
Pipeline Engine Base Class
==========================

Abstract interface for the compute engine that carries records through
the pipeline: load → label → index → featurize → split → fit → evaluate
→ save.

Design Principles:
    - The engine is an explicit context object: constructed, passed to
      every stage, released on all exit paths (``with engine: ...``)
    - Frames are engine-native (Spark ``DataFrame`` or pandas ``DataFrame``)
      and are never mutated in place; every stage returns a new frame with
      one more derived column
    - Column names are shared across engines: ``path``, ``content``,
      ``labelString``, ``label``, ``features``, ``prediction``
    - The feature transform arrives as a plain callable
      (``ImageVectorizer``); engines decide how to map it over records
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from pneumonia_classifier.features.pixels import ImageVectorizer
from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

PATH_COL = "path"
CONTENT_COL = "content"
LABEL_STRING_COL = "labelString"
LABEL_COL = "label"
FEATURES_COL = "features"
PREDICTION_COL = "prediction"


class PipelineEngine(ABC):
    """Abstract base for compute engines.

    Subclasses own their session resources. ``start()`` acquires them,
    ``stop()`` releases them and must be safe to call more than once.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> "PipelineEngine":
        if not self._started:
            self._start()
            self._started = True
            logger.info("engine_started | backend=%s", self.name)
        return self

    def stop(self) -> None:
        if self._started:
            try:
                self._stop()
            finally:
                self._started = False
                logger.info("engine_stopped | backend=%s", self.name)

    def __enter__(self) -> "PipelineEngine":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.stop()
        return False

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError(f"Engine '{self.name}' is not started; use it as a context manager")

    @abstractmethod
    def _start(self) -> None:
        ...

    @abstractmethod
    def _stop(self) -> None:
        ...

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @abstractmethod
    def load_images(self, path: str, glob_filter: str, recursive: bool) -> Any:
        """Load ``(path, content)`` records for every matching file under ``path``."""
        ...

    @abstractmethod
    def with_labels(self, frame: Any, pattern: str) -> Any:
        """Add ``labelString`` = group 1 of ``pattern`` in ``path`` (or ``""``)."""
        ...

    @abstractmethod
    def drop_unlabeled(self, frame: Any) -> Any:
        """Remove records whose ``labelString`` is empty."""
        ...

    @abstractmethod
    def index_labels(self, frame: Any) -> tuple[Any, list[str]]:
        """Add ``label`` (float index, alphabetical ascending).

        Returns the new frame and the label strings in index order.
        """
        ...

    @abstractmethod
    def with_features(self, frame: Any, vectorizer: ImageVectorizer) -> Any:
        """Add ``features`` = ``vectorizer(content)`` for every record."""
        ...

    @abstractmethod
    def select_training_columns(self, frame: Any) -> Any:
        """Project to ``(label, features)``."""
        ...

    @abstractmethod
    def split(self, frame: Any, ratios: Sequence[float], seed: int) -> list[Any]:
        """Disjoint seeded partitions, one per ratio."""
        ...

    @abstractmethod
    def count(self, frame: Any) -> int:
        ...

    @abstractmethod
    def fit(self, frame: Any, model_cfg) -> Any:
        """Fit a logistic-regression model on ``(label, features)``."""
        ...

    @abstractmethod
    def predict(self, model: Any, frame: Any) -> Any:
        """Add ``prediction`` (float label index) to ``frame``."""
        ...

    @abstractmethod
    def accuracy(self, predictions: Any) -> float:
        """Fraction of records where ``prediction == label``."""
        ...

    @abstractmethod
    def take(self, frame: Any, columns: Sequence[str], limit: int) -> list[tuple]:
        """First ``limit`` rows of ``columns`` as plain tuples (vectors as numpy)."""
        ...

    @abstractmethod
    def prediction_pairs(self, predictions: Any, limit: int | None = None) -> list[tuple[float, float]]:
        """``(label, prediction)`` pairs, at most ``limit`` of them (all if None)."""
        ...

    @abstractmethod
    def save_model(self, model: Any, path: str) -> None:
        """Serialize ``model`` to ``path``, replacing anything already there."""
        ...

    @abstractmethod
    def load_model(self, path: str) -> Any:
        ...

    def release(self, frame: Any) -> None:
        """Drop any cached state held for ``frame``. No-op by default."""

    def describe(self, frame: Any) -> str:
        """Human-readable schema summary for logging."""
        return repr(frame)
