"""
Spark Engine
============

``PipelineEngine`` backed by a ``SparkSession`` and Spark ML: binaryFile
reader, ``regexp_extract``, ``StringIndexer``, ``randomSplit``,
``LogisticRegression`` and ``MulticlassClassificationEvaluator``.

Design Principles:
    - The session belongs to the engine instance; nothing reads a
      process-wide "active session" behind the caller's back
    - The feature transform is wrapped with ``functions.udf`` at call time
      and applied as a column expression; nothing is registered by name
    - The training frame is cached before splitting so the UDF runs once
      per record and ``randomSplit`` sees a stable input; ``release()``
      unpersists it once evaluation is done
    - Model persistence is Spark ML's native format with overwrite

Column Flow::

    binaryFile(path, modificationTime, length, content)
      → + labelString   regexp_extract(path, pattern, 1)
      → + label         StringIndexer(alphabetAsc)
      → + features      udf(ImageVectorizer) → VectorUDT
      → (label, features) → randomSplit → fit / transform / evaluate
"""

from __future__ import annotations

from typing import Sequence

from pyspark.ml.classification import LogisticRegression, LogisticRegressionModel
from pyspark.ml.evaluation import MulticlassClassificationEvaluator
from pyspark.ml.feature import StringIndexer
from pyspark.ml.linalg import Vector, Vectors, VectorUDT
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F

from pneumonia_classifier.data.labels import UNLABELED
from pneumonia_classifier.engines.base import (
    CONTENT_COL,
    FEATURES_COL,
    LABEL_COL,
    LABEL_STRING_COL,
    PATH_COL,
    PREDICTION_COL,
    PipelineEngine,
)
from pneumonia_classifier.features.pixels import ImageVectorizer
from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)


def vector_udf(vectorizer: ImageVectorizer):
    """Wrap ``vectorizer`` as a Spark UDF returning an ML dense vector."""

    def to_vector(content):
        return Vectors.dense(vectorizer(content))

    return F.udf(to_vector, VectorUDT())


class SparkEngine(PipelineEngine):
    """Spark-backed engine.

    Parameters
    ----------
    app_name : str
        Spark application name.
    master : str
        Master URL, e.g. ``local[*]`` or ``spark://host:7077``.
    conf : dict[str, str] or None
        Extra builder configuration.
    """

    name = "spark"

    def __init__(
        self,
        app_name: str = "PneumoniaImageProcessing",
        master: str = "local[*]",
        conf: dict[str, str] | None = None,
    ):
        super().__init__()
        self.app_name = app_name
        self.master = master
        self.conf = dict(conf or {})
        self._spark: SparkSession | None = None

    @classmethod
    def from_config(cls, engine_cfg) -> "SparkEngine":
        return cls(
            app_name=engine_cfg.app_name,
            master=engine_cfg.master,
            conf=engine_cfg.spark_conf,
        )

    @property
    def spark(self) -> SparkSession:
        self._require_started()
        return self._spark

    def _start(self) -> None:
        builder = SparkSession.builder.appName(self.app_name).master(self.master)
        for key, value in self.conf.items():
            builder = builder.config(key, value)
        self._spark = builder.getOrCreate()
        logger.info(
            "spark_session | app=%s master=%s version=%s",
            self.app_name, self.master, self._spark.version,
        )

    def _stop(self) -> None:
        if self._spark is not None:
            self._spark.stop()
            self._spark = None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def load_images(self, path: str, glob_filter: str, recursive: bool) -> DataFrame:
        return (
            self.spark.read.format("binaryFile")
            .option("pathGlobFilter", glob_filter)
            .option("recursiveFileLookup", str(recursive).lower())
            .load(path)
        )

    def with_labels(self, frame: DataFrame, pattern: str) -> DataFrame:
        return frame.withColumn(
            LABEL_STRING_COL, F.regexp_extract(F.col(PATH_COL), pattern, 1)
        )

    def drop_unlabeled(self, frame: DataFrame) -> DataFrame:
        return frame.filter(F.col(LABEL_STRING_COL) != F.lit(UNLABELED))

    def index_labels(self, frame: DataFrame) -> tuple[DataFrame, list[str]]:
        indexer = StringIndexer(
            inputCol=LABEL_STRING_COL,
            outputCol=LABEL_COL,
            stringOrderType="alphabetAsc",
        )
        model = indexer.fit(frame)
        return model.transform(frame), list(model.labelsArray[0])

    def with_features(self, frame: DataFrame, vectorizer: ImageVectorizer) -> DataFrame:
        return frame.withColumn(FEATURES_COL, vector_udf(vectorizer)(F.col(CONTENT_COL)))

    def select_training_columns(self, frame: DataFrame) -> DataFrame:
        return frame.select(LABEL_COL, FEATURES_COL).cache()

    def release(self, frame: DataFrame) -> None:
        frame.unpersist()

    def split(self, frame: DataFrame, ratios: Sequence[float], seed: int) -> list[DataFrame]:
        return frame.randomSplit([float(r) for r in ratios], seed=seed)

    def count(self, frame: DataFrame) -> int:
        return int(frame.count())

    def fit(self, frame: DataFrame, model_cfg) -> LogisticRegressionModel:
        lr = LogisticRegression(
            maxIter=model_cfg.max_iter,
            regParam=model_cfg.reg_param,
            elasticNetParam=model_cfg.elastic_net_param,
            standardization=model_cfg.standardization,
            featuresCol=FEATURES_COL,
            labelCol=LABEL_COL,
        )
        logger.info(
            "fit | max_iter=%d reg_param=%g elastic_net=%g standardization=%s",
            model_cfg.max_iter, model_cfg.reg_param, model_cfg.elastic_net_param,
            model_cfg.standardization,
        )
        return lr.fit(frame)

    def predict(self, model: LogisticRegressionModel, frame: DataFrame) -> DataFrame:
        return model.transform(frame)

    def accuracy(self, predictions: DataFrame) -> float:
        if predictions.limit(1).count() == 0:
            raise ValueError("Cannot compute accuracy on an empty test partition")
        evaluator = MulticlassClassificationEvaluator(
            labelCol=LABEL_COL,
            predictionCol=PREDICTION_COL,
            metricName="accuracy",
        )
        return float(evaluator.evaluate(predictions))

    def take(self, frame: DataFrame, columns: Sequence[str], limit: int) -> list[tuple]:
        rows = frame.select(*columns).limit(limit).collect()
        return [tuple(_to_python(r[c]) for c in columns) for r in rows]

    def prediction_pairs(self, predictions: DataFrame, limit: int | None = None) -> list[tuple[float, float]]:
        rows = predictions.select(LABEL_COL, PREDICTION_COL)
        if limit is not None:
            rows = rows.limit(limit)
        return [(float(r[LABEL_COL]), float(r[PREDICTION_COL])) for r in rows.collect()]

    def save_model(self, model: LogisticRegressionModel, path: str) -> None:
        model.write().overwrite().save(path)
        logger.info("model_saved | path=%s", path)

    def load_model(self, path: str) -> LogisticRegressionModel:
        self._require_started()
        return LogisticRegressionModel.load(path)

    def describe(self, frame: DataFrame) -> str:
        return frame.schema.simpleString()


def _to_python(value):
    if isinstance(value, Vector):
        return value.toArray()
    return value
