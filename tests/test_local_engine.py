"""Tests for the pandas / scikit-learn engine (engines/local.py).

Covers each stage on a small synthetic tree and the engine lifecycle:
  - records, labels and alphabetical label index
  - zero-vector features for undecodable files (counted, not fatal)
  - exact-proportion seeded split
  - fit / predict / accuracy / save (overwrite) / load
"""

from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from pneumonia_classifier.config import ModelConfig
from pneumonia_classifier.data.labels import build_label_pattern
from pneumonia_classifier.engines.base import (
    FEATURES_COL,
    LABEL_COL,
    LABEL_STRING_COL,
    PREDICTION_COL,
)
from pneumonia_classifier.engines.local import METADATA_FILENAME, MODEL_FILENAME, LocalEngine
from pneumonia_classifier.features.pixels import ImageVectorizer

PATTERN = build_label_pattern(["NORMAL", "PNEUMONIA"])


@pytest.fixture()
def engine():
    with LocalEngine(n_workers=2) as eng:
        yield eng


@pytest.fixture()
def training_frame(engine, image_tree):
    frame = engine.load_images(str(image_tree), "*.jpeg", True)
    frame = engine.with_labels(frame, PATTERN)
    frame, _ = engine.index_labels(frame)
    frame = engine.with_features(frame, ImageVectorizer(width=16, height=16))
    return engine.select_training_columns(frame)


class TestLifecycle:
    def test_context_manager_starts_and_stops(self):
        eng = LocalEngine()
        assert not eng.started
        with eng as started:
            assert started is eng
            assert eng.started
        assert not eng.started

    def test_stops_on_error(self):
        eng = LocalEngine()
        with pytest.raises(RuntimeError, match="boom"):
            with eng:
                raise RuntimeError("boom")
        assert not eng.started

    def test_stop_is_idempotent(self):
        eng = LocalEngine().start()
        eng.stop()
        eng.stop()
        assert not eng.started

    def test_requires_start(self, image_tree):
        with pytest.raises(RuntimeError, match="not started"):
            LocalEngine().load_images(str(image_tree), "*.jpeg", True)

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            LocalEngine(n_workers=0)


class TestStages:
    def test_load_and_label(self, engine, image_tree):
        frame = engine.with_labels(engine.load_images(str(image_tree), "*.jpeg", True), PATTERN)
        assert engine.count(frame) == 10
        assert sorted(frame[LABEL_STRING_COL].unique()) == ["NORMAL", "PNEUMONIA"]
        assert "content" in frame.columns

    def test_stages_do_not_mutate_input(self, engine, image_tree):
        raw = engine.load_images(str(image_tree), "*.jpeg", True)
        engine.with_labels(raw, PATTERN)
        assert LABEL_STRING_COL not in raw.columns

    def test_index_alphabetical(self, engine, image_tree):
        frame = engine.with_labels(engine.load_images(str(image_tree), "*.jpeg", True), PATTERN)
        shuffled = frame.sample(frac=1.0, random_state=3).reset_index(drop=True)
        indexed, labels = engine.index_labels(shuffled)
        assert labels == ["NORMAL", "PNEUMONIA"]
        for s, idx in zip(indexed[LABEL_STRING_COL], indexed[LABEL_COL]):
            assert idx == (0.0 if s == "NORMAL" else 1.0)

    def test_unlabeled_kept_then_dropped(self, engine, image_tree, make_image):
        (image_tree / "misc").mkdir()
        (image_tree / "misc" / "x.jpeg").write_bytes(make_image("gray"))
        frame = engine.with_labels(engine.load_images(str(image_tree), "*.jpeg", True), PATTERN)
        _, labels = engine.index_labels(frame)
        assert labels == ["", "NORMAL", "PNEUMONIA"]
        assert engine.count(engine.drop_unlabeled(frame)) == 10

    def test_features(self, training_frame):
        assert list(training_frame.columns) == [LABEL_COL, FEATURES_COL]
        for vec in training_frame[FEATURES_COL]:
            assert vec.shape == (256,)

    def test_corrupt_file_gets_zero_vector(self, engine, image_tree):
        (image_tree / "NORMAL" / "broken.jpeg").write_bytes(b"\xff\xd8\xff garbage")
        frame = engine.load_images(str(image_tree), "*.jpeg", True)
        frame = engine.with_features(frame, ImageVectorizer(width=8, height=8))
        broken = frame[frame["path"].str.endswith("broken.jpeg")][FEATURES_COL].iloc[0]
        np.testing.assert_array_equal(broken, np.zeros(64))

    def test_split(self, engine, training_frame):
        train, test = engine.split(training_frame, [0.7, 0.3], 12345)
        assert (engine.count(train), engine.count(test)) == (7, 3)
        again, _ = engine.split(training_frame, [0.7, 0.3], 12345)
        np.testing.assert_array_equal(train[LABEL_COL], again[LABEL_COL])

    def test_take(self, engine, training_frame):
        rows = engine.take(training_frame, [LABEL_COL], 3)
        assert len(rows) == 3
        assert all(len(r) == 1 for r in rows)


class TestModel:
    def test_fit_predict_accuracy(self, engine, training_frame):
        model = engine.fit(training_frame, ModelConfig())
        preds = engine.predict(model, training_frame)
        assert PREDICTION_COL in preds.columns
        assert engine.accuracy(preds) == 1.0
        pairs = engine.prediction_pairs(preds, limit=4)
        assert len(pairs) == 4
        assert all(a == p for a, p in pairs)

    def test_unregularized(self, engine, training_frame):
        model = engine.fit(training_frame, ModelConfig(reg_param=0.0))
        assert engine.accuracy(engine.predict(model, training_frame)) == 1.0

    def test_single_class_rejected(self, engine, training_frame):
        one_class = training_frame[training_frame[LABEL_COL] == 0.0]
        with pytest.raises(ValueError, match="single class"):
            engine.fit(one_class, ModelConfig())

    def test_empty_rejected(self, engine, training_frame):
        with pytest.raises(ValueError, match="empty"):
            engine.fit(training_frame.iloc[:0], ModelConfig())

    def test_elastic_net_rejected(self, engine, training_frame):
        with pytest.raises(ValueError, match="spark"):
            engine.fit(training_frame, ModelConfig(elastic_net_param=0.5))

    def test_empty_test_partition(self, engine, training_frame):
        model = engine.fit(training_frame, ModelConfig())
        preds = engine.predict(model, training_frame.iloc[:0])
        with pytest.raises(ValueError, match="empty test partition"):
            engine.accuracy(preds)

    def test_save_overwrites_and_loads(self, engine, training_frame, tmp_path):
        dest = tmp_path / "model"
        model = engine.fit(training_frame, ModelConfig())
        engine.save_model(model, str(dest))
        (dest / "stale.txt").write_text("old")
        engine.save_model(model, f"file://{dest}")

        assert (dest / MODEL_FILENAME).exists()
        assert not (dest / "stale.txt").exists()
        meta = json.loads((dest / METADATA_FILENAME).read_text())
        assert meta["n_features"] == 256
        assert meta["classes"] == [0.0, 1.0]

        loaded = engine.load_model(str(dest))
        preds = engine.predict(loaded, training_frame)
        assert engine.accuracy(preds) == 1.0

    def test_load_missing(self, engine, tmp_path):
        with pytest.raises(FileNotFoundError):
            engine.load_model(str(tmp_path / "absent"))


class TestStandardization:
    def test_default_scales_features(self, engine, training_frame):
        model = engine.fit(training_frame, ModelConfig())
        assert isinstance(model, Pipeline)
        assert engine.accuracy(engine.predict(model, training_frame)) == 1.0

    def test_disabled_is_plain_regression(self, engine, training_frame):
        model = engine.fit(training_frame, ModelConfig(standardization=False))
        assert isinstance(model, LogisticRegression)
        assert model.C == pytest.approx(1.0 / (0.01 * 10))

    def test_scaled_features_give_same_probabilities(self, engine, rng):
        X = rng.normal(size=(40, 3))
        y = (X[:, 0] + 0.5 * X[:, 1] + rng.normal(scale=0.5, size=40) > 0).astype(float)
        frame = pd.DataFrame({LABEL_COL: y, FEATURES_COL: list(X)})
        scaled = frame.assign(**{FEATURES_COL: [v * 10.0 for v in X]})

        cfg = ModelConfig(max_iter=200)
        a = engine.fit(frame, cfg).predict_proba(X)
        b = engine.fit(scaled, cfg).predict_proba(X * 10.0)
        np.testing.assert_allclose(a, b, atol=1e-3)


class TestLinkedTree:
    def test_symlinked_category_labelled(self, engine, tmp_path, write_tree):
        store = write_tree(tmp_path / "store", {"xrays": 2}, {"xrays": "white"}) / "xrays"
        root = tmp_path / "images"
        root.mkdir()
        (root / "NORMAL").symlink_to(store, target_is_directory=True)

        frame = engine.with_labels(engine.load_images(str(root), "*.jpeg", True), PATTERN)
        assert engine.count(frame) == 2
        assert frame[LABEL_STRING_COL].tolist() == ["NORMAL", "NORMAL"]
