"""
Configuration Schema and Loader
===============================

Pydantic-based configuration schema for the whole classification pipeline.
Every constant the pipeline depends on (storage paths, resize target,
split ratios and seed, solver knobs) lives in a single validated YAML file.

Design Principles:
    - Single source of truth for all pipeline parameters
    - Pydantic validation catches typos and type errors before any I/O
    - Defaults reproduce the fixed constants of the reference run, so an
      empty YAML file is a valid configuration
    - EngineConfig makes the compute backend pluggable (spark, local)

Configuration Hierarchy::

    PipelineConfig
    ├── PathsConfig          Input images, model destination, run outputs
    ├── LoaderConfig         File glob filter, recursive lookup
    ├── LabelsConfig         Category names, empty-label policy
    ├── FeaturesConfig       Resize target and resampling filter
    ├── SplitConfig          Train/test ratios and seed
    ├── ModelConfig          Logistic-regression solver knobs
    ├── EngineConfig         Backend selection and session settings
    └── LoggingConfig        Level and optional log directory
"""

from __future__ import annotations

import datetime
import hashlib
import json
import subprocess
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from pneumonia_classifier import __version__


# ---------------------------------------------------------------------------
# Schema sections
# ---------------------------------------------------------------------------


class PathsConfig(BaseModel):
    """Storage locations. Strings, not Paths: they may be ``hdfs://`` URIs."""

    input_path: str = Field(
        default="hdfs://localhost:9000/images/test",
        description="Root directory (local path or URI) holding <category>/<image> files",
    )
    model_path: str = Field(
        default="hdfs://localhost:9000/models/pneumonia_classifier",
        description="Destination of the serialized model; overwritten if present",
    )
    output_dir: Path = Field(
        default=Path("output"),
        description="Local directory for run metrics, provenance and plots",
    )


class LoaderConfig(BaseModel):
    """Image discovery settings."""

    path_glob_filter: str = Field(
        default="*.jpeg", description="Filename glob applied to every discovered file"
    )
    recursive: bool = Field(
        default=True, description="Descend into subdirectories of input_path"
    )


class LabelsConfig(BaseModel):
    """Directory-encoded label settings."""

    categories: list[str] = Field(
        default_factory=lambda: ["NORMAL", "PNEUMONIA"],
        description="Directory names that carry the class label",
    )
    drop_unlabeled: bool = Field(
        default=False,
        description=(
            "Drop records whose path matches no category before indexing. "
            "False keeps them with an empty label string."
        ),
    )

    @field_validator("categories")
    @classmethod
    def _check_categories(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("labels.categories must not be empty")
        if len(set(v)) != len(v):
            raise ValueError(f"labels.categories contains duplicates: {v}")
        if any(not c or "/" in c for c in v):
            raise ValueError(f"labels.categories must be plain directory names: {v}")
        return v


class FeaturesConfig(BaseModel):
    """Image → vector settings."""

    width: int = Field(default=128, ge=1, description="Resize target width in pixels")
    height: int = Field(default=128, ge=1, description="Resize target height in pixels")
    resample: Literal["box", "bilinear", "hamming", "bicubic", "lanczos"] = Field(
        default="box",
        description="Smooth resampling filter. 'box' is area averaging.",
    )

    @property
    def n_features(self) -> int:
        return self.width * self.height


class SplitConfig(BaseModel):
    """Seeded train/test partitioning."""

    ratios: list[float] = Field(
        default_factory=lambda: [0.7, 0.3],
        description="Relative partition weights; first is train, second is test",
    )
    seed: int = Field(default=12345, description="Seed for the random split")

    @field_validator("ratios")
    @classmethod
    def _check_ratios(cls, v: list[float]) -> list[float]:
        if len(v) < 2:
            raise ValueError("split.ratios needs at least a train and a test weight")
        if any(r <= 0 for r in v):
            raise ValueError(f"split.ratios must all be positive: {v}")
        return v


class ModelConfig(BaseModel):
    """Logistic-regression solver settings."""

    max_iter: int = Field(default=10, ge=1, description="Maximum solver iterations")
    reg_param: float = Field(default=0.01, ge=0.0, description="Regularization strength")
    elastic_net_param: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="L1/L2 mixing (0 = pure L2). Only the spark backend supports > 0.",
    )
    standardization: bool = Field(
        default=True,
        description="Scale features to unit variance before fitting; the penalty applies to scaled coefficients",
    )


class EngineConfig(BaseModel):
    """Compute engine selection."""

    backend: Literal["spark", "local"] = Field(
        default="spark",
        description="'spark' runs on a SparkSession; 'local' uses pandas + scikit-learn",
    )
    app_name: str = Field(default="PneumoniaImageProcessing")
    master: str = Field(default="local[*]", description="Spark master URL")
    spark_conf: dict[str, str] = Field(
        default_factory=dict, description="Extra key/value pairs for SparkSession.builder"
    )
    n_workers: int = Field(
        default=4, ge=1, description="Feature-extraction threads (local backend)"
    )


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO")
    log_dir: Path | None = Field(default=None, description="Write a plain-text log file here")


class PipelineConfig(BaseModel):
    """Top-level pipeline configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    split: SplitConfig = Field(default_factory=SplitConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------


def default_config() -> PipelineConfig:
    """Return the built-in defaults (the reference run's constants)."""
    return PipelineConfig()


def load_config(path: str | Path) -> PipelineConfig:
    """Load and validate a YAML config file.

    Parameters
    ----------
    path : str | Path
        Path to YAML config file. An empty file yields the defaults.

    Returns
    -------
    PipelineConfig
        Validated configuration object.
    """
    path = Path(path)
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return PipelineConfig(**raw)


def save_config_snapshot(cfg: PipelineConfig, dest: Path) -> None:
    """Save a YAML snapshot of the config for provenance."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    data = json.loads(cfg.model_dump_json())
    with open(dest, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def build_provenance(cfg: PipelineConfig) -> dict:
    """Build a provenance dictionary for artifact tracking.

    Parameters
    ----------
    cfg : PipelineConfig
        Current configuration.

    Returns
    -------
    dict
        Timestamp, package version, config hash and git commit.
    """
    prov: dict[str, Any] = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "pneumonia_classifier_version": __version__,
        "engine": cfg.engine.backend,
        "config_hash": hashlib.sha256(cfg.model_dump_json().encode()).hexdigest(),
    }
    try:
        git_hash = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL
        ).decode().strip()
        prov["git_commit"] = git_hash
    except (OSError, subprocess.CalledProcessError):
        prov["git_commit"] = "unavailable"
    return prov
