"""
pneumonia_classifier
====================

Chest X-ray pneumonia classifier: directory-labeled JPEGs in, a fitted
logistic-regression model out.

Design Principles:
    - Config-driven: every constant lives in YAML, not in code
    - Engine-agnostic: the same pipeline runs on PySpark or in-process
      (pandas + scikit-learn) through one ``PipelineEngine`` interface
    - The only bespoke computation is the image → feature-vector transform,
      a pure function that is safe to run on any number of workers
    - Reproducible: seeded splits, provenance tracking, config snapshots

Package Layout::

    cli/          Typer CLI commands (train, labels, featurize)
    data/         Label extraction / indexing, local image discovery
    diagnostics/  Confusion-matrix and feature-preview plots
    engines/      PySpark and local engines behind one interface
    eval/         Seeded splits, accuracy and confusion counts
    features/     Image bytes → normalized 128×128 grayscale vector
    io/           Run artifact persistence (metrics, provenance, config)
    utils/        Logging
"""

__version__ = "0.1.0"
