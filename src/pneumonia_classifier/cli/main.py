"""
CLI entry point for the pneumonia-classifier pipeline.

Commands:
  - 'train'     → full pipeline: load, label, featurize, split, fit, evaluate, save
  - 'labels'    → show directory-derived labels and the label index for a tree
  - 'featurize' → vectorize a single image and summarize the vector
Notes:
  - Config-driven: all parameters from YAML; flags override single fields
  - Without --config the built-in defaults (HDFS paths, Spark local[*]) apply
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="pneumonia-classifier",
    help="Chest X-ray pneumonia classifier: Spark or local training pipeline.",
    add_completion=False,
)
console = Console()


def _load(config: Optional[Path]):
    from pneumonia_classifier.config import default_config, load_config
    from pneumonia_classifier.utils.logging import configure_logging

    cfg = load_config(config) if config is not None else default_config()
    configure_logging(cfg.logging.level, cfg.logging.log_dir)
    return cfg


@app.command()
def train(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Engine backend: spark | local (overrides config)"),
    input_path: Optional[str] = typer.Option(None, "--input", "-i", help="Image root directory or URI (overrides config)"),
    model_path: Optional[str] = typer.Option(None, "--model-path", "-m", help="Model destination (overrides config)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate config and print plan without running"),
    plots: bool = typer.Option(False, "--plots", help="Write confusion-matrix and feature-preview figures"),
) -> None:
    """Train and evaluate the classifier, then save the model.

    Loads images → extracts labels from directory names → indexes labels →
    converts each image to a grayscale vector → seeded train/test split →
    fits logistic regression → reports accuracy → saves the model
    (overwriting) → writes run metrics and provenance.
    """
    cfg = _load(config)

    overrides = {}
    if backend is not None:
        overrides["engine"] = {**cfg.engine.model_dump(), "backend": backend}
    if input_path is not None or model_path is not None:
        paths = cfg.paths.model_dump()
        if input_path is not None:
            paths["input_path"] = input_path
        if model_path is not None:
            paths["model_path"] = model_path
        overrides["paths"] = paths
    if overrides:
        # re-validate so a bad --backend fails like a bad YAML value
        cfg = type(cfg).model_validate({**cfg.model_dump(), **overrides})

    if dry_run:
        console.print("[bold green]Config validated successfully.[/bold green]")
        console.print(f"  Input: {cfg.paths.input_path} (filter={cfg.loader.path_glob_filter}, recursive={cfg.loader.recursive})")
        console.print(f"  Categories: {cfg.labels.categories} (drop_unlabeled={cfg.labels.drop_unlabeled})")
        console.print(f"  Features: {cfg.features.width}x{cfg.features.height} gray, resample={cfg.features.resample}")
        console.print(f"  Split: ratios={cfg.split.ratios}, seed={cfg.split.seed}")
        console.print(f"  Model: logistic regression, max_iter={cfg.model.max_iter}, reg_param={cfg.model.reg_param}, standardization={cfg.model.standardization}")
        console.print(f"  Backend: {cfg.engine.backend}")
        console.print(f"  Model path: {cfg.paths.model_path}")
        return

    _run_train(cfg, plots)


def _run_train(cfg, plots: bool) -> None:
    from pneumonia_classifier.config import build_provenance
    from pneumonia_classifier.engines.registry import create_engine
    from pneumonia_classifier.io.artifacts import get_run_dir, save_run_artifacts
    from pneumonia_classifier.pipeline import run_pipeline
    from pneumonia_classifier.utils.logging import log

    provenance = build_provenance(cfg)
    run_dir = get_run_dir(cfg.paths.output_dir)

    with create_engine(cfg.engine) as engine:
        result = run_pipeline(cfg, engine, plot_dir=run_dir if plots else None)

    save_run_artifacts(
        cfg.paths.output_dir,
        result.to_metrics(),
        provenance,
        config_snapshot=json.loads(cfg.model_dump_json()),
        run_id=run_dir.name,
    )
    log(f"evaluate | accuracy={result.accuracy:.4f}", severity="metric")

    console.print("-" * 65)
    console.print("[bold green]Testing complete[/bold green]")
    console.print(f"  Train / test: {result.n_train} / {result.n_test}")
    console.print(f"  Labels: {result.labels}")
    console.print(f"  Accuracy: {result.accuracy:.4f}")
    console.print("-" * 65)
    console.print(result.confusion.to_string())
    console.print(f"\nModel saved to {result.model_path}")
    console.print(f"Run artifacts: {run_dir}")


@app.command()
def labels(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    input_path: Optional[str] = typer.Option(None, "--input", "-i", help="Local image root (overrides config)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max rows to list"),
) -> None:
    """Show labels extracted from file paths and the resulting label index.

    Uses local file discovery, so the input must be a local directory.
    """
    from pneumonia_classifier.data.labels import build_label_pattern, extract_label, index_labels
    from pneumonia_classifier.data.loader import discover_images

    cfg = _load(config)
    root = input_path if input_path is not None else cfg.paths.input_path

    files = discover_images(root, cfg.loader.path_glob_filter, cfg.loader.recursive)
    pattern = build_label_pattern(cfg.labels.categories)
    extracted = [(p, extract_label(p.absolute().as_posix(), pattern)) for p in files]

    table = Table(title=f"Labels under {root}")
    table.add_column("path")
    table.add_column("labelString")
    for p, label in extracted[:limit]:
        table.add_row(str(p), label or "[dim]<unlabeled>[/dim]")
    console.print(table)

    mapping = index_labels(label for _, label in extracted)
    counts = {label: 0 for label in mapping}
    for _, label in extracted:
        counts[label] += 1
    console.print(f"\n[bold]{len(files)} files[/bold], pattern {pattern}")
    for label, idx in mapping.items():
        console.print(f"  {idx}: {label or '<unlabeled>'} ({counts[label]} files)")


@app.command()
def featurize(
    image: Path = typer.Argument(..., help="Image file to vectorize"),
    width: int = typer.Option(128, "--width", help="Resize target width"),
    height: int = typer.Option(128, "--height", help="Resize target height"),
    resample: str = typer.Option("box", "--resample", help="box | bilinear | hamming | bicubic | lanczos"),
) -> None:
    """Vectorize one image and print a summary of the feature vector."""
    from pneumonia_classifier.features.pixels import ImageVectorizer

    if not image.is_file():
        raise typer.BadParameter(f"Not a file: {image}", param_hint="IMAGE")

    try:
        vectorizer = ImageVectorizer(width=width, height=height, resample=resample)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    vector, decoded = vectorizer.transform_with_status(image.read_bytes())

    console.print(f"[bold]{image}[/bold] ({vectorizer.name})")
    console.print(f"  length: {vector.size}")
    console.print(f"  min / max / mean: {vector.min():.4f} / {vector.max():.4f} / {vector.mean():.4f}")
    if decoded:
        console.print("  decoded: [green]yes[/green]")
    else:
        console.print("  decoded: [red]no, zero vector substituted[/red]")


if __name__ == "__main__":
    app()
