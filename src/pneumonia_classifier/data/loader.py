"""
Local Image Loader
==================

Discovers image files under a local directory and reads their bytes,
producing the same ``(path, content)`` records Spark's ``binaryFile``
source yields.

Design Principles:
    - Glob filter applies to the file *name*, like Spark's ``pathGlobFilter``
    - Recursive lookup descends into every subdirectory, following
      symlinked directories
    - Files or directories whose name starts with ``.`` or ``_`` are
      skipped, as Hadoop's file listing does (``__MACOSX``, ``._x.jpeg``)
    - Paths are reported as listed, not resolved, so a symlinked file keeps
      the category directory its label comes from
    - Deterministic order (sorted paths) so runs are reproducible
    - A missing root is fatal (``FileNotFoundError``); so is an empty match
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterator

import pandas as pd

from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)


def to_local_path(root: str | Path) -> Path:
    """Convert a local path or ``file:`` URI to a ``Path``; reject remote URIs."""
    root = str(root)
    if root.startswith("file://"):
        root = root[len("file://"):]
    elif root.startswith("file:"):
        root = root[len("file:"):]
    if "://" in root:
        raise ValueError(
            f"Local loader cannot read remote path: {root}. Use the spark backend."
        )
    return Path(root)


def discover_images(
    root: str | Path,
    glob_filter: str = "*.jpeg",
    recursive: bool = True,
) -> list[Path]:
    """List image files under ``root`` whose filename matches ``glob_filter``.

    Parameters
    ----------
    root : str | Path
        Directory to scan. ``file:`` URIs are accepted.
    glob_filter : str
        Filename pattern (e.g. ``"*.jpeg"``).
    recursive : bool
        Whether to descend into subdirectories.

    Returns
    -------
    list[Path]
        Sorted list of matching files.

    Raises
    ------
    FileNotFoundError
        If ``root`` does not exist or is not a directory.
    ValueError
        If ``root`` is a remote URI (hdfs://, s3a://, ...).
    """
    root = to_local_path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Input directory not found: {root}")

    if recursive:
        candidates = _walk(root)
    else:
        candidates = (p for p in root.iterdir() if not is_hidden_name(p.name))
    files = sorted(
        p for p in candidates if p.is_file() and fnmatch.fnmatchcase(p.name, glob_filter)
    )
    logger.info(
        "discover | root=%s filter=%s recursive=%s n_files=%d",
        root, glob_filter, recursive, len(files),
    )
    return files


def is_hidden_name(name: str) -> bool:
    """True for names Hadoop's file listing skips (``.foo``, ``_foo``)."""
    return name.startswith((".", "_"))


def _walk(root: Path) -> Iterator[Path]:
    # followlinks: symlinked category directories are part of the tree.
    # chains maps each listed directory to the real paths above it.
    chains = {os.fspath(root): {os.path.realpath(root)}}
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        chain = chains.pop(dirpath)
        kept = []
        for d in dirnames:
            if is_hidden_name(d):
                continue
            sub = os.path.join(dirpath, d)
            real = os.path.realpath(sub)
            if real in chain:
                # link back to an ancestor would recurse forever
                continue
            chains[sub] = chain | {real}
            kept.append(d)
        dirnames[:] = kept
        for name in filenames:
            if not is_hidden_name(name):
                yield Path(dirpath) / name


def load_image_records(
    root: str | Path,
    glob_filter: str = "*.jpeg",
    recursive: bool = True,
) -> pd.DataFrame:
    """Read every discovered image into a ``(path, content)`` DataFrame.

    Raises
    ------
    FileNotFoundError
        If ``root`` is missing.
    ValueError
        If no file matches the filter.
    """
    files = discover_images(root, glob_filter, recursive)
    if not files:
        raise ValueError(f"No files matching '{glob_filter}' under {root}")

    records = [
        {"path": p.absolute().as_posix(), "content": p.read_bytes()} for p in files
    ]
    return pd.DataFrame.from_records(records, columns=["path", "content"])
