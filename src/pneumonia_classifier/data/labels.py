"""
Directory-Encoded Labels
========================

Derives the class label of an image from its path and maps label strings
to integer indices.

Design Principles:
    - The label is the category name that appears as a whole directory
      component: ``.../NORMAL/img.jpeg`` → ``"NORMAL"``
    - Non-matching paths yield ``""`` rather than an error
    - The same regular expression is handed to Spark's ``regexp_extract``
      and to Python's ``re`` so both engines label identically
    - Index order is alphabetical ascending over the distinct label strings,
      independent of record order
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

UNLABELED = ""


def build_label_pattern(categories: Sequence[str]) -> str:
    """Build the path regex whose group 1 is the category name.

    >>> build_label_pattern(["NORMAL", "PNEUMONIA"])
    '.*/(NORMAL|PNEUMONIA)/.*'
    """
    if not categories:
        raise ValueError("At least one category is required")
    alternation = "|".join(re.escape(c) for c in categories)
    return f".*/({alternation})/.*"


def extract_label(path: str, pattern: str) -> str:
    """Return group 1 of ``pattern`` searched in ``path``, or ``""``.

    Matches Spark ``regexp_extract(path, pattern, 1)``: the greedy leading
    ``.*`` means the deepest matching directory wins.
    """
    m = re.search(pattern, path)
    if m is None or m.group(1) is None:
        return UNLABELED
    return m.group(1)


def index_labels(labels: Iterable[str]) -> dict[str, int]:
    """Map each distinct label string to its alphabetical rank.

    Parameters
    ----------
    labels : iterable of str
        Label strings in any order, duplicates allowed.

    Returns
    -------
    dict[str, int]
        ``{label: index}`` with indices 0..K-1 in ascending string order.
        The empty label, if present, sorts first.
    """
    return {label: i for i, label in enumerate(sorted(set(labels)))}


def ordered_labels(label_index: dict[str, int]) -> list[str]:
    """Invert ``index_labels`` into a list where position == index."""
    return [label for label, _ in sorted(label_index.items(), key=lambda kv: kv[1])]
