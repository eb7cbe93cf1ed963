"""
Structured Logging for pneumonia-classifier
===========================================

Two-tier logging: a Rich console handler for interactive runs and an
optional plain-text file handler for batch / cluster submissions.

Design Principles:
    - Module-level singleton with explicit ``configure_logging()``
    - Pipe-delimited key=value format for structured log messages
    - Color-coded severity levels for fast visual scanning
    - Simultaneous file + console output for auditability

Severity Levels:
    info     (cyan)     : routine progress
    ok       (green)    : successful completion
    warn     (yellow)   : recoverable issues
    error    (red)      : failures
    metric   (magenta)  : quantitative results (accuracy, counts)

Usage::

    from pneumonia_classifier.utils.logging import get_logger, log

    logger = get_logger(__name__)
    logger.info("split | train=7 test=3 seed=12345")
    log("evaluate | accuracy=1.0000", severity="metric")
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

SEVERITY_COLORS = {
    "info":   "cyan",
    "ok":     "green",
    "warn":   "yellow",
    "error":  "red",
    "metric": "magenta",
}

_PLAIN_FORMAT = "[%(asctime)s] %(levelname)-7s %(name)s | %(message)s"

_console = Console(stderr=True)
_file_handler: Optional[logging.FileHandler] = None
_configured = False
_log_dir: Optional[Path] = None


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[str | Path] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the global logging system.

    Call once at pipeline start.  Safe to call multiple times; only the
    first call installs handlers, later calls just update the root level.

    Args:
        level:    Log level string (DEBUG, INFO, WARNING, ERROR).
        log_dir:  Directory for log files.  Created if needed.
        log_file: Log filename.  Defaults to ``pneumonia_classifier_<timestamp>.log``.
    """
    global _configured, _file_handler, _log_dir

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if _configured:
        return

    console_handler = RichHandler(
        console=_console,
        rich_tracebacks=True,
        show_path=False,
        markup=True,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    # py4j logs every gateway round-trip at INFO
    logging.getLogger("py4j").setLevel(logging.WARNING)

    if log_dir is not None:
        _log_dir = Path(log_dir)
        _log_dir.mkdir(parents=True, exist_ok=True)
        if log_file is None:
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = f"pneumonia_classifier_{ts}.log"
        fh = logging.FileHandler(_log_dir / log_file, encoding="utf-8")
        fh.setFormatter(logging.Formatter(_PLAIN_FORMAT))
        root.addHandler(fh)
        _file_handler = fh

    _configured = True


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger, configuring the logging system with defaults on first use.

    Args:
        name:  Logger name (typically ``__name__``).
        level: Per-logger level override.

    Returns:
        ``logging.Logger`` instance.
    """
    if not _configured:
        configure_logging()

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def log(msg: str, severity: str = "info") -> None:
    """
    Quick-log a message with a severity tag.

    Args:
        msg:      Pipe-delimited message (e.g. ``"evaluate | accuracy=0.93"``).
        severity: One of info, ok, warn, error, metric.
    """
    logger = get_logger("pneumonia-classifier")
    colour = SEVERITY_COLORS.get(severity, "white")

    if severity == "error":
        logger.error(msg)
    elif severity == "warn":
        logger.warning(msg)
    else:
        logger.info(f"[{colour}]{msg}[/{colour}]")
