"""
Engine Registry
===============

Factory for ``PipelineEngine`` instances from config. This is the single
entry point for engine construction.

Design Principles:
    - Maps backend name → concrete class via lazy imports, so ``pyspark``
      is only imported when the spark backend is requested
    - ``create_engine(engine_cfg)`` for Pydantic ``EngineConfig`` objects
    - ``register_backend()`` allows third-party engines at runtime

Usage::

    from pneumonia_classifier.engines.registry import create_engine

    with create_engine(cfg.engine) as engine:
        frame = engine.load_images(...)
"""

from __future__ import annotations

import importlib

from pneumonia_classifier.engines.base import PipelineEngine
from pneumonia_classifier.utils.logging import get_logger

logger = get_logger(__name__)

# backend name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "spark": ("pneumonia_classifier.engines.spark", "SparkEngine"),
    "local": ("pneumonia_classifier.engines.local", "LocalEngine"),
}


def list_backends() -> list[str]:
    """Return all registered engine backend names."""
    return list(_REGISTRY.keys())


def register_backend(name: str, module_path: str, class_name: str) -> None:
    """Register a custom engine backend.

    The class must subclass ``PipelineEngine`` and provide a
    ``from_config(engine_cfg)`` classmethod.
    """
    _REGISTRY[name] = (module_path, class_name)
    logger.info("Registered engine backend: %s → %s.%s", name, module_path, class_name)


def create_engine(engine_cfg) -> PipelineEngine:
    """Create an (unstarted) engine from an ``EngineConfig``.

    Parameters
    ----------
    engine_cfg : EngineConfig
        Engine section of the pipeline config.

    Returns
    -------
    PipelineEngine
        Use it as a context manager to start and reliably stop it.

    Raises
    ------
    ValueError
        If the backend is not registered.
    """
    backend = engine_cfg.backend
    if backend not in _REGISTRY:
        raise ValueError(
            f"Unknown engine backend: '{backend}'. "
            f"Available: {list_backends()}. "
            f"Register custom backends with register_backend()."
        )

    module_path, class_name = _REGISTRY[backend]
    cls = getattr(importlib.import_module(module_path), class_name)
    if not issubclass(cls, PipelineEngine):
        raise TypeError(f"{module_path}.{class_name} is not a PipelineEngine")

    logger.info("Creating engine: backend=%s", backend)
    return cls.from_config(engine_cfg)
