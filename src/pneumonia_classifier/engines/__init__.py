"""
Compute engines that carry records through the pipeline.

``create_engine`` is re-exported; concrete engines are imported lazily so
that ``pyspark`` is only required by the spark backend.
"""

from pneumonia_classifier.engines.base import PipelineEngine
from pneumonia_classifier.engines.registry import create_engine, list_backends, register_backend

__all__ = ["PipelineEngine", "create_engine", "list_backends", "register_backend"]
