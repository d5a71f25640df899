"""Pydantic value objects returned by the pipeline."""

from aecar.models.annotation import Annotation, AnnotationResult, Position
from aecar.models.element import ExchangeElement, ExchangeIndex
from aecar.models.results import OptimizationReport, PassReport, UploadResult

__all__ = [
    "Annotation",
    "AnnotationResult",
    "ExchangeElement",
    "ExchangeIndex",
    "OptimizationReport",
    "PassReport",
    "Position",
    "UploadResult",
]
