"""AEC AR — prepare building models for web and mobile augmented reality."""

__version__ = "1.0.0"

from aecar.annotations.extractor import enrich_annotations, extract_annotations
from aecar.config import Settings, configure_logging, load_settings
from aecar.container.codec import Container, read_container, write_container
from aecar.errors import (
    AecarError,
    ArchiveSynthesisFailure,
    ExchangeParseFailure,
    MalformedContainer,
    MissingAttribute,
    OptimizationPassFailure,
    UnsupportedTopology,
)
from aecar.exchange.elements import build_exchange_index
from aecar.exchange.parser import EntityTable, IfcEntity, parse_entities
from aecar.models.annotation import Annotation, AnnotationResult, Position
from aecar.models.element import ExchangeElement, ExchangeIndex
from aecar.models.results import OptimizationReport, PassReport, UploadResult
from aecar.optimize.bounds import patch_accessor_bounds
from aecar.optimize.pipeline import ARCompatibilityPipeline, optimize_for_ar
from aecar.pipeline import process_upload
from aecar.scene.graph import SceneGraph
from aecar.scene.io import read_scene_graph, write_scene_graph
from aecar.usdz.synthesizer import convert_to_usdz, synthesize_usdz

__all__ = [
    "__version__",
    # Entry points
    "convert_to_usdz",
    "optimize_for_ar",
    "process_upload",
    # Container and scene graph
    "Container",
    "SceneGraph",
    "read_container",
    "read_scene_graph",
    "write_container",
    "write_scene_graph",
    # IFC
    "EntityTable",
    "IfcEntity",
    "build_exchange_index",
    "parse_entities",
    # Annotations
    "enrich_annotations",
    "extract_annotations",
    # Optimization and archive
    "ARCompatibilityPipeline",
    "patch_accessor_bounds",
    "synthesize_usdz",
    # Models
    "Annotation",
    "AnnotationResult",
    "ExchangeElement",
    "ExchangeIndex",
    "OptimizationReport",
    "PassReport",
    "Position",
    "UploadResult",
    # Configuration
    "Settings",
    "configure_logging",
    "load_settings",
    # Errors
    "AecarError",
    "ArchiveSynthesisFailure",
    "ExchangeParseFailure",
    "MalformedContainer",
    "MissingAttribute",
    "OptimizationPassFailure",
    "UnsupportedTopology",
]
