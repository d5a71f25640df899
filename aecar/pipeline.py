"""Upload processing — the request-scoped entry point.

Entry point: ``process_upload(glb_bytes, ifc_bytes=None)``

Takes the uploaded GLB (and optional IFC text) in memory and returns the
annotations, the AR-optimized GLB, and the USDZ archive.  Only an invalid
GLB container aborts the upload; every other failure degrades to a
reduced result with a warning.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from aecar.annotations.extractor import enrich_annotations, extract_annotations
from aecar.config import Settings, load_settings
from aecar.container.codec import read_container
from aecar.errors import AecarError, ExchangeParseFailure
from aecar.exchange.elements import build_exchange_index
from aecar.models.element import ExchangeIndex
from aecar.models.results import OptimizationReport, UploadResult
from aecar.optimize.pipeline import ARCompatibilityPipeline
from aecar.scene.io import read_scene_graph
from aecar.usdz.synthesizer import synthesize_usdz

logger = logging.getLogger(__name__)


def _load_exchange(ifc_bytes: bytes | str, warnings: list[str]) -> ExchangeIndex | None:
    try:
        return build_exchange_index(ifc_bytes)
    except ExchangeParseFailure as exc:
        logger.warning("IFC enrichment disabled: %s", exc)
        warnings.append(f"IFC enrichment disabled: {exc}")
        return None


def process_upload(
    glb_bytes: bytes,
    ifc_bytes: bytes | str | None = None,
    *,
    color_map: Mapping[str, Sequence[float]] | None = None,
    settings: Settings | None = None,
) -> UploadResult:
    """Produce every artifact for one uploaded model.

    Parameters
    ----------
    glb_bytes:
        The binary glTF container as uploaded.
    ifc_bytes:
        Optional IFC (STEP text) exported from the same model.
    color_map:
        Optional material name -> RGBA overrides applied before merging.
    settings:
        Runtime settings; read from the environment when omitted.

    Raises
    ------
    MalformedContainer
        When *glb_bytes* is not a valid GLB.  No artifact is produced.
    """
    settings = settings or load_settings()
    warnings: list[str] = []

    container = read_container(glb_bytes)
    graph = read_scene_graph(container)
    logger.info(
        "Read GLB: %d bytes, %d nodes, %d meshes",
        len(glb_bytes), len(graph.nodes), len(graph.meshes),
    )

    exchange = _load_exchange(ifc_bytes, warnings) if ifc_bytes else None
    annotations = enrich_annotations(extract_annotations(graph), exchange)

    pipeline = ARCompatibilityPipeline(color_map=color_map, settings=settings)
    try:
        optimized, report = pipeline.optimize(graph)
    except Exception as exc:
        logger.warning("GLB optimization failed, keeping original", exc_info=True)
        warnings.append(f"GLB optimization failed, original kept: {exc}")
        optimized, report = glb_bytes, OptimizationReport()
    warnings.extend(f"Optimization pass skipped: {p.message}" for p in report.failed)

    usdz: bytes | None = None
    if settings.build_usdz:
        try:
            usdz = synthesize_usdz(graph, settings.usdz_entry_name)
        except AecarError as exc:
            logger.warning("USDZ generation failed: %s", exc, exc_info=True)
            warnings.append(str(exc))

    return UploadResult(
        annotations=annotations.annotations,
        ifc_enriched=annotations.ifc_enriched,
        glb_only=annotations.glb_only,
        optimized_glb=optimized,
        usdz=usdz,
        warnings=warnings,
        optimization=report,
    )
