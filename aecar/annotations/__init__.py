"""Per-node annotation extraction and IFC enrichment."""

from aecar.annotations.extractor import enrich_annotations, extract_annotations

__all__ = ["enrich_annotations", "extract_annotations"]
