"""USDZ archive synthesis."""

from aecar.usdz.archive import build_usdz
from aecar.usdz.document import UniqueNames, sanitize_name
from aecar.usdz.synthesizer import build_stage, compose, convert_to_usdz, synthesize_usdz

__all__ = [
    "UniqueNames",
    "build_stage",
    "build_usdz",
    "compose",
    "convert_to_usdz",
    "sanitize_name",
    "synthesize_usdz",
]
