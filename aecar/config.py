"""Global configuration: constants and environment-driven settings."""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import BaseModel

# Binary container (GLB) layout
GLB_MAGIC = 0x46546C67  # "glTF"
GLB_VERSION = 2
GLB_HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8
JSON_CHUNK_TYPE = 0x4E4F534A  # "JSON"
BIN_CHUNK_TYPE = 0x004E4942  # "BIN\0"

# Neutral PBR defaults used when a material is invalid or missing
DEFAULT_BASE_COLOR = (0.8, 0.8, 0.8, 1.0)
DEFAULT_METALLIC = 0.0
DEFAULT_ROUGHNESS = 1.0
DEFAULT_MATERIAL_NAME = "DefaultMaterial"

# IFC entity type tags treated as building elements (STEP upper-case form)
ELEMENT_TYPES = frozenset({
    "IFCBEAM",
    "IFCWALL",
    "IFCWALLSTANDARDCASE",
    "IFCMEMBER",
    "IFCPLATE",
    "IFCCOLUMN",
    "IFCSLAB",
    "IFCBUILDINGELEMENTPROXY",
    "IFCDOOR",
    "IFCWINDOW",
    "IFCROOF",
    "IFCFOOTING",
    "IFCCOVERING",
    "IFCRAILING",
    "IFCSTAIR",
    "IFCSTAIRFLIGHT",
})

# USDZ packaging
USDZ_ALIGNMENT = 64
USDZ_PADDING_HEADER_ID = 0x1986

# All known configuration keys with defaults
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "AECAR_LOG_LEVEL": {"default": "INFO", "description": "Logging level"},
    "AECAR_USDZ_ENTRY_NAME": {"default": "model.usda", "description": "File name of the USDA entry inside the USDZ"},
    "AECAR_WELD_TOLERANCE": {"default": "0.0001", "description": "Vertex weld tolerance (0 = exact match)"},
    "AECAR_BUILD_USDZ": {"default": "true", "description": "Produce the USDZ artifact on upload"},
}


class Settings(BaseModel):
    """Resolved runtime settings."""

    log_level: str = "INFO"
    usdz_entry_name: str = "model.usda"
    weld_tolerance: float = 0.0001
    build_usdz: bool = True


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Load settings: key defaults overridden by environment variables."""
    env = os.environ if environ is None else environ
    values = {key: env.get(key, info["default"]) for key, info in _CONFIG_KEYS.items()}
    return Settings(
        log_level=values["AECAR_LOG_LEVEL"].upper(),
        usdz_entry_name=values["AECAR_USDZ_ENTRY_NAME"],
        weld_tolerance=float(values["AECAR_WELD_TOLERANCE"]),
        build_usdz=values["AECAR_BUILD_USDZ"].strip().lower() in ("1", "true", "yes", "on"),
    )


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the ``aecar`` logger tree."""
    settings = settings or load_settings()
    logging.getLogger("aecar").setLevel(settings.log_level)
