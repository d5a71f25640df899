"""Exception taxonomy for the AR preparation pipeline."""

from __future__ import annotations


class AecarError(Exception):
    """Base class for all pipeline errors."""


class MalformedContainer(AecarError):
    """Raised when a GLB header, magic, or chunk layout is invalid.

    Fatal: the upload must be rejected and no artifact produced.
    """


class UnsupportedTopology(AecarError):
    """Raised for a primitive whose mode is not TRIANGLES."""


class MissingAttribute(AecarError):
    """Raised when a primitive or accessor lacks data it must carry."""


class ExchangeParseFailure(AecarError):
    """Raised when an IFC text buffer yields no usable entities."""


class OptimizationPassFailure(AecarError):
    """Raised when a single optimization pass cannot be applied."""

    def __init__(self, pass_name: str, message: str) -> None:
        super().__init__(f"{pass_name}: {message}")
        self.pass_name = pass_name


class ArchiveSynthesisFailure(AecarError):
    """Raised when the USDZ archive cannot be produced."""
