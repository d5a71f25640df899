"""AR-compatibility transform pipeline."""

from aecar.optimize.bounds import patch_accessor_bounds
from aecar.optimize.pipeline import ARCompatibilityPipeline, optimize_for_ar

__all__ = ["ARCompatibilityPipeline", "optimize_for_ar", "patch_accessor_bounds"]
