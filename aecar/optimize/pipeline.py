"""ARCompatibilityPipeline — make a GLB safe for WebXR and AR Quick Look.

Usage::

    from aecar.optimize import optimize_for_ar

    glb = optimize_for_ar(source_bytes, color_map={"Concrete": [0.5, 0.5, 0.5, 1]})
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence

from aecar.config import Settings, load_settings
from aecar.container.codec import read_container, write_container
from aecar.errors import OptimizationPassFailure
from aecar.models.results import OptimizationReport, PassReport
from aecar.optimize.bounds import patch_accessor_bounds
from aecar.optimize.passes import OptimizationPass, default_passes
from aecar.scene.graph import SceneGraph
from aecar.scene.io import read_scene_graph, write_scene_graph

logger = logging.getLogger(__name__)


class ARCompatibilityPipeline:
    """Ordered, individually best-effort repair passes plus the bounds patch.

    A pass that raises is rolled back: the graph is restored to its state
    before that pass and the remaining passes still run.
    """

    def __init__(
        self,
        passes: list[OptimizationPass] | None = None,
        *,
        color_map: Mapping[str, Sequence[float]] | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or load_settings()
        if passes is None:
            passes = default_passes(color_map, settings.weld_tolerance)
        self.passes = passes

    def add_pass(self, optimization_pass: OptimizationPass) -> None:
        """Append an additional pass to the end of the sequence."""
        self.passes.append(optimization_pass)

    def run(self, graph: SceneGraph) -> OptimizationReport:
        """Apply every pass to *graph* in place."""
        report = OptimizationReport()
        for opt_pass in self.passes:
            snapshot = copy.deepcopy(graph)
            try:
                message = opt_pass.apply(graph)
            except Exception as exc:
                graph.__dict__.update(snapshot.__dict__)
                failure = OptimizationPassFailure(opt_pass.name, str(exc))
                logger.warning("Skipping pass %s", failure, exc_info=True)
                report.passes.append(
                    PassReport(name=opt_pass.name, applied=False, message=str(failure))
                )
                continue
            logger.debug("Pass %s: %s", opt_pass.name, message)
            report.passes.append(PassReport(name=opt_pass.name, message=message))
        return report

    def optimize(self, graph: SceneGraph) -> tuple[bytes, OptimizationReport]:
        """Run the passes, serialise, and patch accessor bounds."""
        report = self.run(graph)
        glb = write_container(write_scene_graph(graph))
        glb, report.patched_accessors = patch_accessor_bounds(glb)
        logger.info(
            "Optimized GLB: %d bytes, %d passes failed, %d accessors bounded",
            len(glb), len(report.failed), report.patched_accessors,
        )
        return glb, report


def optimize_for_ar(
    glb: bytes,
    color_map: Mapping[str, Sequence[float]] | None = None,
    settings: Settings | None = None,
) -> bytes:
    """Return an AR-compatible copy of *glb*.

    Raises :class:`~aecar.errors.MalformedContainer` for invalid input.
    """
    graph = read_scene_graph(read_container(glb))
    optimized, _ = ARCompatibilityPipeline(color_map=color_map, settings=settings).optimize(graph)
    return optimized
