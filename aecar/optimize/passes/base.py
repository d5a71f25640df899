"""Abstract OptimizationPass interface."""

from __future__ import annotations

import abc

from aecar.scene.graph import SceneGraph


class OptimizationPass(abc.ABC):
    """Base class for all scene-graph repair and optimization passes."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short pass identifier."""

    @abc.abstractmethod
    def apply(self, graph: SceneGraph) -> str:
        """Mutate *graph* in place.

        Returns a one-line summary of what changed.  Any exception aborts
        this pass only; the pipeline restores the graph and continues.
        """
