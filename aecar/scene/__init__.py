"""Scene graph model and its container conversion."""

from aecar.scene.accessors import Accessor, ComponentType, ElementShape
from aecar.scene.graph import (
    Material,
    Mesh,
    Node,
    Primitive,
    PrimitiveMode,
    Scene,
    SceneGraph,
)
from aecar.scene.io import read_scene_graph, write_scene_graph

__all__ = [
    "Accessor",
    "ComponentType",
    "ElementShape",
    "Material",
    "Mesh",
    "Node",
    "Primitive",
    "PrimitiveMode",
    "Scene",
    "SceneGraph",
    "read_scene_graph",
    "write_scene_graph",
]
