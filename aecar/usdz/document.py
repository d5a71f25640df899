"""USDA text generation: prim names, number formatting, and stage layout."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

GEOMETRY_PLACES = 6
MATERIAL_PLACES = 4

ROOT_PATH = "/Root"
GEOM_PATH = f"{ROOT_PATH}/Geom"
MATERIALS_PATH = f"{ROOT_PATH}/Materials"
SHADER_NAME = "PBRShader"

_ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_name(raw: str, fallback: str = "_unnamed") -> str:
    """Map *raw* onto the USD identifier alphabet ``[A-Za-z0-9_]``."""
    name = _ILLEGAL_CHARS.sub("_", raw)
    if not name:
        return fallback
    if name[0].isdigit():
        name = "_" + name
    return name


class UniqueNames:
    """Hands out sanitized names, suffixing ``_1``, ``_2``... on collision."""

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._taken

    def claim(self, raw: str, fallback: str = "_unnamed") -> str:
        base = sanitize_name(raw, fallback)
        name = base
        suffix = 1
        while name in self._taken:
            name = f"{base}_{suffix}"
            suffix += 1
        self._taken.add(name)
        return name


def format_number(value: float, places: int) -> str:
    text = f"{value:.{places}f}"
    if text.startswith("-") and float(text) == 0:
        return text[1:]
    return text


def format_tuple(values: Iterable[float], places: int = GEOMETRY_PLACES) -> str:
    return "(" + ", ".join(format_number(v, places) for v in values) + ")"


def format_tuple_array(elements: Iterable[Sequence[float]], places: int = GEOMETRY_PLACES) -> str:
    return "[" + ", ".join(format_tuple(e, places) for e in elements) + "]"


def format_int_array(values: Iterable[int]) -> str:
    return "[" + ", ".join(str(int(v)) for v in values) + "]"


@dataclass
class MaterialPrim:
    name: str
    diffuse_color: tuple[float, float, float]
    metallic: float
    roughness: float
    opacity: float

    @property
    def path(self) -> str:
        return f"{MATERIALS_PATH}/{self.name}"

    def render(self, indent: str = "        ") -> str:
        m = MATERIAL_PLACES
        lines = [
            f'def Material "{self.name}"',
            "{",
            f"    token outputs:surface.connect = <{self.path}/{SHADER_NAME}.outputs:surface>",
            "",
            f'    def Shader "{SHADER_NAME}"',
            "    {",
            '        uniform token info:id = "UsdPreviewSurface"',
            f"        color3f inputs:diffuseColor = {format_tuple(self.diffuse_color, m)}",
            f"        float inputs:metallic = {format_number(self.metallic, m)}",
            f"        float inputs:roughness = {format_number(self.roughness, m)}",
            f"        float inputs:opacity = {format_number(self.opacity, m)}",
            "        token outputs:surface",
            "    }",
            "}",
        ]
        return "\n".join(indent + line if line else line for line in lines)


@dataclass
class MeshPrim:
    """One triangle primitive placed by its accumulated world transform."""

    name: str
    points: list[tuple[float, ...]]
    face_vertex_indices: list[int]
    material_path: str
    normals: list[tuple[float, ...]] = field(default_factory=list)
    uvs: list[tuple[float, ...]] = field(default_factory=list)
    translate: tuple[float, float, float] | None = None
    orient: tuple[float, float, float, float] | None = None
    scale: tuple[float, float, float] | None = None

    @property
    def face_vertex_counts(self) -> list[int]:
        return [3] * (len(self.face_vertex_indices) // 3)

    def xform_ops(self) -> list[str]:
        """Property lines for the non-identity transform components."""
        ops: list[str] = []
        order: list[str] = []
        if self.translate is not None:
            ops.append(f"double3 xformOp:translate = {format_tuple(self.translate)}")
            order.append('"xformOp:translate"')
        if self.orient is not None:
            x, y, z, w = self.orient
            ops.append(f"quatf xformOp:orient = {format_tuple((w, x, y, z))}")
            order.append('"xformOp:orient"')
        if self.scale is not None:
            ops.append(f"float3 xformOp:scale = {format_tuple(self.scale)}")
            order.append('"xformOp:scale"')
        if ops:
            ops.append(f"uniform token[] xformOpOrder = [{', '.join(order)}]")
        return ops

    def render(self, indent: str = "        ") -> str:
        lines = [
            f'def Xform "{self.name}" (',
            '    prepend apiSchemas = ["MaterialBindingAPI"]',
            ")",
            "{",
        ]
        lines.extend("    " + op for op in self.xform_ops())
        lines.extend([
            f"    rel material:binding = <{self.material_path}>",
            "",
            f'    def Mesh "{self.name}_mesh"',
            "    {",
            f"        int[] faceVertexCounts = {format_int_array(self.face_vertex_counts)}",
            f"        int[] faceVertexIndices = {format_int_array(self.face_vertex_indices)}",
            f"        point3f[] points = {format_tuple_array(self.points)}",
        ])
        if self.normals:
            lines.append(f"        normal3f[] normals = {format_tuple_array(self.normals)}")
        if self.uvs:
            lines.extend([
                f"        float2[] primvars:st = {format_tuple_array(self.uvs)} (",
                '            interpolation = "vertex"',
                "        )",
            ])
        lines.append("    }")
        lines.append("}")
        return "\n".join(indent + line if line else line for line in lines)


def render_stage(meshes: Sequence[MeshPrim], materials: Sequence[MaterialPrim]) -> str:
    """Assemble the complete ``.usda`` layer."""
    parts = [
        "#usda 1.0",
        "(",
        '    defaultPrim = "Root"',
        "    metersPerUnit = 1",
        '    upAxis = "Y"',
        ")",
        "",
        'def Xform "Root"',
        "{",
        '    def Scope "Geom"',
        "    {",
    ]
    if meshes:
        parts.append("\n\n".join(mesh.render() for mesh in meshes))
    parts.extend([
        "    }",
        "",
        '    def Scope "Materials"',
        "    {",
    ])
    if materials:
        parts.append("\n\n".join(material.render() for material in materials))
    parts.extend([
        "    }",
        "}",
        "",
    ])
    return "\n".join(parts)
