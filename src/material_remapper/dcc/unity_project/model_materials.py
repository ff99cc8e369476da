"""Enumerate the internal material names baked into model files.

Supported sources:
    - Wavefront OBJ: ``usemtl`` statements grouped by ``o``/``g`` objects.
    - FBX: ASCII ``"Material::Name"`` records and binary ``Name\\x00\\x01Material``
      name records.
    - USD (usd, usda, usdc, usdz): material bindings of every geometry prim,
      including GeomSubset bindings, read with ``pxr``.
"""

from __future__ import annotations

import gc
import logging
import re
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from ...core.exceptions import AssetParseError

logger = logging.getLogger(__name__)

USD_SUFFIXES = frozenset({".usd", ".usda", ".usdc", ".usdz"})

_FBX_BINARY_MAGIC = b"Kaydara FBX Binary"
# FBX 7: Material: 123456, "Material::Body", "" / FBX 6: Material: "Material::Body", ""
_FBX_ASCII_MATERIAL_PATTERN = re.compile(
    r'^\s*Material:\s*(?:-?\d+\s*,\s*)?"Material::([^"]*)"', re.MULTILINE
)
# String property record: b"S" + uint32 length + b"Name\x00\x01Material"
_FBX_BINARY_MATERIAL_MARKER = re.compile(re.escape(b"\x00\x01Material"))
_FBX_MAX_NAME_LENGTH = 1024


@dataclass(frozen=True)
class ModelMesh:
    """A renderable part of a model and its internal material names.

    Attributes:
        name: Object, node or prim path the materials belong to.
        material_names: Material names in slot order.
    """

    name: str
    material_names: Tuple[str, ...]


def _append_unique(names: List[str], name: str) -> None:
    if name and name not in names:
        names.append(name)


def read_obj_materials(content: str, default_name: str = "default") -> List[ModelMesh]:
    """Group OBJ ``usemtl`` names by the object or group that uses them."""
    groups: Dict[str, List[str]] = {}
    current = default_name
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith(("o ", "g ")):
            current = line[2:].strip() or default_name
            continue
        if not line.startswith("usemtl"):
            continue
        parts = line.split(None, 1)
        if len(parts) < 2:
            continue
        _append_unique(groups.setdefault(current, []), parts[1].strip())
    return [ModelMesh(name, tuple(names)) for name, names in groups.items() if names]


def _binary_fbx_material_names(data: bytes) -> Iterator[str]:
    for marker in _FBX_BINARY_MATERIAL_MARKER.finditer(data):
        record_end = marker.end()
        lowest = max(marker.start() - 5 - _FBX_MAX_NAME_LENGTH, -1)
        for start in range(marker.start() - 5, lowest, -1):
            if data[start:start + 1] != b"S":
                continue
            (length,) = struct.unpack_from("<I", data, start + 1)
            if start + 5 + length == record_end:
                yield data[start + 5:marker.start()].decode("utf-8", errors="replace")
                break


def read_fbx_materials(data: bytes, default_name: str = "root") -> List[ModelMesh]:
    """Read material names from ASCII or binary FBX content."""
    names: List[str] = []
    if data.startswith(_FBX_BINARY_MAGIC):
        for name in _binary_fbx_material_names(data):
            _append_unique(names, name)
    else:
        text = data.decode("utf-8", errors="replace")
        for match in _FBX_ASCII_MATERIAL_PATTERN.finditer(text):
            _append_unique(names, match.group(1))
    if not names:
        return []
    return [ModelMesh(default_name, tuple(names))]


def read_usd_materials(path: Path) -> List[ModelMesh]:
    """Collect bound material names of every geometry prim in a USD stage.

    Raises:
        AssetParseError: If the stage cannot be opened.
    """
    from pxr import Tf, Usd, UsdGeom, UsdShade

    try:
        stage = Usd.Stage.Open(str(path))
    except Tf.ErrorException as exc:
        raise AssetParseError(
            "Failed to open USD stage.", details={"path": str(path), "error": str(exc)}
        ) from exc
    if not stage:
        raise AssetParseError("Failed to open USD stage.", details={"path": str(path)})

    def _bound_name(prim: Usd.Prim) -> str:
        material, _relationship = UsdShade.MaterialBindingAPI(prim).ComputeBoundMaterial()
        if not material:
            return ""
        return material.GetPrim().GetName()

    meshes: List[ModelMesh] = []
    try:
        for prim in stage.TraverseAll():
            if not prim.IsA(UsdGeom.Gprim):
                continue
            names: List[str] = []
            _append_unique(names, _bound_name(prim))
            for subset in UsdGeom.Subset.GetAllGeomSubsets(UsdGeom.Imageable(prim)):
                _append_unique(names, _bound_name(subset.GetPrim()))
            if names:
                meshes.append(ModelMesh(prim.GetPath().pathString, tuple(names)))
    finally:
        stage = None
        gc.collect()
    return meshes


def read_model_materials(path: Path) -> List[ModelMesh]:
    """Read the internal material names of a model file.

    Args:
        path: Model file on disk.

    Returns:
        List[ModelMesh]: Renderable parts in file order.

    Raises:
        AssetParseError: If the format is not supported or cannot be read.
    """
    suffix = path.suffix.lower()
    try:
        if suffix == ".obj":
            return read_obj_materials(
                path.read_text(encoding="utf-8", errors="replace"), path.stem
            )
        if suffix == ".fbx":
            return read_fbx_materials(path.read_bytes(), path.stem)
    except OSError as exc:
        raise AssetParseError(
            f"Failed to read model file: {path}",
            details={"path": str(path), "error": str(exc)},
        ) from exc
    if suffix in USD_SUFFIXES:
        return read_usd_materials(path)
    raise AssetParseError(
        "Unsupported model format.", details={"path": str(path), "suffix": suffix}
    )
