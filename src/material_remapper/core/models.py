from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, List, Mapping, Optional, Tuple

# Name-keyed, read-only view of material handles built once per run.
MaterialTable = Mapping[str, Any]

MATERIAL_TYPE = "UnityEngine:Material"
DEFAULT_PREFIX = "M_"


class AssetKind(Enum):
    """Closed set of asset kinds the remapper dispatches on."""

    SCENE_GRAPH = "scene_graph"
    IMPORTED_MESH = "imported_mesh"
    UNSUPPORTED = "unsupported"


SCENE_GRAPH_EXTENSIONS = frozenset({".prefab"})
IMPORTED_MESH_EXTENSIONS = frozenset(
    {".fbx", ".obj", ".usd", ".usda", ".usdc", ".usdz"}
)


@dataclass(frozen=True)
class RemapSettings:
    """Configuration for a remap run.

    Attributes:
        materials_folder: Project-relative folder holding the target materials.
        prefix: Name prefix the target materials use.
        recursive: Whether materials in subfolders are included in the lookup.
    """

    materials_folder: str
    prefix: str = DEFAULT_PREFIX
    recursive: bool = True


@dataclass(frozen=True)
class AssetReference:
    """A selected asset path and its resolved kind.

    Attributes:
        path: Asset path as understood by the host.
        kind: Kind resolved from the file extension.
    """

    path: str
    kind: AssetKind

    @classmethod
    def from_path(cls, path: str) -> "AssetReference":
        """Resolve the asset kind once from the path extension."""
        suffix = PurePosixPath(str(path).replace("\\", "/")).suffix.lower()
        if suffix in SCENE_GRAPH_EXTENSIONS:
            kind = AssetKind.SCENE_GRAPH
        elif suffix in IMPORTED_MESH_EXTENSIONS:
            kind = AssetKind.IMPORTED_MESH
        else:
            kind = AssetKind.UNSUPPORTED
        return cls(path=str(path), kind=kind)


@dataclass
class MaterialSlot:
    """A single material slot discovered while walking renderers.

    Attributes:
        renderer: Renderer owning the slot.
        index: Position in the renderer's material array.
        current: Material currently assigned, or None for an empty slot.
    """

    renderer: Any
    index: int
    current: Optional[Any]


@dataclass(frozen=True)
class SourceAssetIdentifier:
    """Key of an import-time override map entry.

    Attributes:
        type: Serialized type name of the remapped object.
        name: Name of the object inside the source file.
    """

    type: str
    name: str

    @classmethod
    def material(cls, name: str) -> "SourceAssetIdentifier":
        return cls(type=MATERIAL_TYPE, name=name)


@dataclass(frozen=True)
class RemapEntry:
    """An import-time override written for an imported model.

    Attributes:
        identifier: Internal material identity inside the model file.
        replacement: Material handle the identity now resolves to.
    """

    identifier: SourceAssetIdentifier
    replacement: Any


@dataclass(frozen=True)
class AssetRemapResult:
    """Outcome of remapping a single asset.

    Attributes:
        asset: The processed asset.
        changed: Whether the asset was written back or reimported.
        slots_changed: Number of renderer slots reassigned.
        entries: Override entries added or updated.
    """

    asset: AssetReference
    changed: bool
    slots_changed: int = 0
    entries: Tuple[RemapEntry, ...] = ()


@dataclass
class RemapReport:
    """Aggregated outcome of one remap invocation.

    ``aborted`` is set when a failure ended the run before the whole
    selection was processed.
    """

    results: List[AssetRemapResult] = field(default_factory=list)
    skipped: List[AssetReference] = field(default_factory=list)
    failed: List[AssetReference] = field(default_factory=list)
    aborted: bool = False

    @property
    def modified(self) -> List[AssetReference]:
        return [result.asset for result in self.results if result.changed]

    @property
    def unchanged(self) -> List[AssetReference]:
        return [result.asset for result in self.results if not result.changed]

    def summary(self) -> str:
        return (
            f"{len(self.modified)} modified, {len(self.unchanged)} unchanged, "
            f"{len(self.skipped)} skipped, {len(self.failed)} failed"
            + (" (stopped early)" if self.aborted else "")
        )
