"""Editor host backed by a Unity project directory on disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ...core.exceptions import AssetParseError, ConfigurationError
from ...core.models import IMPORTED_MESH_EXTENSIONS, SourceAssetIdentifier
from . import unity_yaml
from .model_materials import ModelMesh, read_model_materials
from .unity_yaml import ExternalObject, ObjectRef, PrefabInstanceBlock, RendererBlock

logger = logging.getLogger(__name__)

MATERIAL_FILE_ID = 2100000
NATIVE_ASSET_TYPE = 2
IMPORTED_ASSET_TYPE = 3
ASSET_ROOTS = ("Assets", "Packages")
SUPPORTED_IMPORTERS = ("ModelImporter", "ScriptedImporter")
BUILTIN_EXTRA_GUID = "0000000000000000f000000000000000"
BUILTIN_ASSET_TYPE = 0
# Materials shipped in Unity's built-in extra resources, by file ID.
BUILTIN_MATERIALS = {
    10303: "Default-Material",
    10754: "Sprites-Default",
}

PathLike = Union[str, Path]


@dataclass(frozen=True)
class MaterialAsset:
    """Handle of a material stored in the project.

    Two handles are equal when they point at the same object, regardless of
    how the name or path were discovered.

    Attributes:
        guid: GUID of the asset file holding the material.
        file_id: Local file ID of the material inside that asset.
        name: Material name.
        path: Project-relative path of the asset file.
    """

    guid: str
    file_id: int = MATERIAL_FILE_ID
    name: str = field(default="", compare=False)
    path: str = field(default="", compare=False)

    @property
    def ref(self) -> ObjectRef:
        if self.guid == BUILTIN_EXTRA_GUID:
            ref_type = BUILTIN_ASSET_TYPE
        elif self.path.endswith(".mat"):
            ref_type = NATIVE_ASSET_TYPE
        else:
            ref_type = IMPORTED_ASSET_TYPE
        return ObjectRef(file_id=self.file_id, guid=self.guid, type=ref_type)


@dataclass(frozen=True)
class InternalMaterial:
    """Material as named inside a model file."""

    name: str


MaterialHandle = Union[MaterialAsset, InternalMaterial]


def _match_mesh(meshes: Sequence[ModelMesh], name: Optional[str]) -> Optional[ModelMesh]:
    """Pick the mesh a renderer name refers to, or the only mesh there is."""
    if name:
        leaf = name.rstrip("/").rsplit("/", 1)[-1]
        for mesh in meshes:
            if mesh.name == name or mesh.name.rsplit("/", 1)[-1] == leaf:
                return mesh
    if len(meshes) == 1:
        return meshes[0]
    return None


class PrefabRenderer:
    """Renderer component stored in the prefab file itself."""

    def __init__(self, contents: "PrefabContents", file_id: int, name: str):
        self._contents = contents
        self.file_id = file_id
        self.name = name

    @property
    def _block(self) -> RendererBlock:
        return self._contents.renderer_block(self.file_id)

    @property
    def enabled(self) -> bool:
        return self._block.enabled

    def _slot_refs(self) -> List[Optional[ObjectRef]]:
        lines = self._contents.lines
        return [unity_yaml.parse_object_ref(lines[index]) for index in self._block.slot_lines]

    @property
    def shared_materials(self) -> List[Optional[MaterialAsset]]:
        project = self._contents.project
        return [project.resolve_material(ref) for ref in self._slot_refs()]

    @shared_materials.setter
    def shared_materials(self, materials: Sequence[Optional[MaterialAsset]]) -> None:
        slot_lines = self._block.slot_lines
        if len(materials) != len(slot_lines):
            raise ValueError(
                f"Renderer '{self.name}' has {len(slot_lines)} material "
                f"slots, got {len(materials)}."
            )
        for index, material in zip(slot_lines, materials):
            if material is None:
                continue
            current = unity_yaml.parse_object_ref(self._contents.lines[index])
            if current == material.ref:
                continue
            self._contents.replace_ref(index, material.ref)


class PrefabInstanceRenderer:
    """Renderer of a nested model or prefab, edited through its overrides.

    Slots without an ``m_Materials.Array.data[i]`` override show the material
    the source asset assigns; assigning a different one adds the override.
    """

    def __init__(
        self, contents: "PrefabContents", instance_id: int, target: ObjectRef, name: str
    ):
        self._contents = contents
        self.instance_id = instance_id
        self.target = target
        self.name = name
        self._defaults: Optional[List[Optional[MaterialHandle]]] = None

    def _modifications(self) -> List[unity_yaml.PropertyModification]:
        instance = self._contents.prefab_instance(self.instance_id)
        return [
            modification
            for modification in instance.modifications
            if modification.target.file_id == self.target.file_id
            and modification.target.guid == self.target.guid
        ]

    def _source_materials(self) -> List[Optional[MaterialHandle]]:
        if self._defaults is None:
            self._defaults = self._contents.project.source_renderer_materials(self.target)
        return self._defaults

    def _slot_overrides(self) -> Tuple[Dict[int, int], int]:
        slots: Dict[int, int] = {}
        size: Optional[int] = None
        for modification in self._modifications():
            slot = modification.material_slot
            if slot is not None and modification.reference_line is not None:
                slots[slot] = modification.reference_line
            elif (
                modification.property_path == unity_yaml.MATERIAL_ARRAY_SIZE_PATH
                and modification.value.isdigit()
            ):
                size = int(modification.value)
        if size is None:
            size = max([len(self._source_materials())] + [slot + 1 for slot in slots])
        return slots, size

    @property
    def enabled(self) -> bool:
        for modification in self._modifications():
            if modification.property_path == "m_Enabled":
                return modification.value != "0"
        return True

    @property
    def shared_materials(self) -> List[Optional[MaterialHandle]]:
        slots, size = self._slot_overrides()
        defaults = self._source_materials()
        lines = self._contents.lines
        project = self._contents.project
        materials: List[Optional[MaterialHandle]] = []
        for slot in range(size):
            if slot in slots:
                ref = unity_yaml.parse_object_ref(lines[slots[slot]])
                materials.append(project.resolve_material(ref))
            elif slot < len(defaults):
                materials.append(defaults[slot])
            else:
                materials.append(None)
        return materials

    @shared_materials.setter
    def shared_materials(self, materials: Sequence[Optional[MaterialAsset]]) -> None:
        slots, size = self._slot_overrides()
        if len(materials) != size:
            raise ValueError(
                f"Renderer '{self.name}' has {size} material slots, got {len(materials)}."
            )
        current = self.shared_materials
        added: List[Tuple[int, MaterialAsset]] = []
        for slot, material in enumerate(materials):
            if material is None or material == current[slot]:
                continue
            if slot in slots:
                self._contents.replace_ref(slots[slot], material.ref)
            else:
                added.append((slot, material))
        # Inserting shifts line indices, so it runs after the in-place replacements.
        for slot, material in added:
            self._contents.add_material_modification(
                self.instance_id, self.target, slot, material.ref
            )


class PrefabContents:
    """Editable in-memory form of a prefab asset."""

    def __init__(self, project: "UnityProject", path: str, content: str):
        self.project = project
        self.path = path
        self.lines = content.split("\n")
        self.dirty = False
        self._reindex()
        names = unity_yaml.parse_game_object_names(self.lines)
        self._renderers: List[Union[PrefabRenderer, PrefabInstanceRenderer]] = [
            PrefabRenderer(self, file_id, names.get(block.game_object_id, str(file_id)))
            for file_id, block in self._blocks.items()
        ]
        self._renderers.extend(self._instance_renderers())

    def _reindex(self) -> None:
        self._blocks: Dict[int, RendererBlock] = {
            block.file_id: block for block in unity_yaml.parse_renderer_blocks(self.lines)
        }
        self._instances: Dict[int, PrefabInstanceBlock] = {
            instance.file_id: instance
            for instance in unity_yaml.parse_prefab_instances(self.lines)
        }

    def _instance_renderers(self) -> List[PrefabInstanceRenderer]:
        stripped = unity_yaml.parse_stripped_renderers(self.lines)
        renderers: List[PrefabInstanceRenderer] = []
        for instance in self._instances.values():
            targets: Dict[Tuple[int, Optional[str]], Tuple[ObjectRef, str]] = {}
            for file_id, name in self.project.source_renderers(instance.source).items():
                target = ObjectRef(file_id, instance.source.guid, IMPORTED_ASSET_TYPE)
                targets[(file_id, target.guid)] = (target, name)
            for modification in instance.modifications:
                if modification.material_slot is None and (
                    modification.property_path != unity_yaml.MATERIAL_ARRAY_SIZE_PATH
                ):
                    continue
                target = modification.target
                targets.setdefault((target.file_id, target.guid), (target, ""))
            for renderer in stripped:
                if renderer.instance_id not in (None, instance.file_id):
                    continue
                target = renderer.source
                targets.setdefault((target.file_id, target.guid), (target, ""))
            for target, name in targets.values():
                if target.is_null or target.guid is None:
                    continue
                name = name or f"{instance.file_id}/{target.file_id}"
                renderers.append(
                    PrefabInstanceRenderer(self, instance.file_id, target, name)
                )
        return renderers

    def renderer_block(self, file_id: int) -> RendererBlock:
        return self._blocks[file_id]

    def prefab_instance(self, file_id: int) -> PrefabInstanceBlock:
        return self._instances[file_id]

    def replace_ref(self, index: int, ref: ObjectRef) -> None:
        self.lines[index] = unity_yaml.replace_object_ref(self.lines[index], ref)
        self.dirty = True

    def add_material_modification(
        self, instance_id: int, target: ObjectRef, slot: int, ref: ObjectRef
    ) -> None:
        """Append a material slot override to a nested instance."""
        instance = self._instances[instance_id]
        entry = unity_yaml.format_material_modification(target, slot, ref, instance.indent)
        if instance.inline_empty:
            self.lines[instance.key_line] = f"{instance.indent}m_Modifications:"
        self.lines[instance.insert_line:instance.insert_line] = entry
        self.dirty = True
        self._reindex()

    def get_renderers(
        self, include_inactive: bool = True
    ) -> List[Union[PrefabRenderer, PrefabInstanceRenderer]]:
        if include_inactive:
            return list(self._renderers)
        return [renderer for renderer in self._renderers if renderer.enabled]

    def to_text(self) -> str:
        return "\n".join(self.lines)


class ModelRenderer:
    """Renderer of a temporary model instance."""

    def __init__(self, mesh: ModelMesh):
        self.name = mesh.name
        self._materials: List[Optional[InternalMaterial]] = [
            InternalMaterial(name) for name in mesh.material_names
        ]

    @property
    def shared_materials(self) -> List[Optional[InternalMaterial]]:
        return list(self._materials)

    @shared_materials.setter
    def shared_materials(self, materials: Sequence[Optional[InternalMaterial]]) -> None:
        self._materials = list(materials)


class ModelInstance:
    """Temporary instance of a model, discarded after inspection."""

    def __init__(self, path: str, meshes: Sequence[ModelMesh]):
        self.path = path
        self._renderers = [ModelRenderer(mesh) for mesh in meshes]

    def get_renderers(self, include_inactive: bool = True) -> List[ModelRenderer]:
        return list(self._renderers)


class UnityModelImporter:
    """Import settings of a model, backed by its .meta file."""

    def __init__(self, project: "UnityProject", path: str, meta_path: Path, content: str):
        self._project = project
        self.path = path
        self.meta_path = meta_path
        self._content = content
        self._entries: Dict[SourceAssetIdentifier, ExternalObject] = {
            entry.identifier: entry
            for entry in unity_yaml.parse_external_objects(content)
        }

    def get_external_object_map(self) -> Dict[SourceAssetIdentifier, Optional[MaterialAsset]]:
        return {
            identifier: self._project.resolve_material(entry.ref)
            for identifier, entry in self._entries.items()
        }

    def add_remap(self, identifier: SourceAssetIdentifier, replacement: MaterialAsset) -> None:
        existing = self._entries.get(identifier)
        assembly = existing.assembly if existing else unity_yaml.DEFAULT_MATERIAL_ASSEMBLY
        self._entries[identifier] = ExternalObject(
            identifier=identifier, ref=replacement.ref, assembly=assembly
        )

    def save_and_reimport(self) -> None:
        self._content = unity_yaml.replace_external_objects(
            self._content, list(self._entries.values())
        )
        self._project.write_text(self.meta_path, self._content)
        self._project.request_reimport(self.path)


class UnityProject:
    """Editor services implemented over the files of a Unity project.

    Asset paths are project-relative POSIX paths such as
    ``Assets/Models/Hero.fbx``. Absolute paths inside the project are
    accepted wherever an asset path is expected.
    """

    def __init__(self, root: PathLike):
        self.root = Path(root).resolve()
        if not (self.root / "Assets").is_dir():
            raise ConfigurationError(
                "Not a Unity project: Assets folder missing.",
                details={"root": str(self.root)},
            )
        self._guid_to_path: Optional[Dict[str, str]] = None
        self._materials: Dict[str, MaterialAsset] = {}
        self._editing = False
        self._live: List[object] = []
        self.reimported: List[str] = []
        self.saved: List[str] = []

    def __repr__(self) -> str:
        return f"UnityProject(root={str(self.root)!r})"

    # -- paths -------------------------------------------------------------

    def asset_path(self, path: PathLike) -> str:
        """Normalize a path to a project-relative POSIX asset path.

        Raises:
            ConfigurationError: If an absolute path lies outside the project.
        """
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                candidate = candidate.resolve().relative_to(self.root)
            except ValueError as exc:
                raise ConfigurationError(
                    "Path is outside the project.",
                    details={"path": str(path), "root": str(self.root)},
                ) from exc
            return candidate.as_posix()
        return PurePosixPath(str(path).replace("\\", "/")).as_posix().rstrip("/")

    def full_path(self, path: PathLike) -> Path:
        return self.root / self.asset_path(path)

    def read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise AssetParseError(
                f"Failed to read {path}",
                details={"path": str(path), "error": str(exc)},
            ) from exc

    def write_text(self, path: Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8", newline="")
        except OSError as exc:
            raise AssetParseError(
                f"Failed to write {path}",
                details={"path": str(path), "error": str(exc)},
            ) from exc

    # -- asset store -------------------------------------------------------

    def is_valid_folder(self, path: str) -> bool:
        try:
            asset_path = self.asset_path(path)
        except ConfigurationError:
            return False
        parts = PurePosixPath(asset_path).parts
        if not parts or parts[0] not in ASSET_ROOTS or ".." in parts:
            return False
        return (self.root / asset_path).is_dir()

    def find_materials(self, folder: str, recursive: bool = True) -> Iterator[MaterialAsset]:
        base = self.full_path(folder)
        pattern = "**/*.mat" if recursive else "*.mat"
        for mat_file in sorted(base.glob(pattern)):
            material = self.load_material(self.asset_path(mat_file))
            if material is not None:
                yield material

    def load_material(self, path: str) -> Optional[MaterialAsset]:
        """Return the handle of a .mat asset, or None if it has no GUID."""
        full = self.full_path(path)
        meta = full.with_name(full.name + ".meta")
        guid = unity_yaml.read_meta_guid(self.read_text(meta)) if meta.exists() else None
        if guid is None:
            logger.warning("Material has no .meta GUID, ignoring: %s", path)
            return None
        cached = self._materials.get(guid)
        if cached is not None:
            return cached
        try:
            name = unity_yaml.parse_material_name(self.read_text(full))
        except AssetParseError as exc:
            logger.debug("Using file name for unreadable material %s: %s", path, exc)
            name = None
        material = MaterialAsset(guid=guid, name=name or full.stem, path=self.asset_path(path))
        self._materials[guid] = material
        return material

    def _guid_index(self) -> Dict[str, str]:
        if self._guid_to_path is None:
            index: Dict[str, str] = {}
            for root_name in ASSET_ROOTS:
                root = self.root / root_name
                if not root.is_dir():
                    continue
                for meta in sorted(root.rglob("*.meta")):
                    guid = unity_yaml.read_meta_guid(self.read_text(meta))
                    if guid:
                        index.setdefault(guid, self.asset_path(meta.with_suffix("")))
            self._guid_to_path = index
            logger.debug("Indexed %d asset GUIDs under %s", len(index), self.root)
        return self._guid_to_path

    def resolve_material(self, ref: Optional[ObjectRef]) -> Optional[MaterialAsset]:
        """Resolve a serialized reference to a material handle.

        Null references and references to unknown assets resolve to None.
        Built-in materials resolve to a handle with an empty path.
        """
        if ref is None or ref.is_null or ref.guid is None:
            return None
        if ref.guid == BUILTIN_EXTRA_GUID:
            name = BUILTIN_MATERIALS.get(ref.file_id)
            if name is None:
                logger.debug("Unknown built-in material %s", ref.file_id)
                return None
            return MaterialAsset(guid=ref.guid, file_id=ref.file_id, name=name)
        path = self._guid_index().get(ref.guid)
        if path is None:
            logger.debug("Unknown material GUID %s", ref.guid)
            return None
        if path.lower().endswith(".mat"):
            return self.load_material(path)
        meta = self.full_path(path + ".meta")
        if not meta.is_file():
            return None
        names = unity_yaml.parse_internal_material_ids(self.read_text(meta))
        name = names.get(ref.file_id)
        if name is None:
            logger.debug("No embedded material %s in %s", ref.file_id, path)
            return None
        return MaterialAsset(guid=ref.guid, file_id=ref.file_id, name=name, path=path)

    def _source_prefab(self, path: str) -> Optional[PrefabContents]:
        full = self.full_path(path)
        if not full.is_file():
            return None
        content = self.read_text(full)
        if not content.startswith("%YAML"):
            logger.debug("Skipping binary source prefab %s", path)
            return None
        return PrefabContents(self, path, content)

    def source_renderers(self, source: ObjectRef) -> Dict[int, str]:
        """Map renderer file IDs of a nested source asset to their names.

        Models list their renderers in the internal ID tables of their .meta
        file, prefabs in their own renderer documents.
        """
        path = self._guid_index().get(source.guid) if source.guid else None
        if path is None:
            return {}
        suffix = PurePosixPath(path).suffix.lower()
        if suffix == ".prefab":
            contents = self._source_prefab(path)
            if contents is None:
                return {}
            return {
                renderer.file_id: renderer.name
                for renderer in contents.get_renderers()
                if isinstance(renderer, PrefabRenderer)
            }
        meta = self.full_path(path + ".meta")
        if suffix not in IMPORTED_MESH_EXTENSIONS or not meta.is_file():
            return {}
        return unity_yaml.parse_internal_ids(
            self.read_text(meta), unity_yaml.RENDERER_CLASS_IDS
        )

    def source_renderer_materials(self, target: ObjectRef) -> List[Optional[MaterialHandle]]:
        """Return the materials a nested source asset assigns to one renderer.

        For models this is what the importer produces: the override from
        ``externalObjects``, else the embedded material, else the internal
        name alone. Renderers that cannot be located yield no slots.
        """
        path = self._guid_index().get(target.guid) if target.guid else None
        if path is None:
            return []
        suffix = PurePosixPath(path).suffix.lower()
        if suffix == ".prefab":
            contents = self._source_prefab(path)
            for renderer in contents.get_renderers() if contents else []:
                if isinstance(renderer, PrefabRenderer) and renderer.file_id == target.file_id:
                    return renderer.shared_materials
            return []
        full = self.full_path(path)
        if suffix not in IMPORTED_MESH_EXTENSIONS or not full.is_file():
            return []

        meta = full.with_name(full.name + ".meta")
        content = self.read_text(meta) if meta.is_file() else ""
        renderer_names = unity_yaml.parse_internal_ids(content, unity_yaml.RENDERER_CLASS_IDS)
        mesh = _match_mesh(read_model_materials(full), renderer_names.get(target.file_id))
        if mesh is None:
            logger.debug("No mesh for renderer %s in %s", target.file_id, path)
            return []
        overrides = {
            entry.identifier: entry.ref for entry in unity_yaml.parse_external_objects(content)
        }
        embedded = {
            name: file_id
            for file_id, name in unity_yaml.parse_internal_material_ids(content).items()
        }
        materials: List[Optional[MaterialHandle]] = []
        for name in mesh.material_names:
            handle = None
            override = overrides.get(SourceAssetIdentifier.material(name))
            if override is not None:
                handle = self.resolve_material(override)
            if handle is None and name in embedded:
                handle = MaterialAsset(
                    guid=target.guid, file_id=embedded[name], name=name, path=path
                )
            materials.append(handle or InternalMaterial(name))
        return materials

    def start_asset_editing(self) -> None:
        if self._editing:
            raise ConfigurationError("Asset editing is already in progress.")
        self._editing = True
        logger.debug("Started asset editing.")

    def stop_asset_editing(self) -> None:
        self._editing = False
        logger.debug("Stopped asset editing.")

    @property
    def is_editing(self) -> bool:
        return self._editing

    def refresh(self) -> None:
        self._guid_to_path = None
        self._materials.clear()
        logger.debug("Refreshed asset index.")

    # -- scene assets ------------------------------------------------------

    @property
    def live_objects(self) -> int:
        """Number of loaded prefabs and model instances not yet released."""
        return len(self._live)

    def load_prefab_contents(self, path: str) -> Optional[PrefabContents]:
        full = self.full_path(path)
        if not full.is_file():
            return None
        content = self.read_text(full)
        if not content.startswith("%YAML"):
            raise AssetParseError(
                "Prefab is not text serialized.", details={"path": path}
            )
        contents = PrefabContents(self, self.asset_path(path), content)
        self._live.append(contents)
        return contents

    def save_as_prefab_asset(self, tree: PrefabContents, path: str) -> None:
        self.write_text(self.full_path(path), tree.to_text())
        tree.dirty = False
        self.saved.append(self.asset_path(path))

    def unload_prefab_contents(self, tree: PrefabContents) -> None:
        self._release(tree)

    def instantiate_model(self, path: str) -> Optional[ModelInstance]:
        full = self.full_path(path)
        if not full.is_file():
            return None
        instance = ModelInstance(self.asset_path(path), read_model_materials(full))
        self._live.append(instance)
        return instance

    def destroy_instance(self, tree: ModelInstance) -> None:
        self._release(tree)

    def _release(self, tree: object) -> None:
        for index, live in enumerate(self._live):
            if live is tree:
                del self._live[index]
                return
        logger.warning("Released an object that was not live: %r", tree)

    # -- import pipeline ---------------------------------------------------

    def get_model_importer(self, path: str) -> Optional[UnityModelImporter]:
        full = self.full_path(path)
        meta = full.with_name(full.name + ".meta")
        if not meta.is_file():
            return None
        content = self.read_text(meta)
        kind = unity_yaml.read_importer_kind(content)
        if kind not in SUPPORTED_IMPORTERS:
            logger.debug("Unsupported importer %s for %s", kind, path)
            return None
        return UnityModelImporter(self, self.asset_path(path), meta, content)

    def request_reimport(self, path: str) -> None:
        self.reimported.append(path)
        logger.info("Requested reimport of %s", path)
