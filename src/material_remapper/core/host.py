"""Host service protocols consumed by the remapper core.

The editor-side services are injected so that the lookup and traversal
logic can run against a project on disk or a test double.
"""

from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from .models import SourceAssetIdentifier


class Renderer(Protocol):
    """A renderable component with an array of material slots."""

    name: str

    @property
    def shared_materials(self) -> Sequence[Optional[Any]]:
        """Return the current material handles, None for empty slots."""
        ...

    @shared_materials.setter
    def shared_materials(self, materials: Sequence[Optional[Any]]) -> None:
        """Replace the material array in one assignment."""
        ...


class ObjectTree(Protocol):
    """An in-memory object hierarchy loaded or instantiated from an asset."""

    def get_renderers(self, include_inactive: bool = True) -> Sequence[Renderer]:
        """Return every renderer in the hierarchy.

        Args:
            include_inactive: Whether disabled renderers and inactive nodes
                are included.

        Returns:
            Sequence[Renderer]: Renderers in traversal order.
        """
        ...


class ModelImporter(Protocol):
    """Import pipeline handle of an imported model asset."""

    def get_external_object_map(self) -> Mapping[SourceAssetIdentifier, Any]:
        """Return a copy of the current import-time override map."""
        ...

    def add_remap(self, identifier: SourceAssetIdentifier, replacement: Any) -> None:
        """Add or replace the override for an internal object."""
        ...

    def save_and_reimport(self) -> None:
        """Persist the override map and request a reimport."""
        ...


class AssetStore(Protocol):
    """Asset enumeration and batched editing."""

    def is_valid_folder(self, path: str) -> bool:
        """Check that the path resolves to an existing asset folder."""
        ...

    def find_materials(self, folder: str, recursive: bool = True) -> Iterable[Any]:
        """Yield material handles under the folder in a stable order.

        Args:
            folder: Asset folder to scan.
            recursive: Whether subfolders are scanned.

        Returns:
            Iterable: Material handles, each exposing a ``name`` attribute.
        """
        ...

    def start_asset_editing(self) -> None:
        """Enter batched-edit mode."""
        ...

    def stop_asset_editing(self) -> None:
        """Leave batched-edit mode."""
        ...

    def refresh(self) -> None:
        """Refresh the asset database once after edits."""
        ...


class SceneAssetEditor(Protocol):
    """Loading, saving and instantiating object hierarchies."""

    def load_prefab_contents(self, path: str) -> Optional[ObjectTree]:
        """Load a scene-graph asset into an editable hierarchy."""
        ...

    def save_as_prefab_asset(self, tree: ObjectTree, path: str) -> None:
        """Write an edited hierarchy back to its source path."""
        ...

    def unload_prefab_contents(self, tree: ObjectTree) -> None:
        """Release a hierarchy returned by load_prefab_contents."""
        ...

    def instantiate_model(self, path: str) -> Optional[ObjectTree]:
        """Create a temporary instance of an imported model."""
        ...

    def destroy_instance(self, tree: ObjectTree) -> None:
        """Destroy a temporary instance returned by instantiate_model."""
        ...


class ImportPipeline(Protocol):
    """Access to per-asset import settings."""

    def get_model_importer(self, path: str) -> Optional[ModelImporter]:
        """Return the importer of a model asset, or None if unavailable."""
        ...


class EditorHost(AssetStore, SceneAssetEditor, ImportPipeline, Protocol):
    """All host services the remap workflow needs."""
