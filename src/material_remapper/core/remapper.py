"""Remap material references of selected assets against a lookup table."""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from .exceptions import UnresolvableImporterWarning
from .host import EditorHost, ObjectTree, SceneAssetEditor
from .models import (
    AssetKind,
    AssetReference,
    AssetRemapResult,
    MaterialSlot,
    MaterialTable,
    RemapEntry,
    RemapReport,
    SourceAssetIdentifier,
)
from .naming import target_material_name

logger = logging.getLogger(__name__)


@contextmanager
def loaded_prefab(editor: SceneAssetEditor, path: str) -> Iterator[Optional[ObjectTree]]:
    """Load prefab contents and always unload them on exit."""
    tree = editor.load_prefab_contents(path)
    try:
        yield tree
    finally:
        if tree is not None:
            editor.unload_prefab_contents(tree)


@contextmanager
def preview_instance(editor: SceneAssetEditor, path: str) -> Iterator[Optional[ObjectTree]]:
    """Instantiate a model temporarily and always destroy it on exit."""
    tree = editor.instantiate_model(path)
    try:
        yield tree
    finally:
        if tree is not None:
            editor.destroy_instance(tree)


def iter_material_slots(tree: ObjectTree) -> Iterator[MaterialSlot]:
    """Yield every non-empty material slot, inactive renderers included."""
    for renderer in tree.get_renderers(include_inactive=True):
        for index, material in enumerate(renderer.shared_materials):
            if material is None:
                continue
            yield MaterialSlot(renderer=renderer, index=index, current=material)


def _lookup(table: MaterialTable, name: str, prefix: str):
    return table.get(target_material_name(name, prefix))


def remap_hierarchy(tree: ObjectTree, table: MaterialTable, prefix: str) -> int:
    """Swap matching materials in place and return the number of slots changed."""
    changed = 0
    for renderer in tree.get_renderers(include_inactive=True):
        materials = list(renderer.shared_materials)
        renderer_changed = False
        for index, current in enumerate(materials):
            if current is None:
                continue
            replacement = _lookup(table, current.name, prefix)
            if replacement is None or replacement == current:
                continue
            materials[index] = replacement
            renderer_changed = True
            changed += 1
        if renderer_changed:
            renderer.shared_materials = materials
    return changed


def remap_scene_asset(
    asset: AssetReference, table: MaterialTable, prefix: str, host: EditorHost
) -> Optional[AssetRemapResult]:
    """Remap a prefab and save it only if a slot changed.

    Returns:
        Optional[AssetRemapResult]: None if the prefab could not be loaded.
    """
    with loaded_prefab(host, asset.path) as root:
        if root is None:
            logger.warning("Could not load prefab contents for %s", asset.path)
            return None
        slots_changed = remap_hierarchy(root, table, prefix)
        if slots_changed:
            host.save_as_prefab_asset(root, asset.path)
            logger.info("Remapped materials in prefab: %s", asset.path)
    return AssetRemapResult(
        asset=asset, changed=bool(slots_changed), slots_changed=slots_changed
    )


def remap_imported_model(
    asset: AssetReference, table: MaterialTable, prefix: str, host: EditorHost
) -> Optional[AssetRemapResult]:
    """Add import-time overrides for a model and reimport it if any changed.

    Internal material names are read from a temporary instance because they
    can differ from the materials a previous remap resolved them to.

    Raises:
        UnresolvableImporterWarning: If the model has no accessible importer.
    """
    importer = host.get_model_importer(asset.path)
    if importer is None:
        raise UnresolvableImporterWarning(
            "Could not obtain model importer.", details={"path": asset.path}
        )

    external_map = dict(importer.get_external_object_map())
    entries: List[RemapEntry] = []
    with preview_instance(host, asset.path) as model_root:
        if model_root is None:
            logger.warning("Could not instantiate model %s", asset.path)
            return None
        for slot in iter_material_slots(model_root):
            internal_name = slot.current.name
            replacement = _lookup(table, internal_name, prefix)
            if replacement is None:
                continue
            identifier = SourceAssetIdentifier.material(internal_name)
            if external_map.get(identifier) == replacement:
                continue
            importer.add_remap(identifier, replacement)
            external_map[identifier] = replacement
            entries.append(RemapEntry(identifier=identifier, replacement=replacement))

    if not entries:
        return AssetRemapResult(asset=asset, changed=False)

    importer.save_and_reimport()
    logger.info("Remapped materials in model: %s", asset.path)
    return AssetRemapResult(asset=asset, changed=True, entries=tuple(entries))


def remap_asset(
    asset: AssetReference, table: MaterialTable, prefix: str, host: EditorHost
) -> Optional[AssetRemapResult]:
    """Dispatch a single asset by kind. Unsupported kinds return None."""
    if asset.kind is AssetKind.SCENE_GRAPH:
        return remap_scene_asset(asset, table, prefix, host)
    if asset.kind is AssetKind.IMPORTED_MESH:
        return remap_imported_model(asset, table, prefix, host)
    logger.debug("Skipping unsupported asset: %s", asset.path)
    return None


def apply_remap(
    selection: Sequence[AssetReference],
    table: MaterialTable,
    prefix: str,
    host: EditorHost,
    report: Optional[RemapReport] = None,
) -> RemapReport:
    """Remap every selected asset against the lookup table.

    Only a missing importer is handled per asset. Any other failure is
    recorded against the asset being processed and re-raised, which ends the
    run; the caller owns the batch and the cleanup around it.

    Args:
        selection: Assets to process.
        table: Material lookup built for this run.
        prefix: Name prefix the target materials use.
        host: Editor services.
        report: Report to fill in, a new one when omitted.

    Returns:
        RemapReport: Per-asset outcome of the run.
    """
    if report is None:
        report = RemapReport()
    for asset in selection:
        try:
            result = remap_asset(asset, table, prefix, host)
        except UnresolvableImporterWarning as exc:
            logger.warning("%s Skipping %s", exc.message, asset.path)
            report.skipped.append(asset)
            continue
        except Exception:
            report.failed.append(asset)
            raise

        if result is None:
            report.skipped.append(asset)
        else:
            report.results.append(result)
    return report
