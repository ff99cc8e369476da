import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .exceptions import EmptyLookupWarning, InvalidFolderError, MaterialRemapperError
from .host import AssetStore, EditorHost
from .lookup import build_material_table
from .models import AssetReference, RemapReport, RemapSettings
from .remapper import apply_remap

logger = logging.getLogger(__name__)


def can_remap(materials_folder: Optional[str], selection_count: int) -> bool:
    """Return whether the remap action should be enabled."""
    return bool(materials_folder and materials_folder.strip()) and selection_count > 0


@contextmanager
def batched_edit(store: AssetStore) -> Iterator[None]:
    """Hold batched-edit mode and refresh once on every exit path."""
    store.start_asset_editing()
    try:
        yield
    finally:
        store.stop_asset_editing()
        store.refresh()


def run_remap(
    settings: RemapSettings, selection_paths: Iterable[str], host: EditorHost
) -> Optional[RemapReport]:
    """Build the lookup once and remap the selection inside one batch.

    Folder and lookup problems abort the run before the selection is touched
    and are reported through the log only. A failing asset ends the run
    after the batch is closed; the partial report is returned with
    ``aborted`` set and the error is logged, never raised.

    Args:
        settings: Folder, prefix and scan options.
        selection_paths: Paths of the selected assets.
        host: Editor services.

    Returns:
        Optional[RemapReport]: None if the run never started.
    """
    try:
        table = build_material_table(
            host, settings.materials_folder, recursive=settings.recursive
        )
        if not table:
            raise EmptyLookupWarning(
                "No material assets found in the selected folder.",
                details={"folder": settings.materials_folder},
            )
    except InvalidFolderError as exc:
        logger.error("%s (%s)", exc.message, settings.materials_folder)
        return None
    except EmptyLookupWarning as exc:
        logger.warning("%s (%s)", exc.message, settings.materials_folder)
        return None

    selection = [AssetReference.from_path(path) for path in selection_paths]
    logger.info(
        "Remapping %d asset(s) against %d material(s) with prefix '%s'.",
        len(selection),
        len(table),
        settings.prefix,
    )
    report = RemapReport()
    try:
        with batched_edit(host):
            apply_remap(selection, table, settings.prefix, host, report)
    except MaterialRemapperError as exc:
        report.aborted = True
        logger.error("Material remap stopped: %s", exc.message)
        if exc.details:
            logger.error("Remap details: %s", exc.details)
    except Exception as exc:
        report.aborted = True
        logger.exception("Material remap stopped: %s", exc)
    logger.info("Material remap finished: %s", report.summary())
    return report
