import logging
from types import MappingProxyType
from typing import Any, Dict

from .exceptions import InvalidFolderError
from .host import AssetStore
from .models import MaterialTable

logger = logging.getLogger(__name__)


def build_material_table(
    store: AssetStore, folder: str, recursive: bool = True
) -> MaterialTable:
    """Build the name to material lookup for a folder.

    The first material enumerated under a name wins; later duplicates are
    ignored. An empty result is not an error.

    Args:
        store: Asset store used to enumerate materials.
        folder: Asset folder holding the target materials.
        recursive: Whether subfolders are scanned.

    Returns:
        MaterialTable: Read-only mapping of material name to handle.

    Raises:
        InvalidFolderError: If the folder does not resolve to a real folder.
    """
    if not folder or not store.is_valid_folder(folder):
        raise InvalidFolderError(
            "Invalid materials folder selected.", details={"folder": folder}
        )

    table: Dict[str, Any] = {}
    for material in store.find_materials(folder, recursive=recursive):
        name = getattr(material, "name", None)
        if not name:
            continue
        if name in table:
            logger.debug("Ignoring duplicate material name '%s': %s", name, material)
            continue
        table[name] = material

    logger.debug("Built material lookup with %d entries from %s", len(table), folder)
    return MappingProxyType(table)
