"""Read and edit Unity YAML assets using regex.

Unity serializes assets as YAML 1.1 with custom `!u!` tags that break
standard YAML parsers, and the editor expects its own formatting back.
This module extracts and rewrites only the fields the remapper touches,
line by line, leaving everything else byte-for-byte intact.

Object references look like::

    {fileID: 2100000, guid: 3f1c0d5e8a2b4c6d9e0f1a2b3c4d5e6f, type: 2}

A material reference with ``fileID: 0`` is an empty slot.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Sequence, Tuple

from ...core.exceptions import AssetParseError
from ...core.models import SourceAssetIdentifier

logger = logging.getLogger(__name__)

MATERIAL_CLASS_ID = 21
GAME_OBJECT_CLASS_ID = 1
PREFAB_INSTANCE_CLASS_ID = 1001
# MeshRenderer, TrailRenderer, LineRenderer, SkinnedMeshRenderer,
# ParticleSystemRenderer, SpriteRenderer
RENDERER_CLASS_IDS = frozenset({23, 96, 120, 137, 199, 212})
DEFAULT_MATERIAL_ASSEMBLY = "UnityEngine.CoreModule"
MATERIAL_ARRAY_SIZE_PATH = "m_Materials.Array.size"

# Format: guid: 0123456789abcdef0123456789abcdef
_META_GUID_PATTERN = re.compile(r"^guid:\s*([0-9a-fA-F]{32})\s*$", re.MULTILINE)

# Format: ModelImporter:  (top-level key of a .meta file)
_IMPORTER_PATTERN = re.compile(r"^(\w+Importer):\s*$", re.MULTILINE)

# Format: --- !u!23 &4321 [stripped]
_DOCUMENT_HEADER_PATTERN = re.compile(r"^--- !u!(\d+) &(-?\d+)( stripped)?")

_NAME_PATTERN = re.compile(r"^\s*m_Name:\s*(.*?)\s*$", re.MULTILINE)

_OBJECT_REF_PATTERN = re.compile(
    r"\{\s*fileID:\s*(-?\d+)"
    r"(?:\s*,\s*guid:\s*([0-9a-fA-F]+))?"
    r"(?:\s*,\s*type:\s*(\d+))?\s*\}"
)

_ENABLED_PATTERN = re.compile(r"^\s*m_Enabled:\s*(\d+)\s*$")
_GAME_OBJECT_REF_PATTERN = re.compile(r"^\s*m_GameObject:\s*\{\s*fileID:\s*(-?\d+)")
_MATERIALS_KEY_PATTERN = re.compile(r"^(\s*)m_Materials:\s*(.*?)\s*$")
_EXTERNAL_OBJECTS_KEY_PATTERN = re.compile(r"^(\s*)externalObjects:\s*(.*?)\s*$")

# internalIDToNameTable:
# - first:
#     21: 2100000
#   second: Body
_INTERNAL_ID_ENTRY_PATTERN = re.compile(
    r"-\s*first:\s*\n\s*(\d+):\s*(-?\d+)\s*\n\s*second:\s*(.*?)\s*$",
    re.MULTILINE,
)
_RECYCLE_TABLE_KEY_PATTERN = re.compile(r"^(\s*)fileIDToRecycleName:\s*(.*?)\s*$")
_RECYCLE_ENTRY_PATTERN = re.compile(r"^\s*(-?\d+):\s*(.*?)\s*$")

# Nested prefab instance, Unity 2018.3+ (legacy files use m_ParentPrefab,
# m_PrefabParentObject and m_PrefabInternal):
#   m_Modifications:
#   - target: {fileID: 2300000, guid: 4f..., type: 3}
#     propertyPath: m_Materials.Array.data[0]
#     value:
#     objectReference: {fileID: 2100000, guid: 9a..., type: 2}
_MODIFICATIONS_KEY_PATTERN = re.compile(r"^(\s*)m_Modifications:\s*(.*?)\s*$")
_MODIFICATION_FIELD_PATTERN = re.compile(
    r"^\s*(?:- )?(target|propertyPath|value|objectReference):\s?(.*?)\s*$"
)
_SOURCE_PREFAB_PATTERN = re.compile(r"^\s*(?:m_SourcePrefab|m_ParentPrefab):\s*(\{.*\})")
_SOURCE_OBJECT_PATTERN = re.compile(
    r"^\s*(?:m_CorrespondingSourceObject|m_PrefabParentObject):\s*(\{.*\})"
)
_PREFAB_INSTANCE_REF_PATTERN = re.compile(
    r"^\s*(?:m_PrefabInstance|m_PrefabInternal):\s*\{\s*fileID:\s*(-?\d+)"
)
_MATERIAL_SLOT_PATH_PATTERN = re.compile(r"^m_Materials\.Array\.data\[(\d+)\]$")

_PLAIN_SCALAR_PATTERN = re.compile(r"^[A-Za-z0-9_.()\-][A-Za-z0-9_.() \-]*$")


@dataclass(frozen=True)
class ObjectRef:
    """A serialized Unity object reference.

    Attributes:
        file_id: Local file ID of the object inside its asset; 0 is null.
        guid: GUID of the asset holding the object, None for local objects.
        type: Reference type; 2 for native assets, 3 for imported objects.
    """

    file_id: int
    guid: Optional[str] = None
    type: Optional[int] = None

    @property
    def is_null(self) -> bool:
        return self.file_id == 0

    def format(self) -> str:
        if self.guid is None:
            return f"{{fileID: {self.file_id}}}"
        ref_type = self.type if self.type is not None else 2
        return f"{{fileID: {self.file_id}, guid: {self.guid}, type: {ref_type}}}"


@dataclass(frozen=True)
class ExternalObject:
    """One entry of an importer's ``externalObjects`` override map."""

    identifier: SourceAssetIdentifier
    ref: ObjectRef
    assembly: str = DEFAULT_MATERIAL_ASSEMBLY


@dataclass
class RendererBlock:
    """Location of a renderer's material array inside a prefab.

    Attributes:
        class_id: Unity class ID of the renderer component.
        file_id: Local file ID of the renderer document.
        enabled: Value of ``m_Enabled``.
        game_object_id: Local file ID of the owning GameObject.
        slot_lines: Line index of each ``m_Materials`` entry.
    """

    class_id: int
    file_id: int
    enabled: bool = True
    game_object_id: Optional[int] = None
    slot_lines: List[int] = field(default_factory=list)


@dataclass
class PropertyModification:
    """One ``m_Modifications`` entry of a nested prefab instance.

    Attributes:
        target: Object of the source asset the override applies to.
        property_path: Overridden property, e.g. ``m_Materials.Array.data[0]``.
        value: Plain value of the override.
        reference_line: Line index of the ``objectReference`` field.
    """

    target: ObjectRef
    property_path: str = ""
    value: str = ""
    reference_line: Optional[int] = None

    @property
    def material_slot(self) -> Optional[int]:
        match = _MATERIAL_SLOT_PATH_PATTERN.match(self.property_path)
        return int(match.group(1)) if match else None


@dataclass
class PrefabInstanceBlock:
    """A nested model or prefab instance and its property overrides.

    Attributes:
        file_id: Local file ID of the PrefabInstance document.
        source: Reference to the instantiated model or prefab asset.
        key_line: Line index of the ``m_Modifications`` key.
        insert_line: Line index where a new entry can be inserted.
        indent: Indentation of the ``m_Modifications`` key.
        inline_empty: Whether the list is written as ``m_Modifications: []``.
        modifications: Parsed override entries in file order.
    """

    file_id: int
    source: ObjectRef
    key_line: int
    insert_line: int
    indent: str
    inline_empty: bool = False
    modifications: List[PropertyModification] = field(default_factory=list)


@dataclass(frozen=True)
class StrippedRenderer:
    """Placeholder document of a renderer that lives in a nested source asset."""

    class_id: int
    file_id: int
    source: ObjectRef
    instance_id: Optional[int] = None


def unquote_scalar(value: str) -> str:
    """Strip YAML single or double quotes from a scalar."""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1].replace("''", "'")
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return value


def quote_scalar(value: str) -> str:
    """Quote a scalar only when Unity would."""
    if _PLAIN_SCALAR_PATTERN.match(value) and value == value.strip():
        return value
    return "'" + value.replace("'", "''") + "'"


def read_meta_guid(content: str) -> Optional[str]:
    """Return the lowercase asset GUID from .meta content."""
    match = _META_GUID_PATTERN.search(content)
    if match:
        return match.group(1).lower()
    return None


def read_importer_kind(content: str) -> Optional[str]:
    """Return the importer block name of .meta content, e.g. ``ModelImporter``."""
    match = _IMPORTER_PATTERN.search(content)
    if match:
        return match.group(1)
    return None


def parse_object_ref(text: str) -> Optional[ObjectRef]:
    """Parse the first ``{fileID: ...}`` reference found in text."""
    match = _OBJECT_REF_PATTERN.search(text)
    if not match:
        return None
    guid = match.group(2).lower() if match.group(2) else None
    ref_type = int(match.group(3)) if match.group(3) else None
    return ObjectRef(file_id=int(match.group(1)), guid=guid, type=ref_type)


def replace_object_ref(line: str, ref: ObjectRef) -> str:
    """Swap the first object reference on a line, keeping the rest intact."""
    new_line, count = _OBJECT_REF_PATTERN.subn(lambda _m: ref.format(), line, count=1)
    if not count:
        raise AssetParseError(
            "Line holds no object reference.", details={"line": line.strip()}
        )
    return new_line


def _split_documents(lines: Sequence[str]) -> List[Tuple[int, int, int, int]]:
    """Return (class_id, file_id, start, end) for each YAML document."""
    documents: List[Tuple[int, int, int, int]] = []
    current: Optional[Tuple[int, int, int]] = None
    for index, line in enumerate(lines):
        match = _DOCUMENT_HEADER_PATTERN.match(line)
        if not match:
            continue
        if current is not None:
            documents.append((current[0], current[1], current[2], index))
        current = (int(match.group(1)), int(match.group(2)), index)
    if current is not None:
        documents.append((current[0], current[1], current[2], len(lines)))
    return documents


def _is_stripped(header: str) -> bool:
    match = _DOCUMENT_HEADER_PATTERN.match(header)
    return bool(match and match.group(3))


def parse_material_name(content: str) -> Optional[str]:
    """Extract ``m_Name`` from the Material document of a .mat file."""
    lines = content.split("\n")
    for class_id, _file_id, start, end in _split_documents(lines):
        if class_id != MATERIAL_CLASS_ID:
            continue
        match = _NAME_PATTERN.search("\n".join(lines[start:end]))
        if match:
            return unquote_scalar(match.group(1))
    logger.debug("Could not extract material name from content")
    return None


def parse_game_object_names(lines: Sequence[str]) -> Dict[int, str]:
    """Map GameObject file IDs to their ``m_Name``."""
    names: Dict[int, str] = {}
    for class_id, file_id, start, end in _split_documents(lines):
        if class_id != GAME_OBJECT_CLASS_ID:
            continue
        match = _NAME_PATTERN.search("\n".join(lines[start:end]))
        if match:
            names[file_id] = unquote_scalar(match.group(1))
    return names


def _collect_slot_lines(
    lines: Sequence[str], key_index: int, indent: str, end: int
) -> List[int]:
    slot_lines: List[int] = []
    item_prefix = indent + "- "
    for index in range(key_index + 1, end):
        line = lines[index]
        if not line.startswith(item_prefix):
            break
        if parse_object_ref(line) is None:
            raise AssetParseError(
                "Unexpected entry in m_Materials.",
                details={"line": index + 1, "content": line.strip()},
            )
        slot_lines.append(index)
    return slot_lines


def parse_renderer_blocks(lines: Sequence[str]) -> List[RendererBlock]:
    """Find every renderer document and its material slot lines.

    Disabled renderers are included. ``stripped`` documents belong to nested
    instances and are left to :func:`parse_stripped_renderers`.
    """
    blocks: List[RendererBlock] = []
    for class_id, file_id, start, end in _split_documents(lines):
        if class_id not in RENDERER_CLASS_IDS or _is_stripped(lines[start]):
            continue
        block = RendererBlock(class_id=class_id, file_id=file_id)
        for index in range(start + 1, end):
            line = lines[index]
            enabled = _ENABLED_PATTERN.match(line)
            if enabled:
                block.enabled = enabled.group(1) != "0"
                continue
            owner = _GAME_OBJECT_REF_PATTERN.match(line)
            if owner:
                block.game_object_id = int(owner.group(1))
                continue
            key = _MATERIALS_KEY_PATTERN.match(line)
            if not key:
                continue
            if key.group(2) == "":
                block.slot_lines = _collect_slot_lines(lines, index, key.group(1), end)
            elif key.group(2) != "[]":
                raise AssetParseError(
                    "Unsupported inline m_Materials value.",
                    details={"line": index + 1, "content": line.strip()},
                )
        blocks.append(block)
    return blocks


def parse_internal_ids(content: str, class_ids: Collection[int]) -> Dict[int, str]:
    """Map file IDs of objects embedded in a model to their names.

    Reads ``internalIDToNameTable`` and the legacy ``fileIDToRecycleName``
    table of a model .meta file, keeping entries of the given classes.
    """
    ids: Dict[int, str] = {}
    for match in _INTERNAL_ID_ENTRY_PATTERN.finditer(content):
        if int(match.group(1)) in class_ids:
            ids[int(match.group(2))] = unquote_scalar(match.group(3))

    lines = content.split("\n")
    for index, line in enumerate(lines):
        key = _RECYCLE_TABLE_KEY_PATTERN.match(line)
        if not key or key.group(2):
            continue
        indent = key.group(1)
        for entry_line in lines[index + 1:]:
            if not entry_line.startswith(indent + "  "):
                break
            entry = _RECYCLE_ENTRY_PATTERN.match(entry_line)
            if not entry:
                continue
            file_id = int(entry.group(1))
            if file_id // 100000 in class_ids:
                ids.setdefault(file_id, unquote_scalar(entry.group(2)))
    return ids


def parse_internal_material_ids(content: str) -> Dict[int, str]:
    """Map file IDs of materials embedded in a model to their names."""
    return parse_internal_ids(content, (MATERIAL_CLASS_ID,))


def _collect_modifications(
    lines: Sequence[str], block: PrefabInstanceBlock, end: int
) -> int:
    item_prefix = block.indent + "- "
    field_prefix = block.indent + "  "
    current: Optional[PropertyModification] = None
    index = block.key_line + 1
    while index < end:
        line = lines[index]
        if line.startswith(item_prefix):
            current = PropertyModification(target=ObjectRef(file_id=0))
            block.modifications.append(current)
        elif not line.startswith(field_prefix):
            break
        match = _MODIFICATION_FIELD_PATTERN.match(line)
        if current is not None and match:
            name, value = match.groups()
            if name == "target":
                current.target = parse_object_ref(value) or ObjectRef(file_id=0)
            elif name == "propertyPath":
                current.property_path = unquote_scalar(value)
            elif name == "value":
                current.value = unquote_scalar(value)
            else:
                current.reference_line = index
        index += 1
    return index


def parse_prefab_instances(lines: Sequence[str]) -> List[PrefabInstanceBlock]:
    """Find nested prefab instances and their ``m_Modifications`` entries.

    Instances without a source asset, such as the root document of a legacy
    prefab, are left out.

    Raises:
        AssetParseError: If ``m_Modifications`` holds an unsupported inline value.
    """
    instances: List[PrefabInstanceBlock] = []
    for class_id, file_id, start, end in _split_documents(lines):
        if class_id != PREFAB_INSTANCE_CLASS_ID:
            continue
        source: Optional[ObjectRef] = None
        key_match = None
        key_line = -1
        for index in range(start + 1, end):
            line = lines[index]
            match = _SOURCE_PREFAB_PATTERN.match(line)
            if match:
                source = parse_object_ref(match.group(1))
            elif key_match is None:
                key_match = _MODIFICATIONS_KEY_PATTERN.match(line)
                key_line = index
        if source is None or source.is_null or source.guid is None or key_match is None:
            continue
        indent, inline = key_match.group(1), key_match.group(2)
        if inline not in ("", "[]"):
            raise AssetParseError(
                "Unsupported inline m_Modifications value.",
                details={"line": key_line + 1, "content": lines[key_line].strip()},
            )
        block = PrefabInstanceBlock(
            file_id=file_id,
            source=source,
            key_line=key_line,
            insert_line=key_line + 1,
            indent=indent,
            inline_empty=inline == "[]",
        )
        if not block.inline_empty:
            block.insert_line = _collect_modifications(lines, block, end)
        instances.append(block)
    return instances


def parse_stripped_renderers(lines: Sequence[str]) -> List[StrippedRenderer]:
    """Find renderer placeholders that point into a nested source asset."""
    renderers: List[StrippedRenderer] = []
    for class_id, file_id, start, end in _split_documents(lines):
        if class_id not in RENDERER_CLASS_IDS or not _is_stripped(lines[start]):
            continue
        source: Optional[ObjectRef] = None
        instance_id: Optional[int] = None
        for index in range(start + 1, end):
            line = lines[index]
            match = _SOURCE_OBJECT_PATTERN.match(line)
            if match:
                source = parse_object_ref(match.group(1))
                continue
            match = _PREFAB_INSTANCE_REF_PATTERN.match(line)
            if match:
                instance_id = int(match.group(1))
        if source is None or source.is_null or source.guid is None:
            logger.debug("Stripped renderer %s has no source object", file_id)
            continue
        renderers.append(StrippedRenderer(class_id, file_id, source, instance_id))
    return renderers


def format_material_modification(
    target: ObjectRef, slot: int, ref: ObjectRef, indent: str
) -> List[str]:
    """Render an ``m_Modifications`` entry overriding one material slot."""
    return [
        f"{indent}- target: {target.format()}",
        f"{indent}  propertyPath: m_Materials.Array.data[{slot}]",
        f"{indent}  value: ",
        f"{indent}  objectReference: {ref.format()}",
    ]


def _find_external_objects_block(lines: Sequence[str]) -> Optional[Tuple[int, int, str]]:
    """Return (start, end, indent) of the externalObjects block."""
    for index, line in enumerate(lines):
        key = _EXTERNAL_OBJECTS_KEY_PATTERN.match(line)
        if not key:
            continue
        indent = key.group(1)
        end = index + 1
        if key.group(2) == "":
            while end < len(lines) and (
                lines[end].startswith(indent + "- ")
                or lines[end].startswith(indent + "  ")
            ):
                end += 1
        elif key.group(2) != "{}":
            raise AssetParseError(
                "Unsupported inline externalObjects value.",
                details={"line": index + 1, "content": line.strip()},
            )
        return index, end, indent
    return None


def parse_external_objects(content: str) -> List[ExternalObject]:
    """Parse an importer's ``externalObjects`` override map."""
    lines = content.split("\n")
    block = _find_external_objects_block(lines)
    if block is None:
        return []
    start, end, _indent = block

    entries: List[ExternalObject] = []
    current: Dict[str, str] = {}

    def _flush() -> None:
        if not current:
            return
        ref = parse_object_ref(current.get("second", ""))
        if "type" not in current or "name" not in current or ref is None:
            raise AssetParseError(
                "Incomplete externalObjects entry.", details={"entry": dict(current)}
            )
        entries.append(
            ExternalObject(
                identifier=SourceAssetIdentifier(
                    type=current["type"], name=current["name"]
                ),
                ref=ref,
                assembly=current.get("assembly", DEFAULT_MATERIAL_ASSEMBLY),
            )
        )
        current.clear()

    for line in lines[start + 1:end]:
        stripped = line.strip()
        if stripped.startswith("- first:"):
            _flush()
            current["first"] = ""
            continue
        key, sep, value = stripped.partition(":")
        if not sep or key not in ("type", "assembly", "name", "second"):
            continue
        current[key] = value.strip() if key == "second" else unquote_scalar(value)
    _flush()
    return entries


def format_external_objects(entries: Sequence[ExternalObject], indent: str) -> List[str]:
    """Render an ``externalObjects`` block sorted by type and name."""
    if not entries:
        return [f"{indent}externalObjects: {{}}"]
    lines = [f"{indent}externalObjects:"]
    for entry in sorted(
        entries, key=lambda item: (item.identifier.type, item.identifier.name)
    ):
        lines.extend(
            [
                f"{indent}- first:",
                f"{indent}    type: {entry.identifier.type}",
                f"{indent}    assembly: {entry.assembly}",
                f"{indent}    name: {quote_scalar(entry.identifier.name)}",
                f"{indent}  second: {entry.ref.format()}",
            ]
        )
    return lines


def replace_external_objects(content: str, entries: Sequence[ExternalObject]) -> str:
    """Return .meta content with its ``externalObjects`` block rewritten.

    Raises:
        AssetParseError: If the content holds no importer block.
    """
    lines = content.split("\n")
    block = _find_external_objects_block(lines)
    if block is not None:
        start, end, indent = block
        lines[start:end] = format_external_objects(entries, indent)
        return "\n".join(lines)

    for index, line in enumerate(lines):
        if _IMPORTER_PATTERN.match(line):
            lines[index + 1:index + 1] = format_external_objects(entries, "  ")
            return "\n".join(lines)
    raise AssetParseError("Meta content holds no importer block.")
