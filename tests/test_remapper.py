"""Tests for per-asset material remapping."""

from types import MappingProxyType

import pytest

from conftest import FakeImporter, FakeMaterial, FakeRenderer, FakeTree
from material_remapper.core.exceptions import AssetParseError
from material_remapper.core.models import (
    AssetKind,
    AssetReference,
    RemapReport,
    SourceAssetIdentifier,
)
from material_remapper.core.remapper import (
    apply_remap,
    iter_material_slots,
    remap_asset,
    remap_hierarchy,
)


def _table(*handles):
    return MappingProxyType({handle.name: handle for handle in handles})


def test_scene_asset_slot_replaced_and_saved(host, prefab_factory):
    """Matching prefab slot is reassigned and the prefab saved."""
    target = FakeMaterial("M_Body")
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")

    report = apply_remap(
        [AssetReference.from_path("Assets/Hero.prefab")], _table(target), "M_", host
    )

    renderer = host.prefabs["Assets/Hero.prefab"].renderers[0]
    assert renderer.shared_materials == [target]
    assert host.saved == ["Assets/Hero.prefab"]
    assert report.results[0].slots_changed == 1
    assert [asset.path for asset in report.modified] == ["Assets/Hero.prefab"]
    assert host.live == []


def test_scene_asset_second_run_is_unchanged(host, prefab_factory):
    """Rerunning on an already remapped prefab saves nothing."""
    target = FakeMaterial("M_Body")
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")
    selection = [AssetReference.from_path("Assets/Hero.prefab")]

    apply_remap(selection, _table(target), "M_", host)
    renderer = host.prefabs["Assets/Hero.prefab"].renderers[0]
    assignments = renderer.assignments
    report = apply_remap(selection, _table(target), "M_", host)

    assert host.saved == ["Assets/Hero.prefab"]
    assert renderer.assignments == assignments
    assert report.modified == []
    assert [asset.path for asset in report.unchanged] == ["Assets/Hero.prefab"]


def test_already_prefixed_material_matches_without_double_prefix(host, prefab_factory):
    """Prefixed source names are looked up as-is."""
    target = FakeMaterial("M_Body")
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("M_Body")

    apply_remap(
        [AssetReference.from_path("Assets/Hero.prefab")], _table(target), "M_", host
    )

    assert host.prefabs["Assets/Hero.prefab"].renderers[0].shared_materials == [target]


def test_null_slots_and_unmatched_names_are_left_alone(prefab_factory):
    """Empty and unmatched slots keep their value."""
    target = FakeMaterial("M_Body")
    tree = prefab_factory(None, "Hair", "Body")
    before = tree.renderers[0].shared_materials

    changed = remap_hierarchy(tree, _table(target), "M_")

    after = tree.renderers[0].shared_materials
    assert changed == 1
    assert after[0] is None
    assert after[1] is before[1]
    assert after[2] is target


def test_matching_is_case_sensitive(prefab_factory):
    """Lookup does not fold case."""
    tree = prefab_factory("body")

    assert remap_hierarchy(tree, _table(FakeMaterial("M_Body")), "M_") == 0


def test_inactive_renderers_are_included():
    """Disabled renderers are remapped too."""
    target = FakeMaterial("M_Body")
    tree = FakeTree(
        [FakeRenderer("Hidden", [FakeMaterial("Body")], enabled=False)]
    )

    assert remap_hierarchy(tree, _table(target), "M_") == 1
    assert tree.renderers[0].shared_materials == [target]


def test_unchanged_renderer_is_not_reassigned():
    """Renderers without a match are never written."""
    target = FakeMaterial("M_Body")
    untouched = FakeRenderer("Other", [FakeMaterial("Cloth")])
    tree = FakeTree([FakeRenderer("Body", [FakeMaterial("Body")]), untouched])

    remap_hierarchy(tree, _table(target), "M_")

    assert untouched.assignments == 0


def test_iter_material_slots_skips_empty_slots(prefab_factory):
    """Slot iteration yields only assigned slots."""
    tree = prefab_factory("A", None, "B")

    slots = list(iter_material_slots(tree))

    assert [slot.index for slot in slots] == [0, 2]
    assert [slot.current.name for slot in slots] == ["A", "B"]


def test_imported_model_gets_override_and_single_reimport(host, prefab_factory):
    """Model overrides are added once per name and reimported once."""
    target = FakeMaterial("M_Eyes")
    host.models["Assets/Hero.fbx"] = prefab_factory("Eyes", "Eyes")
    importer = FakeImporter()
    host.importers["Assets/Hero.fbx"] = importer

    report = apply_remap(
        [AssetReference.from_path("Assets/Hero.fbx")], _table(target), "M_", host
    )

    assert importer.external_map == {SourceAssetIdentifier.material("Eyes"): target}
    assert importer.reimports == 1
    assert len(report.results[0].entries) == 1
    assert host.live == []


def test_imported_model_second_run_adds_nothing(host, prefab_factory):
    """Rerunning on a remapped model does not reimport."""
    target = FakeMaterial("M_Eyes")
    host.models["Assets/Hero.fbx"] = prefab_factory("Eyes")
    importer = FakeImporter()
    host.importers["Assets/Hero.fbx"] = importer
    selection = [AssetReference.from_path("Assets/Hero.fbx")]

    apply_remap(selection, _table(target), "M_", host)
    report = apply_remap(selection, _table(target), "M_", host)

    assert importer.reimports == 1
    assert report.modified == []


def test_imported_model_updates_stale_override(host, prefab_factory):
    """An override pointing at another handle is replaced."""
    target = FakeMaterial("M_Eyes")
    identifier = SourceAssetIdentifier.material("Eyes")
    host.models["Assets/Hero.obj"] = prefab_factory("Eyes")
    importer = FakeImporter({identifier: FakeMaterial("M_Eyes")})
    host.importers["Assets/Hero.obj"] = importer

    apply_remap([AssetReference.from_path("Assets/Hero.obj")], _table(target), "M_", host)

    assert importer.external_map[identifier] is target
    assert importer.reimports == 1


def test_missing_importer_skips_asset_and_continues(host, prefab_factory):
    """Models without an importer are skipped, the rest proceed."""
    target = FakeMaterial("M_Body")
    host.models["Assets/Broken.fbx"] = prefab_factory("Body")
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")
    selection = [
        AssetReference.from_path("Assets/Broken.fbx"),
        AssetReference.from_path("Assets/Hero.prefab"),
    ]

    report = apply_remap(selection, _table(target), "M_", host)

    assert [asset.path for asset in report.skipped] == ["Assets/Broken.fbx"]
    assert host.saved == ["Assets/Hero.prefab"]
    assert host.live == []


def test_unsupported_asset_is_a_no_op(host):
    """Unsupported assets are skipped without touching the host."""
    asset = AssetReference.from_path("Assets/readme.txt")

    assert asset.kind is AssetKind.UNSUPPORTED
    assert remap_asset(asset, _table(FakeMaterial("M_Body")), "M_", host) is None
    report = apply_remap([asset], _table(FakeMaterial("M_Body")), "M_", host)
    assert report.failed == []
    assert report.skipped == [asset]


def test_failure_releases_prefab_and_stops_selection(host, prefab_factory):
    """A failed save unloads the prefab and ends the run at that asset."""
    target = FakeMaterial("M_Body")
    host.prefabs["Assets/Bad.prefab"] = prefab_factory("Body")
    host.prefabs["Assets/Good.prefab"] = prefab_factory("Body")
    host.failing["Assets/Bad.prefab"] = RuntimeError("disk full")
    selection = [
        AssetReference.from_path("Assets/Bad.prefab"),
        AssetReference.from_path("Assets/Good.prefab"),
    ]
    report = RemapReport()

    with pytest.raises(RuntimeError, match="disk full"):
        apply_remap(selection, _table(target), "M_", host, report)

    assert [asset.path for asset in report.failed] == ["Assets/Bad.prefab"]
    assert report.results == []
    assert host.saved == []
    assert host.live == []


def test_preview_instance_destroyed_when_traversal_raises(host):
    """The preview instance is destroyed on error."""
    class ExplodingTree(FakeTree):
        def get_renderers(self, include_inactive=True):
            raise AssetParseError("corrupt model")

    host.models["Assets/Hero.fbx"] = ExplodingTree([])
    host.importers["Assets/Hero.fbx"] = FakeImporter()
    report = RemapReport()

    with pytest.raises(AssetParseError):
        apply_remap(
            [AssetReference.from_path("Assets/Hero.fbx")],
            _table(FakeMaterial("M_Body")),
            "M_",
            host,
            report,
        )

    assert [asset.path for asset in report.failed] == ["Assets/Hero.fbx"]
    assert host.live == []


def test_unloadable_prefab_is_skipped(host):
    """Prefabs the host cannot load are skipped."""
    report = apply_remap(
        [AssetReference.from_path("Assets/Missing.prefab")],
        _table(FakeMaterial("M_Body")),
        "M_",
        host,
    )

    assert [asset.path for asset in report.skipped] == ["Assets/Missing.prefab"]


@pytest.mark.parametrize(
    ("path", "kind"),
    [
        ("Assets/Hero.prefab", AssetKind.SCENE_GRAPH),
        ("Assets/Hero.FBX", AssetKind.IMPORTED_MESH),
        ("Assets/Hero.obj", AssetKind.IMPORTED_MESH),
        ("Assets/Hero.usda", AssetKind.IMPORTED_MESH),
        ("Assets/Hero.mat", AssetKind.UNSUPPORTED),
        ("Assets\\Hero.prefab", AssetKind.SCENE_GRAPH),
    ],
)
def test_asset_kind_resolved_from_extension(path, kind):
    """Asset kind comes from the extension, case-insensitively."""
    assert AssetReference.from_path(path).kind is kind
