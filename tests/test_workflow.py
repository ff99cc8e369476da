"""Tests for the remap workflow and batched editing."""

import logging

import pytest

from conftest import FakeMaterial
from material_remapper.core.exceptions import AssetParseError, ConfigurationError
from material_remapper.core.models import RemapSettings
from material_remapper.core.workflow import batched_edit, can_remap, run_remap


@pytest.mark.parametrize(
    ("folder", "count", "expected"),
    [
        ("Assets/Materials", 1, True),
        ("Assets/Materials", 0, False),
        ("", 3, False),
        ("   ", 3, False),
        (None, 3, False),
    ],
)
def test_can_remap(folder, count, expected):
    """The action needs a folder and a non-empty selection."""
    assert can_remap(folder, count) is expected


def test_run_remap_end_to_end(host, prefab_factory):
    """Lookup, batch and remap run once and report the modified asset."""
    target = FakeMaterial("M_Body")
    host.folders["Assets/Materials"] = [target]
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")

    report = run_remap(
        RemapSettings("Assets/Materials"), ["Assets/Hero.prefab"], host
    )

    assert [asset.path for asset in report.modified] == ["Assets/Hero.prefab"]
    assert host.calls == [
        "find_materials",
        "start_asset_editing",
        "stop_asset_editing",
        "refresh",
    ]
    assert not host.editing


def test_invalid_folder_aborts_before_selection(host, prefab_factory, caplog):
    """An invalid folder logs an error and never opens a batch."""
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")

    with caplog.at_level(logging.ERROR):
        report = run_remap(
            RemapSettings("Assets/Nope"), ["Assets/Hero.prefab"], host
        )

    assert report is None
    assert host.calls == []
    assert host.live == []
    assert "Invalid materials folder selected." in caplog.text


def test_empty_lookup_only_warns(host, prefab_factory, caplog):
    """Zero materials abort with a warning and leave the selection alone."""
    host.folders["Assets/Empty"] = []
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")

    with caplog.at_level(logging.WARNING):
        report = run_remap(RemapSettings("Assets/Empty"), ["Assets/Hero.prefab"], host)

    assert report is None
    assert host.calls == ["find_materials"]
    assert host.saved == []
    assert [record.levelno for record in caplog.records] == [logging.WARNING]


def test_failing_asset_stops_run_and_still_closes_batch(host, prefab_factory, caplog):
    """A failing asset ends the run; the batch is still exited and refreshed."""
    host.folders["Assets/Materials"] = [FakeMaterial("M_Body")]
    host.prefabs["Assets/Hero.prefab"] = prefab_factory("Body")
    host.prefabs["Assets/Villain.prefab"] = prefab_factory("Body")
    host.failing["Assets/Hero.prefab"] = OSError("read-only")

    with caplog.at_level(logging.ERROR):
        report = run_remap(
            RemapSettings("Assets/Materials"),
            ["Assets/Hero.prefab", "Assets/Villain.prefab"],
            host,
        )

    assert report.aborted
    assert [asset.path for asset in report.failed] == ["Assets/Hero.prefab"]
    assert host.saved == []
    assert host.calls[-2:] == ["stop_asset_editing", "refresh"]
    assert not host.editing
    assert host.live == []
    assert "stopped early" in report.summary()
    assert len([r for r in caplog.records if r.levelno == logging.ERROR]) == 1


def test_package_error_stops_run_without_traceback(host, caplog):
    """Package errors are logged once with their details."""
    host.folders["Assets/Materials"] = [FakeMaterial("M_Body")]

    def _broken_load(path):
        raise AssetParseError("Prefab is not text serialized.", details={"path": path})

    host.load_prefab_contents = _broken_load

    with caplog.at_level(logging.ERROR):
        report = run_remap(
            RemapSettings("Assets/Materials"), ["Assets/Hero.prefab"], host
        )

    assert report.aborted
    assert "Prefab is not text serialized." in caplog.text
    assert all(record.exc_info is None for record in caplog.records)
    assert host.calls[-2:] == ["stop_asset_editing", "refresh"]


def test_batched_edit_exits_on_exception(host):
    """Leaving the batch through an exception still stops and refreshes."""
    with pytest.raises(RuntimeError):
        with batched_edit(host):
            raise RuntimeError("boom")

    assert host.calls == ["start_asset_editing", "stop_asset_editing", "refresh"]
    assert not host.editing


def test_batched_edit_rejects_nesting(tmp_path):
    """The project host refuses to enter a second batch."""
    from material_remapper.dcc.unity_project.project import UnityProject

    (tmp_path / "Assets").mkdir()
    project = UnityProject(str(tmp_path))

    with batched_edit(project):
        with pytest.raises(ConfigurationError):
            project.start_asset_editing()

    assert not project.is_editing
