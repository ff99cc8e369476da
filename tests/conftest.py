"""Shared test doubles for the host service protocols."""

from typing import Dict, List, Optional

import pytest


class FakeMaterial:
    """Material handle compared by identity, like an engine object."""

    def __init__(self, name: Optional[str]):
        self.name = name

    def __repr__(self) -> str:
        return f"FakeMaterial({self.name!r})"


class FakeRenderer:
    def __init__(self, name: str, materials, enabled: bool = True):
        self.name = name
        self.enabled = enabled
        self._materials = list(materials)
        self.assignments = 0

    @property
    def shared_materials(self):
        return list(self._materials)

    @shared_materials.setter
    def shared_materials(self, materials):
        self.assignments += 1
        self._materials = list(materials)


class FakeTree:
    def __init__(self, renderers: List[FakeRenderer]):
        self.renderers = renderers

    def get_renderers(self, include_inactive: bool = True):
        if include_inactive:
            return list(self.renderers)
        return [renderer for renderer in self.renderers if renderer.enabled]


class FakeImporter:
    def __init__(self, external_map=None):
        self.external_map = dict(external_map or {})
        self.reimports = 0

    def get_external_object_map(self):
        return dict(self.external_map)

    def add_remap(self, identifier, replacement):
        self.external_map[identifier] = replacement

    def save_and_reimport(self):
        self.reimports += 1


class FakeHost:
    """In-memory editor host recording every call the core makes."""

    def __init__(self):
        self.folders: Dict[str, List[FakeMaterial]] = {}
        self.prefabs: Dict[str, FakeTree] = {}
        self.models: Dict[str, FakeTree] = {}
        self.importers: Dict[str, FakeImporter] = {}
        self.failing: Dict[str, Exception] = {}
        self.saved: List[str] = []
        self.live: List[object] = []
        self.calls: List[str] = []
        self.editing = False

    def is_valid_folder(self, path):
        return path in self.folders

    def find_materials(self, folder, recursive=True):
        self.calls.append("find_materials")
        return list(self.folders[folder])

    def start_asset_editing(self):
        assert not self.editing
        self.editing = True
        self.calls.append("start_asset_editing")

    def stop_asset_editing(self):
        self.editing = False
        self.calls.append("stop_asset_editing")

    def refresh(self):
        self.calls.append("refresh")

    def load_prefab_contents(self, path):
        tree = self.prefabs.get(path)
        if tree is not None:
            self.live.append(tree)
        return tree

    def save_as_prefab_asset(self, tree, path):
        if path in self.failing:
            raise self.failing[path]
        self.saved.append(path)

    def unload_prefab_contents(self, tree):
        self.live.remove(tree)

    def instantiate_model(self, path):
        tree = self.models.get(path)
        if tree is not None:
            self.live.append(tree)
        return tree

    def destroy_instance(self, tree):
        self.live.remove(tree)

    def get_model_importer(self, path):
        return self.importers.get(path)


@pytest.fixture
def host():
    return FakeHost()


def make_prefab(*material_names, enabled=True):
    """Build a single-renderer tree whose slots hold fresh materials."""
    slots = [None if name is None else FakeMaterial(name) for name in material_names]
    return FakeTree([FakeRenderer("Mesh", slots, enabled=enabled)])


@pytest.fixture
def prefab_factory():
    return make_prefab
