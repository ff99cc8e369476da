"""Tests for custom exception hierarchy."""

import pytest

from material_remapper.core.exceptions import (
    AssetParseError,
    ConfigurationError,
    EmptyLookupWarning,
    InvalidFolderError,
    MaterialRemapperError,
    RemapWarning,
    UnresolvableImporterWarning,
)


def test_base_exception_with_message():
    """Base exception stores message."""
    exc = MaterialRemapperError("Test error")
    assert exc.message == "Test error"
    assert exc.details == {}
    assert str(exc) == "Test error"


def test_base_exception_with_details():
    """Details are kept and listed after the message."""
    exc = MaterialRemapperError("Test error", details={"folder": "Assets/Mats"})
    assert exc.details == {"folder": "Assets/Mats"}
    assert str(exc) == "Test error [folder='Assets/Mats']"


def test_details_are_read_only_copies():
    """Details cannot be mutated through the exception or its source."""
    source = {"path": "Assets/Hero.fbx"}
    exc = UnresolvableImporterWarning("No importer", details=source)
    source["path"] = "changed"

    assert exc.details["path"] == "Assets/Hero.fbx"
    with pytest.raises(TypeError):
        exc.details["path"] = "other"


def test_exception_inheritance():
    """All custom exceptions inherit from MaterialRemapperError."""
    for exc_class in (
        InvalidFolderError,
        EmptyLookupWarning,
        UnresolvableImporterWarning,
        AssetParseError,
        ConfigurationError,
    ):
        exc = exc_class("Test message")
        assert isinstance(exc, MaterialRemapperError)
        assert isinstance(exc, Exception)


def test_warning_tier():
    """Only skip-level conditions are RemapWarning."""
    assert issubclass(EmptyLookupWarning, RemapWarning)
    assert issubclass(UnresolvableImporterWarning, RemapWarning)
    assert not issubclass(InvalidFolderError, RemapWarning)
    assert not issubclass(AssetParseError, RemapWarning)


def test_exception_can_be_caught_by_base_class():
    """Specific exceptions can be caught by base class."""
    with pytest.raises(MaterialRemapperError) as exc_info:
        raise InvalidFolderError("Invalid materials folder selected.")

    assert exc_info.value.message == "Invalid materials folder selected."
