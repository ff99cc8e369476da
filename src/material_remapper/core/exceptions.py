"""Errors raised while building the material lookup or remapping assets."""

from types import MappingProxyType
from typing import Any, Mapping, Optional


class MaterialRemapperError(Exception):
    """Base class for material_remapper errors.

    Attributes:
        message: Human-readable error message.
        details: Read-only structured context such as paths or offending lines.
    """

    def __init__(
        self, message: str, details: Optional[Mapping[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Mapping[str, Any] = MappingProxyType(dict(details or {}))

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} [{context}]"


class RemapWarning(MaterialRemapperError):
    """Condition reported at warning level; the run or asset is skipped."""


class InvalidFolderError(MaterialRemapperError):
    """Raised when the materials folder does not resolve to a real folder."""


class EmptyLookupWarning(RemapWarning):
    """Raised when the materials folder holds no material assets."""


class UnresolvableImporterWarning(RemapWarning):
    """Raised when an imported model has no accessible importer."""


class AssetParseError(MaterialRemapperError):
    """Raised when asset or metadata content cannot be read or parsed."""


class ConfigurationError(MaterialRemapperError):
    """Raised when the project or editor state does not allow the operation."""
