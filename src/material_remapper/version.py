"""Version lookup for the installed or checked-out package."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Optional

DISTRIBUTION_NAME = "material-remapper"
PYPROJECT_PATH = Path(__file__).resolve().parents[2] / "pyproject.toml"


def read_project_version(pyproject: Path = PYPROJECT_PATH) -> Optional[str]:
    """Return ``[project].version`` from a pyproject file, if readable."""
    try:
        with pyproject.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return None
    version = data.get("project", {}).get("version")
    return str(version) if version else None


@lru_cache(maxsize=None)
def get_version() -> str:
    """Return the package version, preferring installed metadata."""
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return read_project_version() or "unknown"


__all__ = ["get_version", "read_project_version"]
