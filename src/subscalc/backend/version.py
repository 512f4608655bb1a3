"""Expose the SubsCalc version from package metadata or ``pyproject.toml``."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Final

PACKAGE_NAME: Final = "subscalc"
PYPROJECT_FILE: Final = Path(__file__).resolve().parents[3] / "pyproject.toml"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed distribution version.

    Source checkouts without an installed distribution read the ``[project]``
    table of ``pyproject.toml`` instead.
    """

    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return _read_version_from_pyproject(PYPROJECT_FILE)


def _read_version_from_pyproject(path: Path) -> str:
    if not path.exists():  # pragma: no cover - repository invariant
        raise RuntimeError(f"Unable to locate project metadata at {path}")

    with path.open("rb") as handle:
        document = tomllib.load(handle)

    version = document.get("project", {}).get("version")
    if not isinstance(version, str) or not version.strip():
        raise RuntimeError(f"No project version declared in {path}")
    return version.strip()


__all__ = ["PACKAGE_NAME", "get_project_version"]
