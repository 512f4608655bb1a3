"""Configuration loader wrapping the table schema models."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    ConfigurationError,
    EngineSettings,
    TableManifest,
    TableManifestEntry,
    TableSet,
)
from .tables import TABLE_KEYS, RawTable, resolve_tables

_LOGGER = logging.getLogger(__name__)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILENAME = "manifest.yaml"
MANIFEST_FILE = CONFIG_DIRECTORY / MANIFEST_FILENAME
TABLES_DIRECTORY_ENV = "SUBSCALC_TABLES_DIR"


def resolve_config_directory(directory: Path | str | None = None) -> Path:
    """Return the table directory, honouring ``SUBSCALC_TABLES_DIR``."""

    if directory is not None:
        return Path(directory).resolve()
    override = os.getenv(TABLES_DIRECTORY_ENV, "").strip()
    if override:
        return Path(override).resolve()
    return CONFIG_DIRECTORY


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=4)
def _load_manifest(directory: Path) -> TableManifest:
    manifest_file = directory / MANIFEST_FILENAME
    if not manifest_file.exists():
        raise FileNotFoundError(f"Table manifest not found in {directory}")

    raw_manifest = _load_yaml(manifest_file)

    try:
        return TableManifest.model_validate(raw_manifest)
    except ValidationError as error:
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def load_manifest(directory: Path | str | None = None) -> TableManifest:
    """Load and cache the table manifest."""

    return _load_manifest(resolve_config_directory(directory))


def manifest_entries(directory: Path | str | None = None) -> Sequence[TableManifestEntry]:
    """Expose the configured manifest entries."""

    return load_manifest(directory).tables


def load_engine_settings(directory: Path | str | None = None) -> EngineSettings:
    return load_manifest(directory).settings


def _read_rows(path: Path, key: str) -> RawTable:
    raw = _load_yaml(path)
    rows = raw.get("rows")
    if rows is None:
        raise ConfigurationError(f"Table file '{path.name}' does not define 'rows'")
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        raise ConfigurationError(f"Table '{key}' rows must be a list of lists")
    return rows


def load_raw_tables(directory: Path | str | None = None) -> dict[str, RawTable]:
    """Read every table declared in the manifest as raw rows of cells."""

    base = resolve_config_directory(directory)
    manifest = _load_manifest(base)
    raw_tables: dict[str, RawTable] = {}

    for entry in manifest.tables:
        if entry.key not in TABLE_KEYS:
            _LOGGER.warning("Manifest declares unknown table '%s'; skipping", entry.key)
            continue
        table_file = base / entry.resolved_filename
        if not table_file.exists():
            raise FileNotFoundError(
                f"Table file for '{entry.key}' missing: {table_file.name}"
            )
        raw_tables[entry.key] = _read_rows(table_file, entry.key)

    return raw_tables


@lru_cache(maxsize=4)
def _load_table_set(directory: Path) -> TableSet:
    settings = _load_manifest(directory).settings
    tables = resolve_tables(load_raw_tables(directory), cutover=settings.cutover)
    _LOGGER.debug("Loaded contribution tables from %s", directory)
    return tables


def load_table_set(directory: Path | str | None = None) -> TableSet:
    """Load, normalise and cache the bundled tables."""

    return _load_table_set(resolve_config_directory(directory))


def clear_caches() -> None:
    """Drop cached manifests and tables so the next load re-reads disk."""

    _load_manifest.cache_clear()
    _load_table_set.cache_clear()


__all__ = [
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "MANIFEST_FILE",
    "TABLES_DIRECTORY_ENV",
    "clear_caches",
    "load_engine_settings",
    "load_manifest",
    "load_raw_tables",
    "load_table_set",
    "manifest_entries",
    "resolve_config_directory",
]
