"""Unit tests for the YAML table loader."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from shutil import copytree

import pytest
import yaml

from subscalc.backend.config import table_config
from subscalc.backend.config.schema import ConfigurationError


@pytest.fixture()
def table_directory(tmp_path: Path) -> Path:
    target = tmp_path / "tables"
    copytree(table_config.CONFIG_DIRECTORY, target)
    table_config.clear_caches()
    yield target
    table_config.clear_caches()


def test_manifest_lists_every_bundled_table() -> None:
    manifest = table_config.load_manifest()

    assert "rates_before_148" in manifest.table_keys
    assert manifest.get_entry("irregular_148").resolved_filename == "irregular_148.yaml"
    assert len(manifest.tables) == 15


def test_engine_settings_come_from_manifest() -> None:
    settings = table_config.load_engine_settings()

    assert settings.cutover == date(2020, 1, 1)
    assert settings.legal_floor == date(1984, 4, 1)
    assert settings.aggregation_order == ("1", "2", "3", "4", "5", "8", "7", "9")


def test_table_set_is_cached() -> None:
    assert table_config.load_table_set() is table_config.load_table_set()


def test_environment_override_selects_directory(
    monkeypatch: pytest.MonkeyPatch, table_directory: Path
) -> None:
    monkeypatch.setenv(table_config.TABLES_DIRECTORY_ENV, str(table_directory))

    assert table_config.resolve_config_directory() == table_directory.resolve()
    assert table_config.load_manifest().meta["authority"]


def test_missing_table_file_raises(table_directory: Path) -> None:
    (table_directory / "transport_79.yaml").unlink()

    with pytest.raises(FileNotFoundError, match="transport_79"):
        table_config.load_table_set(table_directory)


def test_table_without_rows_is_rejected(table_directory: Path) -> None:
    (table_directory / "transport_79.yaml").write_text("columns: []\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="rows"):
        table_config.load_table_set(table_directory)


def test_invalid_settings_are_reported(table_directory: Path) -> None:
    manifest_path = table_directory / table_config.MANIFEST_FILENAME
    manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    manifest["settings"]["legal_floor"] = "2021-01-01"
    manifest_path.write_text(yaml.safe_dump(manifest, allow_unicode=True), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Manifest validation failed"):
        table_config.load_manifest(table_directory)


def test_unknown_manifest_entries_are_skipped(
    table_directory: Path, caplog: pytest.LogCaptureFixture
) -> None:
    manifest_path = table_directory / table_config.MANIFEST_FILENAME
    manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    manifest["tables"].append({"key": "legacy_rates", "filename": "legacy.yaml"})
    manifest_path.write_text(yaml.safe_dump(manifest, allow_unicode=True), encoding="utf-8")

    with caplog.at_level("WARNING"):
        raw = table_config.load_raw_tables(table_directory)

    assert "legacy_rates" not in raw
    assert "legacy_rates" in caplog.text
