"""Expose table metadata and engine settings for API clients.

These endpoints bridge the YAML-backed contribution tables and API clients so that
forms can populate worker categories, grades and statutory dates without
duplicating business rules.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from subscalc.backend.app.localization import Translator, get_translator
from subscalc.backend.config.schema import (
    CONSTRUCTION_GRADES,
    TRANSPORT_GRADES,
    EngineSettings,
    WorkerCategory,
)
from subscalc.backend.config.table_config import (
    load_engine_settings,
    load_manifest,
    load_table_set,
)
from subscalc.backend.config.tables import table_summary
from subscalc.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")

_GRADES_BY_CATEGORY: dict[WorkerCategory, tuple[str, ...]] = {
    WorkerCategory.TRANSPORT: TRANSPORT_GRADES,
    WorkerCategory.CONSTRUCTION: CONSTRUCTION_GRADES,
}


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the table manifest."""

    manifest = load_manifest()
    settings = manifest.settings
    return {
        "version": get_project_version(),
        "cutover": settings.cutover.isoformat(),
        "legal_floor": settings.legal_floor.isoformat(),
        "table_count": len(manifest.tables),
    }


def _serialise_settings(settings: EngineSettings) -> dict[str, Any]:
    return settings.model_dump(mode="json")


def _category_mode(category: WorkerCategory) -> str:
    if category.is_grouped:
        return "grouped"
    if category.is_self_payer:
        return "self_payer"
    return "standard"


def _serialise_category(category: WorkerCategory, translator: Translator) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": category.value,
        "code": category.code,
        "label": translator(f"category.{category.value}"),
        "mode": _category_mode(category),
    }
    grades = _GRADES_BY_CATEGORY.get(category)
    if grades:
        entry["grades"] = [
            {"id": grade, "label": translator(f"grade.{grade}")} for grade in grades
        ]
    return entry


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    """Expose lightweight application metadata such as the version identifier."""

    payload = get_configuration_metadata()
    return jsonify(payload), 200


@blueprint.get("/tables")
def list_tables() -> tuple[Any, int]:
    """Return every manifest entry with its normalised row count."""

    manifest = load_manifest()
    counts = table_summary(load_table_set())
    tables = [
        {
            "key": entry.key,
            "filename": entry.resolved_filename,
            "description": entry.description,
            "rows": counts.get(entry.key),
        }
        for entry in manifest.tables
    ]
    payload = {
        "meta": dict(manifest.meta),
        "settings": _serialise_settings(manifest.settings),
        "tables": tables,
        "normalised": counts,
    }
    return jsonify(payload), 200


@blueprint.get("/categories")
def list_categories() -> tuple[Any, int]:
    """Return worker categories in aggregation order with localized labels."""

    translator = get_translator(request.args.get("locale"))
    settings = load_engine_settings()

    ordered: list[WorkerCategory] = []
    for code in settings.aggregation_order:
        try:
            ordered.append(WorkerCategory.from_code(code))
        except KeyError:
            continue

    payload = {
        "locale": translator.locale,
        "categories": [_serialise_category(category, translator) for category in ordered],
    }
    return jsonify(payload), 200
