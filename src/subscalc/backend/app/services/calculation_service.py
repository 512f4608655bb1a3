"""Orchestrate request validation, table loading and contribution calculations.

The calculation service coordinates the request models, translation layer and
the bundled tables so that the calculators can focus on their own arithmetic.
Profiling hooks live here to give the rest of the application simple
``calculate_subscriptions`` and wage command entry points.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from time import perf_counter
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from subscalc.backend.app.localization import Translator, get_translator
from subscalc.backend.app.models import (
    CalculationRequest,
    CalculationResult,
    WageAdditionRequest,
    WageRemovalRequest,
    format_validation_error,
)
from subscalc.backend.config.schema import EngineSettings, TableSet
from subscalc.backend.config.table_config import load_engine_settings, load_table_set

from .calculators import format_percentage, run_calculation
from .calculators.aggregation import BUCKETS
from .period_service import add_sub_period, remove_sub_period

_LOGGER = logging.getLogger(__name__)

_RequestT = TypeVar("_RequestT", bound=BaseModel)


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("SUBSCALC_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _parse_request(model: type[_RequestT], payload: Mapping[str, Any] | _RequestT) -> _RequestT:
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def _meta(translator: Translator) -> dict[str, Any]:
    return {
        "locale": translator.locale,
        "direction": "rtl" if translator.is_rtl else "ltr",
    }


def _serialise_result(result: CalculationResult, translator: Translator) -> dict[str, Any]:
    payload = result.as_dict()
    for period in payload["periods"]:
        for row in period["rows"]:
            for side in ("employee", "employer"):
                rate = row.get(f"{side}_rate")
                if rate is not None:
                    row[f"{side}_rate_label"] = format_percentage(rate)
    payload["aggregation"]["labels"] = {
        name: translator(f"aggregation.{name}") for name in BUCKETS
    }
    payload["meta"] = _meta(translator)
    return payload


def calculate_subscriptions(
    payload: Mapping[str, Any] | CalculationRequest,
    *,
    tables: TableSet | None = None,
    settings: EngineSettings | None = None,
) -> dict[str, Any]:
    """Compute per-period breakdowns, totals and the aggregation matrix.

    Raises :class:`ValueError` for malformed payloads and
    :class:`FallbackConfirmationRequired` when statutory minimum wages would
    be synthesised without confirmation.
    """

    request_model = _parse_request(CalculationRequest, payload)

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("load_tables", timings):
        tables = tables or load_table_set()
        settings = settings or load_engine_settings()

    translator = get_translator(request_model.locale)

    with _profile_section("calculate", timings):
        result = run_calculation(
            request_model.periods,
            tables,
            settings,
            translator,
            confirm_fallback=request_model.confirm_fallback,
        )

    with _profile_section("serialise", timings):
        response = _serialise_result(result, translator)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_subscriptions timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return response


def add_wage(
    payload: Mapping[str, Any] | WageAdditionRequest,
    *,
    tables: TableSet | None = None,
    settings: EngineSettings | None = None,
) -> dict[str, Any]:
    """Validate a wage sub-period and return the updated period payload."""

    request_model = _parse_request(WageAdditionRequest, payload)
    tables = tables or load_table_set()
    settings = settings or load_engine_settings()

    updated = add_sub_period(request_model.period, request_model.wage, tables, settings)
    translator = get_translator(request_model.locale)
    return {"period": updated.as_dict(), "meta": _meta(translator)}


def remove_wage(payload: Mapping[str, Any] | WageRemovalRequest) -> dict[str, Any]:
    """Remove a wage sub-period and return the updated period payload."""

    request_model = _parse_request(WageRemovalRequest, payload)
    updated = remove_sub_period(request_model.period, request_model.wage_id)
    translator = get_translator(request_model.locale)
    return {"period": updated.as_dict(), "meta": _meta(translator)}


__all__ = ["add_wage", "calculate_subscriptions", "remove_wage"]
