"""REST endpoints applying validate-then-apply wage commands to a period."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from subscalc.backend.services import add_wage, parse_calculation_payload, remove_wage

blueprint = Blueprint("periods", __name__, url_prefix="/api/v1/periods")


@blueprint.post("/wages")
def add_period_wage() -> tuple[Any, int]:
    """Validate a wage sub-period and return the period including it."""

    payload = parse_calculation_payload(request)
    return jsonify(add_wage(payload)), 200


@blueprint.delete("/wages")
def remove_period_wage() -> tuple[Any, int]:
    """Remove a wage sub-period and return the remaining period."""

    payload = parse_calculation_payload(request)
    return jsonify(remove_wage(payload)), 200
