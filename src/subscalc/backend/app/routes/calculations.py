"""REST endpoints for subscription calculations."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from subscalc.backend.services import (
    build_calculation_response,
    calculate_subscriptions,
    parse_calculation_payload,
)

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1")


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Calculate contributions for the submitted periods.

    A pending statutory minimum fallback surfaces as a 409 problem response
    through the application's domain error handler.
    """

    payload = parse_calculation_payload(request)
    result = calculate_subscriptions(payload)

    return build_calculation_response(result)
