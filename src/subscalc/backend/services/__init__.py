"""Service-layer helpers for the SubsCalc backend."""

from subscalc.backend.app.services.calculation_service import (
    add_wage,
    calculate_subscriptions,
    remove_wage,
)

from .request_parser import parse_calculation_payload, resolve_request_locale
from .response_builder import build_calculation_response

__all__ = [
    "add_wage",
    "build_calculation_response",
    "calculate_subscriptions",
    "parse_calculation_payload",
    "remove_wage",
    "resolve_request_locale",
]
