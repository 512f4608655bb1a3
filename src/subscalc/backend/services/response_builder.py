"""Utilities for serialising calculation responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Tuple

from flask import jsonify

from subscalc.backend.app.errors import NoValidPeriodsError

ResponseTuple = Tuple[Any, int]


def build_calculation_response(payload: Mapping[str, Any]) -> ResponseTuple:
    """Return a Flask JSON response for the calculation ``payload``.

    A result whose periods all failed is still returned in full, with a 422
    status so that clients can render the per-period errors.
    """

    error = payload.get("error")
    if isinstance(error, Mapping) and error.get("code") == NoValidPeriodsError.code:
        return jsonify(payload), 422
    return jsonify(payload), 200
