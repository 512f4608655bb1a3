"""Unit tests for calculation request parsing helpers."""

from __future__ import annotations

import pytest
from flask import Flask, request
from werkzeug.exceptions import BadRequest

from subscalc.backend.services.request_parser import (
    parse_calculation_payload,
    resolve_request_locale,
)


def test_parse_payload_uses_accept_language(app: Flask) -> None:
    """Accept-Language header should supply the locale when absent."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json={"periods": []},
        headers={"Accept-Language": "ar-EG;q=0.9, en;q=0.8"},
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "ar"


def test_parse_payload_preserves_explicit_locale(app: Flask) -> None:
    """Explicit locale fields should be normalised without overrides."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json={"periods": [], "locale": "AR"},
        headers={"Accept-Language": "en"},
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "ar"


def test_parse_payload_reads_query_locale(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/calculations?locale=ar", method="POST", json={"periods": []}
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "ar"


def test_parse_payload_without_hints_leaves_locale_unset(app: Flask) -> None:
    with app.test_request_context("/api/v1/calculations", method="POST", json={"periods": []}):
        payload = parse_calculation_payload(request)

    assert "locale" not in payload


def test_parse_payload_rejects_non_object(app: Flask) -> None:
    """Non-object JSON payloads should trigger BadRequest responses."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json=["not", "an", "object"],
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)


def test_parse_payload_rejects_invalid_json(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        data="{not json",
        content_type="application/json",
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)


def test_resolve_request_locale_ignores_invalid_bodies(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/periods/wages",
        method="POST",
        data="garbage",
        content_type="application/json",
        headers={"Accept-Language": "ar"},
    ):
        assert resolve_request_locale(request) == "ar"


def test_resolve_request_locale_defaults_to_english(app: Flask) -> None:
    with app.test_request_context("/api/v1/calculations", method="POST", json={"periods": []}):
        assert resolve_request_locale(request) == "en"
