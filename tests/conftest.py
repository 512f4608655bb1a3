"""Test configuration utilities and shared fixtures."""

import sys
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typing import Any, Callable  # noqa: E402

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from subscalc.backend.app import create_app  # noqa: E402
from subscalc.backend.app.localization import Translator, get_translator  # noqa: E402
from subscalc.backend.app.models import SubscriptionPeriod  # noqa: E402
from subscalc.backend.config.schema import EngineSettings, TableSet  # noqa: E402
from subscalc.backend.config.table_config import (  # noqa: E402
    load_engine_settings,
    load_raw_tables,
    load_table_set,
)


@pytest.fixture()
def app() -> Flask:
    """Return a configured Flask application for integration tests."""

    application = create_app()
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()


@pytest.fixture()
def tables() -> TableSet:
    return load_table_set()


@pytest.fixture()
def settings() -> EngineSettings:
    return load_engine_settings()


@pytest.fixture()
def translator() -> Translator:
    return get_translator("en")


@pytest.fixture()
def raw_tables() -> dict[str, list[list[str]]]:
    """Return a mutable copy of the bundled raw table rows."""

    return {key: [list(row) for row in rows] for key, rows in load_raw_tables().items()}


@pytest.fixture()
def make_period() -> Callable[..., SubscriptionPeriod]:
    """Build a period from keyword fields using the wire format."""

    def factory(**fields: Any) -> SubscriptionPeriod:
        payload: dict[str, Any] = {"id": "p1"}
        payload.update(fields)
        return SubscriptionPeriod.model_validate(payload)

    return factory
