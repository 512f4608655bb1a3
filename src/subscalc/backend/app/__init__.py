"""Application factory for SubsCalc backend services."""

import logging
import os
from warnings import warn

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from subscalc.backend.config.schema import ConfigurationError

from .errors import SubscriptionError
from .http import problem_response, subscription_problem
from .localization import get_translator

_LOGGER = logging.getLogger(__name__)


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app() -> Flask:
    """Create and configure the Flask application instance."""

    # Deferred so that importing app submodules does not load the blueprints.
    from subscalc.backend.services import resolve_request_locale

    from .routes import register_routes
    from .routes.config import get_configuration_metadata

    app = Flask(__name__)

    allowed_origins = _parse_allowed_origins(os.getenv("SUBSCALC_ALLOWED_ORIGINS"))

    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST", "DELETE"],
        allow_headers=["Content-Type", "Accept-Language"],
    )

    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(SubscriptionError)
    def handle_subscription_error(error: SubscriptionError):
        """Localize domain errors using the locale hinted by the request."""

        translator = get_translator(resolve_request_locale(request))
        return subscription_problem(error, translator).to_response()

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(error: ConfigurationError):
        _LOGGER.error("Contribution tables are misconfigured: %s", error)
        return problem_response(
            "configuration_error", status=500, message=str(error)
        ).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Gracefully surface payload validation errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    return app
