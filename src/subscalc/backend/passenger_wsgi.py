"""WSGI entrypoint for Passenger-style deployments of the SubsCalc backend."""

import logging
import os

from subscalc.backend.app import create_app

logging.basicConfig(
    level=os.getenv("SUBSCALC_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Passenger expects a module-level variable named ``application``.
application = create_app()
