"""Flask application factory for the Phase Roadmap backend."""

import logging

from flask import Flask
from flask_cors import CORS


def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "phase-roadmap-local-dev"
    app.config.setdefault("LOG_LEVEL", "INFO")

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The dashboard runs on a different origin than the relay
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    from phase_roadmap.web.routes import bp
    app.register_blueprint(bp)

    return app
