"""
Grade Tracker: Flask web application

Daily grade logging against a remote CMS with an offline cache, plus
dashboard metrics (GPA, attendance, missing work, streaks, trends).
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, Response, jsonify

import database
from blueprints import register_blueprints
from errors import GradeTrackerError
from extensions import SyncManager, limiter

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", "dev-key-change-in-production")

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Register database teardown
    database.init_app(app)

    # Offline grade cache (SQLite, Redis or in-memory)
    from cache_backend import init_cache
    init_cache(app)
    SyncManager.reset()

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    register_blueprints(app)

    @app.errorhandler(GradeTrackerError)
    def handle_grade_tracker_error(exc: GradeTrackerError):
        if exc.http_status >= 500:
            logger.error("Unhandled %s: %s", type(exc).__name__, exc)
        return jsonify(exc.to_dict()), exc.http_status

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Grade data is per-user; never let shared caches keep it
        response.headers["Cache-Control"] = "no-store"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
