"""Health checks for the load balancer: /health, /ready (database + grade cache), /live."""

from __future__ import annotations

import logging
import time

from flask import Blueprint, current_app, jsonify

from cache_backend import get_cache
from database import get_db

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)

_started = time.monotonic()


@bp.route("/health")
def health():
    return jsonify({
        "status": "ok",
        "uptime_seconds": int(time.monotonic() - _started),
        "cache_backend": get_cache().backend,
        "cms_configured": bool(current_app.config.get("CMS_API_URL")),
    })


def _check_database() -> None:
    get_db().execute("SELECT 1").fetchone()


def _check_cache() -> None:
    get_cache().keys()


@bp.route("/ready")
def ready():
    """Ready once offline grades can be both read and written."""
    checks = {}
    for name, check in (("database", _check_database), ("grade_cache", _check_cache)):
        try:
            check()
            checks[name] = "ok"
        except Exception as exc:
            logger.error("Readiness check %s failed: %s", name, exc, exc_info=True)
            checks[name] = "failed"

    if all(v == "ok" for v in checks.values()):
        return jsonify({"status": "ready", "checks": checks}), 200
    return jsonify({"status": "not_ready", "checks": checks}), 503


@bp.route("/live")
def live():
    return jsonify({"status": "alive"}), 200
