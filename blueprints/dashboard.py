"""Dashboard metrics route."""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from extensions import SyncManager
from grade_analytics import dashboard_summary
from helpers import note_sync, request_email, today, token_required

bp = Blueprint("dashboard", __name__)


@bp.route("/api/dashboard")
@token_required
def api_dashboard():
    time_range = request.args.get("range", "all").strip().lower() or "all"
    outcome = SyncManager.get_service().load(g.cms_token, request_email())
    note_sync(outcome.owner_key, outcome.source)

    summary = dashboard_summary(outcome.records, time_range, today())
    summary["source"] = outcome.source
    if outcome.warning:
        summary["warning"] = outcome.warning
    return jsonify(summary)
