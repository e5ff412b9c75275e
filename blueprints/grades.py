"""Daily grade routes: list, fetch one day, submit."""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

import date_utils
from extensions import SyncManager, limiter
from helpers import note_sync, pagination_meta, paginate_args, request_email, token_required
from models import GradeRecord

logger = logging.getLogger(__name__)

bp = Blueprint("grades", __name__)


@bp.route("/api/daily-grades")
@token_required
def list_daily_grades():
    outcome = SyncManager.get_service().load(g.cms_token, request_email())
    note_sync(outcome.owner_key, outcome.source)
    page, limit = paginate_args()
    start = (page - 1) * limit
    records = outcome.records[start:start + limit]

    body = {
        "data": [r.to_dict() for r in records],
        "source": outcome.source,
        "meta": pagination_meta(len(outcome.records), page, limit),
    }
    if outcome.warning:
        body["warning"] = outcome.warning
    return jsonify(body)


@bp.route("/api/daily-grades/<day>")
@token_required
def get_daily_grade(day: str):
    wanted = date_utils.normalize(day)
    outcome = SyncManager.get_service().load(g.cms_token, request_email())
    note_sync(outcome.owner_key, outcome.source)
    for record in outcome.records:
        if record.date == wanted:
            return jsonify({"data": record.to_dict(), "source": outcome.source})
    return jsonify({"error": f"No grades logged for {date_utils.display(wanted, 'medium')}."}), 404


@bp.route("/api/daily-grades", methods=["POST"])
@limiter.limit("30 per minute")
@token_required
def submit_daily_grade():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object.", "code": "VALIDATION_ERROR"}), 400

    # Identity comes from the token, never from the body.
    payload = {k: v for k, v in payload.items() if k != "id"}
    record = GradeRecord.from_dict(payload)

    outcome = SyncManager.get_service().submit(g.cms_token, record, request_email())
    note_sync(outcome.owner_key, outcome.status)
    body = {
        "success": True,
        "status": outcome.status,
        "message": outcome.message,
        "data": outcome.record.to_dict(),
    }
    if outcome.synced:
        return jsonify(body), 201

    body["warning"] = str(outcome.error)
    return jsonify(body), 202
