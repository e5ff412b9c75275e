"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from functools import wraps
from typing import Any

from flask import current_app, g, jsonify, request

import date_utils


def bearer_token() -> str | None:
    """Token from ``Authorization: Bearer <token>``, or None."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def request_email() -> str | None:
    """Owner email supplied by the client for offline cache scoping."""
    email = request.headers.get("X-User-Email", "").strip().lower()
    return email or None


def token_required(f: Callable) -> Callable:
    """Reject requests without a bearer token; exposes it as ``g.cms_token``."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        token = bearer_token()
        if not token:
            return jsonify({
                "error": "You must be logged in to access grades.",
                "code": "UNAUTHENTICATED",
            }), 401
        g.cms_token = token
        return f(*args, **kwargs)
    return decorated


def note_sync(owner_key: str, source: str) -> None:
    """Publish who was served and from where for the access log."""
    g.owner_key = owner_key
    g.sync_source = source


def today() -> date:
    """Today's date in the configured display timezone."""
    return date_utils.today(current_app.config.get("DISPLAY_TIMEZONE") or None)


def paginate_args(default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    """Extract page/limit from request.args. Returns (page, limit)."""
    try:
        page = max(1, int(request.args.get("page", 1)))
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def pagination_meta(total: int, page: int, limit: int) -> dict:
    """Pagination block in the CMS's own ``meta.pagination`` shape."""
    return {
        "pagination": {
            "page": page,
            "pageSize": limit,
            "pageCount": max(1, (total + limit - 1) // limit),
            "total": total,
        },
    }
