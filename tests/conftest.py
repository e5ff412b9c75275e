"""
Test fixtures for the grade tracker.

Provides app, client and cache fixtures with file-based SQLite. The remote
CMS is replaced by FakeCMS, a MagicMock session that answers like a Strapi
instance, so no test ever touches the network.
"""

from __future__ import annotations

import pytest
import requests
from unittest.mock import MagicMock
from datetime import date

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

CMS_URL = "http://cms.test/api"
STUDENT_EMAIL = "student@example.com"


def make_response(status=200, payload=None, json_error=False):
    """A requests.Response stand-in with just what CMSClient reads."""
    resp = MagicMock()
    resp.status_code = status
    if json_error:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = payload
    return resp


class FakeCMS:
    """In-memory Strapi double behind a MagicMock ``requests.Session``."""

    def __init__(self):
        self.items: list[dict] = []
        self.user = {"id": 7, "email": STUDENT_EMAIL, "username": "student"}
        self.down = False
        # 401 for every call, as for a forged or expired token
        self.reject_tokens = False
        # 403 for POST/PUT only: a valid user without write permission
        self.forbid_writes = False
        self.next_id = 100
        self.session = MagicMock()
        self.session.request.side_effect = self._handle

    def add(self, day, entries, notes="", item_id=None):
        item_id = item_id if item_id is not None else self._new_id()
        self.items.append({
            "id": item_id,
            "attributes": {"date": day, "entries": entries, "notes": notes},
        })
        return item_id

    def _new_id(self):
        self.next_id += 1
        return self.next_id - 1

    @staticmethod
    def _attributes(body):
        return {k: body[k] for k in ("date", "entries", "notes") if k in body}

    def calls(self, method):
        return [c for c in self.session.request.call_args_list if c.args[0] == method]

    def _handle(self, method, url, headers=None, timeout=None, params=None, json=None):
        if self.down:
            raise requests.ConnectionError("Connection refused")
        if self.reject_tokens:
            return make_response(401, {"data": None, "error": {"status": 401, "name": "UnauthorizedError"}})
        if self.forbid_writes and method in ("POST", "PUT"):
            return make_response(403, {"data": None, "error": {"status": 403, "name": "ForbiddenError"}})

        path = url.split("/api", 1)[1]
        if path == "/users/me":
            return make_response(200, self.user)

        if path == "/daily-grades" and method == "GET":
            items = sorted(self.items, key=lambda i: i["attributes"]["date"], reverse=True)
            return make_response(200, {
                "data": items,
                "meta": {"pagination": {"page": 1, "pageSize": 25, "pageCount": 1, "total": len(items)}},
            })

        if path == "/daily-grades" and method == "POST":
            item = {"id": self._new_id(), "attributes": self._attributes(json["data"])}
            self.items.append(item)
            return make_response(200, {"data": item, "meta": {}})

        if path.startswith("/daily-grades/") and method == "PUT":
            item_id = int(path.rsplit("/", 1)[1])
            for item in self.items:
                if item["id"] == item_id:
                    item["attributes"] = self._attributes(json["data"])
                    return make_response(200, {"data": item, "meta": {}})

        return make_response(404, {"data": None, "error": {"status": 404, "name": "NotFoundError"}})


def entry(subject="Math", grade=90, scale="percentage", attended=True, missing=0):
    return {
        "subject": subject,
        "grade": grade,
        "gradingScale": scale,
        "attended": attended,
        "missingAssignments": missing,
    }


@pytest.fixture
def cms():
    return FakeCMS()


@pytest.fixture
def make_record():
    """Factory: make_record("2025-03-14", [entry(...)], remote_id=None)."""
    from models import GradeRecord

    def _make(day, entries=None, notes="", remote_id=None):
        data = {
            "date": day.isoformat() if isinstance(day, date) else day,
            "entries": entries if entries is not None else [entry()],
            "notes": notes,
        }
        if remote_id is not None:
            data["id"] = remote_id
        return GradeRecord.from_dict(data)

    return _make


@pytest.fixture
def fake_redis():
    import fakeredis
    return fakeredis.FakeRedis()


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "CMS_API_URL": CMS_URL,
        "LOCAL_CACHE_BACKEND": "sqlite",
    })

    with app.app_context():
        from database import init_db, run_migrations

        init_db()
        run_migrations()
        yield app


@pytest.fixture
def grade_service(app, cms):
    """GradeSyncService wired to FakeCMS and the app's SQLite cache."""
    from cache_backend import get_cache
    from cms_client import CMSClient
    from extensions import SyncManager
    from sync import GradeSyncService

    service = GradeSyncService(CMSClient(CMS_URL, session=cms.session), get_cache())
    SyncManager.set_service(service)
    yield service
    SyncManager.reset()


@pytest.fixture
def client(app, grade_service):
    """Test client whose requests reach FakeCMS instead of the network."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-token", "X-User-Email": STUDENT_EMAIL}
