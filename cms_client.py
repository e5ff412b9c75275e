"""
HTTP client for the remote CMS that owns the authoritative daily grades.

The CMS speaks Strapi's REST dialect: list responses are ``{data: [...],
meta: {...}}`` and each item is ``{id, attributes: {...}}``. Every method
makes exactly one attempt and returns a Result; expected failures (network
down, 401, 5xx, garbage JSON) never raise. Retrying is the caller's call,
see resilience.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from errors import (
    GradeTrackerError,
    MalformedResponse,
    Result,
    ServiceUnavailable,
    Unauthenticated,
)
from models import GradeRecord

logger = logging.getLogger(__name__)

DAILY_GRADES_PATH = "/daily-grades"


@dataclass(frozen=True)
class RemoteUser:
    id: int
    email: str = ""
    username: str = ""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record_from_item(item: Any) -> GradeRecord:
    """Convert one ``{id, attributes}`` item. Raises on anything unusable."""
    if not isinstance(item, dict):
        raise MalformedResponse("Daily grade item is not an object")
    attrs = item.get("attributes", item)
    if not isinstance(attrs, dict):
        raise MalformedResponse("Daily grade attributes are not an object")
    data = {
        "date": attrs.get("date"),
        "entries": attrs.get("entries") if attrs.get("entries") is not None else [],
        "notes": attrs.get("notes") or "",
        "id": item.get("id"),
    }
    return GradeRecord.from_dict(data)


class CMSClient:
    """Thin wrapper around the CMS ``/daily-grades`` and ``/users/me`` endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    # ── transport ───────────────────────────────────────────

    def _request(self, method: str, path: str, token: str, **kwargs) -> Result[Any]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"

        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.warning("CMS %s %s timed out: %s", method, path, e)
            return Result.failure(ServiceUnavailable(f"CMS request timed out: {e}"))
        except requests.RequestException as e:
            logger.warning("CMS %s %s failed: %s", method, path, e)
            return Result.failure(ServiceUnavailable(f"CMS unreachable: {e}"))

        status = resp.status_code
        if status in (401, 403):
            return Result.failure(Unauthenticated(f"CMS rejected credentials ({status})", status))
        if not 200 <= status < 300:
            logger.warning("CMS %s %s returned %s", method, path, status)
            return Result.failure(ServiceUnavailable(f"CMS returned HTTP {status}", status))

        try:
            payload = resp.json()
        except ValueError:
            return Result.failure(MalformedResponse("CMS response is not valid JSON", status))
        return Result.success(payload)

    @staticmethod
    def _data(payload: Any) -> Any:
        if not isinstance(payload, dict) or "data" not in payload:
            raise MalformedResponse("CMS response is missing the data envelope")
        return payload["data"]

    def _single_record(self, result: Result[Any]) -> Result[GradeRecord]:
        if not result.ok:
            return Result.failure(result.error)
        try:
            return Result.success(_record_from_item(self._data(result.value)))
        except MalformedResponse as e:
            return Result.failure(e)
        except GradeTrackerError as e:
            return Result.failure(MalformedResponse(f"CMS returned an invalid daily grade: {e}"))

    @staticmethod
    def _body(record: GradeRecord) -> dict[str, Any]:
        return {
            "date": record.iso_date,
            "entries": [e.to_dict() for e in record.entries],
            "notes": record.notes,
        }

    # ── endpoints ───────────────────────────────────────────

    def fetch_all(self, token: str, user_id: Optional[int] = None) -> Result[list[GradeRecord]]:
        """All daily grades for the token's user, newest first."""
        params: dict[str, Any] = {"sort": "date:desc", "populate": "*"}
        if user_id is not None:
            params["filters[user][id]"] = user_id

        result = self._request("GET", DAILY_GRADES_PATH, token, params=params)
        if not result.ok:
            return Result.failure(result.error)

        try:
            items = self._data(result.value)
        except MalformedResponse as e:
            return Result.failure(e)
        if not isinstance(items, list):
            return Result.failure(MalformedResponse("CMS data envelope is not a list"))

        records = []
        for item in items:
            try:
                records.append(_record_from_item(item))
            except GradeTrackerError as e:
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("Skipping invalid remote daily grade (id=%s): %s", item_id, e)
        logger.info("Fetched %d daily grades from CMS", len(records))
        return Result.success(records)

    def submit(self, token: str, record: GradeRecord, user_id: Optional[int] = None) -> Result[GradeRecord]:
        """Create a daily grade. The CMS assigns the owner from the token when user is absent."""
        body = self._body(record)
        if user_id is not None:
            body["user"] = user_id
        body["publishedAt"] = _utc_now_iso()
        return self._single_record(self._request("POST", DAILY_GRADES_PATH, token, json={"data": body}))

    def update(self, token: str, remote_id: int, record: GradeRecord) -> Result[GradeRecord]:
        """Replace the daily grade stored under *remote_id*."""
        path = f"{DAILY_GRADES_PATH}/{remote_id}"
        return self._single_record(self._request("PUT", path, token, json={"data": self._body(record)}))

    def current_user(self, token: str) -> Result[RemoteUser]:
        result = self._request("GET", "/users/me", token)
        if not result.ok:
            return Result.failure(result.error)
        payload = result.value
        if not isinstance(payload, dict) or not isinstance(payload.get("id"), int):
            return Result.failure(MalformedResponse("CMS user payload has no id"))
        return Result.success(RemoteUser(
            id=payload["id"],
            email=payload.get("email") or "",
            username=payload.get("username") or "",
        ))


def client_from_config(config: dict) -> CMSClient:
    return CMSClient(
        base_url=config.get("CMS_API_URL", "http://localhost:1337/api"),
        timeout=config.get("CMS_TIMEOUT", 10),
    )
