"""Offline grade cache with SQLite / Redis / in-memory backends.

Stores one JSON array of daily grade records per owner key, mirroring what
the browser kept under ``dailyGrades_<email>``. ``put`` replaces the whole
sequence for a key; merge decisions happen upstream in sync.py.

Usage:
    from cache_backend import init_cache, get_cache, owner_key
    init_cache(app)                 # called once in create_app()
    cache = get_cache()
    key = owner_key("student@example.com")
    cache.put(key, records)
    records = cache.get(key)
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from errors import GradeTrackerError
from models import GradeRecord

logger = logging.getLogger(__name__)

GLOBAL_OWNER_KEY = "dailyGrades"


def owner_key(owner: str | int | None) -> str:
    """Cache partition for *owner* (email or user id).

    Falls back to the unscoped ``dailyGrades`` key only when no identity is
    known at all.
    """
    if owner is None:
        return GLOBAL_OWNER_KEY
    text = str(owner).strip().lower()
    if not text:
        return GLOBAL_OWNER_KEY
    return f"{GLOBAL_OWNER_KEY}_{text}"


def _encode(records: Iterable[GradeRecord]) -> str:
    return json.dumps([r.to_dict() for r in records])


def _decode(key: str, raw: str | bytes | None) -> list[GradeRecord]:
    if raw is None:
        return []
    try:
        items = json.loads(raw)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
        logger.warning("Discarding undecodable cache payload (key=%s)", key)
        return []
    if not isinstance(items, list):
        logger.warning("Discarding non-list cache payload (key=%s)", key)
        return []

    records = []
    for item in items:
        try:
            records.append(GradeRecord.from_dict(item))
        except GradeTrackerError as e:
            logger.warning("Skipping invalid cached record (key=%s): %s", key, e)
    return records


# ── Protocol ───────────────────────────────────────────────

class GradeCache(Protocol):
    backend: str

    def get(self, key: str) -> list[GradeRecord]: ...
    def put(self, key: str, records: Iterable[GradeRecord]) -> None: ...
    def upsert(self, key: str, record: GradeRecord) -> list[GradeRecord]: ...
    def keys(self) -> list[str]: ...
    def clear(self) -> None: ...


class _UpsertMixin:
    def upsert(self, key: str, record: GradeRecord) -> list[GradeRecord]:
        """Replace the record for ``record.date`` or add it; keeps newest first."""
        records = [r for r in self.get(key) if r.date != record.date]
        records.append(record)
        records.sort(key=lambda r: r.date, reverse=True)
        self.put(key, records)
        return records


# ── In-Memory Implementation ──────────────────────────────

class InMemoryGradeCache(_UpsertMixin):
    """Process-local dict. Not durable; used for tests and throwaway runs."""

    backend = "memory"

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> list[GradeRecord]:
        with self._lock:
            raw = self._store.get(key)
        return _decode(key, raw)

    def put(self, key: str, records: Iterable[GradeRecord]) -> None:
        raw = _encode(records)
        with self._lock:
            self._store[key] = raw
        logger.debug("Cached grades in memory (key=%s)", key)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


# ── SQLite Implementation ─────────────────────────────────

class SQLiteGradeCache(_UpsertMixin):
    """Durable cache in the app database (grade_cache table)."""

    backend = "sqlite"

    def get(self, key: str) -> list[GradeRecord]:
        from database import get_db
        row = get_db().execute(
            "SELECT payload FROM grade_cache WHERE owner_key = ?", (key,),
        ).fetchone()
        return _decode(key, row["payload"] if row else None)

    def put(self, key: str, records: Iterable[GradeRecord]) -> None:
        from database import get_db
        db = get_db()
        db.execute(
            "INSERT INTO grade_cache (owner_key, payload, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(owner_key) DO UPDATE SET payload = excluded.payload, "
            "updated_at = excluded.updated_at",
            (key, _encode(records), datetime.now(timezone.utc).isoformat()),
        )
        db.commit()
        logger.debug("Cached grades in SQLite (key=%s)", key)

    def keys(self) -> list[str]:
        from database import get_db
        rows = get_db().execute("SELECT owner_key FROM grade_cache ORDER BY owner_key").fetchall()
        return [r["owner_key"] for r in rows]

    def clear(self) -> None:
        from database import get_db
        db = get_db()
        db.execute("DELETE FROM grade_cache")
        db.commit()


# ── Redis Implementation ──────────────────────────────────

class RedisGradeCache(_UpsertMixin):
    """Wraps redis.Redis. Keys never expire; there is no retention policy."""

    backend = "redis"

    def __init__(self, redis_client: Any, prefix: str = "gradetracker:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> list[GradeRecord]:
        return _decode(key, self._redis.get(self._k(key)))

    def put(self, key: str, records: Iterable[GradeRecord]) -> None:
        self._redis.set(self._k(key), _encode(records))
        logger.debug("Cached grades in Redis (key=%s)", key)

    def keys(self) -> list[str]:
        found = []
        for raw in self._redis.scan_iter(match=f"{self._prefix}*"):
            name = raw.decode() if isinstance(raw, bytes) else raw
            found.append(name[len(self._prefix):])
        return sorted(found)

    def clear(self) -> None:
        for raw in self._redis.scan_iter(match=f"{self._prefix}*"):
            self._redis.delete(raw)


# ── Module-level singleton ────────────────────────────────

_cache: GradeCache | None = None


def init_cache(app) -> None:
    """Initialize the cache backend. Call once from create_app()."""
    global _cache

    backend = app.config.get("LOCAL_CACHE_BACKEND", "sqlite")
    if backend == "redis":
        redis_url = app.config.get("REDIS_URL", "")
        try:
            import redis
            client = redis.Redis.from_url(redis_url)
            client.ping()
            _cache = RedisGradeCache(client, app.config.get("REDIS_KEY_PREFIX", "gradetracker:"))
            app.logger.info("Grade cache backend: Redis (%s)", redis_url)
            return
        except Exception as e:
            app.logger.warning("Redis connection failed (%s); falling back to SQLite cache.", e)
            backend = "sqlite"

    if backend == "memory":
        _cache = InMemoryGradeCache()
        app.logger.info("Grade cache backend: in-memory")
        return

    _cache = SQLiteGradeCache()
    app.logger.info("Grade cache backend: SQLite")


def get_cache() -> GradeCache:
    """Return the active cache backend. Lazily initializes if needed."""
    global _cache
    if _cache is None:
        _cache = SQLiteGradeCache()
    return _cache
