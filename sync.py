"""
Reconciliation of remote daily grades with the offline cache.

merge_records() is the pure merge rule. Reconciler adds its single side
effect: re-persisting the merged view so later reads agree with what was
shown. GradeSyncService wires client, retry policy, reconciler and cache into
the two flows the web layer needs: load everything, and submit one day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from cache_backend import GradeCache, owner_key
from cms_client import CMSClient
from errors import RemoteError, Result, Unauthenticated
from models import GradeRecord
from resilience import call_with_retry

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"

STATUS_SYNCED = "synced"
STATUS_SAVED_LOCALLY = "saved_locally"


def sort_newest_first(records: Iterable[GradeRecord]) -> list[GradeRecord]:
    return sorted(records, key=lambda r: r.date, reverse=True)


def merge_records(
    remote_records: Sequence[GradeRecord],
    local_records: Sequence[GradeRecord],
) -> list[GradeRecord]:
    """Merge by date; remote wins on conflict, local-only dates are kept.

    Output is newest first with exactly one record per date.
    """
    merged: dict = {}
    for record in local_records:
        merged[record.date] = record

    remote_by_date: dict = {}
    for record in remote_records:
        # Remote list arrives newest first; keep the first copy of a duplicated date.
        remote_by_date.setdefault(record.date, record)
    merged.update(remote_by_date)

    return sort_newest_first(merged.values())


class Reconciler:
    """Merges a remote Result into the cached records for one owner."""

    def __init__(self, store: GradeCache):
        self.store = store

    def reconcile(
        self,
        remote_result: Result[list[GradeRecord]],
        local_records: Sequence[GradeRecord],
        key: str,
    ) -> list[GradeRecord]:
        if not remote_result.ok:
            return list(local_records)

        merged = merge_records(remote_result.value or [], local_records)
        self.store.put(key, merged)
        return merged


@dataclass(frozen=True)
class SyncOutcome:
    records: list[GradeRecord]
    source: str
    owner_key: str
    error: Optional[RemoteError] = None

    @property
    def warning(self) -> Optional[str]:
        if self.error is None:
            return None
        return f"Showing saved grades; the grade server could not be reached ({self.error})."


@dataclass(frozen=True)
class SubmitOutcome:
    record: GradeRecord
    status: str
    owner_key: str
    error: Optional[RemoteError] = None

    @property
    def synced(self) -> bool:
        return self.status == STATUS_SYNCED

    @property
    def message(self) -> str:
        if self.synced:
            return "Grades saved to the server and locally."
        return "Grades saved locally (offline mode)."


class GradeSyncService:
    """Load and submit daily grades with offline fallback."""

    def __init__(
        self,
        client: CMSClient,
        store: GradeCache,
        retry_attempts: int = 1,
        retry_wait_min: float = 0.5,
        retry_wait_max: float = 8.0,
    ):
        self.client = client
        self.store = store
        self.reconciler = Reconciler(store)
        self.retry_attempts = retry_attempts
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max

    def _with_retry(self, fn):
        return call_with_retry(
            fn,
            attempts=self.retry_attempts,
            wait_min=self.retry_wait_min,
            wait_max=self.retry_wait_max,
        )

    def resolve_owner(self, token: str, email: Optional[str] = None) -> tuple[str, Optional[int]]:
        """Owner cache key and CMS user id (None when the CMS is unreachable).

        Prefers the CMS identity; falls back to the caller-supplied email and
        finally to the global key. A token the CMS rejects raises
        Unauthenticated: the supplied email is only trusted during an outage.
        """
        result = self.client.current_user(token)
        if result.is_failure(Unauthenticated):
            logger.warning("CMS rejected the token; refusing cached grades")
            raise result.error
        if result.ok and result.value.email:
            return owner_key(result.value.email), result.value.id
        if result.ok:
            return owner_key(email or result.value.id), result.value.id
        logger.info("Could not resolve CMS user (%s); using supplied identity", result.error)
        return owner_key(email), None

    def load(self, token: str, email: Optional[str] = None) -> SyncOutcome:
        key, user_id = self.resolve_owner(token, email)
        local = self.store.get(key)
        remote = self._with_retry(lambda: self.client.fetch_all(token, user_id))
        if remote.is_failure(Unauthenticated):
            raise remote.error
        records = self.reconciler.reconcile(remote, local, key)

        if remote.ok:
            logger.info("Reconciled %d daily grades for %s", len(records), key)
            return SyncOutcome(records=records, source=SOURCE_REMOTE, owner_key=key)

        logger.warning("CMS fetch failed for %s, serving %d cached grades: %s",
                       key, len(records), remote.error)
        return SyncOutcome(records=records, source=SOURCE_LOCAL, owner_key=key, error=remote.error)

    def submit(self, token: str, record: GradeRecord, email: Optional[str] = None) -> SubmitOutcome:
        """Commit *record* locally, then create or update it remotely.

        An unreachable or misbehaving CMS is reported as ``saved_locally``; the
        local copy is kept either way. Unauthenticated is raised, never
        downgraded to an offline save.
        """
        record.validate()
        key, user_id = self.resolve_owner(token, email)

        remote_id = record.remote_id
        if remote_id is None:
            for existing in self.store.get(key):
                if existing.date == record.date:
                    remote_id = existing.remote_id
                    break
        record = record.with_remote_id(remote_id)
        self.store.upsert(key, record)

        result = None
        if remote_id is not None:
            result = self._with_retry(lambda: self.client.update(token, remote_id, record))
            if not result.ok and result.error.status_code == 404:
                logger.info("Remote daily grade %s is gone, creating it again", remote_id)
                result = None
        if result is None:
            result = self._with_retry(lambda: self.client.submit(token, record, user_id))
        if result.is_failure(Unauthenticated):
            raise result.error

        if not result.ok:
            logger.warning("CMS save failed for %s on %s, kept locally: %s",
                           key, record.iso_date, result.error)
            return SubmitOutcome(record=record, status=STATUS_SAVED_LOCALLY, owner_key=key, error=result.error)

        saved = record.with_remote_id(result.value.remote_id)
        self.store.upsert(key, saved)
        logger.info("Synced daily grade %s for %s (id=%s)", record.iso_date, key, saved.remote_id)
        return SubmitOutcome(record=saved, status=STATUS_SYNCED, owner_key=key)
