"""
Singleton management for the sync service and the rate limiter.

Keeps create_app() free of closures over long-lived objects.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])


class SyncManager:
    """Lazy-loaded GradeSyncService built from the current app config."""

    _service = None

    @classmethod
    def get_service(cls):
        if cls._service is None:
            from cache_backend import get_cache
            from cms_client import client_from_config
            from sync import GradeSyncService

            cfg = current_app.config
            cls._service = GradeSyncService(
                client=client_from_config(cfg),
                store=get_cache(),
                retry_attempts=cfg.get("SYNC_RETRY_ATTEMPTS", 1),
                retry_wait_min=cfg.get("SYNC_RETRY_WAIT_MIN", 0.5),
                retry_wait_max=cfg.get("SYNC_RETRY_WAIT_MAX", 8.0),
            )
        return cls._service

    @classmethod
    def set_service(cls, service) -> None:
        cls._service = service

    @classmethod
    def reset(cls):
        """Drop the cached service. Called from create_app() and tests."""
        cls._service = None
