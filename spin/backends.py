"""Build a :class:`SpinEngine` from Django settings."""

from __future__ import annotations

from typing import Optional

import redis
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .locks import LocalParticipantLocks, RedisParticipantLocks
from .mirror import NullInventoryMirror, RedisInventoryMirror
from .participants import DatabaseParticipantStore, ParticipantStore, ShopifyParticipantStore
from .repositories import (
    DatabasePrizeCatalogRepository,
    PrizeCatalogRepository,
    ShopifyPrizeCatalogRepository,
)
from .services import SpinEngine
from .shopify import ShopifyClient

_BACKENDS = {"database", "shopify"}

# Shared by every request in this process.
_LOCAL_LOCKS = LocalParticipantLocks()


def _redis_client() -> redis.Redis:
    redis_url = getattr(settings, "REDIS_URL", None)
    if not redis_url:
        raise ImproperlyConfigured("REDIS_URL is not configured in settings.")
    return redis.Redis.from_url(redis_url, decode_responses=True)


def _backend_name(setting: str) -> str:
    name = getattr(settings, setting, "database")
    if name not in _BACKENDS:
        raise ImproperlyConfigured(f"{setting} must be one of {sorted(_BACKENDS)}, got {name!r}.")
    return name


def build_catalog(client: Optional[ShopifyClient] = None) -> PrizeCatalogRepository:
    if _backend_name("SPIN_CATALOG_BACKEND") == "shopify":
        return ShopifyPrizeCatalogRepository(client or ShopifyClient.from_settings())
    return DatabasePrizeCatalogRepository()


def build_participants(client: Optional[ShopifyClient] = None) -> ParticipantStore:
    if _backend_name("SPIN_PARTICIPANT_BACKEND") == "shopify":
        return ShopifyParticipantStore(client or ShopifyClient.from_settings())
    return DatabaseParticipantStore()


def build_locks():
    wait = getattr(settings, "SPIN_LOCK_WAIT", 10)
    if getattr(settings, "SPIN_LOCK_BACKEND", "local") == "redis":
        return RedisParticipantLocks(
            _redis_client(),
            timeout=getattr(settings, "SPIN_LOCK_TIMEOUT", 30),
            wait=wait,
        )
    _LOCAL_LOCKS.wait = wait
    return _LOCAL_LOCKS


def build_mirror():
    if not getattr(settings, "SPIN_MIRROR_ENABLED", False):
        return NullInventoryMirror()
    return RedisInventoryMirror(
        _redis_client(),
        prefix=getattr(settings, "SPIN_MIRROR_PREFIX", "spin:prize:"),
    )


def get_engine() -> SpinEngine:
    """Compose the engine for one request; no store state is cached between calls."""

    client = None
    if "shopify" in {
        getattr(settings, "SPIN_CATALOG_BACKEND", "database"),
        getattr(settings, "SPIN_PARTICIPANT_BACKEND", "database"),
    }:
        client = ShopifyClient.from_settings()
    return SpinEngine(
        build_participants(client),
        build_catalog(client),
        locks=build_locks(),
        mirror=build_mirror(),
        admin_key=getattr(settings, "SPIN_ADMIN_KEY", ""),
        fallback_prize_id=getattr(settings, "SPIN_FALLBACK_PRIZE_ID", None),
        max_draw_attempts=getattr(settings, "SPIN_MAX_DRAW_ATTEMPTS", 3),
    )


__all__ = ["build_catalog", "build_locks", "build_mirror", "build_participants", "get_engine"]
