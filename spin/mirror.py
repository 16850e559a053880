"""Best-effort display mirror of prize inventory.

The mirror is written after the primary store and never fails the caller.
When a mirror write fails the two may drift; the warning in the log is the
only signal, nothing reconciles them automatically.
"""

from __future__ import annotations

import logging
from typing import Iterable

import redis

from .entities import Prize

logger = logging.getLogger(__name__)


class NullInventoryMirror:
    enabled = False

    def publish(self, prizes: Iterable[Prize]) -> None:
        return None


class RedisInventoryMirror:
    """Keep one Redis hash per prize with its display counters."""

    enabled = True

    def __init__(self, client: redis.Redis, prefix: str = "spin:prize:") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, prize_id: str) -> str:
        return f"{self.prefix}{prize_id}"

    def publish(self, prizes: Iterable[Prize]) -> None:
        for prize in prizes:
            mapping = {
                "label": prize.label,
                "remaining": "" if prize.remaining is None else str(prize.remaining),
                "total_distributed": str(prize.total_distributed),
                "is_available": "1" if prize.is_available else "0",
                "last_updated": prize.last_updated.isoformat() if prize.last_updated else "",
            }
            try:
                self.client.hset(self._key(prize.id), mapping=mapping)
            except redis.RedisError as exc:
                logger.warning(
                    "Inventory mirror update failed for prize %s; mirror may drift from the store: %s",
                    prize.id,
                    exc,
                )


__all__ = ["NullInventoryMirror", "RedisInventoryMirror"]
