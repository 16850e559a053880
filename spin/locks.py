from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator

import redis

from .errors import ParticipantBusyError

logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class LocalParticipantLocks:
    """In-process locks keyed by normalized identity.

    Serializes spins for the same participant inside one process only. Entries
    are dropped once nobody holds or waits on them.
    """

    def __init__(self, wait: float = 10) -> None:
        self.wait = wait
        self._guard = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, identity: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(identity, _LockEntry())
            entry.holders += 1
        acquired = entry.lock.acquire(timeout=self.wait)
        try:
            if not acquired:
                raise ParticipantBusyError("A spin for this phone is already in progress.")
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(identity, None)


class RedisParticipantLocks:
    """Redis locks keyed by normalized identity, shared by every worker process."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        prefix: str = "spin:lock:",
        timeout: int = 30,
        wait: int = 10,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.timeout = timeout
        self.wait = wait

    @contextmanager
    def hold(self, identity: str) -> Iterator[None]:
        lock = self.client.lock(
            f"{self.prefix}{identity}",
            timeout=self.timeout,
            blocking_timeout=self.wait,
        )
        try:
            acquired = lock.acquire(blocking=True)
        except redis.RedisError as exc:
            raise ParticipantBusyError(f"Failed to acquire participant lock: {exc}") from exc
        if not acquired:
            raise ParticipantBusyError("A spin for this phone is already in progress.")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.RedisError as exc:
                # Expires server-side after the lock timeout.
                logger.warning("Failed to release participant lock for %s: %s", identity, exc)


__all__ = ["LocalParticipantLocks", "RedisParticipantLocks"]
