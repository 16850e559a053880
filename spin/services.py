"""Allocation engine for the wheel campaign.

One spin runs as a sequence of blocking calls against the stores: look up the
participant, read a fresh catalog snapshot, draw, write the prize counters,
then write the participant's played-marker. The stores give no transaction
across those calls, so consistency is best-effort:

* counter writes are conditional on the version read with the snapshot; a
  stale write is retried with a fresh snapshot a bounded number of times;
* spins for the same identity are serialized by a lock held for the whole
  allocation;
* if the marker write fails after the counters were written, the inventory
  already reflects the award and a retry by the same participant can draw
  again. That case is logged at ERROR for manual reconciliation.
"""

from __future__ import annotations

import dataclasses
import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.utils import timezone
from django.utils.crypto import constant_time_compare

from .draw import choose_prize
from .entities import AwardedPrize, AwardMarker, Prize, SpinOutcome
from .errors import SpinError, StaleCounterError, Unauthorized, UpstreamUnavailable
from .mirror import NullInventoryMirror
from .participants import ParticipantStore, normalize_identity
from .repositories import PrizeCatalogRepository

logger = logging.getLogger(__name__)

ALREADY_PLAYED_LABEL = "Already Played"


class SpinEngine:
    def __init__(
        self,
        participants: ParticipantStore,
        catalog: PrizeCatalogRepository,
        *,
        locks: Any,
        mirror: Any = None,
        rng: Optional[random.Random] = None,
        admin_key: str = "",
        fallback_prize_id: Optional[str] = None,
        max_draw_attempts: int = 3,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.participants = participants
        self.catalog = catalog
        self.locks = locks
        self.mirror = mirror or NullInventoryMirror()
        self.rng = rng or random.Random()
        self.admin_key = admin_key
        self.fallback_prize_id = fallback_prize_id
        self.max_draw_attempts = max(1, max_draw_attempts)
        self.clock = clock

    # ------------------------------------------------------------------
    # Spin
    # ------------------------------------------------------------------
    def spin(self, raw_identity: Any) -> SpinOutcome:
        """Award one prize to a new participant, or replay the recorded one."""

        identity = normalize_identity(raw_identity)
        with self.locks.hold(identity):
            participant = self.participants.lookup(identity)
            if participant is None:
                participant = self.participants.create(identity)
            if participant.has_played:
                return SpinOutcome(
                    already_played=True,
                    prize=participant.awarded_prize or AwardedPrize(label=ALREADY_PLAYED_LABEL),
                )

            prize, awarded_at = self._draw_and_award()
            marker = AwardMarker(
                prize_id=prize.id,
                label=prize.label,
                awarded_on=awarded_at.date(),
                number=prize.total_distributed,
            )
            try:
                self.participants.record_award(participant, marker)
            except UpstreamUnavailable:
                logger.error(
                    "Prize %s (number %s) was counted for %s but the played-marker was not written",
                    prize.id,
                    marker.number,
                    identity,
                )
                raise

        logger.info("Awarded prize %s to %s (number %s)", prize.id, identity, marker.number)
        return SpinOutcome(already_played=False, prize=marker.as_awarded_prize())

    def _draw_and_award(self) -> Tuple[Prize, datetime]:
        for attempt in range(1, self.max_draw_attempts + 1):
            snapshot = self.catalog.load_all()
            result = choose_prize(snapshot.prizes, self.rng, self.fallback_prize_id)
            if result.fallback:
                logger.warning(
                    "No prizes with remaining stock; awarding fallback prize %s",
                    result.prize.id,
                )
            try:
                return self._apply_award(result.prize)
            except StaleCounterError as exc:
                logger.info(
                    "Counters for prize %s changed during draw (attempt %d/%d): %s",
                    result.prize.id,
                    attempt,
                    self.max_draw_attempts,
                    exc,
                )
        raise UpstreamUnavailable(
            f"Prize counters kept changing; gave up after {self.max_draw_attempts} attempts."
        )

    def _apply_award(self, prize: Prize) -> Tuple[Prize, datetime]:
        """Decrement ``remaining`` (floored at 0) and increment ``total_distributed``."""

        remaining = max(0, prize.remaining - 1) if prize.remaining is not None else None
        total_distributed = prize.total_distributed + 1
        timestamp = self.clock()
        self.catalog.write_counters(prize, remaining, total_distributed, timestamp)
        awarded = dataclasses.replace(
            prize,
            remaining=remaining,
            total_distributed=total_distributed,
            last_updated=timestamp,
        )
        self.mirror.publish([awarded])
        return awarded, timestamp

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def _authorize(self, admin_key: Any) -> None:
        expected = self.admin_key or ""
        if not expected or not isinstance(admin_key, str):
            raise Unauthorized("Unauthorized")
        if not constant_time_compare(admin_key, expected):
            raise Unauthorized("Unauthorized")

    def reset_inventory(self, admin_key: Any) -> Dict[str, Any]:
        self._authorize(admin_key)
        self.catalog.reset_all()
        logger.info("Prize counts reset to max_count values")
        if self.mirror.enabled:
            try:
                self.mirror.publish(self.catalog.load_all())
            except SpinError as exc:
                logger.warning("Inventory mirror not refreshed after reset: %s", exc)
        return {"success": True, "message": "Prize counts reset to max_count values"}

    def get_stats(self, admin_key: Any) -> List[Dict[str, Any]]:
        self._authorize(admin_key)
        snapshot = self.catalog.load_all()
        self.mirror.publish(snapshot)
        return [prize.to_stats() for prize in snapshot]

    # ------------------------------------------------------------------
    # Read-only
    # ------------------------------------------------------------------
    def list_available_prizes(self) -> Dict[str, Any]:
        snapshot = self.catalog.load_all()
        return {
            "prizes": [prize.to_stats() for prize in snapshot],
            "lastUpdated": snapshot.loaded_at.isoformat(),
        }

    def get_participant(self, raw_identity: Any) -> Dict[str, Any]:
        identity = normalize_identity(raw_identity)
        participant = self.participants.lookup(identity)
        if participant is None:
            return {"found": False}
        return {
            "found": True,
            "customerId": participant.handle,
            "hasPlayed": participant.has_played,
            "prize": participant.awarded_prize.to_payload() if participant.awarded_prize else None,
        }


__all__ = ["ALREADY_PLAYED_LABEL", "SpinEngine"]
