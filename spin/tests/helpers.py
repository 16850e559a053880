from __future__ import annotations

import dataclasses
from datetime import datetime, timezone as dt_timezone
from typing import Dict, List, Optional

from django.utils import timezone

from spin.entities import AwardedPrize, CatalogSnapshot, Participant, Prize
from spin.errors import ConfigurationError, StaleCounterError, UpstreamUnavailable
from spin.locks import LocalParticipantLocks
from spin.services import SpinEngine

FIXED_NOW = datetime(2026, 10, 18, 12, 30, tzinfo=dt_timezone.utc)


class FixedRandom:
    """Stand-in for random.Random returning a scripted sequence of draws."""

    def __init__(self, *values: float) -> None:
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


def make_prize(
    prize_id: str,
    weight: float,
    cap: Optional[int] = None,
    remaining: Optional[int] = None,
    total: int = 0,
) -> Prize:
    if cap is not None and remaining is None:
        remaining = cap
    return Prize(
        id=prize_id,
        label=prize_id.replace("_", " ").title(),
        weight=weight,
        cap=cap,
        remaining=remaining,
        total_distributed=total,
        handle=prize_id,
        version=0,
    )


class InMemoryCatalog:
    """Catalog store with the same version-checked write contract as the real ones."""

    def __init__(self, prizes: List[Prize]) -> None:
        self.prizes: Dict[str, Prize] = {prize.id: prize for prize in prizes}
        self.stale_writes = 0
        self.load_count = 0
        self.write_count = 0
        self.fail_loads = False

    def load_all(self) -> CatalogSnapshot:
        self.load_count += 1
        if self.fail_loads:
            raise UpstreamUnavailable("catalog down")
        if not self.prizes:
            raise ConfigurationError("No prize records found.")
        return CatalogSnapshot(prizes=tuple(self.prizes.values()), loaded_at=FIXED_NOW)

    def write_counters(self, prize, remaining, total_distributed, timestamp) -> None:
        current = self.prizes[prize.handle]
        if self.stale_writes:
            self.stale_writes -= 1
            # Another writer got there first.
            self.prizes[prize.handle] = dataclasses.replace(current, version=current.version + 1)
            raise StaleCounterError(f"Prize {prize.id} changed since it was read.")
        if current.version != prize.version:
            raise StaleCounterError(f"Prize {prize.id} changed since it was read.")
        self.write_count += 1
        self.prizes[prize.handle] = dataclasses.replace(
            current,
            remaining=remaining,
            total_distributed=total_distributed,
            last_updated=timestamp,
            version=current.version + 1,
        )

    def reset_all(self) -> None:
        for key, prize in list(self.prizes.items()):
            self.prizes[key] = dataclasses.replace(
                prize, remaining=prize.cap, last_updated=timezone.now(), version=prize.version + 1
            )


class InMemoryParticipants:
    def __init__(self) -> None:
        self.records: Dict[str, Participant] = {}
        self.calls: List[str] = []
        self.fail_record = False

    def lookup(self, identity: str) -> Optional[Participant]:
        self.calls.append("lookup")
        return self.records.get(identity)

    def create(self, identity: str) -> Participant:
        self.calls.append("create")
        return self.records.setdefault(identity, Participant(identity=identity, handle=identity))

    def record_award(self, participant: Participant, marker) -> None:
        self.calls.append("record_award")
        if self.fail_record:
            raise UpstreamUnavailable("customer update failed")
        self.records[participant.identity] = dataclasses.replace(
            participant,
            has_played=True,
            awarded_prize=AwardedPrize(
                label=marker.label,
                date=marker.awarded_on.isoformat(),
                number=marker.number,
            ),
        )


def make_engine(catalog, participants=None, *, rng=None, mirror=None, **kwargs) -> SpinEngine:
    return SpinEngine(
        participants if participants is not None else InMemoryParticipants(),
        catalog,
        locks=LocalParticipantLocks(wait=1),
        mirror=mirror,
        rng=rng or FixedRandom(0.0),
        admin_key=kwargs.pop("admin_key", "s3cret"),
        clock=lambda: FIXED_NOW,
        **kwargs,
    )
