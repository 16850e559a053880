"""Value objects shared by the allocation engine and its stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterator, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Prize:
    """One catalog entry as read from the backing store.

    ``weight`` is already normalized to the 0..1 range. ``cap`` and
    ``remaining`` are both ``None`` for unbounded prizes. ``handle`` points
    back at the backing record and ``version`` is the token the store uses to
    detect a concurrent write.
    """

    id: str
    label: str
    weight: float
    cap: Optional[int] = None
    remaining: Optional[int] = None
    total_distributed: int = 0
    last_updated: Optional[datetime] = None
    handle: Any = None
    version: Any = None

    @property
    def is_capped(self) -> bool:
        return self.cap is not None

    @property
    def is_available(self) -> bool:
        return self.remaining is None or self.remaining > 0

    def to_stats(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "probability": f"{self.weight * 100:.2f}%",
            "cap": self.cap,
            "remaining": self.remaining,
            "totalDistributed": self.total_distributed,
            "isAvailable": self.is_available,
        }


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """Prizes read together at the start of one allocation, in catalog order."""

    prizes: Tuple[Prize, ...]
    loaded_at: datetime

    def __iter__(self) -> Iterator[Prize]:
        return iter(self.prizes)

    def __len__(self) -> int:
        return len(self.prizes)

    def get(self, prize_id: str) -> Optional[Prize]:
        for prize in self.prizes:
            if prize.id == prize_id:
                return prize
        return None


@dataclass(frozen=True, slots=True)
class AwardedPrize:
    label: str
    date: Optional[str] = None
    number: Optional[int] = None
    id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"label": self.label}
        if self.id is not None:
            payload["id"] = self.id
        if self.number is not None:
            payload["number"] = self.number
        if self.date is not None:
            payload["date"] = self.date
        return payload


@dataclass(frozen=True, slots=True)
class Participant:
    """A campaign participant keyed by normalized phone number."""

    identity: str
    handle: Any = None
    has_played: bool = False
    awarded_prize: Optional[AwardedPrize] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class AwardMarker:
    """The played-marker written back to the participant store."""

    prize_id: str
    label: str
    awarded_on: date
    number: int

    def as_awarded_prize(self) -> AwardedPrize:
        return AwardedPrize(
            id=self.prize_id,
            label=self.label,
            date=self.awarded_on.isoformat(),
            number=self.number,
        )


@dataclass(frozen=True, slots=True)
class SpinOutcome:
    already_played: bool
    prize: AwardedPrize

    def to_payload(self) -> Dict[str, Any]:
        return {
            "alreadyPlayed": self.already_played,
            "prize": self.prize.to_payload(),
        }


__all__ = [
    "AwardMarker",
    "AwardedPrize",
    "CatalogSnapshot",
    "Participant",
    "Prize",
    "SpinOutcome",
]
