"""Weighted prize selection over a catalog snapshot."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .entities import Prize


@dataclass(frozen=True, slots=True)
class DrawResult:
    prize: Prize
    fallback: bool = False


def available_prizes(prizes: Iterable[Prize]) -> List[Prize]:
    """Return the prizes that can still be awarded, in catalog order."""

    return [prize for prize in prizes if prize.is_available]


def select_fallback(prizes: Sequence[Prize], fallback_id: Optional[str] = None) -> Prize:
    """Pick the prize awarded when nothing is available.

    Preference order: the prize whose id is ``fallback_id``, then the first
    uncapped prize, then the last catalog entry. Never random.
    """

    if not prizes:
        raise ValueError("Prize catalog cannot be empty.")
    if fallback_id:
        for prize in prizes:
            if prize.id == fallback_id:
                return prize
    for prize in prizes:
        if not prize.is_capped:
            return prize
    return prizes[-1]


def weighted_choice(available: Sequence[Prize], rng: random.Random) -> Prize:
    """Draw one prize with probability proportional to its weight.

    The total is summed over ``available`` only, so the mass of a depleted
    prize is spread over the remaining ones in proportion to their weights.
    """

    if not available:
        raise ValueError("weighted_choice needs at least one available prize.")
    total = sum(prize.weight for prize in available)
    roll = rng.random() * total
    cumulative = 0.0
    for prize in available:
        cumulative += prize.weight
        if cumulative >= roll:
            return prize
    # Rounding can leave the roll just above the final cumulative sum.
    return available[-1]


def choose_prize(
    prizes: Sequence[Prize],
    rng: random.Random,
    fallback_id: Optional[str] = None,
) -> DrawResult:
    available = available_prizes(prizes)
    if not available:
        return DrawResult(prize=select_fallback(prizes, fallback_id), fallback=True)
    return DrawResult(prize=weighted_choice(available, rng))


__all__ = [
    "DrawResult",
    "available_prizes",
    "choose_prize",
    "select_fallback",
    "weighted_choice",
]
