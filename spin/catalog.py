"""Validation of raw prize records into a catalog snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .entities import CatalogSnapshot, Prize
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Weight used when the source percentage is missing, unparsable or negative.
DEFAULT_WEIGHT = 1.0
UNBOUNDED_SENTINEL = -1


@dataclass(frozen=True, slots=True)
class RawPrizeRecord:
    """Field values of one backing record, before validation.

    ``fields`` uses the platform field keys: ``prize_id``, ``prize_label``,
    ``probability`` (a percentage), ``max_count``, ``remaining_count``,
    ``total_distributed`` and ``last_updated``.
    """

    fields: Mapping[str, Any]
    handle: Any = None
    version: Any = None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_int(value: Any) -> Optional[int]:
    if _blank(value):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return None


def parse_weight(raw: Any) -> float:
    """Convert a percentage (0-100) into a probability mass in [0, 1]."""

    if _blank(raw):
        return DEFAULT_WEIGHT
    try:
        percentage = float(str(raw).strip())
    except ValueError:
        return DEFAULT_WEIGHT
    if percentage != percentage or percentage < 0:  # NaN or negative
        return DEFAULT_WEIGHT
    return min(percentage / 100, 1.0)


def parse_cap(raw: Any) -> Optional[int]:
    """Return the maximum award count, or ``None`` when unbounded."""

    value = _to_int(raw)
    if value is None or value == UNBOUNDED_SENTINEL or value < 0:
        return None
    return value


def parse_remaining(raw: Any, cap: Optional[int]) -> Optional[int]:
    if cap is None:
        return None
    value = _to_int(raw)
    if value is None or value < 0:
        return cap
    return min(value, cap)


def parse_total(raw: Any) -> int:
    value = _to_int(raw)
    if value is None:
        return 0
    return max(value, 0)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if _blank(raw):
        return None
    try:
        return parse_datetime(str(raw).strip())
    except ValueError:
        return None


def parse_prize_record(record: RawPrizeRecord) -> Prize:
    """Validate one raw record. Raises ``ValueError`` when id or label is missing."""

    fields = record.fields
    prize_id = fields.get("prize_id")
    label = fields.get("prize_label")
    if _blank(prize_id) or _blank(label):
        raise ValueError("Missing prize_id or prize_label")

    cap = parse_cap(fields.get("max_count"))
    return Prize(
        id=str(prize_id).strip(),
        label=str(label).strip(),
        weight=parse_weight(fields.get("probability")),
        cap=cap,
        remaining=parse_remaining(fields.get("remaining_count"), cap),
        total_distributed=parse_total(fields.get("total_distributed")),
        last_updated=parse_timestamp(fields.get("last_updated")),
        handle=record.handle,
        version=record.version,
    )


def build_snapshot(records: Optional[Iterable[RawPrizeRecord]]) -> CatalogSnapshot:
    """Turn raw records into a snapshot, skipping invalid entries.

    Raises ``ConfigurationError`` when no records were returned at all or when
    none of them is a valid prize.
    """

    record_list: List[RawPrizeRecord] = list(records or [])
    if not record_list:
        raise ConfigurationError(
            "No prize records found. Create the wheel prize entries before spinning."
        )

    prizes: List[Prize] = []
    seen_ids: set[str] = set()
    errors: List[str] = []
    for index, record in enumerate(record_list, start=1):
        try:
            prize = parse_prize_record(record)
        except ValueError as exc:
            errors.append(f"Record {index}: {exc}")
            continue
        if prize.id in seen_ids:
            errors.append(f"Record {index}: duplicate prize_id {prize.id!r}")
            continue
        seen_ids.add(prize.id)
        prizes.append(prize)

    if errors:
        logger.error("Prize validation errors: %s", "; ".join(errors))

    if not prizes:
        raise ConfigurationError(
            "No valid prizes found. Check the prize_id and prize_label fields."
        )

    return CatalogSnapshot(prizes=tuple(prizes), loaded_at=timezone.now())


__all__ = [
    "DEFAULT_WEIGHT",
    "RawPrizeRecord",
    "UNBOUNDED_SENTINEL",
    "build_snapshot",
    "parse_cap",
    "parse_prize_record",
    "parse_remaining",
    "parse_total",
    "parse_weight",
]
