"""Participant identity stores and the played-marker format."""

from __future__ import annotations

import abc
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError
from django.utils import timezone

from .entities import AwardedPrize, AwardMarker, Participant
from .errors import UpstreamUnavailable, ValidationError
from .models import ParticipantRecord
from .shopify import ShopifyClient

logger = logging.getLogger(__name__)

PRIZE_TAG = "Spin Prize:"
DATE_TAG = "Spin Date:"
NUMBER_TAG = "Spin Number:"

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_identity(raw: Any) -> str:
    """Normalize a phone number into the identity key used by every store.

    Whitespace and the separators ``-().`` are dropped and a single leading
    ``+`` is kept. Raises ``ValidationError`` when nothing is left.
    """

    if raw is None:
        raise ValidationError("phone required")
    if not isinstance(raw, str):
        raise ValidationError("phone must be a string")
    value = _SEPARATORS.sub("", raw)
    international = value.startswith("+")
    value = value.lstrip("+")
    if not value:
        raise ValidationError("phone required")
    return f"+{value}" if international else value


def split_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def has_played_tag(tags: Iterable[str]) -> bool:
    marker = PRIZE_TAG.lower()
    return any(marker in tag.lower() for tag in tags)


def prize_from_tags(tags: Iterable[str]) -> Optional[AwardedPrize]:
    """Rebuild the awarded prize from the ``Spin ...`` tags, if present."""

    label = date = None
    number: Optional[int] = None
    for tag in tags:
        if label is None and tag.startswith(PRIZE_TAG):
            label = tag[len(PRIZE_TAG):].strip()
        elif date is None and tag.startswith(DATE_TAG):
            date = tag[len(DATE_TAG):].strip() or None
        elif number is None and tag.startswith(NUMBER_TAG):
            try:
                number = int(tag[len(NUMBER_TAG):].strip())
            except ValueError:
                number = None
    if label is None:
        return None
    return AwardedPrize(label=label, date=date, number=number)


def marker_tags(marker: AwardMarker) -> List[str]:
    return [
        f"{PRIZE_TAG} {marker.label}",
        f"{DATE_TAG} {marker.awarded_on.isoformat()}",
        f"{NUMBER_TAG} {marker.number}",
    ]


class ParticipantStore(abc.ABC):
    @abc.abstractmethod
    def lookup(self, identity: str) -> Optional[Participant]:
        """Return the participant for ``identity`` or ``None``."""

    @abc.abstractmethod
    def create(self, identity: str) -> Participant:
        """Create the participant, or return the existing one for the same identity."""

    @abc.abstractmethod
    def record_award(self, participant: Participant, marker: AwardMarker) -> None:
        """Persist the played-marker for ``participant``."""


class DatabaseParticipantStore(ParticipantStore):
    @staticmethod
    def _to_participant(row: ParticipantRecord) -> Participant:
        awarded = None
        if row.has_played and row.prize_label:
            awarded = AwardedPrize(
                id=row.prize_id or None,
                label=row.prize_label,
                date=row.awarded_on.isoformat() if row.awarded_on else None,
                number=row.prize_number,
            )
        return Participant(
            identity=row.phone,
            handle=row.pk,
            has_played=row.has_played,
            awarded_prize=awarded,
        )

    def lookup(self, identity: str) -> Optional[Participant]:
        try:
            row = ParticipantRecord.objects.filter(phone=identity).first()
        except DatabaseError as exc:
            logger.exception("Failed to look up participant %s: %s", identity, exc)
            raise UpstreamUnavailable(f"Participant lookup failed ({exc})") from exc
        return self._to_participant(row) if row else None

    def create(self, identity: str) -> Participant:
        try:
            row, _ = ParticipantRecord.objects.get_or_create(phone=identity)
        except DatabaseError as exc:
            logger.exception("Failed to create participant %s: %s", identity, exc)
            raise UpstreamUnavailable(f"Participant creation failed ({exc})") from exc
        return self._to_participant(row)

    def record_award(self, participant: Participant, marker: AwardMarker) -> None:
        try:
            updated = ParticipantRecord.objects.filter(
                pk=participant.handle, has_played=False
            ).update(
                has_played=True,
                prize_id=marker.prize_id,
                prize_label=marker.label,
                awarded_on=marker.awarded_on,
                prize_number=marker.number,
            )
        except DatabaseError as exc:
            logger.exception("Failed to record award for %s: %s", participant.identity, exc)
            raise UpstreamUnavailable(f"Failed to record award ({exc})") from exc
        if updated == 0:
            logger.warning(
                "Participant %s already had a recorded prize; %s was not stored",
                participant.identity,
                marker.label,
            )


class ShopifyParticipantStore(ParticipantStore):
    """Participants are Shopify customers; the played-marker lives in their tags."""

    def __init__(self, client: ShopifyClient) -> None:
        self.client = client

    @staticmethod
    def _to_participant(identity: str, customer: Dict[str, Any]) -> Participant:
        tags = split_tags(customer.get("tags"))
        return Participant(
            identity=identity,
            handle=customer["id"],
            has_played=has_played_tag(tags),
            awarded_prize=prize_from_tags(tags),
            tags=tuple(tags),
        )

    def lookup(self, identity: str) -> Optional[Participant]:
        data = self.client.rest(
            "get",
            "/customers/search.json",
            params={"query": f"phone:{identity}"},
        )
        customers = data.get("customers") or []
        if not customers:
            return None
        return self._to_participant(identity, customers[0])

    def create(self, identity: str) -> Participant:
        data = self.client.rest(
            "post",
            "/customers.json",
            data={
                "customer": {
                    "phone": identity,
                    "verified_email": False,
                    "note": "Created for wheel spin",
                }
            },
        )
        customer = data.get("customer")
        if not customer:
            raise UpstreamUnavailable("Shopify did not return the created customer.")
        return self._to_participant(identity, customer)

    def record_award(self, participant: Participant, marker: AwardMarker) -> None:
        merged: List[str] = []
        for tag in [*participant.tags, *marker_tags(marker)]:
            if tag not in merged:
                merged.append(tag)
        self.client.rest(
            "put",
            f"/customers/{participant.handle}.json",
            data={
                "customer": {
                    "id": participant.handle,
                    "tags": ", ".join(merged),
                    "note": f"Wheel Spin Prize: {marker.label} on {timezone.now().isoformat()}",
                }
            },
        )


__all__ = [
    "DatabaseParticipantStore",
    "ParticipantStore",
    "ShopifyParticipantStore",
    "has_played_tag",
    "marker_tags",
    "normalize_identity",
    "prize_from_tags",
    "split_tags",
]
