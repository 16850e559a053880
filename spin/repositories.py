"""Prize catalog storage backends.

Both backends offer the same three operations to the engine: read a full
snapshot, write the counters of one prize, and reset every prize to its cap.
Counter writes carry the version token read with the snapshot and raise
:class:`StaleCounterError` when the record moved on in the meantime.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from .catalog import UNBOUNDED_SENTINEL, RawPrizeRecord, build_snapshot, parse_cap
from .entities import CatalogSnapshot, Prize
from .errors import ConfigurationError, StaleCounterError, UpstreamUnavailable
from .models import PrizeRecord
from .shopify import ShopifyClient

logger = logging.getLogger(__name__)

CATALOG_PAGE_SIZE = 50


class PrizeCatalogRepository(abc.ABC):
    @abc.abstractmethod
    def load_all(self) -> CatalogSnapshot:
        """Read every prize in catalog order. Raises ``ConfigurationError`` when empty."""

    @abc.abstractmethod
    def write_counters(
        self,
        prize: Prize,
        remaining: Optional[int],
        total_distributed: int,
        timestamp: datetime,
    ) -> None:
        """Store new counters for ``prize`` if its version still matches the snapshot."""

    @abc.abstractmethod
    def reset_all(self) -> None:
        """Set every prize's remaining count back to its cap."""


def _is_available(remaining: Optional[int]) -> bool:
    return remaining is None or remaining > 0


class DatabasePrizeCatalogRepository(PrizeCatalogRepository):
    """Catalog kept in the ``PrizeRecord`` table.

    Counter writes are a compare-and-set on the ``version`` column, so a
    concurrent award of the same prize is detected instead of overwritten.
    """

    def load_all(self) -> CatalogSnapshot:
        try:
            rows = list(PrizeRecord.objects.all()[:CATALOG_PAGE_SIZE])
        except DatabaseError as exc:
            logger.exception("Failed to load prize catalog from database: %s", exc)
            raise UpstreamUnavailable(f"Prize catalog unavailable ({exc})") from exc
        return build_snapshot(
            RawPrizeRecord(fields=row.raw_fields(), handle=row.pk, version=row.version)
            for row in rows
        )

    def write_counters(
        self,
        prize: Prize,
        remaining: Optional[int],
        total_distributed: int,
        timestamp: datetime,
    ) -> None:
        try:
            updated = PrizeRecord.objects.filter(pk=prize.handle, version=prize.version).update(
                remaining_count=remaining,
                total_distributed=total_distributed,
                is_available=_is_available(remaining),
                last_updated=timestamp,
                version=F("version") + 1,
            )
        except DatabaseError as exc:
            logger.exception("Failed to write counters for prize %s: %s", prize.id, exc)
            raise UpstreamUnavailable(f"Failed to update prize {prize.id} ({exc})") from exc
        if updated == 0:
            raise StaleCounterError(f"Prize {prize.id} changed since it was read.")

    def reset_all(self) -> None:
        now = timezone.now()
        try:
            with transaction.atomic():
                rows = list(PrizeRecord.objects.select_for_update().order_by("id"))
                if not rows:
                    raise ConfigurationError("No prize records found; nothing to reset.")
                for row in rows:
                    cap = parse_cap(row.max_count)
                    PrizeRecord.objects.filter(pk=row.pk).update(
                        remaining_count=cap,
                        is_available=_is_available(cap),
                        last_updated=now,
                        version=F("version") + 1,
                    )
        except DatabaseError as exc:
            logger.exception("Failed to reset prize counters: %s", exc)
            raise UpstreamUnavailable(f"Failed to reset prizes ({exc})") from exc


_METAOBJECTS_QUERY = """
query WheelPrizes($type: String!, $first: Int!) {
  metaobjects(type: $type, first: $first) {
    edges {
      node {
        id
        handle
        fields {
          key
          value
        }
      }
    }
  }
}
"""

_METAOBJECT_QUERY = """
query WheelPrize($id: ID!) {
  metaobject(id: $id) {
    id
    fields {
      key
      value
    }
  }
}
"""

_METAOBJECT_UPDATE = """
mutation UpdateMetaobject($id: ID!, $metaobject: MetaobjectUpdateInput!) {
  metaobjectUpdate(id: $id, metaobject: $metaobject) {
    metaobject {
      id
      handle
    }
    userErrors {
      field
      message
    }
  }
}
"""


def _field_map(node: Dict[str, Any]) -> Dict[str, Optional[str]]:
    return {field["key"]: field.get("value") for field in node.get("fields") or []}


class ShopifyPrizeCatalogRepository(PrizeCatalogRepository):
    """Catalog kept as Shopify metaobjects of type ``wheel_prize``.

    The Admin API has no conditional update, so the version check re-reads the
    record's ``last_updated`` field right before writing. That narrows the
    window between read and write but two requests can still interleave
    inside it; counters are best-effort, not linearizable.
    """

    def __init__(self, client: ShopifyClient, metaobject_type: Optional[str] = None) -> None:
        self.client = client
        self.metaobject_type = metaobject_type or getattr(
            settings, "SHOPIFY_METAOBJECT_TYPE", "wheel_prize"
        )

    def _fetch_nodes(self) -> List[Dict[str, Any]]:
        data = self.client.graphql(
            _METAOBJECTS_QUERY,
            {"type": self.metaobject_type, "first": CATALOG_PAGE_SIZE},
        )
        metaobjects = data.get("metaobjects")
        if not metaobjects or metaobjects.get("edges") is None:
            raise ConfigurationError(
                f"No {self.metaobject_type} metaobjects found. "
                "Create prize metaobjects in Shopify Admin first."
            )
        return [edge["node"] for edge in metaobjects["edges"]]

    def load_all(self) -> CatalogSnapshot:
        records = []
        for node in self._fetch_nodes():
            fields = _field_map(node)
            records.append(
                RawPrizeRecord(fields=fields, handle=node["id"], version=fields.get("last_updated"))
            )
        return build_snapshot(records)

    def _update(self, metaobject_id: str, updates: List[Dict[str, str]]) -> None:
        data = self.client.graphql(
            _METAOBJECT_UPDATE,
            {"id": metaobject_id, "metaobject": {"fields": updates}},
        )
        result = data.get("metaobjectUpdate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            logger.error("Error updating metaobject %s: %s", metaobject_id, user_errors)
            raise UpstreamUnavailable(user_errors[0].get("message") or "Metaobject update failed")

    def _current_version(self, metaobject_id: str) -> Optional[str]:
        data = self.client.graphql(_METAOBJECT_QUERY, {"id": metaobject_id})
        node = data.get("metaobject")
        if not node:
            raise StaleCounterError(f"Metaobject {metaobject_id} no longer exists.")
        return _field_map(node).get("last_updated")

    def write_counters(
        self,
        prize: Prize,
        remaining: Optional[int],
        total_distributed: int,
        timestamp: datetime,
    ) -> None:
        if self._current_version(prize.handle) != prize.version:
            raise StaleCounterError(f"Prize {prize.id} changed since it was read.")

        updates: List[Dict[str, str]] = []
        if remaining is not None:
            updates.append({"key": "remaining_count", "value": str(remaining)})
        updates.append({"key": "is_available", "value": str(_is_available(remaining)).lower()})
        updates.append({"key": "total_distributed", "value": str(total_distributed)})
        updates.append({"key": "last_updated", "value": timestamp.isoformat()})
        self._update(prize.handle, updates)

    def reset_all(self) -> None:
        now = timezone.now().isoformat()
        for prize in self.load_all():
            reset_value = UNBOUNDED_SENTINEL if prize.cap is None else prize.cap
            self._update(
                prize.handle,
                [
                    {"key": "remaining_count", "value": str(reset_value)},
                    {"key": "is_available", "value": str(_is_available(prize.cap)).lower()},
                    {"key": "last_updated", "value": now},
                ],
            )


__all__ = [
    "CATALOG_PAGE_SIZE",
    "DatabasePrizeCatalogRepository",
    "PrizeCatalogRepository",
    "ShopifyPrizeCatalogRepository",
]
