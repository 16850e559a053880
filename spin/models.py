from __future__ import annotations

from django.db import models


class PrizeRecord(models.Model):
    """Database-backed wheel prize, mirroring the platform metaobject fields."""

    prize_id = models.CharField(max_length=64, unique=True)
    label = models.CharField(max_length=255)
    probability = models.DecimalField(
        max_digits=7,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Chance of winning as a percentage (0-100).",
    )
    max_count = models.IntegerField(
        null=True,
        blank=True,
        help_text="Maximum number ever awarded. Empty or -1 means unlimited.",
    )
    remaining_count = models.IntegerField(null=True, blank=True)
    total_distributed = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=True)
    last_updated = models.DateTimeField(null=True, blank=True)
    position = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]
        verbose_name = "Prize"
        verbose_name_plural = "Prizes"

    def __str__(self) -> str:
        remaining = "unlimited" if self.remaining_count is None else self.remaining_count
        return f"{self.label} (remaining={remaining})"

    def raw_fields(self) -> dict[str, object]:
        return {
            "prize_id": self.prize_id,
            "prize_label": self.label,
            "probability": self.probability,
            "max_count": self.max_count,
            "remaining_count": self.remaining_count,
            "total_distributed": self.total_distributed,
            "last_updated": self.last_updated,
        }


class ParticipantRecord(models.Model):
    """A wheel participant and the prize they were awarded, if any."""

    phone = models.CharField(max_length=32, unique=True)
    has_played = models.BooleanField(default=False)
    prize_id = models.CharField(max_length=64, blank=True)
    prize_label = models.CharField(max_length=255, blank=True)
    awarded_on = models.DateField(null=True, blank=True)
    prize_number = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Participant"
        verbose_name_plural = "Participants"

    def __str__(self) -> str:
        return f"{self.phone} ({self.prize_label or 'not played'})"
