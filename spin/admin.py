from django.contrib import admin

from .models import ParticipantRecord, PrizeRecord


@admin.register(PrizeRecord)
class PrizeRecordAdmin(admin.ModelAdmin):
    list_display = (
        "prize_id",
        "label",
        "probability",
        "max_count",
        "remaining_count",
        "total_distributed",
        "is_available",
    )
    list_filter = ("is_available",)
    search_fields = ("prize_id", "label")
    ordering = ("position", "id")
    readonly_fields = ("total_distributed", "last_updated", "version")


@admin.register(ParticipantRecord)
class ParticipantRecordAdmin(admin.ModelAdmin):
    list_display = ("phone", "has_played", "prize_label", "awarded_on", "prize_number")
    list_filter = ("has_played", "prize_label")
    search_fields = ("phone",)
    ordering = ("-created_at",)
