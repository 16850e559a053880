from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PrizeRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("prize_id", models.CharField(max_length=64, unique=True)),
                ("label", models.CharField(max_length=255)),
                (
                    "probability",
                    models.DecimalField(
                        blank=True,
                        decimal_places=3,
                        help_text="Chance of winning as a percentage (0-100).",
                        max_digits=7,
                        null=True,
                    ),
                ),
                (
                    "max_count",
                    models.IntegerField(
                        blank=True,
                        help_text="Maximum number ever awarded. Empty or -1 means unlimited.",
                        null=True,
                    ),
                ),
                ("remaining_count", models.IntegerField(blank=True, null=True)),
                ("total_distributed", models.PositiveIntegerField(default=0)),
                ("is_available", models.BooleanField(default=True)),
                ("last_updated", models.DateTimeField(blank=True, null=True)),
                ("position", models.PositiveIntegerField(default=0)),
                ("version", models.PositiveIntegerField(default=0)),
            ],
            options={
                "ordering": ["position", "id"],
                "verbose_name": "Prize",
                "verbose_name_plural": "Prizes",
            },
        ),
        migrations.CreateModel(
            name="ParticipantRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("phone", models.CharField(max_length=32, unique=True)),
                ("has_played", models.BooleanField(default=False)),
                ("prize_id", models.CharField(blank=True, max_length=64)),
                ("prize_label", models.CharField(blank=True, max_length=255)),
                ("awarded_on", models.DateField(blank=True, null=True)),
                ("prize_number", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "verbose_name": "Participant",
                "verbose_name_plural": "Participants",
            },
        ),
    ]
