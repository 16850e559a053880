from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError

from spin.backends import build_catalog
from spin.errors import ConfigurationError, UpstreamUnavailable

SETUP_HELP = """
SETUP REQUIRED:

1. Go to: Shopify Admin -> Settings -> Custom Data -> Metaobjects
   (or add rows in Django admin when SPIN_CATALOG_BACKEND=database)
2. Add a "Wheel Prize" definition with type "wheel_prize" and these fields:
   - prize_id (Single line text) - REQUIRED
   - prize_label (Single line text) - REQUIRED
   - probability (Decimal) - percentage 0-100
   - max_count (Integer) - -1 for unlimited
   - remaining_count (Integer) - updated by the system
   - total_distributed (Integer) - updated by the system
   - is_available (True/False) - updated by the system
   - last_updated (Date and time) - updated by the system
3. Create one entry per prize, then run this command again.
"""


class Command(BaseCommand):
    help = "Load the prize catalog once and report whether it is usable for spins."

    def handle(self, *args, **options):
        try:
            snapshot = build_catalog().load_all()
        except (ConfigurationError, ImproperlyConfigured) as exc:
            self.stderr.write(self.style.ERROR(f"Catalog error: {exc}"))
            self.stderr.write(SETUP_HELP)
            raise CommandError("Prize catalog is not configured.") from exc
        except UpstreamUnavailable as exc:
            raise CommandError(f"Prize catalog could not be reached: {exc}") from exc

        self.stdout.write(self.style.SUCCESS(f"Loaded {len(snapshot)} prizes"))
        for prize in snapshot:
            stats = prize.to_stats()
            remaining = "unlimited" if prize.remaining is None else prize.remaining
            self.stdout.write(
                f"  {prize.id}: {prize.label} ({stats['probability']}, "
                f"remaining={remaining}, distributed={prize.total_distributed})"
            )
        if not any(prize.is_available for prize in snapshot):
            self.stdout.write(
                self.style.WARNING("No prize has remaining stock; spins will award the fallback prize.")
            )
