"""
Management command to end lapsed featured marketplace listings
"""
from django.core.management.base import BaseCommand
from pharmatrack.marketplace.services import expire_featured, warn_featured_ending


class Command(BaseCommand):
    help = "Clears featured flags whose paid period has ended and warns about listings ending soon"

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-warnings',
            action='store_true',
            help='Do not create spotlight-ending notifications',
        )

    def handle(self, *args, **options):
        if not options['skip_warnings']:
            for medication in warn_featured_ending():
                self.stdout.write(f"  ⏰ {medication.name} ({medication.pharmacy.name}): spotlight ending soon")

        expired = expire_featured()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} featured listing(s)"))
