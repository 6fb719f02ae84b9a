"""
Management command to create expiry and stock notifications for every pharmacy
"""
from django.core.management.base import BaseCommand
from pharmatrack.notifications.services import run_alert_engine, send_daily_summary
from pharmatrack.notifications.termii import TermiiError
from pharmatrack.pharmacies.models import Pharmacy


class Command(BaseCommand):
    help = "Runs the alert engine (expired, expiring and low-stock notifications) for all pharmacies"

    def add_arguments(self, parser):
        parser.add_argument('--pharmacy', type=int, help='Only run for this pharmacy id')
        parser.add_argument(
            '--send-summary',
            action='store_true',
            help='Also send the daily summary SMS to each pharmacy alert phone',
        )

    def handle(self, *args, **options):
        pharmacies = Pharmacy.objects.all().order_by('id')
        if options.get('pharmacy'):
            pharmacies = pharmacies.filter(id=options['pharmacy'])

        for pharmacy in pharmacies:
            if not pharmacy.is_subscription_active:
                self.stdout.write(f'  - {pharmacy.name}: subscription inactive, skipped')
                continue

            counts = run_alert_engine(pharmacy)
            self.stdout.write(
                f"  ✓ {pharmacy.name}: {counts['expired']} expired, {counts['expiring']} expiring, "
                f"{counts['low_stock']} low stock"
            )

            if options['send_summary']:
                try:
                    alert = send_daily_summary(pharmacy)
                except TermiiError as e:
                    self.stdout.write(self.style.WARNING(f'    Daily summary failed: {str(e)}'))
                    continue
                if alert:
                    self.stdout.write(f'    Daily summary sent to {alert.recipient}')

        self.stdout.write(self.style.SUCCESS('Alert engine run complete'))
