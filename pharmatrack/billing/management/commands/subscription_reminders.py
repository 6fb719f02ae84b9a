"""
Management command to remind pharmacies of upcoming subscription expiry
"""
from django.core.management.base import BaseCommand
from pharmatrack.billing.services import send_subscription_reminders, expire_lapsed_subscriptions


class Command(BaseCommand):
    help = "Sends expiry reminders for trials and subscriptions ending within 3 days and expires lapsed ones"

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-expire',
            action='store_true',
            help='Only send reminders; leave lapsed subscriptions untouched',
        )

    def handle(self, *args, **options):
        reminded = send_subscription_reminders()
        for pharmacy, days_left, sms_sent in reminded:
            channel = 'notification + SMS' if sms_sent else 'notification'
            self.stdout.write(f"  ✓ {pharmacy.name}: expires in {days_left} day(s) ({channel})")

        if not options['skip_expire']:
            expired = expire_lapsed_subscriptions()
            self.stdout.write(f"Expired {expired} lapsed subscription(s)")

        self.stdout.write(self.style.SUCCESS(f"Reminded {len(reminded)} pharmacies"))
