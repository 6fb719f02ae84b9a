from django.core.management.base import BaseCommand
from ...barcodes import generate_internal_barcode
from ...fefo import normalize_product_name
from ...models import Medication


class Command(BaseCommand):
    help = 'Assign internal barcodes to medications that have none (batches of one product share a barcode)'

    def add_arguments(self, parser):
        parser.add_argument('--pharmacy', type=int, help='Only backfill this pharmacy id')
        parser.add_argument('--dry-run', action='store_true', help='Report without saving')

    def handle(self, *args, **options):
        queryset = Medication.objects.select_related('pharmacy').order_by('pharmacy_id', 'name', 'expiry_date')
        if options.get('pharmacy'):
            queryset = queryset.filter(pharmacy_id=options['pharmacy'])

        # Existing barcodes per (pharmacy, product) so new batches reuse them
        known = {}
        for med in queryset.exclude(barcode_id__isnull=True).exclude(barcode_id=''):
            known.setdefault((med.pharmacy_id, normalize_product_name(med.name)), med.barcode_id)

        missing = queryset.filter(barcode_id__isnull=True) | queryset.filter(barcode_id='')
        self.stdout.write(f'Found {missing.count()} batches without barcodes')

        assigned_count = 0
        for med in missing:
            key = (med.pharmacy_id, normalize_product_name(med.name))
            barcode = known.get(key)
            if not barcode:
                barcode = generate_internal_barcode(med.pharmacy)
                known[key] = barcode
            if not options['dry_run']:
                med.barcode_id = barcode
                med.save(update_fields=['barcode_id', 'updated_at'])
            assigned_count += 1
            self.stdout.write(f'  ✓ {med.name} ({med.batch_number or "no batch"}) -> {barcode}')

        suffix = ' (dry run)' if options['dry_run'] else ''
        self.stdout.write(self.style.SUCCESS(f'Assigned {assigned_count} barcodes{suffix}'))
