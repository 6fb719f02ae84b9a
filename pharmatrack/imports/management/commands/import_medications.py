"""
Management command to import medications from a CSV file
"""
import os
from django.core.management.base import BaseCommand, CommandError
from pharmatrack.pharmacies.models import Pharmacy, Branch
from ...services import ImportValidationError, read_csv, build_preview, commit_import


class Command(BaseCommand):
    help = "Imports medications for a pharmacy from a CSV file, mapping columns automatically"

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to the CSV file')
        parser.add_argument('--pharmacy', type=int, required=True, help='Pharmacy id to import into')
        parser.add_argument('--branch', type=int, help='Branch id for the new batches')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show the column mapping and row errors without saving',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        try:
            pharmacy = Pharmacy.objects.get(pk=options['pharmacy'])
        except Pharmacy.DoesNotExist:
            raise CommandError(f"Pharmacy {options['pharmacy']} does not exist")

        branch = None
        if options.get('branch'):
            branch = Branch.objects.filter(pk=options['branch'], pharmacy=pharmacy).first()
            if branch is None:
                raise CommandError(f"Branch {options['branch']} does not belong to {pharmacy.name}")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS(f"IMPORTING MEDICATIONS INTO {pharmacy.name.upper()}"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"CSV File: {csv_file}")

        with open(csv_file, 'rb') as f:
            content = f.read()

        try:
            headers, rows = read_csv(content)
            preview = build_preview(pharmacy, 'medication', headers, rows, limit=len(rows))
        except ImportValidationError as e:
            raise CommandError(str(e))

        self.stdout.write("\nColumn mapping:")
        for header, mapping in preview['mappings'].items():
            if mapping:
                self.stdout.write(f"  {header} -> {mapping['mapped_to']} ({mapping['confidence']:.2f})")
            else:
                self.stdout.write(self.style.WARNING(f"  {header} -> metadata"))

        if options['dry_run']:
            invalid = [row for row in preview['rows'] if row['errors']]
            for row in invalid:
                self.stdout.write(self.style.ERROR(f"  ✗ Row {row['row_index']}: {'; '.join(row['errors'])}"))
            self.stdout.write(self.style.SUCCESS(
                f"\nDry run: {len(rows) - len(invalid)} of {len(rows)} rows would be imported"
            ))
            return

        result = commit_import(pharmacy, 'medication', headers, rows, branch=branch)
        for error in result['errors']:
            self.stdout.write(self.style.ERROR(f"  ✗ Row {error['row']}: {error['message']}"))

        self.stdout.write(self.style.SUCCESS("\n" + "=" * 80))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Rows read: {result['total_rows']}")
        self.stdout.write(f"Medications created: {result['success_count']}")
        self.stdout.write(f"Metadata columns preserved: {result['metadata_columns_preserved']}")
        if result['error_count']:
            self.stdout.write(self.style.ERROR(f"Errors: {result['error_count']}"))
