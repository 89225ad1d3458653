"""
Management command to import customers (requesters) from a CSV file
"""
import os
from django.core.management.base import BaseCommand, CommandError
from ticketwise.core.models import Company
from ticketwise.parties.services import import_customers


class Command(BaseCommand):
    help = "Imports customers from a CSV file with header email;name;phone;password;active;ad_user"

    def add_arguments(self, parser):
        parser.add_argument(
            '--csv-file',
            type=str,
            required=True,
            help='Path to the CSV file',
        )
        parser.add_argument(
            '--company-id',
            type=int,
            default=None,
            help='Company the imported customers belong to',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        company_id = options['company_id']

        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")
        if company_id is not None and not Company.objects.filter(pk=company_id).exists():
            raise CommandError(f"Company {company_id} does not exist")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("IMPORTING CUSTOMERS FROM CSV"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"CSV File: {csv_file}")

        with open(csv_file, 'rb') as f:
            result = import_customers(f.read(), company_id=company_id)

        for error in result['errors']:
            self.stdout.write(self.style.ERROR(f"  ✗ Row {error['row']} ({error['email']}): {error['error']}"))

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Rows read: {result['total']}")
        self.stdout.write(self.style.SUCCESS(f"Customers imported: {result['imported']}"))
        self.stdout.write(f"Customers skipped (already exist): {result['skipped']}")
        if result['errors']:
            self.stdout.write(self.style.ERROR(f"Rows with errors: {len(result['errors'])}"))
