from django.core.management.base import BaseCommand
from ticketwise.tickets.services import check_tickets_due_soon


class Command(BaseCommand):
    help = 'Warn about tickets close to their resolution deadline and flag the overdue ones'

    def handle(self, *args, **options):
        warned, breached = check_tickets_due_soon()
        self.stdout.write(self.style.SUCCESS(f'✓ {warned} tickets warned, {breached} past deadline'))
