from django.core.management.base import BaseCommand
from ticketwise.satisfaction.services import expire_overdue_surveys


class Command(BaseCommand):
    help = 'Mark satisfaction surveys past their deadline as expired'

    def handle(self, *args, **options):
        count = expire_overdue_surveys()
        self.stdout.write(self.style.SUCCESS(f'✓ {count} surveys expired'))
