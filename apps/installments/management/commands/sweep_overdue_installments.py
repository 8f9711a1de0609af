from django.core.management.base import BaseCommand
from django.utils.dateparse import parse_date

from apps.installments.services import sweep_overdue_installments


class Command(BaseCommand):
    help = "Mark pending installments past their grace period as overdue."

    def add_arguments(self, parser):
        parser.add_argument("--date", help="Evaluate as of this date (YYYY-MM-DD) instead of today.")

    def handle(self, *args, **options):
        today = parse_date(options["date"]) if options.get("date") else None
        marked = sweep_overdue_installments(today=today)
        self.stdout.write(self.style.SUCCESS(f"Overdue installments: {marked}"))
