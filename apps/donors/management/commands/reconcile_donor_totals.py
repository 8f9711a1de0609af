from django.core.management.base import BaseCommand
from django.db import transaction

from apps.donors.models import Donor
from apps.donors.services import recompute_donor_totals


class Command(BaseCommand):
    help = "Recompute donor lifetime totals from their completed donations."

    def handle(self, *args, **options):
        corrected = 0
        for donor in Donor.objects.order_by("code").iterator():
            with transaction.atomic():
                locked = Donor.objects.select_for_update().get(pk=donor.pk)
                if recompute_donor_totals(locked):
                    corrected += 1
                    self.stdout.write(f"Corrected {locked.code}")
        self.stdout.write(self.style.SUCCESS(f"Reconciled donors: {corrected} corrected"))
