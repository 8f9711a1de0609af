from django.conf import settings
from django.core.management.base import BaseCommand

from apps.audit.models import AuditLog


class Command(BaseCommand):
    help = "Delete audit logs older than AUDIT_LOG_RETENTION_DAYS."

    def handle(self, *args, **options):
        deleted, _ = AuditLog.objects.expired().delete()
        self.stdout.write(
            self.style.SUCCESS(f"Purged audit logs: {deleted} (retention {settings.AUDIT_LOG_RETENTION_DAYS} days)")
        )
