from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditEntityType, AuditLog, ImmutableAuditLogError
from apps.audit.services import audit_trail, record_audit
from apps.donors.services import create_donor

User = get_user_model()


class AuditLogTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin_audit", password="admin123", role="SUPERADMIN", email="Admin@Example.org"
        )
        self.manager = User.objects.create_user(username="manager_audit", password="manager123", role="MANAGER")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_entries_get_log_codes_and_lowercase_actor_email(self):
        donor = create_donor(actor=self.admin, full_name="Hamza", phone="9990000031")
        entry = audit_trail(AuditEntityType.DONOR, donor.code)[0]
        self.assertEqual(entry.code, "HKS-L-00001")
        self.assertEqual(entry.action, AuditAction.DONOR_CREATED)
        self.assertEqual(entry.actor_email, "admin@example.org")

    def test_entries_are_immutable(self):
        entry = record_audit(
            actor=self.admin, action=AuditAction.DONOR_UPDATED, entity_type=AuditEntityType.DONOR, entity_id="HKS-D-00042"
        )
        entry.entity_id = "HKS-D-00043"
        with self.assertRaises(ImmutableAuditLogError):
            entry.save()
        with self.assertRaises(ImmutableAuditLogError):
            AuditLog.objects.filter(pk=entry.pk).update(entity_id="HKS-D-00043")

    def test_anonymous_actor_is_stored_as_system(self):
        entry = record_audit(
            actor=None, action=AuditAction.INSTALLMENT_OVERDUE, entity_type=AuditEntityType.INSTALLMENT, entity_id="HKS-I-00001"
        )
        self.assertIsNone(entry.actor)
        self.assertEqual(entry.actor_email, "")

    def test_write_failure_does_not_block_business_operation(self):
        with mock.patch("apps.audit.services.AuditLog.objects.create", side_effect=DatabaseError("audit table locked")):
            with self.assertLogs("apps.audit.services", level="ERROR"):
                donor = create_donor(actor=self.admin, full_name="Maryam", phone="9990000032")
        self.assertEqual(donor.code, "HKS-D-00001")
        self.assertFalse(AuditLog.objects.exists())

    def test_purge_removes_only_expired_entries(self):
        record_audit(actor=self.admin, action=AuditAction.DONOR_UPDATED, entity_type=AuditEntityType.DONOR, entity_id="HKS-D-00001")
        self.assertEqual(AuditLog.objects.expired().count(), 0)

        later = timezone.now() + timedelta(days=365)
        self.assertEqual(AuditLog.objects.expired(now=later).count(), 1)
        out = StringIO()
        with mock.patch("apps.audit.models.timezone.now", return_value=later):
            call_command("purge_audit_logs", stdout=out)
        self.assertIn("Purged audit logs: 1", out.getvalue())
        self.assertFalse(AuditLog.objects.exists())

    def test_listing_is_filtered_and_restricted(self):
        donor = create_donor(actor=self.admin, full_name="Zaid", phone="9990000033")
        create_donor(actor=self.admin, full_name="Khadija", phone="9990000034")

        self.auth_as("manager_audit", "manager123")
        self.assertEqual(self.client.get("/api/v1/audit-logs/").status_code, 403)

        self.auth_as("admin_audit", "admin123")
        response = self.client.get("/api/v1/audit-logs/", {"entity_type": "donor", "entity_id": donor.code})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["entity_id"], donor.code)
        self.assertEqual(self.client.delete(f"/api/v1/audit-logs/{response.data['results'][0]['id']}/").status_code, 405)
