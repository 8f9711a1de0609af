from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditLog
from apps.donations.models import Donation, DonationStatus
from apps.donors.models import Donor, DonorStatus
from apps.donors.services import create_donor, recompute_donor_totals

User = get_user_model()


class DonorApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_donor", password="admin123", role="SUPERADMIN")
        self.manager = User.objects.create_user(username="manager_donor", password="manager123", role="MANAGER")
        self.plain = User.objects.create_user(username="plain_donor", password="plain123", role="USER")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_donor(self, **overrides):
        payload = {"full_name": "Aisha Khan", "phone": "9990000001", "email": "aisha@example.com"}
        payload.update(overrides)
        return self.client.post("/api/v1/donors/", payload, format="json")

    def test_create_assigns_sequential_codes(self):
        self.auth_as("manager_donor", "manager123")
        first = self.create_donor()
        second = self.create_donor(full_name="Bilal", phone="9990000002", email="")
        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data["code"], "HKS-D-00001")
        self.assertEqual(second.data["code"], "HKS-D-00002")
        self.assertEqual(first.data["communication_preferences"], {"sms": True, "email": True, "whatsapp": False})
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.DONOR_CREATED, entity_id="HKS-D-00001").exists())

    def test_duplicate_phone_and_email_are_rejected(self):
        self.auth_as("manager_donor", "manager123")
        self.create_donor()
        response = self.create_donor(full_name="Other", phone="9990000003", email="AISHA@example.com")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid")
        self.assertIn("email", response.data["fields"])

        same_phone = self.create_donor(full_name="Other", phone="999-000-0001", email="other@example.com")
        self.assertEqual(same_phone.status_code, 400)
        self.assertIn("phone", same_phone.data["fields"])

    def test_invalid_phone_is_rejected(self):
        self.auth_as("manager_donor", "manager123")
        for phone in ["12345", "----------", "((((  ))))", "123-456-78", "12345678901234"]:
            response = self.create_donor(phone=phone)
            self.assertEqual(response.status_code, 400, phone)
            self.assertIn("phone", response.data["fields"])
        self.assertFalse(Donor.objects.exists())

        response = self.create_donor(phone="+91 (999) 000-0001")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Donor.objects.get().phone_normalized, "919990000001")

    def test_identity_proof_required_above_threshold(self):
        self.auth_as("manager_donor", "manager123")
        response = self.create_donor(anticipated_contribution="75000.00")
        self.assertEqual(response.status_code, 400)
        self.assertIn("identity_proof_number", response.data["fields"])

        response = self.create_donor(
            anticipated_contribution="75000.00", identity_proof_type="PAN", identity_proof_number="ABCDE1234F"
        )
        self.assertEqual(response.status_code, 201)

    def test_lookup_by_code_and_phone(self):
        self.auth_as("manager_donor", "manager123")
        created = self.create_donor()
        by_code = self.client.get("/api/v1/donors/hks-d-00001/")
        self.assertEqual(by_code.status_code, 200)
        self.assertEqual(by_code.data["id"], created.data["id"])
        by_phone = self.client.get("/api/v1/donors/by-phone/", {"phone": "999 000 0001"})
        self.assertEqual(by_phone.status_code, 200)
        self.assertEqual(by_phone.data["code"], "HKS-D-00001")
        missing = self.client.get("/api/v1/donors/HKS-D-09999/")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.data["code"], "not_found")

    def test_soft_delete_and_restore_lifecycle(self):
        self.auth_as("admin_donor", "admin123")
        donor_id = self.create_donor().data["id"]

        deleted = self.client.post(f"/api/v1/donors/{donor_id}/delete/")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(deleted.data["status"], DonorStatus.DELETED)
        self.assertTrue(Donor.objects.filter(pk=donor_id).exists())

        update = self.client.patch(f"/api/v1/donors/{donor_id}/", {"city": "Pune"}, format="json")
        self.assertEqual(update.status_code, 409)
        self.assertEqual(update.data["code"], "invalid_state")

        listing = self.client.get("/api/v1/donors/")
        self.assertEqual(listing.data["count"], 0)

        # A deleted donor's phone is free again.
        reuse = self.create_donor(full_name="New Owner", email="")
        self.assertEqual(reuse.status_code, 201)

        restore = self.client.post(f"/api/v1/donors/{donor_id}/restore/")
        self.assertEqual(restore.status_code, 400)
        self.assertIn("phone", restore.data["fields"])

    def test_disable_then_restore(self):
        self.auth_as("admin_donor", "admin123")
        donor_id = self.create_donor().data["id"]
        disabled = self.client.post(f"/api/v1/donors/{donor_id}/disable/")
        self.assertEqual(disabled.data["status"], DonorStatus.DISABLED)
        self.assertIsNotNone(disabled.data["disabled_at"])
        again = self.client.post(f"/api/v1/donors/{donor_id}/disable/")
        self.assertEqual(again.status_code, 409)
        restored = self.client.post(f"/api/v1/donors/{donor_id}/restore/")
        self.assertEqual(restored.data["status"], DonorStatus.ACTIVE)
        self.assertIsNone(restored.data["disabled_at"])

    def test_update_records_before_and_after(self):
        self.auth_as("manager_donor", "manager123")
        donor_id = self.create_donor().data["id"]
        response = self.client.patch(f"/api/v1/donors/{donor_id}/", {"city": "Hyderabad"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["city"], "Hyderabad")
        entry = AuditLog.objects.get(action=AuditAction.DONOR_UPDATED)
        self.assertEqual(entry.payload, {"before": {"city": ""}, "after": {"city": "Hyderabad"}})

    def test_totals_are_not_writable(self):
        self.auth_as("manager_donor", "manager123")
        donor_id = self.create_donor().data["id"]
        self.client.patch(f"/api/v1/donors/{donor_id}/", {"total_amount": "999.00"}, format="json")
        self.assertEqual(Donor.objects.get(pk=donor_id).total_amount, Decimal("0.00"))

    def test_role_permissions(self):
        self.auth_as("plain_donor", "plain123")
        self.assertEqual(self.client.get("/api/v1/donors/").status_code, 403)
        self.auth_as("manager_donor", "manager123")
        donor_id = self.create_donor().data["id"]
        self.assertEqual(self.client.post(f"/api/v1/donors/{donor_id}/delete/").status_code, 403)
        self.client.credentials()
        self.assertEqual(self.client.get("/api/v1/donors/").status_code, 401)


class DonorTotalsTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_totals", password="admin123", role="SUPERADMIN")
        self.donor = create_donor(actor=self.admin, full_name="Yusuf", phone="9990000009")

    def test_recompute_matches_completed_donations(self):
        Donation.objects.create(
            donor=self.donor, donation_type="SADAQAH", total_amount=Decimal("1000.00"), amount_paid=Decimal("1000.00")
        )
        Donation.objects.create(donor=self.donor, donation_type="SADAQAH", total_amount=Decimal("500.00"))
        self.assertEqual(Donation.objects.filter(status=DonationStatus.COMPLETED).count(), 1)

        self.assertTrue(recompute_donor_totals(self.donor))
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 1)
        self.assertEqual(self.donor.total_amount, Decimal("1000.00"))
        self.assertFalse(recompute_donor_totals(self.donor))

    def test_reconcile_command_corrects_drift(self):
        Donor.objects.filter(pk=self.donor.pk).update(total_donations=7, total_amount=Decimal("70.00"))
        call_command("reconcile_donor_totals", stdout=StringIO())
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 0)
        self.assertEqual(self.donor.total_amount, Decimal("0.00"))
