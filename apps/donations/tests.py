from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditLog
from apps.donations.models import Donation, DonationStatus, derive_status
from apps.donors.models import Donor
from apps.donors.services import create_donor
from apps.installments.models import Installment, InstallmentStatus

User = get_user_model()


class DeriveStatusTests(SimpleTestCase):
    def test_status_follows_amounts(self):
        self.assertEqual(derive_status(Decimal("100"), Decimal("0"), DonationStatus.PLEDGED), DonationStatus.PLEDGED)
        self.assertEqual(derive_status(Decimal("100"), Decimal("40"), DonationStatus.PLEDGED), DonationStatus.PARTIAL)
        self.assertEqual(derive_status(Decimal("100"), Decimal("100"), DonationStatus.PARTIAL), DonationStatus.COMPLETED)

    def test_cancelled_is_sticky(self):
        self.assertEqual(derive_status(Decimal("100"), Decimal("100"), DonationStatus.CANCELLED), DonationStatus.CANCELLED)


class DonationFlowTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_don", password="admin123", role="SUPERADMIN")
        self.manager = User.objects.create_user(username="manager_don", password="manager123", role="MANAGER")
        self.donor = create_donor(actor=self.admin, full_name="Aisha Khan", phone="9990000001")
        self.auth_as("manager_don", "manager123")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_donation(self, **overrides):
        payload = {
            "donor": self.donor.code,
            "donation_type": "ZAKAT_MAAL",
            "total_amount": "50000.00",
            "payment_mode": "INSTALLMENT",
            "number_of_installments": 4,
            "payment_method": "CASH",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/donations/", payload, format="json")

    def pay(self, donation_id, amount):
        return self.client.post(f"/api/v1/donations/{donation_id}/payments/", {"amount": amount}, format="json")

    def assert_balanced(self, donation_id):
        donation = Donation.objects.get(pk=donation_id)
        self.assertEqual(donation.pending_amount + donation.amount_paid, donation.total_amount)
        self.assertEqual(
            donation.status == DonationStatus.COMPLETED,
            donation.pending_amount == 0 and donation.status != DonationStatus.CANCELLED,
        )
        return donation

    def test_installment_pledge_generates_schedule(self):
        response = self.create_donation()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "HKS-T-00001")
        self.assertEqual(response.data["status"], DonationStatus.PLEDGED)
        installments = Installment.objects.filter(donation_id=response.data["id"]).order_by("installment_number")
        self.assertEqual([i.amount for i in installments], [Decimal("12500.00")] * 4)
        self.assertEqual([i.code for i in installments], ["HKS-I-00001", "HKS-I-00002", "HKS-I-00003", "HKS-I-00004"])

    def test_partial_payment(self):
        donation_id = self.create_donation().data["id"]
        response = self.pay(donation_id, "12500.00")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.data["amount_paid"]), Decimal("12500.00"))
        self.assertEqual(Decimal(response.data["pending_amount"]), Decimal("37500.00"))
        self.assertEqual(response.data["status"], DonationStatus.PARTIAL)
        self.assert_balanced(donation_id)

    def test_completion_updates_donor_totals(self):
        donation_id = self.create_donation(payment_mode="FULL", number_of_installments=None).data["id"]
        for amount in ("20000.00", "20000.00", "10000.00"):
            self.assertEqual(self.pay(donation_id, amount).status_code, 201)
        donation = self.assert_balanced(donation_id)
        self.assertEqual(donation.status, DonationStatus.COMPLETED)
        self.assertIsNotNone(donation.completed_at)
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 1)
        self.assertEqual(self.donor.total_amount, Decimal("50000.00"))
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.DONATION_COMPLETED, entity_id=donation.code).exists())

        after = self.pay(donation_id, "1.00")
        self.assertEqual(after.status_code, 409)

    def test_overpayment_and_non_positive_payments_rejected(self):
        donation_id = self.create_donation(payment_mode="FULL", number_of_installments=None).data["id"]
        over = self.pay(donation_id, "50000.01")
        self.assertEqual(over.status_code, 409)
        self.assertEqual(over.data["code"], "invalid_state")
        zero = self.pay(donation_id, "0.00")
        self.assertEqual(zero.status_code, 400)
        self.assertIn("amount", zero.data["fields"])
        self.assertEqual(Donation.objects.get(pk=donation_id).payments.count(), 0)

    def test_cancel_partial_donation_cascades(self):
        donation_id = self.create_donation().data["id"]
        self.pay(donation_id, "12500.00")
        response = self.client.post(f"/api/v1/donations/{donation_id}/cancel/", {"reason": "Donor request"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], DonationStatus.CANCELLED)
        self.assertEqual(
            set(Installment.objects.filter(donation_id=donation_id).values_list("status", flat=True)),
            {InstallmentStatus.CANCELLED},
        )
        self.assertEqual(self.pay(donation_id, "100.00").status_code, 409)
        self.assertEqual(
            self.client.post(f"/api/v1/donations/{donation_id}/cancel/", {"reason": "again"}, format="json").status_code,
            409,
        )
        self.assert_balanced(donation_id)

    def test_installment_count_boundaries(self):
        for count in (1, 13):
            response = self.create_donation(number_of_installments=count)
            self.assertEqual(response.status_code, 400)
            self.assertIn("number_of_installments", response.data["fields"])
        self.assertEqual(self.create_donation(number_of_installments=12).status_code, 201)
        self.assertEqual(self.create_donation(number_of_installments=2).status_code, 201)

    def test_zero_total_rejected(self):
        response = self.create_donation(total_amount="0.00")
        self.assertEqual(response.status_code, 400)
        self.assertIn("total_amount", response.data["fields"])
        self.assertFalse(Donation.objects.exists())

    def test_payment_method_details_required(self):
        upi = self.create_donation(payment_method="UPI")
        self.assertIn("upi_id", upi.data["fields"])
        bank = self.create_donation(payment_method="BANK")
        self.assertIn("bank_transfer_type", bank.data["fields"])
        self.assertIn("bank_name", bank.data["fields"])
        cheque = self.create_donation(payment_method="CHEQUE")
        self.assertIn("cheque_number", cheque.data["fields"])
        recurring = self.create_donation(is_recurring=True)
        self.assertIn("recurring_frequency", recurring.data["fields"])
        ok = self.create_donation(payment_method="BANK", bank_transfer_type="NEFT", bank_name="SBI")
        self.assertEqual(ok.status_code, 201)

    def test_unknown_enum_values_rejected(self):
        response = self.create_donation(donation_type="TITHE")
        self.assertEqual(response.status_code, 400)
        self.assertIn("donation_type", response.data["fields"])

    def test_inactive_or_missing_donor(self):
        missing = self.create_donation(donor="HKS-D-09999")
        self.assertEqual(missing.status_code, 404)
        Donor.objects.filter(pk=self.donor.pk).update(status="DISABLED")
        disabled = self.create_donation()
        self.assertEqual(disabled.status_code, 409)

    def test_terminal_donation_only_accepts_admin_notes(self):
        donation_id = self.create_donation(payment_mode="FULL", number_of_installments=None).data["id"]
        edit = self.client.patch(f"/api/v1/donations/{donation_id}/", {"purpose": "School fees"}, format="json")
        self.assertEqual(edit.status_code, 200)
        self.assertEqual(edit.data["purpose"], "School fees")
        self.pay(donation_id, "50000.00")

        blocked = self.client.patch(f"/api/v1/donations/{donation_id}/", {"purpose": "Other"}, format="json")
        self.assertEqual(blocked.status_code, 409)
        notes = self.client.patch(f"/api/v1/donations/{donation_id}/", {"admin_notes": "Receipt sent"}, format="json")
        self.assertEqual(notes.status_code, 200)
        self.assertEqual(notes.data["admin_notes"], "Receipt sent")

    def test_payments_listing_and_donor_donations(self):
        donation_id = self.create_donation().data["id"]
        self.pay(donation_id, "1000.00")
        payments = self.client.get(f"/api/v1/donations/{donation_id}/payments/")
        self.assertEqual(payments.status_code, 200)
        self.assertEqual(len(payments.data), 1)
        donor_donations = self.client.get(f"/api/v1/donors/{self.donor.code}/donations/")
        self.assertEqual(donor_donations.data["count"], 1)
        schedule = self.client.get(f"/api/v1/donations/{donation_id}/installments/")
        self.assertEqual(len(schedule.data), 4)
        self.assertEqual(schedule.data[0]["effective_status"], InstallmentStatus.PENDING)

    def test_cancel_requires_capability(self):
        plain = User.objects.create_user(username="plain_don", password="plain123", role="USER")
        donation_id = self.create_donation().data["id"]
        self.auth_as(plain.username, "plain123")
        response = self.client.post(f"/api/v1/donations/{donation_id}/cancel/", {"reason": "x"}, format="json")
        self.assertEqual(response.status_code, 403)
