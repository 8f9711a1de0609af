from datetime import date
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.utils import timezone
from django.test import SimpleTestCase
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditLog
from apps.donations.models import Donation, DonationStatus
from apps.donations.services import create_donation, record_payment
from apps.donors.services import create_donor
from apps.installments.models import Installment, InstallmentFrequency, InstallmentStatus, recompute_overdue_status
from apps.installments.services import build_due_dates, split_amount, sweep_overdue_installments
from apps.reports.queries import installment_summary

User = get_user_model()


class ScheduleMathTests(SimpleTestCase):
    def test_split_gives_remainder_to_last_installment(self):
        self.assertEqual(split_amount(Decimal("100.00"), 3), [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")])
        self.assertEqual(split_amount(Decimal("50000.00"), 4), [Decimal("12500.00")] * 4)
        self.assertEqual(sum(split_amount(Decimal("1000.01"), 7)), Decimal("1000.01"))

    def test_monthly_dates_clamp_to_month_end(self):
        dates = build_due_dates(date(2025, 1, 31), 3, InstallmentFrequency.MONTHLY)
        self.assertEqual(dates, [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)])

    def test_weekly_dates(self):
        dates = build_due_dates(date(2025, 1, 1), 3, InstallmentFrequency.WEEKLY)
        self.assertEqual(dates, [date(2025, 1, 1), date(2025, 1, 8), date(2025, 1, 15)])

    def test_custom_dates_must_match_count_and_ascend(self):
        with self.assertRaises(ValidationError):
            build_due_dates(date(2025, 1, 1), 2, InstallmentFrequency.CUSTOM, [date(2025, 2, 1)])
        with self.assertRaises(ValidationError):
            build_due_dates(date(2025, 1, 1), 2, InstallmentFrequency.CUSTOM, [date(2025, 3, 1), date(2025, 2, 1)])

    def test_overdue_only_after_grace_window(self):
        installment = Installment(due_date=date(2025, 1, 1), grace_period_days=7, status=InstallmentStatus.PENDING)
        self.assertEqual(recompute_overdue_status(installment, date(2025, 1, 8)), InstallmentStatus.PENDING)
        self.assertEqual(recompute_overdue_status(installment, date(2025, 1, 9)), InstallmentStatus.OVERDUE)
        installment.status = InstallmentStatus.PAID
        self.assertEqual(recompute_overdue_status(installment, date(2025, 6, 1)), InstallmentStatus.PAID)


class InstallmentApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_inst", password="admin123", role="SUPERADMIN")
        self.manager = User.objects.create_user(username="manager_inst", password="manager123", role="MANAGER")
        self.donor = create_donor(actor=self.admin, full_name="Yusuf Ali", phone="9990000011")
        self.auth_as("admin_inst", "admin123")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def pledge(self, start_date=None, count=4, total="50000.00"):
        schedule = {"start_date": start_date} if start_date else None
        return create_donation(
            donor=self.donor,
            actor=self.admin,
            schedule=schedule,
            donation_type="SADAQAH",
            total_amount=Decimal(total),
            payment_mode="INSTALLMENT",
            number_of_installments=count,
        )

    def installments(self, donation):
        return list(Installment.objects.filter(donation=donation).order_by("installment_number"))

    def test_mark_paid_posts_payment_once(self):
        donation = self.pledge()
        first = self.installments(donation)[0]
        response = self.client.post(
            f"/api/v1/installments/{first.code}/mark-paid/", {"transaction_id": "TXN-1"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], InstallmentStatus.PAID)
        donation.refresh_from_db()
        self.assertEqual(donation.status, DonationStatus.PARTIAL)
        self.assertEqual(donation.amount_paid, Decimal("12500.00"))

        again = self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        self.assertEqual(again.status_code, 409)
        donation.refresh_from_db()
        self.assertEqual(donation.amount_paid, Decimal("12500.00"))
        self.assertEqual(donation.payments.count(), 1)

    def test_duplicate_transaction_id_rejected(self):
        donation = self.pledge()
        first, second = self.installments(donation)[:2]
        self.client.post(f"/api/v1/installments/{first.pk}/mark-paid/", {"transaction_id": "TXN-9"}, format="json")
        response = self.client.post(
            f"/api/v1/installments/{second.pk}/mark-paid/", {"transaction_id": "TXN-9"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("transaction_id", response.data["fields"])
        second.refresh_from_db()
        self.assertEqual(second.status, InstallmentStatus.PENDING)

    def test_paying_every_installment_completes_donation(self):
        donation = self.pledge(count=2, total="1000.01")
        for installment in self.installments(donation):
            self.client.post(f"/api/v1/installments/{installment.code}/mark-paid/", {}, format="json")
        donation.refresh_from_db()
        self.assertEqual(donation.status, DonationStatus.COMPLETED)
        self.assertEqual(donation.pending_amount, Decimal("0.00"))
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 1)
        self.assertEqual(self.donor.total_amount, Decimal("1000.01"))

    def test_overdue_is_reported_and_swept(self):
        donation = self.pledge(start_date=date(2020, 1, 1), count=2)
        response = self.client.get("/api/v1/installments/", {"donation": donation.code, "status": "overdue"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(
            set(Installment.objects.filter(donation=donation).values_list("status", flat=True)),
            {InstallmentStatus.PENDING},
        )

        out = StringIO()
        call_command("sweep_overdue_installments", stdout=out)
        self.assertIn("Overdue installments: 2", out.getvalue())
        self.assertEqual(
            set(Installment.objects.filter(donation=donation).values_list("status", flat=True)),
            {InstallmentStatus.OVERDUE},
        )
        self.assertEqual(AuditLog.objects.filter(action=AuditAction.INSTALLMENT_OVERDUE).count(), 2)
        self.assertEqual(sweep_overdue_installments(), 0)

    def test_sweep_respects_grace_boundary(self):
        donation = self.pledge(start_date=date(2025, 1, 1), count=2)
        self.assertEqual(sweep_overdue_installments(today=date(2025, 1, 8)), 0)
        self.assertEqual(sweep_overdue_installments(today=date(2025, 1, 9)), 1)
        first, second = self.installments(donation)
        self.assertEqual(first.status, InstallmentStatus.OVERDUE)
        self.assertEqual(second.status, InstallmentStatus.PENDING)

    def test_overdue_installment_can_still_be_paid(self):
        donation = self.pledge(start_date=date(2020, 1, 1), count=2)
        sweep_overdue_installments()
        first = self.installments(donation)[0]
        response = self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], InstallmentStatus.PAID)

    def test_default_requires_overdue(self):
        fresh = self.installments(self.pledge())[0]
        blocked = self.client.post(f"/api/v1/installments/{fresh.code}/default/", {"reason": "No contact"}, format="json")
        self.assertEqual(blocked.status_code, 409)

        late = self.installments(self.pledge(start_date=date(2020, 1, 1), count=2))[0]
        response = self.client.post(f"/api/v1/installments/{late.code}/default/", {"reason": "No contact"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], InstallmentStatus.DEFAULTED)
        self.assertEqual(response.data["default_reason"], "No contact")

    def test_manager_cannot_default(self):
        late = self.installments(self.pledge(start_date=date(2020, 1, 1), count=2))[0]
        self.auth_as("manager_inst", "manager123")
        response = self.client.post(f"/api/v1/installments/{late.code}/default/", {}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_amount_change_is_balanced_on_last_open_installment(self):
        donation = self.pledge()
        first = self.installments(donation)[0]
        response = self.client.patch(f"/api/v1/installments/{first.code}/", {"amount": "10000.00"}, format="json")
        self.assertEqual(response.status_code, 200)
        amounts = [installment.amount for installment in self.installments(donation)]
        self.assertEqual(amounts, [Decimal("10000.00"), Decimal("12500.00"), Decimal("12500.00"), Decimal("15000.00")])
        self.assertEqual(sum(amounts), donation.total_amount)

    def test_paid_installment_only_accepts_notes(self):
        first = self.installments(self.pledge())[0]
        self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        blocked = self.client.patch(f"/api/v1/installments/{first.code}/", {"due_date": "2030-01-01"}, format="json")
        self.assertEqual(blocked.status_code, 409)
        notes = self.client.patch(f"/api/v1/installments/{first.code}/", {"notes": "Paid at office"}, format="json")
        self.assertEqual(notes.status_code, 200)
        self.assertEqual(notes.data["notes"], "Paid at office")

    def test_custom_schedule_replaces_pending_schedule(self):
        donation = self.pledge(count=2, total="300.00")
        response = self.client.post(
            "/api/v1/installments/",
            {
                "donation": donation.code,
                "frequency": "CUSTOM",
                "total_installments": 3,
                "amounts": ["100.00", "150.00", "50.00"],
                "due_dates": ["2030-01-10", "2030-02-10", "2030-04-10"],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual([row["amount"] for row in response.data], ["100.00", "150.00", "50.00"])
        self.assertEqual(response.data[2]["due_date"], "2030-04-10")
        donation.refresh_from_db()
        self.assertEqual(donation.number_of_installments, 3)
        self.assertEqual(Installment.objects.filter(donation=donation).count(), 3)

    def test_schedule_amounts_must_match_total(self):
        donation = self.pledge(count=2, total="300.00")
        response = self.client.post(
            "/api/v1/installments/",
            {"donation": donation.code, "amounts": ["100.00", "100.00"]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("amounts", response.data["fields"])

    def test_schedule_rejected_after_payment(self):
        donation = self.pledge()
        first = self.installments(donation)[0]
        self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        response = self.client.post("/api/v1/installments/", {"donation": donation.code}, format="json")
        self.assertEqual(response.status_code, 409)

    def test_reminders_and_follow_ups_are_counted(self):
        first = self.installments(self.pledge())[0]
        self.client.post(f"/api/v1/installments/{first.code}/remind/", {}, format="json")
        response = self.client.post(f"/api/v1/installments/{first.code}/remind/", {"follow_up": True}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["reminder_count"], 1)
        self.assertEqual(response.data["follow_up_attempts"], 1)

    def test_cancelled_donation_installments_are_closed(self):
        donation = self.pledge()
        self.client.post(f"/api/v1/donations/{donation.code}/cancel/", {"reason": "Changed mind"}, format="json")
        first = self.installments(donation)[0]
        self.assertEqual(first.status, InstallmentStatus.CANCELLED)
        response = self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(Donation.objects.get(pk=donation.pk).amount_paid, Decimal("0.00"))

    def test_direct_payment_in_full_settles_the_schedule(self):
        donation = self.pledge(start_date=date(2020, 1, 1))
        record_payment(donation.pk, amount=Decimal("50000.00"), actor=self.admin)

        donation.refresh_from_db()
        self.assertEqual(donation.status, DonationStatus.COMPLETED)
        installments = self.installments(donation)
        self.assertEqual({installment.status for installment in installments}, {InstallmentStatus.CANCELLED})
        self.assertTrue(all(installment.cancellation_reason.startswith("Settled") for installment in installments))
        self.assertEqual(AuditLog.objects.filter(action=AuditAction.INSTALLMENT_CANCELLED).count(), 4)

        self.assertEqual(sweep_overdue_installments(), 0)
        overdue = self.client.get("/api/v1/installments/", {"donation": donation.code, "status": "overdue"})
        self.assertEqual(overdue.data["count"], 0)
        self.assertEqual(installment_summary(timezone.localdate())["overdue_amount"], Decimal("0.00"))

        first = installments[0]
        remind = self.client.post(f"/api/v1/installments/{first.code}/remind/", {}, format="json")
        self.assertEqual(remind.status_code, 409)
        default = self.client.post(f"/api/v1/installments/{first.code}/default/", {"reason": "x"}, format="json")
        self.assertEqual(default.status_code, 409)

    def test_mixed_direct_and_installment_payments(self):
        donation = self.pledge(start_date=date(2020, 1, 1))
        first, second, third, fourth = self.installments(donation)

        record_payment(donation.pk, amount=Decimal("12500.00"), actor=self.admin)
        donation.refresh_from_db()
        self.assertEqual(donation.status, DonationStatus.PARTIAL)
        self.assertEqual(donation.pending_amount, Decimal("37500.00"))

        response = self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        again = self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(sweep_overdue_installments(), 3)

        record_payment(donation.pk, amount=Decimal("5000.00"), actor=self.admin)
        self.client.post(f"/api/v1/installments/{second.code}/mark-paid/", {}, format="json")
        response = self.client.post(f"/api/v1/installments/{third.code}/mark-paid/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["amount"], "7500.00")

        donation.refresh_from_db()
        self.assertEqual(donation.status, DonationStatus.COMPLETED)
        self.assertEqual(donation.amount_paid, Decimal("50000.00"))
        fourth.refresh_from_db()
        self.assertEqual(fourth.status, InstallmentStatus.CANCELLED)
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 1)
        self.assertEqual(self.donor.total_amount, Decimal("50000.00"))

        self.assertEqual(sweep_overdue_installments(), 0)
        summary = installment_summary(timezone.localdate())
        self.assertEqual(summary["by_status"]["paid"], {"count": 3, "amount": Decimal("32500.00")})
        self.assertEqual(summary["by_status"]["cancelled"]["count"], 1)
        self.assertEqual(summary["overdue_amount"], Decimal("0.00"))

    def test_cancel_moves_amount_to_last_open_installment(self):
        donation = self.pledge()
        second = self.installments(donation)[1]
        self.auth_as("manager_inst", "manager123")
        response = self.client.post(
            f"/api/v1/installments/{second.code}/cancel/", {"reason": "Merged into final payment"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], InstallmentStatus.CANCELLED)
        self.assertEqual(response.data["cancellation_reason"], "Merged into final payment")

        installments = self.installments(donation)
        self.assertEqual(
            [installment.amount for installment in installments],
            [Decimal("12500.00"), Decimal("12500.00"), Decimal("12500.00"), Decimal("25000.00")],
        )
        open_total = sum(
            installment.amount for installment in installments if installment.status != InstallmentStatus.CANCELLED
        )
        self.assertEqual(open_total, donation.total_amount)
        entry = AuditLog.objects.get(action=AuditAction.INSTALLMENT_CANCELLED, entity_id=second.code)
        self.assertEqual(entry.payload["moved_to"]["installment"], installments[3].code)

    def test_cancel_needs_reason_and_an_open_installment(self):
        donation = self.pledge(count=2, total="1000.00")
        first, second = self.installments(donation)
        missing = self.client.post(f"/api/v1/installments/{second.code}/cancel/", {}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertIn("reason", missing.data["fields"])

        self.client.post(f"/api/v1/installments/{first.code}/mark-paid/", {}, format="json")
        paid = self.client.post(f"/api/v1/installments/{first.code}/cancel/", {"reason": "Oops"}, format="json")
        self.assertEqual(paid.status_code, 409)
        alone = self.client.post(f"/api/v1/installments/{second.code}/cancel/", {"reason": "Oops"}, format="json")
        self.assertEqual(alone.status_code, 409)
        second.refresh_from_db()
        self.assertEqual(second.status, InstallmentStatus.PENDING)
