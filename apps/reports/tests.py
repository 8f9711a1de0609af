from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.donations.models import DonationStatus
from apps.donations.services import cancel_donation, create_donation, record_payment
from apps.donors.services import create_donor
from apps.installments.models import Installment
from apps.installments.services import mark_paid

User = get_user_model()


class ReportApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_rep", password="admin123", role="SUPERADMIN")
        User.objects.create_user(username="plain_rep", password="plain123", role="USER")
        self.amina = create_donor(actor=self.admin, full_name="Amina", phone="9990000021")
        self.bilal = create_donor(actor=self.admin, full_name="Bilal", phone="9990000022")
        self.sara = create_donor(actor=self.admin, full_name="Sara", phone="9990000023")

        self.full = self.donate(self.amina, "5000.00", allocation_category="EDUCATION", hijri_year=1446)
        record_payment(self.full.pk, amount=Decimal("5000.00"), actor=self.admin)

        self.split = self.donate(
            self.bilal,
            "9000.00",
            payment_mode="INSTALLMENT",
            number_of_installments=3,
            payment_method="UPI",
            upi_id="bilal@upi",
            hijri_year=1446,
            schedule={"start_date": date(2020, 1, 1)},
        )
        first = Installment.objects.get(donation=self.split, installment_number=1)
        mark_paid(first.pk, actor=self.admin)

        small = self.donate(self.sara, "2000.00", donation_type="SADAQAH")
        record_payment(small.pk, amount=Decimal("1000.00"), actor=self.admin)

        dropped = self.donate(self.sara, "7000.00")
        cancel_donation(dropped.pk, reason="Duplicate entry", actor=self.admin)

        self.auth_as("admin_rep", "admin123")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def donate(self, donor, total, **fields):
        fields.setdefault("donation_type", "ZAKAT_MAAL")
        return create_donation(donor=donor, actor=self.admin, total_amount=Decimal(total), **fields)

    def test_donation_totals_and_breakdowns(self):
        response = self.client.get("/api/v1/reports/donations/")
        self.assertEqual(response.status_code, 200)
        data = response.data
        self.assertEqual(data["donations_count"], 4)
        self.assertEqual(data["total_pledged"], Decimal("16000.00"))
        self.assertEqual(data["total_paid"], Decimal("9000.00"))
        self.assertEqual(data["total_pending"], Decimal("7000.00"))

        by_status = {row["status"]: row for row in data["by_status"]}
        self.assertEqual(by_status[DonationStatus.COMPLETED]["donations_count"], 1)
        self.assertEqual(by_status[DonationStatus.PARTIAL]["donations_count"], 2)
        self.assertEqual(by_status[DonationStatus.CANCELLED]["total_amount"], Decimal("7000.00"))

        by_category = {row["allocation_category"]: row["total_amount"] for row in data["by_allocation_category"]}
        self.assertEqual(by_category["EDUCATION"], Decimal("5000.00"))
        by_method = {row["payment_method"]: row["amount_paid"] for row in data["by_payment_method"]}
        self.assertEqual(by_method["UPI"], Decimal("3000.00"))
        by_year = {row["hijri_year"]: row["donations_count"] for row in data["by_hijri_year"]}
        self.assertEqual(by_year, {1446: 2})
        self.assertEqual(sum(row["donations_count"] for row in data["by_month"]), 4)

    def test_installment_totals_use_effective_status(self):
        response = self.client.get("/api/v1/reports/installments/")
        self.assertEqual(response.status_code, 200)
        data = response.data
        self.assertEqual(data["total"], 3)
        self.assertEqual(data["by_status"]["paid"]["count"], 1)
        self.assertEqual(data["by_status"]["overdue"]["count"], 2)
        self.assertEqual(data["by_status"]["pending"]["count"], 0)
        self.assertEqual(data["paid_amount"], Decimal("3000.00"))
        self.assertEqual(data["overdue_amount"], Decimal("6000.00"))
        self.assertEqual(data["total_amount"], Decimal("9000.00"))

    def test_donor_ranking_is_dense(self):
        response = self.client.get("/api/v1/reports/donors/ranking/")
        self.assertEqual(response.status_code, 200)
        ranking = [(row["donor__code"], row["total_paid"], row["rank"]) for row in response.data["results"]]
        self.assertEqual(
            ranking,
            [
                (self.amina.code, Decimal("5000.00"), 1),
                (self.bilal.code, Decimal("3000.00"), 2),
                (self.sara.code, Decimal("1000.00"), 3),
            ],
        )

    def test_ties_share_rank(self):
        record_payment(self.split.pk, amount=Decimal("2000.00"), actor=self.admin)
        response = self.client.get("/api/v1/reports/donors/ranking/", {"limit": 2})
        ranks = [row["rank"] for row in response.data["results"]]
        self.assertEqual(ranks, [1, 1])

    def test_date_range_filters_and_validation(self):
        empty = self.client.get("/api/v1/reports/donations/", {"date_to": "2000-01-01"})
        self.assertEqual(empty.data["donations_count"], 0)
        self.assertEqual(empty.data["total_paid"], Decimal("0.00"))

        invalid = self.client.get("/api/v1/reports/donations/", {"date_from": "2025-02-01", "date_to": "2025-01-01"})
        self.assertEqual(invalid.status_code, 400)
        self.assertIn("date_from", invalid.data["fields"])

    def test_reports_require_capability(self):
        self.auth_as("plain_rep", "plain123")
        for url in (
            "/api/v1/reports/donations/",
            "/api/v1/reports/installments/",
            "/api/v1/reports/donors/ranking/",
            "/api/v1/reports/zakat/",
        ):
            self.assertEqual(self.client.get(url).status_code, 403)
