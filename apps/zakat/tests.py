from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, override_settings
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditLog
from apps.zakat.models import ZakatTransaction
from apps.zakat.services import calculate_zakat, nisab_value

User = get_user_model()


@override_settings(ZAKAT_GOLD_PRICE_PER_GRAM=Decimal("65.50"), ZAKAT_SILVER_PRICE_PER_GRAM=Decimal("0.85"))
class ZakatCalculationTests(SimpleTestCase):
    def test_nisab_thresholds(self):
        self.assertEqual(nisab_value("gold"), Decimal("5567.50"))
        self.assertEqual(nisab_value("silver"), Decimal("505.75"))

    def test_zakat_due_above_nisab(self):
        result = calculate_zakat({"cash": "100000", "gold": "20000"}, {"personal_debts": "20000"})
        self.assertEqual(result["total_assets"], Decimal("120000.00"))
        self.assertEqual(result["total_wealth"], Decimal("100000.00"))
        self.assertTrue(result["is_eligible"])
        self.assertEqual(result["zakat_due"], Decimal("2500.00"))

    def test_nothing_due_below_nisab(self):
        result = calculate_zakat({"cash": "5000"}, {})
        self.assertFalse(result["is_eligible"])
        self.assertEqual(result["zakat_due"], Decimal("0.00"))
        self.assertTrue(calculate_zakat({"cash": "5000"}, {}, standard="silver")["is_eligible"])


class ZakatLedgerApiTests(APITestCase):
    def setUp(self):
        User.objects.create_user(username="manager_zk", password="manager123", role="MANAGER")
        User.objects.create_user(username="plain_zk", password="plain123", role="USER")
        self.auth_as("manager_zk", "manager123")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def record(self, **overrides):
        payload = {
            "type": "CREDIT",
            "donor_name": "Fatima Noor",
            "donor_type": "INDIVIDUAL",
            "amount": "2500.00",
            "payment_date": "2026-03-01",
            "payment_method": "CASH",
            "payment_reference": "RCPT-001",
        }
        payload.update(overrides)
        return self.client.post("/api/v1/zakat/transactions/", payload, format="json")

    def test_collection_is_recorded_and_audited(self):
        response = self.record()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "VERIFIED")
        self.assertTrue(
            AuditLog.objects.filter(action=AuditAction.ZAKAT_TRANSACTION_RECORDED, entity_id=response.data["id"]).exists()
        )

    def test_method_specific_fields_are_required(self):
        upi = self.record(payment_method="UPI_TRANSFER")
        self.assertEqual(upi.status_code, 400)
        self.assertIn("upi_id", upi.data["fields"])
        cheque = self.record(payment_method="CHEQUE")
        self.assertIn("cheque_number", cheque.data["fields"])
        bank = self.record(payment_method="BANK_TRANSFER")
        self.assertIn("bank_name", bank.data["fields"])
        distribution = self.record(type="DEBIT", donor_name="")
        self.assertIn("recipient_name", distribution.data["fields"])
        self.assertFalse(ZakatTransaction.objects.exists())

    def test_summary_excludes_rejected_entries(self):
        self.record(amount="5000.00")
        self.record(amount="1500.00", payment_method="UPI_TRANSFER", upi_id="fatima@upi", payment_reference="RCPT-002")
        self.record(type="DEBIT", recipient_name="Madrasa Noor", recipient_type="MADRASA", amount="2000.00")
        self.record(amount="9999.00", status="REJECTED", payment_reference="RCPT-003")

        response = self.client.get("/api/v1/zakat/transactions/summary/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_collected"], Decimal("6500.00"))
        self.assertEqual(response.data["total_spent"], Decimal("2000.00"))
        self.assertEqual(response.data["current_balance"], Decimal("4500.00"))
        self.assertEqual(response.data["transactions_count"], 3)
        by_method = {row["payment_method"]: row["collected"] for row in response.data["by_payment_method"]}
        self.assertEqual(by_method["UPI_TRANSFER"], Decimal("1500.00"))

        report = self.client.get("/api/v1/reports/zakat/")
        self.assertEqual(report.data["current_balance"], Decimal("4500.00"))

    def test_donor_history_is_case_insensitive(self):
        self.record(amount="1000.00")
        self.record(amount="2000.00", donor_name="fatima noor", payment_date="2026-04-01")
        self.record(amount="3000.00", donor_name="Someone Else")
        response = self.client.get("/api/v1/zakat/transactions/donor-history/", {"donor_name": "FATIMA NOOR"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_contribution"], Decimal("3000.00"))
        self.assertEqual([row["amount"] for row in response.data["history"]], ["2000.00", "1000.00"])

        missing = self.client.get("/api/v1/zakat/transactions/donor-history/")
        self.assertEqual(missing.status_code, 400)

    def test_partial_update_revalidates(self):
        entry_id = self.record().data["id"]
        bad = self.client.patch(f"/api/v1/zakat/transactions/{entry_id}/", {"payment_method": "CHEQUE"}, format="json")
        self.assertEqual(bad.status_code, 400)
        ok = self.client.patch(
            f"/api/v1/zakat/transactions/{entry_id}/",
            {"payment_method": "CHEQUE", "cheque_number": "000123"},
            format="json",
        )
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.data["cheque_number"], "000123")

    def test_ledger_requires_capability(self):
        self.auth_as("plain_zk", "plain123")
        self.assertEqual(self.client.get("/api/v1/zakat/transactions/").status_code, 403)
        self.assertEqual(self.record().status_code, 403)

    @override_settings(ZAKAT_GOLD_PRICE_PER_GRAM=Decimal("65.50"))
    def test_calculator_is_public(self):
        self.client.credentials()
        response = self.client.post("/api/v1/zakat/calculate/", {"cash": "200000.00"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["calculation"]["zakat_due"], Decimal("5000.00"))
        self.assertEqual(response.data["nisab_info"]["gold"]["value"], Decimal("5567.50"))

        negative = self.client.post("/api/v1/zakat/calculate/", {"cash": "-1"}, format="json")
        self.assertEqual(negative.status_code, 400)
        self.assertIn("cash", negative.data["fields"])
