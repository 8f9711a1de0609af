import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("donors", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Donation",
            fields=[
                ("code", models.CharField(editable=False, max_length=20, unique=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "donation_type",
                    models.CharField(
                        choices=[
                            ("ZAKAT_MAAL", "Zakat al-Maal"),
                            ("ZAKAT_FITR", "Zakat al-Fitr"),
                            ("SADAQAH", "Sadaqah"),
                            ("FIDYA", "Fidya"),
                            ("KAFFARAH", "Kaffarah"),
                            ("SADAQAH_JARIYAH", "Sadaqah Jariyah"),
                        ],
                        max_length=20,
                    ),
                ),
                ("sub_category", models.CharField(blank=True, max_length=100)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="INR", editable=False, max_length=3)),
                (
                    "payment_mode",
                    models.CharField(
                        choices=[("FULL", "Full"), ("INSTALLMENT", "Installment")], default="FULL", max_length=12
                    ),
                ),
                ("number_of_installments", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PLEDGED", "Pledged"),
                            ("PARTIAL", "Partial"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PLEDGED",
                        max_length=12,
                    ),
                ),
                ("amount_paid", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("pending_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("nisab_verified", models.BooleanField(default=False)),
                ("nisab_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("hijri_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("BANK", "Bank transfer"),
                            ("UPI", "UPI"),
                            ("CASH", "Cash"),
                            ("CHEQUE", "Cheque"),
                            ("CARD", "Card"),
                            ("OTHER", "Other"),
                        ],
                        default="CASH",
                        max_length=12,
                    ),
                ),
                ("upi_id", models.CharField(blank=True, max_length=100)),
                (
                    "bank_transfer_type",
                    models.CharField(blank=True, choices=[("NEFT", "NEFT"), ("MANUAL", "Manual")], max_length=8),
                ),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                ("cheque_number", models.CharField(blank=True, max_length=32)),
                (
                    "allocation_category",
                    models.CharField(
                        choices=[
                            ("GENERAL", "General"),
                            ("EDUCATION", "Education"),
                            ("FOOD", "Food"),
                            ("MEDICAL", "Medical"),
                            ("EMERGENCY", "Emergency"),
                            ("ORPHANS", "Orphans"),
                            ("WATER", "Water"),
                            ("MOSQUE", "Mosque"),
                        ],
                        default="GENERAL",
                        max_length=12,
                    ),
                ),
                ("purpose", models.CharField(blank=True, max_length=500)),
                ("is_recurring", models.BooleanField(default=False)),
                (
                    "recurring_frequency",
                    models.CharField(blank=True, choices=[("MONTHLY", "Monthly"), ("YEARLY", "Yearly")], max_length=8),
                ),
                ("next_recurrence_date", models.DateField(blank=True, null=True)),
                ("tax_receipt_required", models.BooleanField(default=False)),
                ("tax_80g_eligible", models.BooleanField(default=False)),
                ("tax_80g_number", models.CharField(blank=True, max_length=64)),
                ("notes", models.TextField(blank=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("last_payment_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="donations_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "donor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="donations", to="donors.donor"
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["donor", "status"], name="donation_donor_status_idx"),
                    models.Index(fields=["status", "created_at"], name="donation_status_created_idx"),
                    models.Index(fields=["donation_type", "created_at"], name="donation_type_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(check=models.Q(("total_amount__gt", 0)), name="donation_total_gt_zero"),
                    models.CheckConstraint(check=models.Q(("amount_paid__gte", 0)), name="donation_amount_paid_gte_zero"),
                    models.CheckConstraint(check=models.Q(("pending_amount__gte", 0)), name="donation_pending_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DonationPayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("BANK", "Bank transfer"),
                            ("UPI", "UPI"),
                            ("CASH", "Cash"),
                            ("CHEQUE", "Cheque"),
                            ("CARD", "Card"),
                            ("OTHER", "Other"),
                        ],
                        default="CASH",
                        max_length=12,
                    ),
                ),
                ("transaction_ref", models.CharField(blank=True, max_length=100)),
                ("paid_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "donation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="donations.donation"
                    ),
                ),
                (
                    "recorded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="donation_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["paid_at", "created_at"],
                "constraints": [
                    models.CheckConstraint(check=models.Q(("amount__gt", 0)), name="donation_payment_amount_gt_zero"),
                ],
            },
        ),
    ]
