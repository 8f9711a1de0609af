import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ZakatTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "type",
                    models.CharField(
                        choices=[("CREDIT", "Collection"), ("DEBIT", "Distribution")], default="CREDIT", max_length=8
                    ),
                ),
                (
                    "donor_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("INDIVIDUAL", "Individual"),
                            ("ORGANIZATION", "Organization"),
                            ("CHARITY", "Charity"),
                            ("OTHER", "Other"),
                        ],
                        max_length=16,
                    ),
                ),
                ("donor_name", models.CharField(blank=True, max_length=255)),
                ("recipient_name", models.CharField(blank=True, max_length=255)),
                (
                    "recipient_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("INDIVIDUAL", "Individual"),
                            ("FAMILY", "Family"),
                            ("MOSQUE", "Mosque"),
                            ("MADRASA", "Madrasa"),
                            ("NGO", "NGO"),
                            ("OTHER", "Other"),
                        ],
                        max_length=16,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="INR", editable=False, max_length=3)),
                ("payment_date", models.DateField()),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("BANK_TRANSFER", "Bank transfer"),
                            ("CREDIT_CARD", "Credit card"),
                            ("CASH", "Cash"),
                            ("UPI_TRANSFER", "UPI transfer"),
                            ("QR_SCANNER", "QR scanner"),
                            ("CHEQUE", "Cheque"),
                            ("OTHER", "Other"),
                        ],
                        max_length=16,
                    ),
                ),
                ("payment_reference", models.CharField(max_length=100)),
                ("upi_id", models.CharField(blank=True, max_length=100)),
                ("cheque_number", models.CharField(blank=True, max_length=32)),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                ("proof_url", models.URLField(blank=True, max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("VERIFIED", "Verified"), ("REJECTED", "Rejected")],
                        default="VERIFIED",
                        max_length=10,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "recorded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="zakat_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-payment_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["type", "payment_date"], name="zakat_type_date_idx"),
                    models.Index(fields=["donor_name"], name="zakat_donor_name_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(check=models.Q(("amount__gt", 0)), name="zakat_amount_gt_zero"),
                ],
            },
        ),
    ]
