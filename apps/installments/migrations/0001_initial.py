import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.installments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("donors", "0001_initial"),
        ("donations", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Installment",
            fields=[
                ("code", models.CharField(editable=False, max_length=20, unique=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("installment_number", models.PositiveSmallIntegerField()),
                ("total_installments", models.PositiveSmallIntegerField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="INR", editable=False, max_length=3)),
                ("due_date", models.DateField()),
                (
                    "frequency",
                    models.CharField(
                        choices=[("WEEKLY", "Weekly"), ("MONTHLY", "Monthly"), ("CUSTOM", "Custom")],
                        default="MONTHLY",
                        max_length=8,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PAID", "Paid"),
                            ("OVERDUE", "Overdue"),
                            ("CANCELLED", "Cancelled"),
                            ("DEFAULTED", "Defaulted"),
                        ],
                        default="PENDING",
                        max_length=12,
                    ),
                ),
                ("paid_date", models.DateField(blank=True, null=True)),
                ("payment_method", models.CharField(blank=True, max_length=12)),
                ("transaction_id", models.CharField(blank=True, max_length=100)),
                ("transaction_ref", models.CharField(blank=True, max_length=100)),
                ("receipt_id", models.CharField(blank=True, max_length=100)),
                (
                    "grace_period_days",
                    models.PositiveSmallIntegerField(default=apps.installments.models.default_grace_period_days),
                ),
                ("grace_end_date", models.DateField(editable=False)),
                ("reminder_count", models.PositiveIntegerField(default=0)),
                ("last_reminder_at", models.DateTimeField(blank=True, null=True)),
                ("follow_up_attempts", models.PositiveIntegerField(default=0)),
                ("last_follow_up_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("defaulted_at", models.DateTimeField(blank=True, null=True)),
                ("default_reason", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "donation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="installments",
                        to="donations.donation",
                    ),
                ),
                (
                    "donor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="installments", to="donors.donor"
                    ),
                ),
                (
                    "paid_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="installments_marked_paid",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["donation", "installment_number"],
                "indexes": [
                    models.Index(fields=["status", "grace_end_date"], name="installment_status_grace_idx"),
                    models.Index(fields=["donor", "status"], name="installment_donor_status_idx"),
                    models.Index(fields=["due_date"], name="installment_due_date_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("donation", "installment_number"), name="installment_donation_number_unique"
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("transaction_id", ""), _negated=True),
                        fields=("transaction_id",),
                        name="installment_transaction_id_unique",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("receipt_id", ""), _negated=True),
                        fields=("receipt_id",),
                        name="installment_receipt_id_unique",
                    ),
                    models.CheckConstraint(check=models.Q(("amount__gt", 0)), name="installment_amount_gt_zero"),
                    models.CheckConstraint(
                        check=models.Q(("installment_number__gte", 1)), name="installment_number_gte_one"
                    ),
                ],
            },
        ),
    ]
