import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.donors.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Donor",
            fields=[
                ("code", models.CharField(editable=False, max_length=20, unique=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("full_name", models.CharField(max_length=255)),
                (
                    "donor_type",
                    models.CharField(
                        choices=[
                            ("INDIVIDUAL", "Individual"),
                            ("ORGANIZATION", "Organization"),
                            ("ANONYMOUS", "Anonymous"),
                        ],
                        default="INDIVIDUAL",
                        max_length=16,
                    ),
                ),
                ("phone", models.CharField(max_length=32)),
                ("phone_normalized", models.CharField(editable=False, max_length=32)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("address", models.CharField(blank=True, max_length=500)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("state", models.CharField(blank=True, max_length=100)),
                (
                    "identity_proof_type",
                    models.CharField(
                        blank=True,
                        choices=[("PAN", "PAN"), ("AADHAAR", "Aadhaar"), ("PASSPORT", "Passport"), ("OTHER", "Other")],
                        max_length=16,
                    ),
                ),
                ("identity_proof_number", models.CharField(blank=True, max_length=64)),
                ("anticipated_contribution", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[("ACTIVE", "Active"), ("DISABLED", "Disabled"), ("DELETED", "Deleted")],
                        default="ACTIVE",
                        max_length=16,
                    ),
                ),
                ("total_donations", models.PositiveIntegerField(default=0)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("last_donation_at", models.DateTimeField(blank=True, null=True)),
                ("communication_preferences", models.JSONField(default=apps.donors.models.default_communication_preferences)),
                ("notes", models.TextField(blank=True)),
                ("disabled_at", models.DateTimeField(blank=True, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="donors_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="donor_status_created_idx"),
                    models.Index(fields=["full_name"], name="donor_name_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "DELETED"), _negated=True),
                        fields=("phone_normalized",),
                        name="donor_phone_unique_not_deleted",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(models.Q(("status", "DELETED"), _negated=True), models.Q(("email", ""), _negated=True)),
                        fields=("email",),
                        name="donor_email_unique_not_deleted",
                    ),
                    models.CheckConstraint(check=models.Q(("total_amount__gte", 0)), name="donor_total_amount_gte_zero"),
                    models.CheckConstraint(
                        check=models.Q(("anticipated_contribution__gte", 0)), name="donor_anticipated_gte_zero"
                    ),
                ],
            },
        ),
    ]
