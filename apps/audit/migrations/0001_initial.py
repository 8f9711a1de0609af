import django.core.serializers.json
import django.db.models.deletion
import uuid

from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("code", models.CharField(editable=False, max_length=20, unique=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("actor_email", models.CharField(blank=True, max_length=254)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("DONOR_CREATED", "Donor created"),
                            ("DONOR_UPDATED", "Donor updated"),
                            ("DONOR_DISABLED", "Donor disabled"),
                            ("DONOR_DELETED", "Donor deleted"),
                            ("DONOR_RESTORED", "Donor restored"),
                            ("DONATION_CREATED", "Donation created"),
                            ("DONATION_UPDATED", "Donation updated"),
                            ("DONATION_PAYMENT", "Donation payment recorded"),
                            ("DONATION_COMPLETED", "Donation completed"),
                            ("DONATION_CANCELLED", "Donation cancelled"),
                            ("INSTALLMENT_CREATED", "Installments created"),
                            ("INSTALLMENT_UPDATED", "Installment updated"),
                            ("INSTALLMENT_MARKED_PAID", "Installment marked paid"),
                            ("INSTALLMENT_CANCELLED", "Installment cancelled"),
                            ("INSTALLMENT_OVERDUE", "Installment overdue"),
                            ("INSTALLMENT_DEFAULTED", "Installment defaulted"),
                            ("INSTALLMENT_REMINDER", "Installment reminder"),
                            ("ZAKAT_TRANSACTION_RECORDED", "Zakat transaction recorded"),
                            ("ZAKAT_TRANSACTION_UPDATED", "Zakat transaction updated"),
                        ],
                        max_length=40,
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        choices=[
                            ("DONOR", "Donor"),
                            ("DONATION", "Donation"),
                            ("INSTALLMENT", "Installment"),
                            ("ZAKAT_TRANSACTION", "Zakat transaction"),
                        ],
                        max_length=24,
                    ),
                ),
                ("entity_id", models.CharField(max_length=80)),
                ("payload", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
                    models.Index(fields=["entity_type", "entity_id"], name="audit_entity_lookup_idx"),
                    models.Index(fields=["actor_email", "created_at"], name="audit_actor_created_idx"),
                ],
            },
        ),
    ]
