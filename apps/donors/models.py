import re
import uuid
from decimal import Decimal

from django.db import models

from apps.common.identifiers import DONOR_PREFIX
from apps.common.models import SequentialCodeModel


def normalize_phone(value):
    raw = str(value or "").strip()
    normalized = re.sub(r"\D+", "", raw)
    return normalized or raw


def default_communication_preferences():
    return {"sms": True, "email": True, "whatsapp": False}


class DonorType(models.TextChoices):
    INDIVIDUAL = "INDIVIDUAL", "Individual"
    ORGANIZATION = "ORGANIZATION", "Organization"
    ANONYMOUS = "ANONYMOUS", "Anonymous"


class IdentityProofType(models.TextChoices):
    PAN = "PAN", "PAN"
    AADHAAR = "AADHAAR", "Aadhaar"
    PASSPORT = "PASSPORT", "Passport"
    OTHER = "OTHER", "Other"


class DonorStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    DISABLED = "DISABLED", "Disabled"
    DELETED = "DELETED", "Deleted"


class DonorQuerySet(models.QuerySet):
    def not_deleted(self):
        return self.exclude(status=DonorStatus.DELETED)

    def active(self):
        return self.filter(status=DonorStatus.ACTIVE)


class Donor(SequentialCodeModel):
    code_prefix = DONOR_PREFIX

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    full_name = models.CharField(max_length=255)
    donor_type = models.CharField(max_length=16, choices=DonorType.choices, default=DonorType.INDIVIDUAL)
    phone = models.CharField(max_length=32)
    phone_normalized = models.CharField(max_length=32, editable=False)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    identity_proof_type = models.CharField(max_length=16, choices=IdentityProofType.choices, blank=True)
    identity_proof_number = models.CharField(max_length=64, blank=True)
    anticipated_contribution = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=16, choices=DonorStatus.choices, default=DonorStatus.ACTIVE)
    total_donations = models.PositiveIntegerField(default=0)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    last_donation_at = models.DateTimeField(null=True, blank=True)
    communication_preferences = models.JSONField(default=default_communication_preferences)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="donors_created"
    )
    disabled_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DonorQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="donor_status_created_idx"),
            models.Index(fields=["full_name"], name="donor_name_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["phone_normalized"],
                condition=~models.Q(status="DELETED"),
                name="donor_phone_unique_not_deleted",
            ),
            models.UniqueConstraint(
                fields=["email"],
                condition=~models.Q(status="DELETED") & ~models.Q(email=""),
                name="donor_email_unique_not_deleted",
            ),
            models.CheckConstraint(check=models.Q(total_amount__gte=0), name="donor_total_amount_gte_zero"),
            models.CheckConstraint(
                check=models.Q(anticipated_contribution__gte=0), name="donor_anticipated_gte_zero"
            ),
        ]

    def save(self, *args, **kwargs):
        self.full_name = str(self.full_name or "").strip()
        self.phone = str(self.phone or "").strip()
        self.phone_normalized = normalize_phone(self.phone)
        self.email = str(self.email or "").strip().lower()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "phone" in update_fields:
            kwargs["update_fields"] = {*update_fields, "phone_normalized"}
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status == DonorStatus.ACTIVE

    def __str__(self):
        return f"{self.code} {self.full_name}"
