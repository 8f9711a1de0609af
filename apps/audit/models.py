import uuid
from datetime import timedelta

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from apps.common.identifiers import AUDIT_LOG_PREFIX
from apps.common.models import SequentialCodeModel


class ImmutableAuditLogError(RuntimeError):
    pass


class AuditAction(models.TextChoices):
    DONOR_CREATED = "DONOR_CREATED", "Donor created"
    DONOR_UPDATED = "DONOR_UPDATED", "Donor updated"
    DONOR_DISABLED = "DONOR_DISABLED", "Donor disabled"
    DONOR_DELETED = "DONOR_DELETED", "Donor deleted"
    DONOR_RESTORED = "DONOR_RESTORED", "Donor restored"
    DONATION_CREATED = "DONATION_CREATED", "Donation created"
    DONATION_UPDATED = "DONATION_UPDATED", "Donation updated"
    DONATION_PAYMENT = "DONATION_PAYMENT", "Donation payment recorded"
    DONATION_COMPLETED = "DONATION_COMPLETED", "Donation completed"
    DONATION_CANCELLED = "DONATION_CANCELLED", "Donation cancelled"
    INSTALLMENT_CREATED = "INSTALLMENT_CREATED", "Installments created"
    INSTALLMENT_UPDATED = "INSTALLMENT_UPDATED", "Installment updated"
    INSTALLMENT_MARKED_PAID = "INSTALLMENT_MARKED_PAID", "Installment marked paid"
    INSTALLMENT_CANCELLED = "INSTALLMENT_CANCELLED", "Installment cancelled"
    INSTALLMENT_OVERDUE = "INSTALLMENT_OVERDUE", "Installment overdue"
    INSTALLMENT_DEFAULTED = "INSTALLMENT_DEFAULTED", "Installment defaulted"
    INSTALLMENT_REMINDER = "INSTALLMENT_REMINDER", "Installment reminder"
    ZAKAT_TRANSACTION_RECORDED = "ZAKAT_TRANSACTION_RECORDED", "Zakat transaction recorded"
    ZAKAT_TRANSACTION_UPDATED = "ZAKAT_TRANSACTION_UPDATED", "Zakat transaction updated"


class AuditEntityType(models.TextChoices):
    DONOR = "DONOR", "Donor"
    DONATION = "DONATION", "Donation"
    INSTALLMENT = "INSTALLMENT", "Installment"
    ZAKAT_TRANSACTION = "ZAKAT_TRANSACTION", "Zakat transaction"


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableAuditLogError("Audit logs are immutable and cannot be modified.")

    def expired(self, now=None):
        now = now or timezone.now()
        return self.filter(created_at__lt=now - timedelta(days=settings.AUDIT_LOG_RETENTION_DAYS))


class AuditLog(SequentialCodeModel):
    code_prefix = AUDIT_LOG_PREFIX

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.PROTECT)
    actor_email = models.CharField(max_length=254, blank=True)
    action = models.CharField(max_length=40, choices=AuditAction.choices)
    entity_type = models.CharField(max_length=24, choices=AuditEntityType.choices)
    entity_id = models.CharField(max_length=80)
    payload = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity_lookup_idx"),
            models.Index(fields=["actor_email", "created_at"], name="audit_actor_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableAuditLogError("Audit logs are immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} {self.action} {self.entity_type}:{self.entity_id}"
