import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models

from apps.common.identifiers import INSTALLMENT_PREFIX
from apps.common.models import SequentialCodeModel
from apps.donations.models import TERMINAL_STATUSES


class InstallmentFrequency(models.TextChoices):
    WEEKLY = "WEEKLY", "Weekly"
    MONTHLY = "MONTHLY", "Monthly"
    CUSTOM = "CUSTOM", "Custom"


class InstallmentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    OVERDUE = "OVERDUE", "Overdue"
    CANCELLED = "CANCELLED", "Cancelled"
    DEFAULTED = "DEFAULTED", "Defaulted"


OPEN_STATUSES = (InstallmentStatus.PENDING, InstallmentStatus.OVERDUE)
CLOSED_STATUSES = (InstallmentStatus.PAID, InstallmentStatus.CANCELLED, InstallmentStatus.DEFAULTED)


def default_grace_period_days():
    return settings.INSTALLMENT_GRACE_PERIOD_DAYS


def recompute_overdue_status(installment, today):
    """Effective status of an installment on ``today``; PENDING past its grace window reads as OVERDUE."""
    if installment.status != InstallmentStatus.PENDING:
        return installment.status
    grace_end = installment.due_date + timedelta(days=installment.grace_period_days)
    if today > installment.due_date and today > grace_end:
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.PENDING


class InstallmentQuerySet(models.QuerySet):
    def with_effective_status(self, today):
        return self.annotate(
            effective_status=models.Case(
                models.When(
                    ~models.Q(donation__status__in=TERMINAL_STATUSES),
                    status=InstallmentStatus.PENDING,
                    grace_end_date__lt=today,
                    then=models.Value(InstallmentStatus.OVERDUE),
                ),
                default=models.F("status"),
                output_field=models.CharField(max_length=12),
            )
        )

    def open(self):
        return self.filter(status__in=OPEN_STATUSES)

    def of_open_donations(self):
        return self.exclude(donation__status__in=TERMINAL_STATUSES)


class Installment(SequentialCodeModel):
    code_prefix = INSTALLMENT_PREFIX

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    donation = models.ForeignKey("donations.Donation", on_delete=models.CASCADE, related_name="installments")
    donor = models.ForeignKey("donors.Donor", on_delete=models.PROTECT, related_name="installments")
    installment_number = models.PositiveSmallIntegerField()
    total_installments = models.PositiveSmallIntegerField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR", editable=False)
    due_date = models.DateField()
    frequency = models.CharField(max_length=8, choices=InstallmentFrequency.choices, default=InstallmentFrequency.MONTHLY)
    status = models.CharField(max_length=12, choices=InstallmentStatus.choices, default=InstallmentStatus.PENDING)
    paid_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=12, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)
    transaction_ref = models.CharField(max_length=100, blank=True)
    receipt_id = models.CharField(max_length=100, blank=True)
    grace_period_days = models.PositiveSmallIntegerField(default=default_grace_period_days)
    grace_end_date = models.DateField(editable=False)
    reminder_count = models.PositiveIntegerField(default=0)
    last_reminder_at = models.DateTimeField(null=True, blank=True)
    follow_up_attempts = models.PositiveIntegerField(default=0)
    last_follow_up_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)
    paid_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="installments_marked_paid"
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)
    defaulted_at = models.DateTimeField(null=True, blank=True)
    default_reason = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InstallmentQuerySet.as_manager()

    class Meta:
        ordering = ["donation", "installment_number"]
        indexes = [
            models.Index(fields=["status", "grace_end_date"], name="installment_status_grace_idx"),
            models.Index(fields=["donor", "status"], name="installment_donor_status_idx"),
            models.Index(fields=["due_date"], name="installment_due_date_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["donation", "installment_number"], name="installment_donation_number_unique"),
            models.UniqueConstraint(
                fields=["transaction_id"], condition=~models.Q(transaction_id=""), name="installment_transaction_id_unique"
            ),
            models.UniqueConstraint(
                fields=["receipt_id"], condition=~models.Q(receipt_id=""), name="installment_receipt_id_unique"
            ),
            models.CheckConstraint(check=models.Q(amount__gt=0), name="installment_amount_gt_zero"),
            models.CheckConstraint(check=models.Q(installment_number__gte=1), name="installment_number_gte_one"),
        ]

    def save(self, *args, **kwargs):
        self.grace_end_date = self.due_date + timedelta(days=self.grace_period_days)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and {"due_date", "grace_period_days"} & set(update_fields):
            kwargs["update_fields"] = {*update_fields, "grace_end_date"}
        super().save(*args, **kwargs)

    def status_on(self, today):
        return recompute_overdue_status(self, today)

    def __str__(self):
        return f"{self.code} {self.installment_number}/{self.total_installments}"
