import uuid
from decimal import Decimal

from django.db import models

from apps.common.identifiers import DONATION_PREFIX
from apps.common.models import SequentialCodeModel

MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 12


class DonationType(models.TextChoices):
    ZAKAT_MAAL = "ZAKAT_MAAL", "Zakat al-Maal"
    ZAKAT_FITR = "ZAKAT_FITR", "Zakat al-Fitr"
    SADAQAH = "SADAQAH", "Sadaqah"
    FIDYA = "FIDYA", "Fidya"
    KAFFARAH = "KAFFARAH", "Kaffarah"
    SADAQAH_JARIYAH = "SADAQAH_JARIYAH", "Sadaqah Jariyah"


class PaymentMode(models.TextChoices):
    FULL = "FULL", "Full"
    INSTALLMENT = "INSTALLMENT", "Installment"


class DonationStatus(models.TextChoices):
    PLEDGED = "PLEDGED", "Pledged"
    PARTIAL = "PARTIAL", "Partial"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_STATUSES = {DonationStatus.COMPLETED, DonationStatus.CANCELLED}


class PaymentMethod(models.TextChoices):
    BANK = "BANK", "Bank transfer"
    UPI = "UPI", "UPI"
    CASH = "CASH", "Cash"
    CHEQUE = "CHEQUE", "Cheque"
    CARD = "CARD", "Card"
    OTHER = "OTHER", "Other"


class BankTransferType(models.TextChoices):
    NEFT = "NEFT", "NEFT"
    MANUAL = "MANUAL", "Manual"


class AllocationCategory(models.TextChoices):
    GENERAL = "GENERAL", "General"
    EDUCATION = "EDUCATION", "Education"
    FOOD = "FOOD", "Food"
    MEDICAL = "MEDICAL", "Medical"
    EMERGENCY = "EMERGENCY", "Emergency"
    ORPHANS = "ORPHANS", "Orphans"
    WATER = "WATER", "Water"
    MOSQUE = "MOSQUE", "Mosque"


class RecurringFrequency(models.TextChoices):
    MONTHLY = "MONTHLY", "Monthly"
    YEARLY = "YEARLY", "Yearly"


def derive_status(total, paid, current):
    """Status implied by the amounts; cancellation is sticky."""
    if current == DonationStatus.CANCELLED:
        return DonationStatus.CANCELLED
    if paid >= total:
        return DonationStatus.COMPLETED
    if paid > 0:
        return DonationStatus.PARTIAL
    return DonationStatus.PLEDGED


class Donation(SequentialCodeModel):
    code_prefix = DONATION_PREFIX

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    donor = models.ForeignKey("donors.Donor", on_delete=models.PROTECT, related_name="donations")
    donation_type = models.CharField(max_length=20, choices=DonationType.choices)
    sub_category = models.CharField(max_length=100, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR", editable=False)
    payment_mode = models.CharField(max_length=12, choices=PaymentMode.choices, default=PaymentMode.FULL)
    number_of_installments = models.PositiveSmallIntegerField(null=True, blank=True)
    status = models.CharField(max_length=12, choices=DonationStatus.choices, default=DonationStatus.PLEDGED)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    pending_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    nisab_verified = models.BooleanField(default=False)
    nisab_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    hijri_year = models.PositiveSmallIntegerField(null=True, blank=True)
    payment_method = models.CharField(max_length=12, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    upi_id = models.CharField(max_length=100, blank=True)
    bank_transfer_type = models.CharField(max_length=8, choices=BankTransferType.choices, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    cheque_number = models.CharField(max_length=32, blank=True)
    allocation_category = models.CharField(
        max_length=12, choices=AllocationCategory.choices, default=AllocationCategory.GENERAL
    )
    purpose = models.CharField(max_length=500, blank=True)
    is_recurring = models.BooleanField(default=False)
    recurring_frequency = models.CharField(max_length=8, choices=RecurringFrequency.choices, blank=True)
    next_recurrence_date = models.DateField(null=True, blank=True)
    tax_receipt_required = models.BooleanField(default=False)
    tax_80g_eligible = models.BooleanField(default=False)
    tax_80g_number = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="donations_created"
    )
    last_payment_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["donor", "status"], name="donation_donor_status_idx"),
            models.Index(fields=["status", "created_at"], name="donation_status_created_idx"),
            models.Index(fields=["donation_type", "created_at"], name="donation_type_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(total_amount__gt=0), name="donation_total_gt_zero"),
            models.CheckConstraint(check=models.Q(amount_paid__gte=0), name="donation_amount_paid_gte_zero"),
            models.CheckConstraint(check=models.Q(pending_amount__gte=0), name="donation_pending_gte_zero"),
        ]

    def save(self, *args, **kwargs):
        self.pending_amount = (self.total_amount - self.amount_paid).quantize(Decimal("0.01"))
        self.status = derive_status(self.total_amount, self.amount_paid, self.status)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = {*update_fields, "pending_amount", "status"}
        super().save(*args, **kwargs)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def __str__(self):
        return f"{self.code} {self.donation_type} {self.total_amount}"


class DonationPayment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, related_name="payments")
    installment = models.ForeignKey(
        "installments.Installment", null=True, blank=True, on_delete=models.PROTECT, related_name="payments"
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=12, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    transaction_ref = models.CharField(max_length=100, blank=True)
    paid_at = models.DateTimeField()
    recorded_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="donation_payments"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["paid_at", "created_at"]
        constraints = [
            models.CheckConstraint(check=models.Q(amount__gt=0), name="donation_payment_amount_gt_zero"),
        ]

    def __str__(self):
        return f"{self.donation_id} {self.amount}"
