import uuid

from django.db import models


class TransactionType(models.TextChoices):
    CREDIT = "CREDIT", "Collection"
    DEBIT = "DEBIT", "Distribution"


class ZakatDonorType(models.TextChoices):
    INDIVIDUAL = "INDIVIDUAL", "Individual"
    ORGANIZATION = "ORGANIZATION", "Organization"
    CHARITY = "CHARITY", "Charity"
    OTHER = "OTHER", "Other"


class RecipientType(models.TextChoices):
    INDIVIDUAL = "INDIVIDUAL", "Individual"
    FAMILY = "FAMILY", "Family"
    MOSQUE = "MOSQUE", "Mosque"
    MADRASA = "MADRASA", "Madrasa"
    NGO = "NGO", "NGO"
    OTHER = "OTHER", "Other"


class ZakatPaymentMethod(models.TextChoices):
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    CREDIT_CARD = "CREDIT_CARD", "Credit card"
    CASH = "CASH", "Cash"
    UPI_TRANSFER = "UPI_TRANSFER", "UPI transfer"
    QR_SCANNER = "QR_SCANNER", "QR scanner"
    CHEQUE = "CHEQUE", "Cheque"
    OTHER = "OTHER", "Other"


class VerificationStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    VERIFIED = "VERIFIED", "Verified"
    REJECTED = "REJECTED", "Rejected"


class ZakatTransaction(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=8, choices=TransactionType.choices, default=TransactionType.CREDIT)
    donor_type = models.CharField(max_length=16, choices=ZakatDonorType.choices, blank=True)
    donor_name = models.CharField(max_length=255, blank=True)
    recipient_name = models.CharField(max_length=255, blank=True)
    recipient_type = models.CharField(max_length=16, choices=RecipientType.choices, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR", editable=False)
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=16, choices=ZakatPaymentMethod.choices)
    payment_reference = models.CharField(max_length=100)
    upi_id = models.CharField(max_length=100, blank=True)
    cheque_number = models.CharField(max_length=32, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    proof_url = models.URLField(max_length=500, blank=True)
    status = models.CharField(max_length=10, choices=VerificationStatus.choices, default=VerificationStatus.VERIFIED)
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="zakat_transactions"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        indexes = [
            models.Index(fields=["type", "payment_date"], name="zakat_type_date_idx"),
            models.Index(fields=["donor_name"], name="zakat_donor_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(check=models.Q(amount__gt=0), name="zakat_amount_gt_zero"),
        ]

    def __str__(self):
        party = self.donor_name if self.type == TransactionType.CREDIT else self.recipient_name
        return f"{self.get_type_display()} {self.amount} {party}"
