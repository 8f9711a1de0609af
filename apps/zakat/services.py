import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework.exceptions import ValidationError

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import record_audit
from apps.zakat.models import TransactionType, VerificationStatus, ZakatPaymentMethod, ZakatTransaction

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZAKAT_RATE = Decimal("0.025")
NISAB_GOLD_GRAMS = Decimal("85")
NISAB_SILVER_GRAMS = Decimal("595")

ASSET_FIELDS = (
    "cash",
    "gold",
    "silver",
    "investments",
    "business_assets",
    "receivables",
    "cryptocurrency",
    "other",
    "managed_zakat",
)
DEDUCTION_FIELDS = ("personal_debts", "business_debts", "immediate_expenses")

EDITABLE_FIELDS = (
    "type",
    "donor_type",
    "donor_name",
    "recipient_name",
    "recipient_type",
    "amount",
    "payment_date",
    "payment_method",
    "payment_reference",
    "upi_id",
    "cheque_number",
    "bank_name",
    "proof_url",
    "status",
    "notes",
)


def transaction_errors(values):
    errors = {}
    if values.get("amount") is None or Decimal(values["amount"]) <= 0:
        errors["amount"] = ["Amount must be greater than 0."]
    if values.get("type") == TransactionType.DEBIT:
        if not str(values.get("recipient_name") or "").strip():
            errors["recipient_name"] = ["Recipient name is required for distributions."]
    elif not str(values.get("donor_name") or "").strip():
        errors["donor_name"] = ["Donor name is required for collections."]
    if not str(values.get("payment_reference") or "").strip():
        errors["payment_reference"] = ["Payment reference is required."]
    method = values.get("payment_method")
    if method == ZakatPaymentMethod.UPI_TRANSFER and not str(values.get("upi_id") or "").strip():
        errors["upi_id"] = ["UPI ID is required for UPI transfers."]
    if method == ZakatPaymentMethod.CHEQUE and not str(values.get("cheque_number") or "").strip():
        errors["cheque_number"] = ["Cheque number is required for cheque payments."]
    if method == ZakatPaymentMethod.BANK_TRANSFER and not str(values.get("bank_name") or "").strip():
        errors["bank_name"] = ["Bank name is required for bank transfers."]
    return errors


def record_transaction(*, actor, request=None, **fields):
    errors = transaction_errors(fields)
    if errors:
        raise ValidationError(errors)
    with transaction.atomic():
        entry = ZakatTransaction.objects.create(
            recorded_by=actor if getattr(actor, "is_authenticated", False) else None, **fields
        )
        record_audit(
            actor=actor,
            action=AuditAction.ZAKAT_TRANSACTION_RECORDED,
            entity_type=AuditEntityType.ZAKAT_TRANSACTION,
            entity_id=entry.pk,
            payload={"type": entry.type, "amount": entry.amount, "payment_method": entry.payment_method},
            request=request,
        )
    logger.info("Zakat %s of %s recorded", entry.get_type_display().lower(), entry.amount)
    return entry


def update_transaction(entry, *, actor, request=None, **changes):
    changed = [name for name, value in changes.items() if getattr(entry, name) != value]
    if not changed:
        return entry
    merged = {field: getattr(entry, field) for field in EDITABLE_FIELDS}
    merged.update(changes)
    errors = transaction_errors(merged)
    if errors:
        raise ValidationError(errors)
    with transaction.atomic():
        before = {name: getattr(entry, name) for name in changed}
        for name in changed:
            setattr(entry, name, changes[name])
        entry.save(update_fields=[*changed, "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.ZAKAT_TRANSACTION_UPDATED,
            entity_type=AuditEntityType.ZAKAT_TRANSACTION,
            entity_id=entry.pk,
            payload={"before": before, "after": {name: getattr(entry, name) for name in changed}},
            request=request,
        )
    return entry


def _amount_sum(**filters):
    return Coalesce(
        Sum("amount", filter=Q(**filters)),
        Value(Decimal("0.00")),
        output_field=DecimalField(max_digits=16, decimal_places=2),
    )


def ledger_summary(date_from=None, date_to=None):
    """Collected, spent and balance over non-rejected transactions."""
    entries = ZakatTransaction.objects.exclude(status=VerificationStatus.REJECTED)
    if date_from:
        entries = entries.filter(payment_date__gte=date_from)
    if date_to:
        entries = entries.filter(payment_date__lte=date_to)
    totals = entries.aggregate(
        total_collected=_amount_sum(type=TransactionType.CREDIT),
        total_spent=_amount_sum(type=TransactionType.DEBIT),
        transactions_count=Count("id"),
    )
    totals["current_balance"] = totals["total_collected"] - totals["total_spent"]
    totals["by_payment_method"] = list(
        entries.values("payment_method")
        .annotate(
            collected=_amount_sum(type=TransactionType.CREDIT),
            spent=_amount_sum(type=TransactionType.DEBIT),
            transactions=Count("id"),
        )
        .order_by("payment_method")
    )
    return totals


def donor_history(donor_name):
    history = ZakatTransaction.objects.filter(type=TransactionType.CREDIT, donor_name__iexact=str(donor_name).strip())
    total = history.aggregate(
        total=Coalesce(Sum("amount"), Value(Decimal("0.00")), output_field=DecimalField(max_digits=16, decimal_places=2))
    )["total"]
    return history.order_by("-payment_date", "-created_at"), total


def nisab_value(standard="gold"):
    if standard == "silver":
        return (NISAB_SILVER_GRAMS * settings.ZAKAT_SILVER_PRICE_PER_GRAM).quantize(CENT)
    return (NISAB_GOLD_GRAMS * settings.ZAKAT_GOLD_PRICE_PER_GRAM).quantize(CENT)


def calculate_zakat(assets, deductions, standard="gold"):
    breakdown = {field: Decimal(assets.get(field) or 0) for field in ASSET_FIELDS}
    deducted = {field: Decimal(deductions.get(field) or 0) for field in DEDUCTION_FIELDS}
    total_assets = sum(breakdown.values(), Decimal("0.00"))
    total_deductions = sum(deducted.values(), Decimal("0.00"))
    total_wealth = (total_assets - total_deductions).quantize(CENT)
    nisab = nisab_value(standard)
    is_eligible = total_wealth >= nisab
    zakat_due = (total_wealth * ZAKAT_RATE).quantize(CENT, rounding=ROUND_HALF_UP) if is_eligible else Decimal("0.00")
    return {
        "total_assets": total_assets.quantize(CENT),
        "total_deductions": total_deductions.quantize(CENT),
        "total_wealth": total_wealth,
        "nisab_standard": standard,
        "nisab_value": nisab,
        "is_eligible": is_eligible,
        "zakat_due": zakat_due,
        "breakdown": breakdown,
        "deductions": deducted,
    }
