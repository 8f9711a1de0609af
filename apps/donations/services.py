import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import record_audit
from apps.common.exceptions import RecordNotFound, StateConflict
from apps.donations.models import (
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
    Donation,
    DonationPayment,
    DonationStatus,
    PaymentMethod,
    PaymentMode,
)
from apps.donors.models import Donor, DonorStatus
from apps.donors.services import record_donation_completion
from apps.installments.models import Installment, InstallmentStatus

logger = logging.getLogger(__name__)

CREATE_FIELDS = (
    "donation_type",
    "sub_category",
    "total_amount",
    "payment_mode",
    "number_of_installments",
    "nisab_verified",
    "nisab_amount",
    "hijri_year",
    "payment_method",
    "upi_id",
    "bank_transfer_type",
    "bank_name",
    "cheque_number",
    "allocation_category",
    "purpose",
    "is_recurring",
    "recurring_frequency",
    "next_recurrence_date",
    "tax_receipt_required",
    "tax_80g_eligible",
    "tax_80g_number",
    "notes",
    "admin_notes",
)

# Amount, mode and donor are fixed once the pledge exists.
DESCRIPTIVE_FIELDS = tuple(
    name for name in CREATE_FIELDS if name not in {"total_amount", "payment_mode", "number_of_installments"}
)
TERMINAL_EDITABLE_FIELDS = ("admin_notes",)


def payment_detail_errors(values):
    errors = {}
    method = values.get("payment_method") or PaymentMethod.CASH
    if method == PaymentMethod.UPI and not str(values.get("upi_id") or "").strip():
        errors["upi_id"] = ["UPI ID is required for UPI payments."]
    if method == PaymentMethod.BANK:
        if not values.get("bank_transfer_type"):
            errors["bank_transfer_type"] = ["Bank transfer type is required for bank payments."]
        if not str(values.get("bank_name") or "").strip():
            errors["bank_name"] = ["Bank name is required for bank payments."]
    if method == PaymentMethod.CHEQUE and not str(values.get("cheque_number") or "").strip():
        errors["cheque_number"] = ["Cheque number is required for cheque payments."]
    if values.get("is_recurring") and not values.get("recurring_frequency"):
        errors["recurring_frequency"] = ["Recurring donations need a frequency."]
    return errors


def _normalize_recurrence(values):
    if "is_recurring" in values and not values["is_recurring"]:
        values["recurring_frequency"] = ""
        values["next_recurrence_date"] = None
    return values


def _snapshot(donation, fields):
    return {field: getattr(donation, field) for field in fields}


def lock_donation(donation_id):
    try:
        return Donation.objects.select_for_update().get(pk=donation_id)
    except Donation.DoesNotExist:
        raise RecordNotFound(f"Donation {donation_id} not found.")


def create_donation(*, donor, actor, request=None, schedule=None, **fields):
    """
    Create a pledge for an active donor. Installment donations get their schedule
    in the same transaction; ``schedule`` carries the generation options
    (frequency, start_date, amounts, due_dates).
    """
    unknown = set(fields) - set(CREATE_FIELDS)
    if unknown:
        raise ValidationError({name: ["This field cannot be set."] for name in sorted(unknown)})

    errors = {}
    total = fields.get("total_amount")
    if total is None or Decimal(total) <= 0:
        errors["total_amount"] = ["Total amount must be greater than 0."]
    mode = fields.get("payment_mode") or PaymentMode.FULL
    count = fields.get("number_of_installments")
    if mode == PaymentMode.INSTALLMENT:
        if count is None or not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
            errors["number_of_installments"] = [
                f"Installment donations need between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS} installments."
            ]
    elif count is not None:
        errors["number_of_installments"] = ["Only installment donations have installments."]
    if schedule and mode != PaymentMode.INSTALLMENT:
        errors["schedule"] = ["Only installment donations have a schedule."]
    errors.update(payment_detail_errors(fields))
    if errors:
        raise ValidationError(errors)
    _normalize_recurrence(fields)

    with transaction.atomic():
        try:
            donor = Donor.objects.select_for_update().get(pk=donor.pk)
        except Donor.DoesNotExist:
            raise RecordNotFound("Donor not found.")
        if donor.status != DonorStatus.ACTIVE:
            raise StateConflict(f"Donor {donor.code} is {donor.get_status_display().lower()}; donations need an active donor.")

        donation = Donation.objects.create(
            donor=donor,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
            **fields,
        )
        record_audit(
            actor=actor,
            action=AuditAction.DONATION_CREATED,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload={
                "donor": donor.code,
                "total_amount": donation.total_amount,
                "payment_mode": donation.payment_mode,
            },
            request=request,
        )
        if donation.payment_mode == PaymentMode.INSTALLMENT:
            from apps.installments.services import generate_schedule

            generate_schedule(donation, actor=actor, request=request, **(schedule or {}))

    logger.info("Donation %s created for donor %s", donation.code, donor.code)
    return donation


def close_open_installments(donation, *, reason, actor, request=None):
    """Cancel the PENDING and OVERDUE installments of a donation, one audit entry each."""
    open_installments = Installment.objects.filter(
        donation=donation,
        status__in=[InstallmentStatus.PENDING, InstallmentStatus.OVERDUE],
    )
    codes = list(open_installments.values_list("code", flat=True))
    now = timezone.now()
    open_installments.update(
        status=InstallmentStatus.CANCELLED, cancelled_at=now, cancellation_reason=reason, updated_at=now
    )
    for code in codes:
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_CANCELLED,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=code,
            payload={"donation": donation.code, "reason": reason},
            request=request,
        )
    return codes


def apply_payment(donation, *, amount, actor, method=None, transaction_ref="", installment=None, paid_at=None, request=None):
    """Post a payment against a donation row already locked by the caller."""
    if donation.status == DonationStatus.CANCELLED:
        raise StateConflict(f"Donation {donation.code} is cancelled.")
    if donation.status == DonationStatus.COMPLETED:
        raise StateConflict(f"Donation {donation.code} is already completed.")
    if amount > donation.pending_amount:
        raise StateConflict(f"Payment {amount} exceeds the pending amount {donation.pending_amount}.")

    paid_at = paid_at or timezone.now()
    payment = DonationPayment.objects.create(
        donation=donation,
        installment=installment,
        amount=amount,
        method=method or donation.payment_method,
        transaction_ref=transaction_ref,
        paid_at=paid_at,
        recorded_by=actor if getattr(actor, "is_authenticated", False) else None,
    )
    donation.amount_paid = donation.payments.aggregate(
        total=Coalesce(Sum("amount"), Decimal("0.00"), output_field=DecimalField(max_digits=12, decimal_places=2))
    )["total"]
    donation.last_payment_at = paid_at
    update_fields = ["amount_paid", "last_payment_at", "updated_at"]
    if donation.amount_paid >= donation.total_amount:
        donation.completed_at = paid_at
        update_fields.append("completed_at")
    donation.save(update_fields=update_fields)

    payload = {
        "amount": amount,
        "amount_paid": donation.amount_paid,
        "pending_amount": donation.pending_amount,
        "installment": installment.code if installment else None,
    }
    if donation.status == DonationStatus.COMPLETED:
        record_donation_completion(donation.donor_id, donation.total_amount, paid_at)
        payload["installments_settled"] = close_open_installments(
            donation,
            reason=f"Settled: donation {donation.code} is fully paid.",
            actor=actor,
            request=request,
        )
        record_audit(
            actor=actor,
            action=AuditAction.DONATION_COMPLETED,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload=payload,
            request=request,
        )
        logger.info("Donation %s completed", donation.code)
    else:
        record_audit(
            actor=actor,
            action=AuditAction.DONATION_PAYMENT,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload=payload,
            request=request,
        )
    return payment


def record_payment(donation_id, *, amount, actor, method=None, transaction_ref="", installment=None, paid_at=None, request=None):
    amount = Decimal(amount).quantize(Decimal("0.01"))
    if amount <= 0:
        raise ValidationError({"amount": ["Payment amount must be greater than 0."]})
    with transaction.atomic():
        donation = lock_donation(donation_id)
        apply_payment(
            donation,
            amount=amount,
            method=method,
            actor=actor,
            transaction_ref=transaction_ref,
            installment=installment,
            paid_at=paid_at,
            request=request,
        )
    return donation


def cancel_donation(donation_id, *, reason, actor, request=None):
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError({"reason": ["A cancellation reason is required."]})
    with transaction.atomic():
        donation = lock_donation(donation_id)
        if donation.status not in {DonationStatus.PLEDGED, DonationStatus.PARTIAL}:
            raise StateConflict(f"Donation {donation.code} is {donation.get_status_display().lower()} and cannot be cancelled.")

        donation.status = DonationStatus.CANCELLED
        donation.cancelled_at = timezone.now()
        donation.cancellation_reason = reason
        donation.save(update_fields=["cancelled_at", "cancellation_reason", "updated_at"])

        cancelled_installments = len(close_open_installments(donation, reason=reason, actor=actor, request=request))
        record_audit(
            actor=actor,
            action=AuditAction.DONATION_CANCELLED,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload={"reason": reason, "installments_cancelled": cancelled_installments},
            request=request,
        )
    logger.info("Donation %s cancelled (%s installments)", donation.code, cancelled_installments)
    return donation


def update_donation(donation_id, *, actor, request=None, **changes):
    with transaction.atomic():
        donation = lock_donation(donation_id)
        allowed = TERMINAL_EDITABLE_FIELDS if donation.is_terminal else DESCRIPTIVE_FIELDS
        blocked = set(changes) - set(allowed)
        if blocked and donation.is_terminal:
            raise StateConflict(f"Donation {donation.code} is {donation.get_status_display().lower()}; only admin notes can change.")
        if blocked:
            raise ValidationError({name: ["This field cannot be changed."] for name in sorted(blocked)})

        _normalize_recurrence(changes)
        errors = payment_detail_errors({**_snapshot(donation, DESCRIPTIVE_FIELDS), **changes})
        if errors:
            raise ValidationError(errors)

        changed = [name for name, value in changes.items() if getattr(donation, name) != value]
        if not changed:
            return donation
        before = _snapshot(donation, changed)
        for name in changed:
            setattr(donation, name, changes[name])
        donation.save(update_fields=[*changed, "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.DONATION_UPDATED,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload={"before": before, "after": _snapshot(donation, changed)},
            request=request,
        )
    return donation
