import logging
from datetime import timedelta
from decimal import ROUND_DOWN, Decimal

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import transaction
from django.db.models import DecimalField, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import record_audit
from apps.common.exceptions import RecordNotFound, StateConflict
from apps.donations.models import MAX_INSTALLMENTS, MIN_INSTALLMENTS, DonationStatus, PaymentMode
from apps.donations.services import apply_payment, lock_donation
from apps.installments.models import (
    CLOSED_STATUSES,
    OPEN_STATUSES,
    Installment,
    InstallmentFrequency,
    InstallmentStatus,
    recompute_overdue_status,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
NOTE_FIELDS = ("notes", "admin_notes")
SCHEDULE_FIELDS = ("amount", "due_date", "grace_period_days")


def split_amount(total, count):
    """Equal shares rounded down to the cent; the last share absorbs the remainder."""
    if count < 1:
        raise ValueError("count must be at least 1")
    total = Decimal(total).quantize(CENT)
    share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    return [share] * (count - 1) + [total - share * (count - 1)]


def build_due_dates(start_date, count, frequency, due_dates=None):
    if frequency == InstallmentFrequency.CUSTOM:
        if not due_dates or len(due_dates) != count:
            raise ValidationError({"due_dates": [f"Custom schedules need exactly {count} due dates."]})
        if any(later <= earlier for earlier, later in zip(due_dates, due_dates[1:])):
            raise ValidationError({"due_dates": ["Due dates must be in ascending order."]})
        return list(due_dates)
    if frequency == InstallmentFrequency.WEEKLY:
        return [start_date + timedelta(weeks=step) for step in range(count)]
    return [start_date + relativedelta(months=step) for step in range(count)]


def assert_schedule_balanced(donation):
    # Completion and cancellation close the remaining schedule.
    if donation.is_terminal:
        return
    scheduled = donation.installments.exclude(status=InstallmentStatus.CANCELLED).aggregate(
        total=Coalesce(Sum("amount"), Decimal("0.00"), output_field=DecimalField(max_digits=12, decimal_places=2))
    )["total"]
    if scheduled != donation.total_amount:
        raise StateConflict(
            f"Installments of {donation.code} add up to {scheduled}, expected {donation.total_amount}."
        )


def _lock_installment(installment_id):
    """Lock the parent donation first, then the installment."""
    donation_id = Installment.objects.filter(pk=installment_id).values_list("donation_id", flat=True).first()
    if donation_id is None:
        raise RecordNotFound(f"Installment {installment_id} not found.")
    donation = lock_donation(donation_id)
    installment = Installment.objects.select_for_update().select_related("donor").get(pk=installment_id)
    return donation, installment


def _ensure_open_donation(donation, installment):
    if donation.is_terminal:
        raise StateConflict(
            f"Donation {donation.code} is {donation.get_status_display().lower()}; "
            f"installment {installment.code} is closed."
        )


def _snapshot(installment, fields):
    return {field: getattr(installment, field) for field in fields}


def generate_schedule(
    donation,
    *,
    actor,
    frequency=InstallmentFrequency.MONTHLY,
    start_date=None,
    amounts=None,
    due_dates=None,
    count=None,
    request=None,
):
    """
    (Re)build the installment schedule of a pledged installment donation.

    Any existing schedule is replaced, which is only allowed while nothing has
    been paid. ``amounts`` overrides the equal split and must add up to the
    donation total.
    """
    with transaction.atomic():
        donation = lock_donation(donation.pk)
        if donation.payment_mode != PaymentMode.INSTALLMENT:
            raise ValidationError({"donation": ["Donation payment mode must be installment."]})
        if donation.status != DonationStatus.PLEDGED:
            raise StateConflict(f"Donation {donation.code} is {donation.get_status_display().lower()}; schedules need a pledged donation.")
        if donation.installments.filter(status=InstallmentStatus.PAID).exists():
            raise StateConflict(f"Donation {donation.code} already has paid installments.")

        if count is not None and count != donation.number_of_installments:
            if not MIN_INSTALLMENTS <= count <= MAX_INSTALLMENTS:
                raise ValidationError(
                    {"total_installments": [f"Choose between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS} installments."]}
                )
            donation.number_of_installments = count
            donation.save(update_fields=["number_of_installments", "updated_at"])
        count = donation.number_of_installments

        start_date = start_date or timezone.localdate()
        dates = build_due_dates(start_date, count, frequency, due_dates)
        if amounts:
            amounts = [Decimal(amount).quantize(CENT) for amount in amounts]
            if len(amounts) != count:
                raise ValidationError({"amounts": [f"Provide exactly {count} amounts."]})
            if any(amount <= 0 for amount in amounts):
                raise ValidationError({"amounts": ["Every installment amount must be greater than 0."]})
            if sum(amounts, Decimal("0.00")) != donation.total_amount:
                raise ValidationError({"amounts": [f"Amounts must add up to {donation.total_amount}."]})
        else:
            amounts = split_amount(donation.total_amount, count)

        replaced = donation.installments.count()
        donation.installments.all().delete()
        grace_days = settings.INSTALLMENT_GRACE_PERIOD_DAYS
        installments = [
            Installment.objects.create(
                donation=donation,
                donor_id=donation.donor_id,
                installment_number=number,
                total_installments=count,
                amount=amount,
                due_date=due_date,
                frequency=frequency,
                grace_period_days=grace_days,
            )
            for number, (amount, due_date) in enumerate(zip(amounts, dates), start=1)
        ]
        assert_schedule_balanced(donation)
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_CREATED,
            entity_type=AuditEntityType.DONATION,
            entity_id=donation.code,
            payload={
                "frequency": frequency,
                "installments": [installment.code for installment in installments],
                "replaced": replaced,
            },
            request=request,
        )
    logger.info("Generated %s installments for donation %s", len(installments), donation.code)
    return installments


def mark_paid(
    installment_id,
    *,
    actor,
    payment_date=None,
    transaction_id="",
    transaction_ref="",
    receipt_id="",
    payment_method="",
    notes="",
    request=None,
):
    with transaction.atomic():
        donation, installment = _lock_installment(installment_id)
        if installment.status in CLOSED_STATUSES:
            raise StateConflict(f"Installment {installment.code} is already {installment.get_status_display().lower()}.")
        _ensure_open_donation(donation, installment)

        errors = {}
        if transaction_id and Installment.objects.filter(transaction_id=transaction_id).exclude(pk=installment.pk).exists():
            errors["transaction_id"] = ["This transaction ID is already used."]
        if receipt_id and Installment.objects.filter(receipt_id=receipt_id).exclude(pk=installment.pk).exists():
            errors["receipt_id"] = ["This receipt ID is already used."]
        if errors:
            raise ValidationError(errors)

        previous_status = installment.status
        scheduled_amount = installment.amount
        # Direct payments may already cover part of this installment.
        installment.amount = min(installment.amount, donation.pending_amount)
        installment.status = InstallmentStatus.PAID
        installment.paid_date = payment_date or timezone.localdate()
        installment.transaction_id = transaction_id
        installment.transaction_ref = transaction_ref
        installment.receipt_id = receipt_id
        installment.payment_method = payment_method or donation.payment_method
        installment.paid_by = actor if getattr(actor, "is_authenticated", False) else None
        update_fields = [
            "status",
            "paid_date",
            "transaction_id",
            "transaction_ref",
            "receipt_id",
            "payment_method",
            "paid_by",
            "updated_at",
        ]
        if installment.amount != scheduled_amount:
            update_fields.append("amount")
        if notes:
            installment.notes = notes
            update_fields.append("notes")
        installment.save(update_fields=update_fields)

        apply_payment(
            donation,
            amount=installment.amount,
            method=installment.payment_method,
            actor=actor,
            transaction_ref=transaction_ref or transaction_id,
            installment=installment,
            request=request,
        )
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_MARKED_PAID,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=installment.code,
            payload={
                "donation": donation.code,
                "amount": installment.amount,
                "scheduled_amount": scheduled_amount,
                "previous_status": previous_status,
                "transaction_id": transaction_id,
            },
            request=request,
        )
    logger.info("Installment %s marked paid", installment.code)
    return installment


def sweep_overdue_installments(today=None):
    """Persist PENDING -> OVERDUE for installments past their grace window."""
    today = today or timezone.localdate()
    candidate_ids = list(
        Installment.objects.of_open_donations()
        .filter(status=InstallmentStatus.PENDING, grace_end_date__lt=today)
        .values_list("pk", flat=True)
    )
    marked = 0
    for installment_id in candidate_ids:
        with transaction.atomic():
            installment = Installment.objects.select_for_update().select_related("donation").get(pk=installment_id)
            if installment.donation.is_terminal:
                continue
            if recompute_overdue_status(installment, today) != InstallmentStatus.OVERDUE:
                continue
            installment.status = InstallmentStatus.OVERDUE
            installment.save(update_fields=["status", "updated_at"])
            record_audit(
                actor=None,
                action=AuditAction.INSTALLMENT_OVERDUE,
                entity_type=AuditEntityType.INSTALLMENT,
                entity_id=installment.code,
                payload={
                    "donation": installment.donation.code,
                    "due_date": installment.due_date,
                    "grace_end_date": installment.grace_end_date,
                },
            )
            marked += 1
    if marked:
        logger.info("Marked %s installments overdue", marked)
    return marked


def default_installment(installment_id, *, reason, actor, today=None, request=None):
    today = today or timezone.localdate()
    with transaction.atomic():
        donation, installment = _lock_installment(installment_id)
        _ensure_open_donation(donation, installment)
        if recompute_overdue_status(installment, today) != InstallmentStatus.OVERDUE:
            raise StateConflict(f"Only overdue installments can be defaulted; {installment.code} is not overdue.")
        installment.status = InstallmentStatus.DEFAULTED
        installment.defaulted_at = timezone.now()
        installment.default_reason = str(reason or "").strip()
        installment.save(update_fields=["status", "defaulted_at", "default_reason", "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_DEFAULTED,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=installment.code,
            payload={"donation": donation.code, "reason": installment.default_reason},
            request=request,
        )
    logger.warning("Installment %s defaulted", installment.code)
    return installment


def cancel_installment(installment_id, *, reason, actor, request=None):
    """
    Cancel one open installment. Its amount moves onto the last other open
    installment of the donation, so the schedule still adds up to the total.
    """
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError({"reason": ["A cancellation reason is required."]})
    with transaction.atomic():
        donation, installment = _lock_installment(installment_id)
        if installment.status in CLOSED_STATUSES:
            raise StateConflict(f"Installment {installment.code} is already {installment.get_status_display().lower()}.")
        _ensure_open_donation(donation, installment)

        balancing = (
            Installment.objects.select_for_update()
            .filter(donation=donation, status__in=OPEN_STATUSES)
            .exclude(pk=installment.pk)
            .order_by("-installment_number")
            .first()
        )
        if balancing is None:
            raise StateConflict(f"No other open installment of {donation.code} can take over {installment.amount}.")
        balancing.amount += installment.amount
        balancing.save(update_fields=["amount", "updated_at"])

        installment.status = InstallmentStatus.CANCELLED
        installment.cancelled_at = timezone.now()
        installment.cancellation_reason = reason
        installment.save(update_fields=["status", "cancelled_at", "cancellation_reason", "updated_at"])
        assert_schedule_balanced(donation)
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_CANCELLED,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=installment.code,
            payload={
                "donation": donation.code,
                "reason": reason,
                "amount": installment.amount,
                "moved_to": {"installment": balancing.code, "amount": balancing.amount},
            },
            request=request,
        )
    logger.info("Installment %s cancelled, amount moved to %s", installment.code, balancing.code)
    return installment


def update_installment(installment_id, *, actor, today=None, request=None, **changes):
    """
    Edit an installment. Amount changes on an open installment are offset on the
    last other open installment of the donation so the schedule stays balanced.
    """
    unknown = set(changes) - set(SCHEDULE_FIELDS) - set(NOTE_FIELDS)
    if unknown:
        raise ValidationError({name: ["This field cannot be changed."] for name in sorted(unknown)})
    today = today or timezone.localdate()

    with transaction.atomic():
        donation, installment = _lock_installment(installment_id)
        changed = [name for name, value in changes.items() if getattr(installment, name) != value]
        if not changed:
            return installment
        if installment.status in CLOSED_STATUSES and set(changed) - set(NOTE_FIELDS):
            raise StateConflict(f"Installment {installment.code} is {installment.get_status_display().lower()}; only notes can change.")

        before = _snapshot(installment, changed)
        payload = {}
        if "amount" in changed:
            new_amount = Decimal(changes["amount"]).quantize(CENT)
            if new_amount <= 0:
                raise ValidationError({"amount": ["Amount must be greater than 0."]})
            delta = new_amount - installment.amount
            balancing = (
                Installment.objects.select_for_update()
                .filter(donation=donation, status__in=OPEN_STATUSES)
                .exclude(pk=installment.pk)
                .order_by("-installment_number")
                .first()
            )
            if balancing is None:
                raise StateConflict(f"No other open installment of {donation.code} can absorb the difference.")
            if balancing.amount - delta <= 0:
                raise StateConflict(f"Installment {balancing.code} cannot absorb a change of {delta}.")
            balancing.amount -= delta
            balancing.save(update_fields=["amount", "updated_at"])
            payload["balanced_against"] = {"installment": balancing.code, "amount": balancing.amount}
            changes["amount"] = new_amount

        for name in changed:
            setattr(installment, name, changes[name])
        update_fields = [*changed, "updated_at"]
        if installment.status == InstallmentStatus.OVERDUE and {"due_date", "grace_period_days"} & set(changed):
            installment.status = InstallmentStatus.PENDING
            installment.status = recompute_overdue_status(installment, today)
            update_fields.append("status")
        installment.save(update_fields=update_fields)
        assert_schedule_balanced(donation)

        payload.update({"before": before, "after": _snapshot(installment, changed)})
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_UPDATED,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=installment.code,
            payload=payload,
            request=request,
        )
    return installment


def record_reminder(installment_id, *, actor, follow_up=False, request=None):
    with transaction.atomic():
        donation, installment = _lock_installment(installment_id)
        if installment.status in CLOSED_STATUSES:
            raise StateConflict(f"Installment {installment.code} is {installment.get_status_display().lower()}; no reminders.")
        _ensure_open_donation(donation, installment)
        now = timezone.now()
        if follow_up:
            installment.follow_up_attempts += 1
            installment.last_follow_up_at = now
            update_fields = ["follow_up_attempts", "last_follow_up_at", "updated_at"]
        else:
            installment.reminder_count += 1
            installment.last_reminder_at = now
            update_fields = ["reminder_count", "last_reminder_at", "updated_at"]
        installment.save(update_fields=update_fields)
        record_audit(
            actor=actor,
            action=AuditAction.INSTALLMENT_REMINDER,
            entity_type=AuditEntityType.INSTALLMENT,
            entity_id=installment.code,
            payload={
                "follow_up": follow_up,
                "reminder_count": installment.reminder_count,
                "follow_up_attempts": installment.follow_up_attempts,
            },
            request=request,
        )
    return installment
