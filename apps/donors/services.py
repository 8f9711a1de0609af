import logging
import re
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Count, DecimalField, F, Max, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import record_audit
from apps.common.exceptions import StateConflict
from apps.donors.models import Donor, DonorStatus, default_communication_preferences, normalize_phone

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
PHONE_DIGITS = re.compile(r"\d{10,13}")

EDITABLE_FIELDS = (
    "full_name",
    "donor_type",
    "phone",
    "email",
    "address",
    "city",
    "state",
    "identity_proof_type",
    "identity_proof_number",
    "anticipated_contribution",
    "communication_preferences",
    "notes",
)


def _snapshot(donor, fields):
    return {field: getattr(donor, field) for field in fields}


def _validate(values, *, exclude_pk=None):
    errors = {}

    full_name = str(values.get("full_name") or "").strip()
    if not full_name:
        errors["full_name"] = ["Full name is required."]

    phone = str(values.get("phone") or "").strip()
    if not phone:
        errors["phone"] = ["Phone is required."]
    elif not PHONE_PATTERN.match(phone) or not PHONE_DIGITS.fullmatch(normalize_phone(phone)):
        errors["phone"] = ["Enter a valid phone number with 10 to 13 digits."]
    else:
        duplicates = Donor.objects.not_deleted().filter(phone_normalized=normalize_phone(phone))
        if exclude_pk:
            duplicates = duplicates.exclude(pk=exclude_pk)
        if duplicates.exists():
            errors["phone"] = ["A donor with this phone number already exists."]

    email = str(values.get("email") or "").strip().lower()
    if email:
        try:
            validate_email(email)
        except DjangoValidationError:
            errors["email"] = ["Enter a valid email address."]
        else:
            duplicates = Donor.objects.not_deleted().filter(email=email)
            if exclude_pk:
                duplicates = duplicates.exclude(pk=exclude_pk)
            if duplicates.exists():
                errors["email"] = ["A donor with this email already exists."]

    anticipated = Decimal(values.get("anticipated_contribution") or 0)
    if anticipated < 0:
        errors["anticipated_contribution"] = ["Anticipated contribution cannot be negative."]
    elif anticipated > settings.DONOR_IDENTITY_PROOF_THRESHOLD:
        if not values.get("identity_proof_type") or not str(values.get("identity_proof_number") or "").strip():
            errors["identity_proof_number"] = [
                f"Identity proof is required for contributions above {settings.DONOR_IDENTITY_PROOF_THRESHOLD}."
            ]

    if errors:
        raise ValidationError(errors)


def _ensure_not_deleted(donor):
    if donor.status == DonorStatus.DELETED:
        raise StateConflict(f"Donor {donor.code} is deleted; restore it first.")


def create_donor(*, actor, request=None, **fields):
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({name: ["This field cannot be set."] for name in sorted(unknown)})
    _validate(fields)
    fields.setdefault("communication_preferences", default_communication_preferences())

    with transaction.atomic():
        donor = Donor.objects.create(created_by=actor if getattr(actor, "is_authenticated", False) else None, **fields)
        record_audit(
            actor=actor,
            action=AuditAction.DONOR_CREATED,
            entity_type=AuditEntityType.DONOR,
            entity_id=donor.code,
            payload={"full_name": donor.full_name, "donor_type": donor.donor_type},
            request=request,
        )
    logger.info("Donor %s created", donor.code)
    return donor


def update_donor(donor, *, actor, request=None, **changes):
    _ensure_not_deleted(donor)
    locked_fields = set(changes) - set(EDITABLE_FIELDS)
    if locked_fields:
        raise ValidationError({name: ["This field cannot be changed."] for name in sorted(locked_fields)})
    changed = [name for name, value in changes.items() if getattr(donor, name) != value]
    if not changed:
        return donor

    merged = {**_snapshot(donor, EDITABLE_FIELDS), **changes}
    _validate(merged, exclude_pk=donor.pk)

    with transaction.atomic():
        before = _snapshot(donor, changed)
        for name in changed:
            setattr(donor, name, changes[name])
        donor.save(update_fields=[*changed, "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.DONOR_UPDATED,
            entity_type=AuditEntityType.DONOR,
            entity_id=donor.code,
            payload={"before": before, "after": _snapshot(donor, changed)},
            request=request,
        )
    return donor


def disable_donor(donor, *, actor, request=None):
    _ensure_not_deleted(donor)
    if donor.status == DonorStatus.DISABLED:
        raise StateConflict(f"Donor {donor.code} is already disabled.")
    with transaction.atomic():
        donor.status = DonorStatus.DISABLED
        donor.disabled_at = timezone.now()
        donor.save(update_fields=["status", "disabled_at", "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.DONOR_DISABLED,
            entity_type=AuditEntityType.DONOR,
            entity_id=donor.code,
            request=request,
        )
    return donor


def delete_donor(donor, *, actor, request=None):
    """Soft delete. Donations and installments of the donor are left untouched."""
    _ensure_not_deleted(donor)
    with transaction.atomic():
        donor.status = DonorStatus.DELETED
        donor.deleted_at = timezone.now()
        donor.save(update_fields=["status", "deleted_at", "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.DONOR_DELETED,
            entity_type=AuditEntityType.DONOR,
            entity_id=donor.code,
            request=request,
        )
    logger.info("Donor %s soft-deleted", donor.code)
    return donor


def restore_donor(donor, *, actor, request=None):
    if donor.status == DonorStatus.ACTIVE:
        raise StateConflict(f"Donor {donor.code} is already active.")
    if donor.status == DonorStatus.DELETED:
        # Another donor may have claimed the phone or email in the meantime.
        _validate(_snapshot(donor, EDITABLE_FIELDS), exclude_pk=donor.pk)
    with transaction.atomic():
        previous = donor.status
        donor.status = DonorStatus.ACTIVE
        donor.disabled_at = None
        donor.deleted_at = None
        donor.save(update_fields=["status", "disabled_at", "deleted_at", "updated_at"])
        record_audit(
            actor=actor,
            action=AuditAction.DONOR_RESTORED,
            entity_type=AuditEntityType.DONOR,
            entity_id=donor.code,
            payload={"previous_status": previous},
            request=request,
        )
    return donor


def record_donation_completion(donor_id, amount, completed_at=None):
    completed_at = completed_at or timezone.now()
    Donor.objects.filter(pk=donor_id).update(
        total_donations=F("total_donations") + 1,
        total_amount=F("total_amount") + amount,
        last_donation_at=completed_at,
        updated_at=timezone.now(),
    )


def recompute_donor_totals(donor):
    """Rebuild lifetime statistics from the donor's completed donations."""
    from apps.donations.models import DonationStatus

    totals = donor.donations.filter(status=DonationStatus.COMPLETED).aggregate(
        count=Count("id"),
        amount=Coalesce(Sum("total_amount"), Decimal("0.00"), output_field=DecimalField(max_digits=14, decimal_places=2)),
        last=Max("completed_at"),
    )
    changed = (
        donor.total_donations != totals["count"]
        or donor.total_amount != totals["amount"]
        or donor.last_donation_at != totals["last"]
    )
    if changed:
        donor.total_donations = totals["count"]
        donor.total_amount = totals["amount"]
        donor.last_donation_at = totals["last"]
        donor.save(update_fields=["total_donations", "total_amount", "last_donation_at", "updated_at"])
    return changed


def find_active_by_phone(phone):
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return Donor.objects.active().filter(phone_normalized=normalized).first()
