from decimal import Decimal

from django.db.models import Count, DecimalField, Q, Sum, Value, Window
from django.db.models.functions import Coalesce, DenseRank, TruncMonth

from apps.donations.models import Donation, DonationStatus
from apps.installments.models import Installment, InstallmentStatus

MONEY = DecimalField(max_digits=16, decimal_places=2)
ZERO = Value(Decimal("0.00"))


def money_sum(field, **filters):
    if filters:
        return Coalesce(Sum(field, filter=Q(**filters)), ZERO, output_field=MONEY)
    return Coalesce(Sum(field), ZERO, output_field=MONEY)


def apply_date_range(queryset, date_from, date_to, field="created_at__date"):
    if date_from:
        queryset = queryset.filter(**{f"{field}__gte": date_from})
    if date_to:
        queryset = queryset.filter(**{f"{field}__lte": date_to})
    return queryset


def _grouped(donations, field):
    return list(
        donations.values(field)
        .annotate(
            donations_count=Count("id"),
            total_amount=money_sum("total_amount"),
            amount_paid=money_sum("amount_paid"),
        )
        .order_by(field)
    )


def donation_summary(date_from=None, date_to=None):
    donations = apply_date_range(Donation.objects.all(), date_from, date_to)
    totals = donations.aggregate(
        donations_count=Count("id"),
        total_pledged=money_sum("total_amount", status__in=[DonationStatus.PLEDGED, DonationStatus.PARTIAL, DonationStatus.COMPLETED]),
        total_paid=money_sum("amount_paid"),
        total_pending=money_sum("pending_amount", status__in=[DonationStatus.PLEDGED, DonationStatus.PARTIAL]),
    )
    by_month = list(
        donations.annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(
            donations_count=Count("id"),
            total_amount=money_sum("total_amount"),
            amount_paid=money_sum("amount_paid"),
        )
        .order_by("month")
    )
    return {
        **totals,
        "range": {"date_from": date_from, "date_to": date_to},
        "by_status": _grouped(donations, "status"),
        "by_donation_type": _grouped(donations, "donation_type"),
        "by_allocation_category": _grouped(donations, "allocation_category"),
        "by_payment_method": _grouped(donations, "payment_method"),
        "by_hijri_year": _grouped(donations.exclude(hijri_year__isnull=True), "hijri_year"),
        "by_month": [{**row, "month": row["month"].date() if row["month"] else None} for row in by_month],
    }


def installment_summary(today, date_from=None, date_to=None):
    installments = apply_date_range(
        Installment.objects.with_effective_status(today), date_from, date_to, field="due_date"
    )
    by_status = {
        row["effective_status"]: row
        for row in installments.values("effective_status").annotate(count=Count("id"), amount=money_sum("amount"))
    }

    def bucket(status):
        row = by_status.get(status, {})
        return {"count": row.get("count", 0), "amount": row.get("amount", Decimal("0.00"))}

    statuses = {status.value.lower(): bucket(status.value) for status in InstallmentStatus}
    return {
        "total": sum(entry["count"] for entry in statuses.values()),
        "by_status": statuses,
        "total_amount": sum((entry["amount"] for entry in statuses.values()), Decimal("0.00")),
        "paid_amount": statuses["paid"]["amount"],
        "pending_amount": statuses["pending"]["amount"],
        "overdue_amount": statuses["overdue"]["amount"],
        "range": {"date_from": date_from, "date_to": date_to},
    }


def donor_ranking(limit=10, date_from=None, date_to=None):
    donations = apply_date_range(Donation.objects.exclude(status=DonationStatus.CANCELLED), date_from, date_to)
    return list(
        donations.values("donor_id", "donor__code", "donor__full_name")
        .annotate(
            total_paid=money_sum("amount_paid"),
            donations_count=Count("id"),
            rank=Window(expression=DenseRank(), order_by=Sum("amount_paid").desc()),
        )
        .order_by("-total_paid", "donor__code")[:limit]
    )
