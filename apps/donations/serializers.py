from rest_framework import serializers

from apps.donations.models import (
    AllocationCategory,
    BankTransferType,
    Donation,
    DonationPayment,
    DonationType,
    PaymentMethod,
    PaymentMode,
    RecurringFrequency,
)
from apps.installments.models import InstallmentFrequency


class DonationPaymentSerializer(serializers.ModelSerializer):
    installment_code = serializers.CharField(source="installment.code", read_only=True, default=None)
    recorded_by_username = serializers.CharField(source="recorded_by.username", read_only=True, default="")

    class Meta:
        model = DonationPayment
        fields = [
            "id",
            "amount",
            "method",
            "transaction_ref",
            "installment",
            "installment_code",
            "paid_at",
            "recorded_by_username",
            "created_at",
        ]
        read_only_fields = fields


class DonationSerializer(serializers.ModelSerializer):
    donor_code = serializers.CharField(source="donor.code", read_only=True)
    donor_name = serializers.CharField(source="donor.full_name", read_only=True)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default="")

    class Meta:
        model = Donation
        fields = [
            "id",
            "code",
            "donor",
            "donor_code",
            "donor_name",
            "donation_type",
            "sub_category",
            "total_amount",
            "currency",
            "payment_mode",
            "number_of_installments",
            "status",
            "amount_paid",
            "pending_amount",
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
            "created_by_username",
            "last_payment_at",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ScheduleOptionsSerializer(serializers.Serializer):
    frequency = serializers.ChoiceField(choices=InstallmentFrequency.choices, default=InstallmentFrequency.MONTHLY)
    start_date = serializers.DateField(required=False)
    amounts = serializers.ListField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2), required=False, allow_empty=False
    )
    due_dates = serializers.ListField(child=serializers.DateField(), required=False, allow_empty=False)


class DonationDetailsSerializer(serializers.Serializer):
    """Descriptive fields shared by create and partial update."""

    donation_type = serializers.ChoiceField(choices=DonationType.choices)
    sub_category = serializers.CharField(max_length=100, required=False, allow_blank=True)
    nisab_verified = serializers.BooleanField(required=False)
    nisab_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    hijri_year = serializers.IntegerField(min_value=1, max_value=9999, required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    upi_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    bank_transfer_type = serializers.ChoiceField(choices=BankTransferType.choices, required=False, allow_blank=True)
    bank_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    cheque_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    allocation_category = serializers.ChoiceField(choices=AllocationCategory.choices, required=False)
    purpose = serializers.CharField(max_length=500, required=False, allow_blank=True)
    is_recurring = serializers.BooleanField(required=False)
    recurring_frequency = serializers.ChoiceField(choices=RecurringFrequency.choices, required=False, allow_blank=True)
    next_recurrence_date = serializers.DateField(required=False, allow_null=True)
    tax_receipt_required = serializers.BooleanField(required=False)
    tax_80g_eligible = serializers.BooleanField(required=False)
    tax_80g_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    admin_notes = serializers.CharField(required=False, allow_blank=True)


class DonationCreateSerializer(DonationDetailsSerializer):
    donor = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, default=PaymentMode.FULL)
    number_of_installments = serializers.IntegerField(required=False, allow_null=True)
    schedule = ScheduleOptionsSerializer(required=False)


class DonationPaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    transaction_ref = serializers.CharField(max_length=100, allow_blank=True, default="")
    paid_at = serializers.DateTimeField(required=False)


class DonationCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)
