from django.utils import timezone
from rest_framework import serializers

from apps.donations.models import PaymentMethod
from apps.installments.models import Installment, InstallmentFrequency


class InstallmentSerializer(serializers.ModelSerializer):
    donation_code = serializers.CharField(source="donation.code", read_only=True)
    donor_code = serializers.CharField(source="donor.code", read_only=True)
    donor_name = serializers.CharField(source="donor.full_name", read_only=True)
    effective_status = serializers.SerializerMethodField()

    class Meta:
        model = Installment
        fields = [
            "id",
            "code",
            "donation",
            "donation_code",
            "donor",
            "donor_code",
            "donor_name",
            "installment_number",
            "total_installments",
            "amount",
            "currency",
            "due_date",
            "frequency",
            "status",
            "effective_status",
            "paid_date",
            "payment_method",
            "transaction_id",
            "transaction_ref",
            "receipt_id",
            "grace_period_days",
            "grace_end_date",
            "reminder_count",
            "last_reminder_at",
            "follow_up_attempts",
            "last_follow_up_at",
            "notes",
            "admin_notes",
            "cancelled_at",
            "cancellation_reason",
            "defaulted_at",
            "default_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_effective_status(self, obj):
        annotated = getattr(obj, "effective_status", None)
        if annotated is not None:
            return annotated
        return obj.status_on(timezone.localdate())


class InstallmentScheduleSerializer(serializers.Serializer):
    donation = serializers.CharField()
    frequency = serializers.ChoiceField(choices=InstallmentFrequency.choices, default=InstallmentFrequency.MONTHLY)
    start_date = serializers.DateField(required=False)
    total_installments = serializers.IntegerField(required=False)
    amounts = serializers.ListField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2), required=False, allow_empty=False
    )
    due_dates = serializers.ListField(child=serializers.DateField(), required=False, allow_empty=False)


class InstallmentUpdateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    due_date = serializers.DateField(required=False)
    grace_period_days = serializers.IntegerField(min_value=0, max_value=90, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    admin_notes = serializers.CharField(required=False, allow_blank=True)


class InstallmentMarkPaidSerializer(serializers.Serializer):
    payment_date = serializers.DateField(required=False)
    transaction_id = serializers.CharField(max_length=100, allow_blank=True, default="")
    transaction_ref = serializers.CharField(max_length=100, allow_blank=True, default="")
    receipt_id = serializers.CharField(max_length=100, allow_blank=True, default="")
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, allow_blank=True, default="")
    notes = serializers.CharField(allow_blank=True, default="")


class InstallmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class InstallmentDefaultSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, allow_blank=True, default="")


class InstallmentReminderSerializer(serializers.Serializer):
    follow_up = serializers.BooleanField(default=False)
