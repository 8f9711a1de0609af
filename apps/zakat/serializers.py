from decimal import Decimal

from rest_framework import serializers

from apps.zakat.models import (
    RecipientType,
    TransactionType,
    VerificationStatus,
    ZakatDonorType,
    ZakatPaymentMethod,
    ZakatTransaction,
)
from apps.zakat.services import ASSET_FIELDS, DEDUCTION_FIELDS


class ZakatTransactionSerializer(serializers.ModelSerializer):
    recorded_by_username = serializers.CharField(source="recorded_by.username", read_only=True, default="")

    class Meta:
        model = ZakatTransaction
        fields = [
            "id",
            "type",
            "donor_type",
            "donor_name",
            "recipient_name",
            "recipient_type",
            "amount",
            "currency",
            "payment_date",
            "payment_method",
            "payment_reference",
            "upi_id",
            "cheque_number",
            "bank_name",
            "proof_url",
            "status",
            "notes",
            "recorded_by_username",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ZakatTransactionWriteSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TransactionType.choices, default=TransactionType.CREDIT)
    donor_type = serializers.ChoiceField(choices=ZakatDonorType.choices, required=False, allow_blank=True)
    donor_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    recipient_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    recipient_type = serializers.ChoiceField(choices=RecipientType.choices, required=False, allow_blank=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_date = serializers.DateField()
    payment_method = serializers.ChoiceField(choices=ZakatPaymentMethod.choices)
    payment_reference = serializers.CharField(max_length=100)
    upi_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    cheque_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    bank_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    proof_url = serializers.URLField(max_length=500, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=VerificationStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class ZakatCalculationSerializer(serializers.Serializer):
    nisab_standard = serializers.ChoiceField(choices=[("gold", "Gold"), ("silver", "Silver")], default="gold")

    def get_fields(self):
        fields = super().get_fields()
        for name in (*ASSET_FIELDS, *DEDUCTION_FIELDS):
            fields[name] = serializers.DecimalField(
                max_digits=14, decimal_places=2, min_value=Decimal("0.00"), default=Decimal("0.00")
            )
        return fields


class LedgerRangeSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
