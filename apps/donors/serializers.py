from decimal import Decimal

from rest_framework import serializers

from apps.donors.models import Donor, DonorType, IdentityProofType

COMMUNICATION_CHANNELS = {"sms", "email", "whatsapp"}


class DonorSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source="created_by.username", read_only=True, default="")

    class Meta:
        model = Donor
        fields = [
            "id",
            "code",
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
            "status",
            "total_donations",
            "total_amount",
            "last_donation_at",
            "communication_preferences",
            "notes",
            "created_by_username",
            "disabled_at",
            "deleted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DonorWriteSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    donor_type = serializers.ChoiceField(choices=DonorType.choices, required=False)
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    identity_proof_type = serializers.ChoiceField(choices=IdentityProofType.choices, required=False, allow_blank=True)
    identity_proof_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    anticipated_contribution = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.00"), required=False
    )
    communication_preferences = serializers.DictField(child=serializers.BooleanField(), required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_communication_preferences(self, value):
        unknown = set(value) - COMMUNICATION_CHANNELS
        if unknown:
            raise serializers.ValidationError(f"Unknown channels: {', '.join(sorted(unknown))}.")
        return {channel: bool(value.get(channel, False)) for channel in sorted(COMMUNICATION_CHANNELS)}
