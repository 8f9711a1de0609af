from django.db.models import Q
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.lookups import PkOrCodeLookupMixin, get_by_pk_or_code
from apps.common.permissions import RolePermission
from apps.donations import services
from apps.donations.models import Donation
from apps.donations.serializers import (
    DonationCancelSerializer,
    DonationCreateSerializer,
    DonationDetailsSerializer,
    DonationPaymentCreateSerializer,
    DonationPaymentSerializer,
    DonationSerializer,
)
from apps.donors.models import Donor
from apps.installments.models import Installment
from apps.installments.serializers import InstallmentSerializer


class DonationViewSet(
    PkOrCodeLookupMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Donation.objects.select_related("donor", "created_by")
    serializer_class = DonationSerializer
    permission_classes = [RolePermission]
    lookup_label = "Donation"
    capability_map = {
        "list": ["donations.view"],
        "retrieve": ["donations.view"],
        "create": ["donations.manage"],
        "partial_update": ["donations.manage"],
        "payments": ["donations.view"],
        "cancel": ["donations.cancel"],
        "installments": ["donations.view", "installments.view"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"].upper())
        if params.get("donor"):
            donor = params["donor"]
            queryset = queryset.filter(Q(donor__code__iexact=donor) | Q(donor__phone_normalized=donor))
        if params.get("donation_type"):
            queryset = queryset.filter(donation_type=params["donation_type"].upper())
        if params.get("payment_mode"):
            queryset = queryset.filter(payment_mode=params["payment_mode"].upper())
        if params.get("allocation_category"):
            queryset = queryset.filter(allocation_category=params["allocation_category"].upper())
        if params.get("hijri_year"):
            queryset = queryset.filter(hijri_year=params["hijri_year"])
        if params.get("date_from"):
            queryset = queryset.filter(created_at__date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(created_at__date__lte=params["date_to"])
        return queryset

    def _respond(self, donation, status_code=status.HTTP_200_OK):
        donation = Donation.objects.select_related("donor", "created_by").get(pk=donation.pk)
        return Response(DonationSerializer(donation, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = DonationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        donor = get_by_pk_or_code(Donor.objects.all(), data.pop("donor"), "Donor")
        schedule = data.pop("schedule", None)
        donation = services.create_donation(donor=donor, actor=request.user, request=request, schedule=schedule, **data)
        return self._respond(donation, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        donation = self.get_object()
        serializer = DonationDetailsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        donation = services.update_donation(donation.pk, actor=request.user, request=request, **serializer.validated_data)
        return self._respond(donation)

    @action(detail=True, methods=["get", "post"])
    def payments(self, request, pk=None):
        donation = self.get_object()
        if request.method == "GET":
            payments = donation.payments.select_related("installment", "recorded_by")
            return Response(DonationPaymentSerializer(payments, many=True).data)

        if not RolePermission.has_capabilities(request.user, ["donations.manage"]):
            self.permission_denied(request)
        serializer = DonationPaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = services.record_payment(donation.pk, actor=request.user, request=request, **serializer.validated_data)
        return self._respond(donation, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        donation = self.get_object()
        serializer = DonationCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = services.cancel_donation(
            donation.pk, reason=serializer.validated_data["reason"], actor=request.user, request=request
        )
        return self._respond(donation)

    @action(detail=True, methods=["get"])
    def installments(self, request, pk=None):
        donation = self.get_object()
        queryset = (
            Installment.objects.filter(donation=donation)
            .select_related("donation", "donor")
            .with_effective_status(timezone.localdate())
            .order_by("installment_number")
        )
        return Response(InstallmentSerializer(queryset, many=True).data)
