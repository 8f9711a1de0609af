import uuid

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.lookups import PkOrCodeLookupMixin, get_by_pk_or_code
from apps.common.permissions import RolePermission
from apps.donations.models import Donation
from apps.installments import services
from apps.installments.models import Installment
from apps.installments.serializers import (
    InstallmentCancelSerializer,
    InstallmentDefaultSerializer,
    InstallmentMarkPaidSerializer,
    InstallmentReminderSerializer,
    InstallmentScheduleSerializer,
    InstallmentSerializer,
    InstallmentUpdateSerializer,
)


class InstallmentViewSet(
    PkOrCodeLookupMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InstallmentSerializer
    permission_classes = [RolePermission]
    lookup_label = "Installment"
    capability_map = {
        "list": ["installments.view"],
        "retrieve": ["installments.view"],
        "create": ["installments.manage"],
        "partial_update": ["installments.manage"],
        "mark_paid": ["installments.manage"],
        "default": ["installments.default"],
        "cancel": ["installments.manage"],
        "remind": ["installments.manage"],
    }

    def get_queryset(self):
        queryset = (
            Installment.objects.select_related("donation", "donor")
            .with_effective_status(timezone.localdate())
            .order_by("due_date", "installment_number")
        )
        params = self.request.query_params
        if params.get("donation"):
            try:
                queryset = queryset.filter(donation_id=uuid.UUID(params["donation"]))
            except ValueError:
                queryset = queryset.filter(donation__code__iexact=params["donation"])
        if params.get("donor"):
            queryset = queryset.filter(donor__code__iexact=params["donor"])
        if params.get("status"):
            queryset = queryset.filter(effective_status=params["status"].upper())
        if params.get("due_from"):
            queryset = queryset.filter(due_date__gte=params["due_from"])
        if params.get("due_to"):
            queryset = queryset.filter(due_date__lte=params["due_to"])
        return queryset

    def _respond(self, installment, status_code=status.HTTP_200_OK):
        installment = self.get_queryset().get(pk=installment.pk)
        return Response(InstallmentSerializer(installment).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = InstallmentScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        donation = get_by_pk_or_code(Donation.objects.all(), data.pop("donation"), "Donation")
        installments = services.generate_schedule(
            donation,
            actor=request.user,
            request=request,
            count=data.pop("total_installments", None),
            **data,
        )
        queryset = self.get_queryset().filter(pk__in=[installment.pk for installment in installments])
        return Response(InstallmentSerializer(queryset.order_by("installment_number"), many=True).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        installment = self.get_object()
        serializer = InstallmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        installment = services.update_installment(
            installment.pk, actor=request.user, request=request, **serializer.validated_data
        )
        return self._respond(installment)

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        installment = self.get_object()
        serializer = InstallmentMarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        installment = services.mark_paid(installment.pk, actor=request.user, request=request, **serializer.validated_data)
        return self._respond(installment)

    @action(detail=True, methods=["post"])
    def default(self, request, pk=None):
        installment = self.get_object()
        serializer = InstallmentDefaultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        installment = services.default_installment(
            installment.pk, reason=serializer.validated_data["reason"], actor=request.user, request=request
        )
        return self._respond(installment)

    @action(detail=True, methods=["post"])
    def remind(self, request, pk=None):
        installment = self.get_object()
        serializer = InstallmentReminderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        installment = services.record_reminder(
            installment.pk, actor=request.user, follow_up=serializer.validated_data["follow_up"], request=request
        )
        return self._respond(installment)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        installment = self.get_object()
        serializer = InstallmentCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        installment = services.cancel_installment(
            installment.pk, reason=serializer.validated_data["reason"], actor=request.user, request=request
        )
        return self._respond(installment)
