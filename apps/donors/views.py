from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.exceptions import RecordNotFound
from apps.common.lookups import PkOrCodeLookupMixin
from apps.common.permissions import RolePermission
from apps.donations.serializers import DonationSerializer
from apps.donors import services
from apps.donors.models import Donor, DonorStatus, normalize_phone
from apps.donors.serializers import DonorSerializer, DonorWriteSerializer


class DonorViewSet(
    PkOrCodeLookupMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Donor.objects.select_related("created_by")
    serializer_class = DonorSerializer
    permission_classes = [RolePermission]
    lookup_label = "Donor"
    capability_map = {
        "list": ["donors.view"],
        "retrieve": ["donors.view"],
        "create": ["donors.manage"],
        "partial_update": ["donors.manage"],
        "disable": ["donors.manage"],
        "soft_delete": ["donors.delete"],
        "restore": ["donors.delete"],
        "donations": ["donors.view", "donations.view"],
        "by_phone": ["donors.view"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        status_param = params.get("status")
        query = params.get("q")
        if status_param:
            queryset = queryset.filter(status=status_param.upper())
        elif self.action == "list" and str(params.get("include_deleted")).lower() not in {"1", "true", "yes"}:
            queryset = queryset.exclude(status=DonorStatus.DELETED)
        if params.get("donor_type"):
            queryset = queryset.filter(donor_type=params["donor_type"].upper())
        if params.get("city"):
            queryset = queryset.filter(city__iexact=params["city"])
        if query:
            normalized = normalize_phone(query)
            condition = Q(full_name__icontains=query) | Q(code__iexact=query) | Q(email__icontains=query)
            if normalized.isdigit():
                condition |= Q(phone_normalized__contains=normalized)
            queryset = queryset.filter(condition)
        return queryset

    def _respond(self, donor, status_code=status.HTTP_200_OK):
        return Response(DonorSerializer(donor, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = DonorWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donor = services.create_donor(actor=request.user, request=request, **serializer.validated_data)
        return self._respond(donor, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        donor = self.get_object()
        serializer = DonorWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        donor = services.update_donor(donor, actor=request.user, request=request, **serializer.validated_data)
        return self._respond(donor)

    @action(detail=True, methods=["post"])
    def disable(self, request, pk=None):
        donor = services.disable_donor(self.get_object(), actor=request.user, request=request)
        return self._respond(donor)

    @action(detail=True, methods=["post"], url_path="delete")
    def soft_delete(self, request, pk=None):
        donor = services.delete_donor(self.get_object(), actor=request.user, request=request)
        return self._respond(donor)

    @action(detail=True, methods=["post"])
    def restore(self, request, pk=None):
        donor = services.restore_donor(self.get_object(), actor=request.user, request=request)
        return self._respond(donor)

    @action(detail=True, methods=["get"])
    def donations(self, request, pk=None):
        donor = self.get_object()
        queryset = donor.donations.select_related("donor", "created_by").order_by("-created_at")
        status_param = request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param.upper())
        page = self.paginate_queryset(queryset)
        serializer = DonationSerializer(page if page is not None else queryset, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @action(detail=False, methods=["get"], url_path="by-phone")
    def by_phone(self, request):
        phone = request.query_params.get("phone", "")
        donor = services.find_active_by_phone(phone)
        if donor is None:
            raise RecordNotFound(f"No active donor with phone {phone}.")
        return self._respond(donor)
