from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.permissions import RolePermission
from apps.zakat import services
from apps.zakat.models import ZakatTransaction
from apps.zakat.serializers import (
    LedgerRangeSerializer,
    ZakatCalculationSerializer,
    ZakatTransactionSerializer,
    ZakatTransactionWriteSerializer,
)


class ZakatTransactionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = ZakatTransaction.objects.select_related("recorded_by")
    serializer_class = ZakatTransactionSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["zakat.view"],
        "retrieve": ["zakat.view"],
        "create": ["zakat.manage"],
        "partial_update": ["zakat.manage"],
        "summary": ["zakat.view"],
        "donor_history": ["zakat.view"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("type"):
            queryset = queryset.filter(type=params["type"].upper())
        if params.get("status"):
            queryset = queryset.filter(status=params["status"].upper())
        if params.get("payment_method"):
            queryset = queryset.filter(payment_method=params["payment_method"].upper())
        if params.get("date_from"):
            queryset = queryset.filter(payment_date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(payment_date__lte=params["date_to"])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ZakatTransactionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = services.record_transaction(actor=request.user, request=request, **serializer.validated_data)
        return Response(ZakatTransactionSerializer(entry).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        entry = self.get_object()
        serializer = ZakatTransactionWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        entry = services.update_transaction(entry, actor=request.user, request=request, **serializer.validated_data)
        return Response(ZakatTransactionSerializer(entry).data)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        query_serializer = LedgerRangeSerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        return Response(services.ledger_summary(**query_serializer.validated_data))

    @action(detail=False, methods=["get"], url_path="donor-history")
    def donor_history(self, request):
        donor_name = request.query_params.get("donor_name", "").strip()
        if not donor_name:
            return Response(
                {"code": "invalid", "detail": "donor_name is required.", "fields": {"donor_name": ["This field is required."]}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        history, total = services.donor_history(donor_name)
        return Response(
            {
                "donor_name": donor_name,
                "total_contribution": total,
                "history": ZakatTransactionSerializer(history, many=True).data,
            }
        )


class ZakatCalculatorView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "public_api"

    def post(self, request, *args, **kwargs):
        serializer = ZakatCalculationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        calculation = services.calculate_zakat(
            {field: data[field] for field in services.ASSET_FIELDS},
            {field: data[field] for field in services.DEDUCTION_FIELDS},
            standard=data["nisab_standard"],
        )
        return Response(
            {
                "calculation": calculation,
                "nisab_info": {
                    "gold": {"grams": services.NISAB_GOLD_GRAMS, "value": services.nisab_value("gold")},
                    "silver": {"grams": services.NISAB_SILVER_GRAMS, "value": services.nisab_value("silver")},
                },
            }
        )
