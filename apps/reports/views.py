from django.utils import timezone
from rest_framework import generics, serializers
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.reports import queries
from apps.zakat.services import ledger_summary


class ReportQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs


class ReportMixin:
    permission_classes = [RolePermission]
    capability_map = {"get": ["reports.view"]}

    def get_params(self):
        query_serializer = ReportQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        return query_serializer.validated_data


class DonationReportView(ReportMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        params = self.get_params()
        return Response(queries.donation_summary(params.get("date_from"), params.get("date_to")))


class InstallmentReportView(ReportMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        params = self.get_params()
        return Response(
            queries.installment_summary(timezone.localdate(), params.get("date_from"), params.get("date_to"))
        )


class DonorRankingView(ReportMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        params = self.get_params()
        ranking = queries.donor_ranking(params["limit"], params.get("date_from"), params.get("date_to"))
        return Response({"range": {"date_from": params.get("date_from"), "date_to": params.get("date_to")}, "results": ranking})


class ZakatReportView(ReportMixin, generics.GenericAPIView):
    def get(self, request, *args, **kwargs):
        params = self.get_params()
        return Response(ledger_summary(params.get("date_from"), params.get("date_to")))
