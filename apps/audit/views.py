from rest_framework import viewsets

from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer
from apps.common.permissions import RolePermission


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [RolePermission]
    capability_map = {"list": ["audit.view"], "retrieve": ["audit.view"]}

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("entity_type"):
            queryset = queryset.filter(entity_type=params["entity_type"].upper())
        if params.get("entity_id"):
            queryset = queryset.filter(entity_id=params["entity_id"])
        if params.get("action"):
            queryset = queryset.filter(action=params["action"].upper())
        if params.get("actor_email"):
            queryset = queryset.filter(actor_email=params["actor_email"].lower())
        if params.get("date_from"):
            queryset = queryset.filter(created_at__date__gte=params["date_from"])
        if params.get("date_to"):
            queryset = queryset.filter(created_at__date__lte=params["date_to"])
        return queryset
