import uuid

from apps.common.exceptions import RecordNotFound


def get_by_pk_or_code(queryset, value, label="Record"):
    """Resolve a record from either its UUID primary key or its ``HKS-*`` code."""
    value = str(value).strip()
    try:
        lookup = {"pk": uuid.UUID(value)}
    except ValueError:
        lookup = {"code": value.upper()}
    obj = queryset.filter(**lookup).first()
    if obj is None:
        raise RecordNotFound(f"{label} {value} not found.")
    return obj


class PkOrCodeLookupMixin:
    """ViewSet mixin so ``/{id}/`` routes accept the UUID or the human code."""

    lookup_label = "Record"

    def get_object(self):
        queryset = self.filter_queryset(self.get_queryset())
        obj = get_by_pk_or_code(queryset, self.kwargs[self.lookup_url_kwarg or self.lookup_field], self.lookup_label)
        self.check_object_permissions(self.request, obj)
        return obj
