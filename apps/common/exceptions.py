from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers, status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.views import exception_handler


class StateConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The record is not in a state that allows this operation."
    default_code = "invalid_state"


class UpstreamServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "An upstream service is unavailable."
    default_code = "upstream_unavailable"


class RecordNotFound(NotFound):
    default_code = "not_found"


def api_exception_handler(exc, context):
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, "error_dict"):
            exc = serializers.ValidationError(exc.message_dict)
        else:
            exc = serializers.ValidationError({"detail": exc.messages[0] if len(exc.messages) == 1 else exc.messages})

    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {"non_field_errors": response.data}

    response.data = {
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
