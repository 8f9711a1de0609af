import logging

from django.db import DatabaseError, transaction

from apps.audit.models import AuditLog

logger = logging.getLogger(__name__)


def client_info(request):
    if request is None:
        return None, ""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR")
    return ip_address or None, request.META.get("HTTP_USER_AGENT", "")[:255]


def record_audit(*, actor, action, entity_type, entity_id, payload=None, request=None):
    """
    Append an audit entry. Failures are logged and swallowed: the savepoint keeps
    the caller's transaction usable, so the business write always proceeds.
    """
    ip_address, user_agent = client_info(request)
    if not getattr(actor, "is_authenticated", False):
        actor = None
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                actor=actor,
                actor_email=(getattr(actor, "email", "") or "").lower(),
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                payload=payload or {},
                ip_address=ip_address,
                user_agent=user_agent,
            )
    except DatabaseError:
        logger.exception("Failed to write audit log %s for %s %s", action, entity_type, entity_id)
        return None


def audit_trail(entity_type, entity_id, limit=50):
    return list(AuditLog.objects.filter(entity_type=entity_type, entity_id=str(entity_id))[:limit])
