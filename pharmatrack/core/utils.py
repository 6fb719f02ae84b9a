"""Audit trail helpers"""
import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """First X-Forwarded-For hop, else REMOTE_ADDR"""
    if not request or not hasattr(request, 'META'):
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


def snapshot_fields(instance, fields):
    """String values of ``fields`` on ``instance``, for diffing after a save"""
    return {field: str(getattr(instance, field)) for field in fields}


def field_changes(before, instance, fields=None):
    """{field: {'old', 'new'}} for every field whose value moved since ``before``"""
    changes = {}
    for field in (fields if fields is not None else before.keys()):
        new_value = str(getattr(instance, field))
        if before.get(field) != new_value:
            changes[field] = {'old': before.get(field), 'new': new_value}
    return changes


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None,
                     barcode=None, pharmacy=None):
    """
    Record an audit entry and return it, or None when it could not be written.

    The acting user defaults to ``request.user`` and the pharmacy to the
    caller's membership. Audit failures are logged and never propagate to
    the operation being audited.
    """
    if not action or not model_name or object_id is None:
        logger.warning(
            f"Audit log skipped: missing required fields "
            f"(action={action}, model_name={model_name}, object_id={object_id})"
        )
        return None

    audit_user = user or getattr(request, 'user', None)
    if audit_user is not None and not audit_user.is_authenticated:
        audit_user = None
    if pharmacy is None:
        membership = getattr(request, 'membership', None)
        pharmacy = membership.pharmacy if membership is not None else None

    try:
        return AuditLog.objects.create(
            pharmacy=pharmacy,
            user=audit_user,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            barcode=barcode,
            changes=changes or {},
            ip_address=get_client_ip(request),
        )
    except Exception as e:
        logger.error(f"Failed to create audit log for {model_name} {object_id}: {str(e)}")
        return None
