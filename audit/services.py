"""
Audit trail service used by every back-office mutation
"""
import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db import DatabaseError, transaction

from .actions import get_action
from .models import AuditEvent

logger = logging.getLogger(__name__)


class AuditPolicyError(Exception):
    """A durable audit action was recorded outside of a transaction"""


class AuditTrail:
    """Service for appending audit events"""

    @staticmethod
    def record(
        action,
        actor,
        target_type='',
        target_id=None,
        before=None,
        after=None,
        meta=None,
        ip_address=None,
        user_agent='',
    ):
        """
        Append one audit event.

        Durable actions (identity and security) must run inside the same
        ``transaction.atomic`` block as the change they describe, and any
        failure propagates so the change rolls back with it. Best-effort
        actions (content) are written in a savepoint; a storage failure is
        logged and ``None`` is returned.

        Args:
            action: Registered action name, see ``audit.actions``
            actor: User performing the action
            target_type: Kind of entity affected (user, course, application...)
            target_id: Identifier of the affected entity
            before: Snapshot prior to the change
            after: Snapshot after the change
            meta: Extra context such as the justification text
            ip_address: Client IP address
            user_agent: Client user agent string
        """
        audit_action = get_action(action)
        fields = dict(
            action=audit_action.name,
            actor=actor,
            target_type=target_type or '',
            target_id='' if target_id is None else str(target_id),
            before=before,
            after=after,
            meta=meta,
            ip_address=ip_address or None,
            user_agent=(user_agent or '')[:1000],
        )

        if audit_action.requires_durable_audit:
            if not transaction.get_connection().in_atomic_block:
                raise AuditPolicyError(f"{audit_action.name} must be recorded inside a transaction")
            event = AuditEvent.objects.create(**fields)
            logger.info(f"Audit event recorded: {event}")
            return event

        try:
            with transaction.atomic():
                event = AuditEvent.objects.create(**fields)
        except DatabaseError as e:
            logger.error(f"Failed to record best-effort audit event {audit_action.name}: {e}")
            return None
        logger.info(f"Audit event recorded: {event}")
        return event

    @staticmethod
    def for_request(request):
        """Request context kwargs for ``record``"""
        return {
            'ip_address': get_client_ip(request),
            'user_agent': get_user_agent(request),
        }


def get_client_ip(request):
    """Get client IP address from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    if not ip:
        return None
    try:
        validate_ipv46_address(ip)
    except ValidationError:
        return None
    return ip


def get_user_agent(request):
    """Get user agent from request"""
    return request.META.get('HTTP_USER_AGENT', '')
