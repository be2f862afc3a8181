"""
Read-only API over the audit trail
"""
import logging

from django.db.models import Q, TextField
from django.db.models.functions import Cast
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from authentication.permissions import IsAdminOrSuperAdmin

from .models import AuditEvent

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 200
MAX_LIMIT = 500


def serialize_event(event):
    actor = event.actor
    return {
        'id': event.id,
        'action': event.action,
        'category': event.category,
        'actor': {
            'id': str(actor.pk),
            'email': actor.email,
            'name': actor.get_full_name(),
        },
        'targetType': event.target_type,
        'targetId': event.target_id,
        'before': event.before,
        'after': event.after,
        'meta': event.meta,
        'ipAddress': event.ip_address,
        'userAgent': event.user_agent,
        'createdAt': event.created_at.isoformat(),
    }


def search_events(queryset, term):
    """Case-insensitive substring match over actor, action, target and snapshots"""
    queryset = queryset.annotate(
        before_text=Cast('before', output_field=TextField()),
        after_text=Cast('after', output_field=TextField()),
        meta_text=Cast('meta', output_field=TextField()),
    )
    return queryset.filter(
        Q(actor__email__icontains=term) |
        Q(actor__first_name__icontains=term) |
        Q(actor__last_name__icontains=term) |
        Q(action__icontains=term) |
        Q(target_id__icontains=term) |
        Q(before_text__icontains=term) |
        Q(after_text__icontains=term) |
        Q(meta_text__icontains=term)
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def get_audit_events(request):
    """
    Most recent audit events

    Query parameters:
    - action: Exact action name
    - q: Free-text search
    - limit: Number of results (default: 200, max: 500)
    """
    action = request.query_params.get('action', '').strip()
    term = request.query_params.get('q', '').strip()
    try:
        limit = min(int(request.query_params.get('limit', DEFAULT_LIMIT)), MAX_LIMIT)
    except ValueError:
        limit = DEFAULT_LIMIT
    limit = max(limit, 1)

    queryset = AuditEvent.objects.select_related('actor')
    if action:
        queryset = queryset.filter(action=action)
    if term:
        queryset = search_events(queryset, term)

    events = list(queryset.order_by('-created_at', '-id')[:limit])
    return Response({
        'success': True,
        'data': [serialize_event(event) for event in events],
        'count': len(events),
    })
