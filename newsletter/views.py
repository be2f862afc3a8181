import logging

from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from audit.actions import NEWSLETTER_SENT, NEWSLETTER_SUBSCRIBER_DELETED, NEWSLETTER_SUBSCRIBER_UPDATED
from audit.services import AuditTrail
from authentication.permissions import IsAdminOrSuperAdmin, IsSuperAdmin
from authentication.throttles import NewsletterRateThrottle
from backend.errors import NotFound, json_object, validation_failed_from
from users.admin_views import parse_paging

from . import services
from .models import NewsletterSubscriber
from .serializers import (
    NewsletterSendSerializer,
    SubscribeSerializer,
    SubscriberSerializer,
    SubscriberUpdateSerializer,
)
from .tasks import send_newsletter_task

logger = logging.getLogger(__name__)

TRUTHY = ('1', 'true', 'yes', 'on')


def as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUTHY


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([NewsletterRateThrottle])
def subscribe(request):
    serializer = SubscribeSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    data = serializer.validated_data
    _, reactivated = services.subscribe(data['email'], name=data['name'].strip(), source=data['source'].strip())
    return Response({'success': True, 'reactivated': reactivated})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def subscribers_list(request):
    """
    Query parameters:
    - q: Search email and name
    - active: true / false
    - limit / offset: Pagination
    """
    queryset = NewsletterSubscriber.objects.all()
    term = request.query_params.get('q', '').strip()
    if term:
        queryset = queryset.filter(Q(email__icontains=term) | Q(name__icontains=term))
    active = request.query_params.get('active')
    if active not in (None, ''):
        queryset = queryset.filter(is_active=as_bool(active))

    limit, offset = parse_paging(request)
    total_count = queryset.count()
    return Response({
        'success': True,
        'data': SubscriberSerializer(queryset[offset:offset + limit], many=True).data,
        'pagination': {
            'total': total_count,
            'limit': limit,
            'offset': offset,
            'has_more': offset + limit < total_count,
        },
    })


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def subscriber_item(request, subscriber_id):
    try:
        subscriber = NewsletterSubscriber.objects.get(pk=subscriber_id)
    except NewsletterSubscriber.DoesNotExist:
        raise NotFound('Subscriber not found.')
    before = SubscriberSerializer(subscriber).data

    if request.method == 'DELETE':
        subscriber.delete()
        AuditTrail.record(
            action=NEWSLETTER_SUBSCRIBER_DELETED,
            actor=request.user,
            target_type='newsletter_subscriber',
            target_id=subscriber_id,
            before=before,
            **AuditTrail.for_request(request),
        )
        return Response({'success': True})

    serializer = SubscriberUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    data = serializer.validated_data

    if 'name' in data:
        subscriber.name = data['name'].strip()
    if 'isActive' in data and data['isActive'] != subscriber.is_active:
        if data['isActive']:
            subscriber.is_active = True
            subscriber.unsubscribed_at = None
        else:
            services.mark_unsubscribed(subscriber)
    subscriber.save()

    after = SubscriberSerializer(subscriber).data
    AuditTrail.record(
        action=NEWSLETTER_SUBSCRIBER_UPDATED,
        actor=request.user,
        target_type='newsletter_subscriber',
        target_id=subscriber.pk,
        before=before,
        after=after,
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'data': after})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def send_newsletter(request):
    """
    Expected payload:
    {
        "mode": "ALL_ACTIVE" | "SELECTED" | "INDIVIDUAL",
        "subject": "...",
        "html": "<p>...</p>",
        "ids": [1, 2],
        "email": "someone@example.com",
        "async": false
    }
    """
    serializer = NewsletterSendSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    data = serializer.validated_data

    recipients = services.resolve_recipients(data['mode'], ids=data['ids'], email=data.get('email'))
    queued = as_bool(json_object(request.data).get('async'))
    meta = {'mode': data['mode'], 'subject': data['subject'], 'requested': len(recipients), 'queued': queued}

    if queued:
        send_newsletter_task.delay(recipients, data['subject'], data['html'])
        body = {'success': True, 'queued': True, 'requested': len(recipients)}
    else:
        sent = services.send_newsletter(recipients, data['subject'], data['html'])
        meta['sent'] = sent
        body = {'success': True, 'sent': sent, 'requested': len(recipients)}

    AuditTrail.record(
        action=NEWSLETTER_SENT,
        actor=request.user,
        target_type='newsletter',
        meta=meta,
        **AuditTrail.for_request(request),
    )
    return Response(body)
