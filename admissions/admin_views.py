"""
Back-office review of applications and enquiries
"""
import logging

from django.db import transaction
from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from audit.actions import APPLICATION_STATUS_CHANGED
from audit.services import AuditTrail
from authentication.permissions import IsAdminOrSuperAdmin
from backend.errors import NotFound, ValidationFailed, json_object
from uploads.broker import UploadBroker
from users.admin_views import parse_paging

from .models import Application, ApplicationAttachment, Enquiry
from .serializers import (
    ApplicationDetailSerializer,
    ApplicationSummarySerializer,
    EnquiryOutputSerializer,
)

logger = logging.getLogger(__name__)

STATUS_VALUES = [choice for choice, _ in Application.STATUS_CHOICES]


def paginated(queryset, request, serializer_class):
    limit, offset = parse_paging(request)
    total_count = queryset.count()
    rows = queryset[offset:offset + limit]
    return Response({
        'success': True,
        'data': serializer_class(rows, many=True).data,
        'pagination': {
            'total': total_count,
            'limit': limit,
            'offset': offset,
            'has_more': offset + limit < total_count,
        },
    })


def get_application_or_404(application_id, lock=False):
    queryset = Application.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=application_id)
    except (Application.DoesNotExist, ValueError):
        raise NotFound('Application not found.')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def applications_list(request):
    """
    Query parameters:
    - status: Filter by status
    - q: Search reference, applicant name and email
    - limit / offset: Pagination (max 500)
    """
    queryset = Application.objects.prefetch_related('attachments').order_by('-created_at')
    status_filter = request.query_params.get('status', '').strip().upper()
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    term = request.query_params.get('q', '').strip()
    if term:
        queryset = queryset.filter(
            Q(application_ref__icontains=term) |
            Q(first_name__icontains=term) |
            Q(last_name__icontains=term) |
            Q(email__icontains=term)
        )
    return paginated(queryset, request, ApplicationSummarySerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def application_detail(request, application_id):
    application = get_application_or_404(application_id)
    return Response({'success': True, 'data': ApplicationDetailSerializer(application).data})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def update_application_status(request, application_id):
    new_status = str(json_object(request.data).get('status') or '').strip().upper()
    if new_status not in STATUS_VALUES:
        raise ValidationFailed(
            f"Status must be one of {', '.join(STATUS_VALUES)}.",
            errors={'status': ['Invalid status.']},
        )

    with transaction.atomic():
        application = get_application_or_404(application_id, lock=True)
        old_status = application.status
        if old_status == new_status:
            return Response({
                'success': True,
                'already': True,
                'data': ApplicationSummarySerializer(application).data,
            })
        application.status = new_status
        application.save(update_fields=['status', 'updated_at'])
        AuditTrail.record(
            action=APPLICATION_STATUS_CHANGED,
            actor=request.user,
            target_type='application',
            target_id=application.pk,
            before={'status': old_status},
            after={'status': new_status},
            meta={'applicationRef': application.application_ref},
            **AuditTrail.for_request(request),
        )

    logger.info(f"Application {application.application_ref} moved {old_status} -> {new_status} by {request.user.email}")
    return Response({
        'success': True,
        'already': False,
        'data': ApplicationSummarySerializer(application).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def attachment_download(request, application_id, attachment_id):
    try:
        attachment = ApplicationAttachment.objects.get(pk=attachment_id, application_id=application_id)
    except (ApplicationAttachment.DoesNotExist, ValueError):
        raise NotFound('Attachment not found.')

    broker = UploadBroker()
    return Response({
        'success': True,
        'fileName': attachment.file_name,
        'url': broker.presign_download(attachment.s3_key),
        'expiresIn': broker.expires_in,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def enquiries_list(request):
    queryset = Enquiry.objects.order_by('-created_at')
    enquiry_type = request.query_params.get('enquiryType', '').strip().upper()
    if enquiry_type:
        queryset = queryset.filter(enquiry_type=enquiry_type)
    term = request.query_params.get('q', '').strip()
    if term:
        queryset = queryset.filter(
            Q(enquiry_ref__icontains=term) |
            Q(full_name__icontains=term) |
            Q(email__icontains=term) |
            Q(message__icontains=term)
        )
    return paginated(queryset, request, EnquiryOutputSerializer)
