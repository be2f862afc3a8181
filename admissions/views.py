"""
Public submission endpoints and the applicant's own applications
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from audit.services import get_client_ip, get_user_agent
from authentication.throttles import EnquiryRateThrottle
from authentication.turnstile import verify_turnstile
from backend.errors import NotFound, UpstreamUnavailable, ValidationFailed, json_object

from .intake import SubmissionIntake
from .models import Application
from .serializers import ApplicationDetailSerializer

logger = logging.getLogger(__name__)

HONEYPOT_FIELD = 'hp'


def turnstile_token(body):
    return body.get('turnstileToken') or body.get('cf-turnstile-response')


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([EnquiryRateThrottle])
def create_enquiry(request):
    """
    Public enquiry form

    Expected payload:
    {
        "fullName": "Jane Doe",
        "email": "jane@example.com",
        "message": "...",
        "enquiryType": "GENERAL",
        "turnstileToken": "..."
    }
    """
    body = json_object(request.data)
    ip_address = get_client_ip(request)
    if str(body.get(HONEYPOT_FIELD) or '').strip():
        logger.warning(f"Enquiry honeypot triggered from {ip_address}")
        raise ValidationFailed('Request blocked.', code='REQUEST_BLOCKED')

    check = verify_turnstile(turnstile_token(body), remote_ip=ip_address)
    if not check.success:
        if 'network-error' in check.error_codes:
            raise UpstreamUnavailable(check.message, code='TURNSTILE_UNAVAILABLE')
        raise ValidationFailed(check.message, code='TURNSTILE_FAILED')

    enquiry = SubmissionIntake().submit_enquiry(
        body,
        ip_address=ip_address,
        user_agent=get_user_agent(request),
    )
    return Response({
        'success': True,
        'enquiryRef': enquiry.enquiry_ref,
        'message': 'Thank you. We have received your enquiry.',
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_application(request):
    """Submit an application; attachments must already be uploaded via the presign endpoint"""
    application = SubmissionIntake().submit_application(request.user, request.data)
    return Response({
        'success': True,
        'applicationRef': application.application_ref,
        'id': application.id,
        'message': 'Your application has been submitted.',
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_applications(request):
    applications = (
        Application.objects
        .filter(user=request.user)
        .prefetch_related('attachments')
        .order_by('-created_at')
    )
    return Response({
        'success': True,
        'data': ApplicationDetailSerializer(applications, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_application_detail(request, application_id):
    # Another user's application is reported as missing, not forbidden
    application = (
        Application.objects
        .filter(user=request.user, pk=application_id)
        .prefetch_related('attachments')
        .first()
    )
    if application is None:
        raise NotFound('Application not found.')
    return Response({'success': True, 'data': ApplicationDetailSerializer(application).data})
