"""
Back-office user management
"""
import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from audit.services import AuditTrail
from authentication.approval_gate import ApprovalGate
from authentication.permissions import IsAdminOrSuperAdmin, IsSuperAdmin
from backend.errors import json_object, validation_failed_from

from .elevated_actions import ChangeRoleAction, VerifyEmailAction
from .models import User
from .serializers import AdminUserSerializer, SecondFactorSerializer
from .services import set_admin_second_factor

logger = logging.getLogger(__name__)


def parse_paging(request, default_limit=100, max_limit=500):
    try:
        limit = min(int(request.query_params.get('limit', default_limit)), max_limit)
        offset = max(int(request.query_params.get('offset', 0)), 0)
    except ValueError:
        limit, offset = default_limit, 0
    return max(limit, 1), offset


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def users_list(request):
    """
    List accounts for the back office

    Query parameters:
    - q: Search email, first and last name
    - limit: Number of results (default: 100, max: 500)
    - offset: Pagination offset
    """
    limit, offset = parse_paging(request)
    queryset = User.objects.search(request.query_params.get('q', '').strip()).order_by('-created_at')
    total_count = queryset.count()
    users = queryset[offset:offset + limit]

    return Response({
        'success': True,
        'data': AdminUserSerializer(users, many=True).data,
        'pagination': {
            'total': total_count,
            'limit': limit,
            'offset': offset,
            'has_more': offset + limit < total_count,
        },
    })


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def change_user_role(request, user_id):
    """Super admin only; body: role, justification, secondFactor"""
    body = json_object(request.data)
    result = ApprovalGate(ChangeRoleAction()).run(
        actor=request.user,
        target_id=user_id,
        justification=body.get('justification'),
        second_factor=body.get('secondFactor'),
        params={'role': body.get('role')},
        **AuditTrail.for_request(request),
    )
    return Response({
        'success': True,
        'already': result.already,
        'user': AdminUserSerializer(result.target).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def verify_user_email(request, user_id):
    """Manually mark a user's email verified; body: justification, secondFactor"""
    body = json_object(request.data)
    result = ApprovalGate(VerifyEmailAction()).run(
        actor=request.user,
        target_id=user_id,
        justification=body.get('justification'),
        second_factor=body.get('secondFactor'),
        **AuditTrail.for_request(request),
    )
    return Response({
        'success': True,
        'alreadyVerified': result.already,
        'user': AdminUserSerializer(result.target).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def set_second_factor(request):
    serializer = SecondFactorSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)

    set_admin_second_factor(
        request.user,
        serializer.validated_data['password'],
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'message': 'Second-factor password saved.'})
