# users/views.py
import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import update_last_login
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from audit.services import get_client_ip
from authentication.throttles import LoginRateThrottle, PasswordResetRateThrottle
from backend.errors import Unauthenticated, ValidationFailed, json_object, validation_failed_from

from .serializers import (
    LoginSerializer, PasswordResetRequestSerializer, PasswordResetSerializer, RegisterSerializer, UserSerializer,
)
from .services import ALREADY_VERIFIED, OK, AccountService

logger = logging.getLogger(__name__)

VERIFY_MESSAGES = {
    'TOKEN_MISSING': 'Verification token is missing.',
    'TOKEN_INVALID': 'This verification link is invalid.',
    'TOKEN_EXPIRED': 'This verification link has expired. Please request a new one.',
    'ALREADY_VERIFIED': 'Your email is already verified.',
    'OK': 'Your email has been verified.',
}


def issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    refresh['email'] = user.email
    return {'access': str(refresh.access_token), 'refresh': str(refresh)}


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    """Create an account; the email must be verified before applying"""
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)

    user, dev_link = AccountService().register(serializer.validated_data)

    body = {
        'success': True,
        'message': 'Account created. Please check your email to verify your address.',
        'user': UserSerializer(user).data,
    }
    if dev_link:
        body['devVerifyLink'] = dev_link
    return Response(body, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """Email/password login returning a JWT pair"""
    serializer = LoginSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)

    user = authenticate(
        request,
        email=serializer.validated_data['email'],
        password=serializer.validated_data['password'],
    )
    if user is None:
        logger.warning(f"Failed login for {serializer.validated_data['email']} from {get_client_ip(request)}")
        raise Unauthenticated('Invalid email or password.', code='INVALID_CREDENTIALS')

    update_last_login(None, user)

    return Response({
        'success': True,
        'message': 'Login successful',
        **issue_tokens(user),
        'user': UserSerializer(user).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the supplied refresh token"""
    try:
        RefreshToken(json_object(request.data).get('refresh', '')).blacklist()
    except TokenError:
        raise ValidationFailed('Refresh token is invalid or expired.', code='TOKEN_INVALID')
    return Response({'success': True, 'message': 'Logged out'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'success': True, 'user': UserSerializer(request.user).data})


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_email_view(request):
    result, _ = AccountService().verify_email(json_object(request.data).get('token'))
    ok = result in (OK, ALREADY_VERIFIED)
    return Response(
        {'success': ok, 'code': result, 'message': VERIFY_MESSAGES[result]},
        status=status.HTTP_200_OK if ok else status.HTTP_400_BAD_REQUEST,
    )


@api_view(['POST'])
@permission_classes([AllowAny])
def resend_verification_view(request):
    email = json_object(request.data).get('email')
    AccountService().resend_verification(email, ip_address=get_client_ip(request))
    return Response({
        'success': True,
        'message': 'If an account with that email needs verification, a new link is on its way.',
    })


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([PasswordResetRateThrottle])
def request_password_reset_view(request):
    """Email a reset link; the answer never reveals whether the account exists"""
    serializer = PasswordResetRequestSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)

    dev_link = AccountService().request_password_reset(
        serializer.validated_data['email'],
        ip_address=get_client_ip(request),
    )
    body = {
        'success': True,
        'message': 'If an account exists for this email, a password reset link has been sent.',
    }
    if dev_link:
        body['devResetLink'] = dev_link
    return Response(body)


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password_view(request):
    serializer = PasswordResetSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)

    user = AccountService().reset_password(
        serializer.validated_data['token'],
        serializer.validated_data['password'],
    )
    return Response({'success': True, 'message': 'Your password has been reset.', 'email': user.email})
