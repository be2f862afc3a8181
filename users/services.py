"""
Account services: registration, email verification, password reset and the
super admin second factor.
"""
import logging
import smtplib
from urllib.parse import urlencode

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from audit.actions import SUPERADMIN_SECOND_FACTOR_SET
from audit.services import AuditTrail
from authentication.approval_gate import SecondFactorAlreadySet
from backend.errors import Conflict, UpstreamUnavailable, ValidationFailed
from notifications.mailer import EmailNotConfigured, Mailer

from .models import (
    EmailVerificationToken, PasswordResetAttempt, PasswordResetToken, User, hash_token, reset_token_ttl_minutes,
)

logger = logging.getLogger(__name__)

TOKEN_MISSING = 'TOKEN_MISSING'
TOKEN_INVALID = 'TOKEN_INVALID'
TOKEN_EXPIRED = 'TOKEN_EXPIRED'
ALREADY_VERIFIED = 'ALREADY_VERIFIED'
OK = 'OK'

MAIL_ERRORS = (EmailNotConfigured, smtplib.SMTPException, OSError)


def build_verify_link(raw_token):
    return f"{settings.APP_BASE_URL}/verify-email?{urlencode({'token': raw_token})}"


def send_verification_email(mailer, user, raw_token):
    return mailer.send_template(
        to=user.email,
        subject=f"Verify your {settings.SITE_NAME} account",
        template='verify_email',
        context={
            'user': user,
            'verify_link': build_verify_link(raw_token),
            'ttl_hours': settings.EMAIL_VERIFICATION_TTL_HOURS,
        },
        message_type='verify_email',
        related_entity_type='user',
        related_entity_id=user.pk,
    )


def build_reset_link(raw_token):
    return f"{settings.APP_BASE_URL}/reset-password?{urlencode({'token': raw_token})}"


def send_password_reset_email(mailer, user, raw_token):
    return mailer.send_template(
        to=user.email,
        subject=f"Reset your {settings.SITE_NAME} password",
        template='password_reset',
        context={
            'user': user,
            'reset_link': build_reset_link(raw_token),
            'ttl_minutes': reset_token_ttl_minutes(),
        },
        message_type='password_reset',
        related_entity_type='user',
        related_entity_id=user.pk,
    )


def revoke_refresh_tokens(user):
    """Blacklist every refresh token issued to ``user``"""
    revoked = 0
    for outstanding in OutstandingToken.objects.filter(user=user):
        _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
        revoked += int(created)
    return revoked


class AccountService:
    """Registration, email verification and password reset"""

    def __init__(self, mailer=None):
        self.mailer = mailer or Mailer()

    def register(self, data):
        """
        Create an unverified account and issue a verification token.

        Outside DEBUG the verification email is part of the registration: if
        it cannot be sent the account is rolled back. In DEBUG the link is
        returned to the caller instead.

        Returns ``(user, dev_verify_link)``.
        """
        if User.objects.filter(email__iexact=data['email']).exists():
            raise Conflict('An account with this email already exists.', code='EMAIL_TAKEN')

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    email=data['email'],
                    password=data['password'],
                    first_name=data['firstName'],
                    last_name=data['lastName'],
                    phone_number=data['phone'],
                    date_of_birth=data['dateOfBirth'],
                )
                _, raw_token = EmailVerificationToken.issue(user)
                if not settings.DEBUG:
                    send_verification_email(self.mailer, user, raw_token)
        except IntegrityError:
            raise Conflict('An account with this email already exists.', code='EMAIL_TAKEN')
        except MAIL_ERRORS as e:
            logger.error(f"Registration for {data['email']} rolled back, verification email failed: {e}")
            raise UpstreamUnavailable(
                'We could not send your verification email. Please try again later.',
                code='EMAIL_SEND_FAILED',
            )

        logger.info(f"Registered new user {user.email}")
        if settings.DEBUG:
            transaction.on_commit(
                lambda: self.mailer.best_effort(send_verification_email, self.mailer, user, raw_token)
            )
            return user, build_verify_link(raw_token)
        return user, None

    def verify_email(self, raw_token):
        """Consume a verification token and return one of the result codes"""
        raw_token = (raw_token or '').strip()
        if not raw_token:
            return TOKEN_MISSING, None

        with transaction.atomic():
            token = (
                EmailVerificationToken.objects
                .select_for_update()
                .select_related('user')
                .filter(token_hash=hash_token(raw_token))
                .first()
            )
            if token is None:
                return TOKEN_INVALID, None

            user = token.user
            if token.is_expired:
                token.delete()
                return TOKEN_EXPIRED, user

            if user.email_verified_at:
                user.verification_tokens.all().delete()
                return ALREADY_VERIFIED, user

            user.email_verified_at = timezone.now()
            user.save(update_fields=['email_verified_at', 'updated_at'])
            user.verification_tokens.all().delete()

        logger.info(f"Email verified for {user.email}")
        return OK, user

    def resend_verification(self, email, ip_address=None):
        """
        Re-issue a verification link. Always silent towards the caller so the
        endpoint cannot be used to discover registered addresses.
        """
        email = (email or '').strip().lower()
        ip_limit, ip_window = settings.RESEND_VERIFICATION_IP_LIMIT
        email_limit, email_window = settings.RESEND_VERIFICATION_EMAIL_LIMIT

        if ip_address and not allow_attempt(f"resend-verify:ip:{ip_address}", ip_limit, ip_window):
            logger.warning(f"Verification resend rate limited for ip {ip_address}")
            return False
        if not email or not allow_attempt(f"resend-verify:email:{email}", email_limit, email_window):
            logger.warning(f"Verification resend rate limited or empty for {email!r}")
            return False

        user = User.objects.filter(email__iexact=email, email_verified_at__isnull=True).first()
        if user is None:
            return False

        with transaction.atomic():
            user.verification_tokens.all().delete()
            _, raw_token = EmailVerificationToken.issue(user)

        return self.mailer.best_effort(send_verification_email, self.mailer, user, raw_token)

    def request_password_reset(self, email, ip_address=None):
        """
        Issue a password reset link for ``email`` if it belongs to an active
        account. Callers always answer with the same neutral message.

        Every request is logged, best effort. Earlier tokens for the account
        are dropped. In DEBUG the link is returned instead of emailed.
        """
        email = (email or '').strip().lower()
        user = User.objects.filter(email__iexact=email, is_active=True).first()

        try:
            with transaction.atomic():
                PasswordResetAttempt.objects.create(user=user, email=email, ip_address=ip_address)
        except DatabaseError as e:
            logger.warning(f"Could not record password reset attempt for {email}: {e}")

        if user is None:
            return None

        with transaction.atomic():
            user.password_reset_tokens.all().delete()
            _, raw_token = PasswordResetToken.issue(user)

        if settings.DEBUG:
            logger.info(f"Password reset link issued for {user.email} (debug, not emailed)")
            return build_reset_link(raw_token)

        self.mailer.best_effort(send_password_reset_email, self.mailer, user, raw_token)
        return None

    def reset_password(self, raw_token, password):
        """Consume a reset token, set the new password and sign the account out everywhere"""
        raw_token = (raw_token or '').strip()
        if not raw_token:
            raise ValidationFailed('Missing reset token.', code='RESET_TOKEN_MISSING')

        with transaction.atomic():
            token = (
                PasswordResetToken.objects
                .select_for_update()
                .select_related('user')
                .filter(token_hash=hash_token(raw_token))
                .first()
            )
            if token is None or not token.is_usable:
                raise ValidationFailed('This reset link is invalid or has expired.', code='RESET_TOKEN_INVALID')

            user = token.user
            user.set_password(password)
            user.save(update_fields=['password', 'updated_at'])
            token.used_at = timezone.now()
            token.save(update_fields=['used_at'])
            user.password_reset_tokens.exclude(pk=token.pk).delete()
            revoked = revoke_refresh_tokens(user)

        logger.info(f"Password reset for {user.email}, {revoked} refresh token(s) revoked")
        return user


def allow_attempt(key, limit, window_seconds):
    """Fixed-window counter in the shared cache"""
    cache.add(key, 0, window_seconds)
    try:
        count = cache.incr(key)
    except ValueError:
        cache.set(key, 1, window_seconds)
        count = 1
    return count <= limit


def set_admin_second_factor(user, password, ip_address=None, user_agent=''):
    """Configure the caller's own second-factor password, once"""
    with transaction.atomic():
        locked = User.objects.select_for_update().get(pk=user.pk)
        if locked.has_second_factor:
            raise SecondFactorAlreadySet()
        locked.set_second_factor(password)
        locked.save(update_fields=['admin_second_factor_hash', 'updated_at'])
        AuditTrail.record(
            action=SUPERADMIN_SECOND_FACTOR_SET,
            actor=locked,
            target_type='user',
            target_id=locked.pk,
            meta={'method': 'self-service'},
            ip_address=ip_address,
            user_agent=user_agent,
        )
    logger.info(f"Second factor configured for {locked.email}")
    return locked
