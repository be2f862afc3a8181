# users/tests.py
import re
import smtplib
from datetime import date, timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from audit.actions import (
    SUPERADMIN_SECOND_FACTOR_SET,
    USER_EMAIL_VERIFIED_BY_ADMIN,
    USER_PROMOTE_ADMIN,
    USER_PROMOTE_SUPERADMIN,
)
from audit.models import AuditEvent

from .models import (
    EmailVerificationToken, PasswordResetAttempt, PasswordResetToken, hash_token, reset_token_ttl_minutes,
)

User = get_user_model()

JUSTIFICATION = 'Needed to review the spring intake applications'
SECOND_FACTOR = 'second-factor-pass'


def make_user(email, password='testpass123', **extra):
    extra.setdefault('first_name', 'Test')
    extra.setdefault('last_name', 'User')
    return User.objects.create_user(email=email, password=password, **extra)


def make_super_admin(email='super@example.com', second_factor=SECOND_FACTOR):
    user = make_user(email, is_super_admin=True, email_verified_at=timezone.now())
    if second_factor:
        user.set_second_factor(second_factor)
        user.save()
    return user


class UserModelTests(TestCase):
    """Test User model functionality"""

    def test_create_user_lowercases_email(self):
        user = make_user('Jane.Doe@Example.COM')
        self.assertEqual(user.email, 'jane.doe@example.com')
        self.assertTrue(user.check_password('testpass123'))
        self.assertEqual(user.role, User.ROLE_USER)
        self.assertFalse(user.is_email_verified)

    def test_super_admin_is_always_admin(self):
        user = make_user('boss@example.com', is_super_admin=True)
        self.assertTrue(user.is_admin)
        self.assertEqual(user.role, User.ROLE_SUPER_ADMIN)

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='root@example.com', password='rootpass123',
                                             first_name='Root', last_name='User')
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, User.ROLE_SUPER_ADMIN)

    def test_apply_role(self):
        user = make_user('someone@example.com')
        user.apply_role(User.ROLE_ADMIN)
        self.assertTrue(user.is_admin)
        self.assertFalse(user.is_super_admin)
        user.apply_role(User.ROLE_USER)
        self.assertFalse(user.is_admin)
        with self.assertRaises(ValueError):
            user.apply_role('OWNER')

    def test_second_factor_is_hashed(self):
        user = make_user('admin@example.com')
        self.assertFalse(user.has_second_factor)
        user.set_second_factor(SECOND_FACTOR)
        self.assertNotEqual(user.admin_second_factor_hash, SECOND_FACTOR)
        self.assertTrue(user.check_second_factor(SECOND_FACTOR))
        self.assertFalse(user.check_second_factor('wrong-password'))
        self.assertFalse(user.check_second_factor(''))

    def test_verification_token_stores_digest_only(self):
        user = make_user('token@example.com')
        token, raw = EmailVerificationToken.issue(user)
        self.assertEqual(token.token_hash, hash_token(raw))
        self.assertNotIn(raw, token.token_hash)
        self.assertFalse(token.is_expired)


class RegistrationAPITests(APITestCase):

    def setUp(self):
        cache.clear()
        self.payload = {
            'firstName': 'Jane',
            'lastName': 'Doe',
            'email': 'Jane@Example.com',
            'phone': '+44 7700 900123',
            'dateOfBirth': '1995-04-12',
            'password': 'correct-horse-1',
        }

    def test_register_sends_verification_email(self):
        response = self.client.post('/api/auth/register/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['email'], 'jane@example.com')
        self.assertFalse(response.data['user']['emailVerified'])
        self.assertNotIn('devVerifyLink', response.data)
        self.assertEqual(EmailVerificationToken.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['jane@example.com'])

        raw = re.search(r'token=([\w-]+)', mail.outbox[0].body).group(1)
        verify = self.client.post('/api/auth/verify-email/', {'token': raw}, format='json')
        self.assertEqual(verify.status_code, status.HTTP_200_OK)
        self.assertEqual(verify.data['code'], 'OK')
        self.assertIsNotNone(User.objects.get(email='jane@example.com').email_verified_at)
        self.assertEqual(EmailVerificationToken.objects.count(), 0)

    def test_duplicate_email_conflicts(self):
        make_user('jane@example.com')
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'EMAIL_TAKEN')
        self.assertFalse(response.data['success'])

    def test_invalid_payload(self):
        self.payload['phone'] = '12345'
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_FAILED')
        self.assertIn('phone', response.data['errors'])
        self.assertEqual(User.objects.count(), 0)

    def test_date_of_birth_must_be_in_past(self):
        self.payload['dateOfBirth'] = (date.today() + timedelta(days=2)).isoformat()
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mail_failure_rolls_back_account(self):
        with patch('users.services.send_verification_email', side_effect=smtplib.SMTPException('down')):
            response = self.client.post('/api/auth/register/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['code'], 'EMAIL_SEND_FAILED')
        self.assertEqual(User.objects.count(), 0)
        self.assertEqual(EmailVerificationToken.objects.count(), 0)

    @override_settings(DEBUG=True)
    def test_debug_returns_dev_link(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('/verify-email?token=', response.data['devVerifyLink'])


class EmailVerificationAPITests(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = make_user('verify@example.com')

    def verify(self, token):
        return self.client.post('/api/auth/verify-email/', {'token': token}, format='json')

    def test_missing_token(self):
        response = self.verify('')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TOKEN_MISSING')

    def test_unknown_token(self):
        response = self.verify('not-a-real-token')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TOKEN_INVALID')

    def test_expired_token_is_deleted(self):
        token, raw = EmailVerificationToken.issue(self.user)
        token.expires_at = timezone.now() - timedelta(minutes=1)
        token.save()

        response = self.verify(raw)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TOKEN_EXPIRED')
        self.assertFalse(EmailVerificationToken.objects.filter(pk=token.pk).exists())

    def test_already_verified(self):
        _, raw = EmailVerificationToken.issue(self.user)
        self.user.email_verified_at = timezone.now()
        self.user.save()

        response = self.verify(raw)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'ALREADY_VERIFIED')

    def test_resend_is_neutral_for_unknown_email(self):
        response = self.client.post('/api/auth/resend-verification/', {'email': 'nobody@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    def test_resend_replaces_token(self):
        old, _ = EmailVerificationToken.issue(self.user)
        response = self.client.post('/api/auth/resend-verification/', {'email': 'verify@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertFalse(EmailVerificationToken.objects.filter(pk=old.pk).exists())
        self.assertEqual(self.user.verification_tokens.count(), 1)

    def test_resend_is_rate_limited_per_email(self):
        for _ in range(5):
            response = self.client.post('/api/auth/resend-verification/', {'email': 'verify@example.com'},
                                        format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 3)


class LoginAPITests(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = make_user('login@example.com', password='login-pass-1')

    def test_login_returns_token_pair(self):
        response = self.client.post('/api/auth/login/', {'email': 'LOGIN@example.com', 'password': 'login-pass-1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'login@example.com')

        me = self.client.get('/api/auth/me/', HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['user']['id'], str(self.user.pk))

    def test_bad_credentials(self):
        response = self.client.post('/api/auth/login/', {'email': 'login@example.com', 'password': 'nope-nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'INVALID_CREDENTIALS')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'UNAUTHENTICATED')

    def test_logout_blacklists_refresh(self):
        tokens = self.client.post('/api/auth/login/', {'email': 'login@example.com', 'password': 'login-pass-1'},
                                  format='json').data
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        again = self.client.post('/api/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(again.data['code'], 'TOKEN_INVALID')


class PasswordResetAPITests(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = make_user('reset@example.com', password='old-password-1', first_name='Rita')

    def request_reset(self, email, **extra):
        return self.client.post('/api/auth/request-password-reset/', {'email': email}, format='json', **extra)

    def reset(self, token, password='new-password-1'):
        return self.client.post('/api/auth/reset-password/', {'token': token, 'password': password}, format='json')

    def test_unknown_email_is_neutral(self):
        known = self.request_reset('reset@example.com')
        unknown = self.request_reset('nobody@example.com')

        self.assertEqual(unknown.status_code, status.HTTP_200_OK)
        self.assertEqual(unknown.data, known.data)
        self.assertNotIn('devResetLink', unknown.data)
        self.assertEqual(PasswordResetToken.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_every_request_is_logged(self):
        self.request_reset('reset@example.com', REMOTE_ADDR='203.0.113.9')
        self.request_reset('nobody@example.com')

        attempts = PasswordResetAttempt.objects.order_by('created_at', 'pk')
        self.assertEqual([(a.email, a.user_id) for a in attempts],
                         [('reset@example.com', self.user.pk), ('nobody@example.com', None)])
        self.assertEqual(attempts[0].ip_address, '203.0.113.9')

    def test_attempt_log_failure_does_not_block(self):
        with patch.object(PasswordResetAttempt.objects, 'create', side_effect=DatabaseError('locked')):
            response = self.request_reset('reset@example.com')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(PasswordResetToken.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_invalid_email(self):
        response = self.request_reset('not-an-email')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_FAILED')
        self.assertEqual(PasswordResetAttempt.objects.count(), 0)

    def test_new_request_replaces_old_token(self):
        old, _ = PasswordResetToken.issue(self.user)
        self.request_reset('Reset@Example.com')

        self.assertFalse(PasswordResetToken.objects.filter(pk=old.pk).exists())
        self.assertEqual(self.user.password_reset_tokens.count(), 1)
        self.assertEqual(mail.outbox[0].to, ['reset@example.com'])

    def test_reset_sets_password_once(self):
        self.request_reset('reset@example.com')
        raw = re.search(r'token=([\w-]+)', mail.outbox[0].body).group(1)

        response = self.reset(raw)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'reset@example.com')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('new-password-1'))
        self.assertIsNotNone(PasswordResetToken.objects.get().used_at)

        again = self.reset(raw, password='another-password-2')
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(again.data['code'], 'RESET_TOKEN_INVALID')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('new-password-1'))

    def test_reset_revokes_refresh_tokens(self):
        tokens = self.client.post('/api/auth/login/', {'email': 'reset@example.com', 'password': 'old-password-1'},
                                  format='json').data
        _, raw = PasswordResetToken.issue(self.user)

        self.assertEqual(self.reset(raw).status_code, status.HTTP_200_OK)
        self.assertEqual(BlacklistedToken.objects.filter(token__user=self.user).count(), 1)

        self.client.force_authenticate(user=self.user)
        logout = self.client.post('/api/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(logout.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(logout.data['code'], 'TOKEN_INVALID')

    def test_expired_token_rejected(self):
        token, raw = PasswordResetToken.issue(self.user)
        token.expires_at = timezone.now() - timedelta(seconds=1)
        token.save()

        response = self.reset(raw)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'This reset link is invalid or has expired.')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('old-password-1'))

    def test_short_password_rejected(self):
        _, raw = PasswordResetToken.issue(self.user)
        response = self.reset(raw, password='short')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data['errors'])
        self.assertIsNone(PasswordResetToken.objects.get().used_at)

    @override_settings(DEBUG=True)
    def test_debug_returns_dev_link(self):
        response = self.request_reset('reset@example.com')
        self.assertIn('/reset-password?token=', response.data['devResetLink'])
        self.assertEqual(len(mail.outbox), 0)

        raw = response.data['devResetLink'].split('token=', 1)[1]
        self.assertEqual(PasswordResetToken.objects.get().token_hash, hash_token(raw))

    def test_token_lifetime_is_clamped(self):
        for configured, expected in ((10, 10), (0, 10), (-5, 10), (5000, 24 * 60), (1, 1)):
            with self.subTest(configured=configured), override_settings(PASSWORD_RESET_TTL_MINUTES=configured):
                self.assertEqual(reset_token_ttl_minutes(), expected)
                token, _ = PasswordResetToken.issue(self.user)
                remaining = token.expires_at - timezone.now()
                self.assertLessEqual(remaining, timedelta(minutes=expected))
                self.assertGreater(remaining, timedelta(minutes=expected) - timedelta(seconds=30))


class RoleChangeAPITests(APITestCase):
    """Role escalation through the approval gate"""

    def setUp(self):
        self.super_admin = make_super_admin()
        self.target = make_user('target@example.com')
        self.url = f'/api/admin/users/{self.target.pk}/role/'

    def change_role(self, actor, url=None, **body):
        self.client.force_authenticate(user=actor)
        body.setdefault('justification', JUSTIFICATION)
        return self.client.patch(url or self.url, body, format='json')

    def test_promotion_requires_second_factor(self):
        response = self.change_role(self.super_admin, role='SUPER_ADMIN')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'SECOND_FACTOR_REQUIRED')

        response = self.change_role(self.super_admin, role='SUPER_ADMIN', secondFactor='wrong-password')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'SECOND_FACTOR_INVALID')

        self.target.refresh_from_db()
        self.assertFalse(self.target.is_super_admin)
        self.assertEqual(AuditEvent.objects.count(), 0)

        response = self.change_role(self.super_admin, role='SUPER_ADMIN', secondFactor=SECOND_FACTOR)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['already'])
        self.target.refresh_from_db()
        self.assertTrue(self.target.is_super_admin)
        self.assertTrue(self.target.is_admin)

        events = AuditEvent.objects.filter(target_id=str(self.target.pk))
        self.assertEqual(events.count(), 1)
        event = events.get()
        self.assertEqual(event.action, USER_PROMOTE_SUPERADMIN)
        self.assertEqual(event.actor, self.super_admin)
        self.assertEqual(event.before['role'], 'USER')
        self.assertEqual(event.after['role'], 'SUPER_ADMIN')
        self.assertEqual(event.meta['justification'], JUSTIFICATION)

    def test_repeat_change_is_a_noop(self):
        self.change_role(self.super_admin, role='ADMIN', secondFactor=SECOND_FACTOR)
        response = self.change_role(self.super_admin, role='ADMIN', secondFactor=SECOND_FACTOR)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['already'])
        self.assertEqual(AuditEvent.objects.filter(action=USER_PROMOTE_ADMIN).count(), 1)

    def test_short_justification_rejected(self):
        response = self.change_role(self.super_admin, role='ADMIN', secondFactor=SECOND_FACTOR,
                                    justification='because')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'JUSTIFICATION_REQUIRED')

    def test_cannot_change_own_role(self):
        url = f'/api/admin/users/{self.super_admin.pk}/role/'
        response = self.change_role(self.super_admin, url=url, role='USER', secondFactor=SECOND_FACTOR)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'SELF_ACTION_FORBIDDEN')
        self.super_admin.refresh_from_db()
        self.assertTrue(self.super_admin.is_super_admin)
        self.assertEqual(AuditEvent.objects.count(), 0)

    def test_admin_cannot_change_roles(self):
        admin = make_user('admin@example.com', is_admin=True)
        response = self.change_role(admin, role='ADMIN')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')

    def test_invalid_role(self):
        response = self.change_role(self.super_admin, role='OWNER', secondFactor=SECOND_FACTOR)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data['errors'])

    def test_unknown_user(self):
        url = '/api/admin/users/00000000-0000-0000-0000-000000000000/role/'
        response = self.change_role(self.super_admin, url=url, role='ADMIN', secondFactor=SECOND_FACTOR)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ManualVerifyEmailAPITests(APITestCase):

    def setUp(self):
        self.super_admin = make_super_admin()
        self.target = make_user('unverified@example.com')
        EmailVerificationToken.issue(self.target)
        self.url = f'/api/admin/users/{self.target.pk}/verify-email/'
        self.client.force_authenticate(user=self.super_admin)
        self.body = {'justification': JUSTIFICATION, 'secondFactor': SECOND_FACTOR}

    def test_verify_is_idempotent(self):
        first = self.client.post(self.url, self.body, format='json')
        second = self.client.post(self.url, self.body, format='json')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertFalse(first.data['alreadyVerified'])
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data['alreadyVerified'])

        self.target.refresh_from_db()
        self.assertIsNotNone(self.target.email_verified_at)
        self.assertEqual(self.target.verification_tokens.count(), 0)
        events = AuditEvent.objects.filter(action=USER_EMAIL_VERIFIED_BY_ADMIN)
        self.assertEqual(events.count(), 1)
        self.assertEqual(events.get().meta['method'], 'manual-admin-override')

    def test_plain_admin_forbidden(self):
        self.client.force_authenticate(user=make_user('admin@example.com', is_admin=True))
        response = self.client.post(self.url, {'justification': JUSTIFICATION}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'FORBIDDEN')
        self.target.refresh_from_db()
        self.assertIsNone(self.target.email_verified_at)
        self.assertEqual(self.target.verification_tokens.count(), 1)
        self.assertFalse(AuditEvent.objects.filter(action=USER_EMAIL_VERIFIED_BY_ADMIN).exists())

    def test_wrong_second_factor(self):
        response = self.client.post(self.url, {'justification': JUSTIFICATION, 'secondFactor': 'not-it'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'SECOND_FACTOR_INVALID')

    def test_regular_user_forbidden(self):
        self.client.force_authenticate(user=make_user('plain@example.com'))
        response = self.client.post(self.url, {'justification': JUSTIFICATION}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.target.refresh_from_db()
        self.assertIsNone(self.target.email_verified_at)


class SecondFactorAPITests(APITestCase):

    def test_set_once(self):
        super_admin = make_super_admin(second_factor=None)
        self.client.force_authenticate(user=super_admin)

        response = self.client.post('/api/admin/second-factor/', {'password': SECOND_FACTOR}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        super_admin.refresh_from_db()
        self.assertTrue(super_admin.check_second_factor(SECOND_FACTOR))
        self.assertEqual(AuditEvent.objects.filter(action=SUPERADMIN_SECOND_FACTOR_SET).count(), 1)

        self.client.force_authenticate(user=super_admin)
        again = self.client.post('/api/admin/second-factor/', {'password': 'another-pass'}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['code'], 'SECOND_FACTOR_ALREADY_SET')

    def test_admin_cannot_set(self):
        self.client.force_authenticate(user=make_user('admin@example.com', is_admin=True))
        response = self.client.post('/api/admin/second-factor/', {'password': SECOND_FACTOR}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UsersListAPITests(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', is_admin=True, first_name='Ada')
        make_user('bob@example.com', first_name='Bob')
        make_user('carol@example.com', first_name='Carol')

    def test_search_and_pagination(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/admin/users/', {'q': 'bob'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['email'] for row in response.data['data']], ['bob@example.com'])

        response = self.client.get('/api/admin/users/', {'limit': 2})
        self.assertEqual(len(response.data['data']), 2)
        self.assertEqual(response.data['pagination']['total'], 3)
        self.assertTrue(response.data['pagination']['has_more'])

    def test_regular_user_forbidden(self):
        self.client.force_authenticate(user=make_user('plain@example.com'))
        response = self.client.get('/api/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
