from unittest.mock import MagicMock

import requests
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings

from audit.models import AuditEvent
from audit.services import AuditTrail
from backend.errors import NotFound, ValidationFailed
from users.elevated_actions import ChangeRoleAction, VerifyEmailAction

from .approval_gate import (
    ApprovalGate,
    JustificationRequired,
    SecondFactorInvalid,
    SecondFactorNotSet,
    SelfActionForbidden,
)
from .turnstile import verify_turnstile

User = get_user_model()

JUSTIFICATION = 'Granting access for the admissions review'


def make_user(email, **extra):
    return User.objects.create_user(email=email, password='testpass123', first_name='Gate',
                                    last_name='Tester', **extra)


def fake_session(payload=None, error=None):
    session = MagicMock()
    if error is not None:
        session.post.side_effect = error
    else:
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        session.post.return_value = response
    return session


class TurnstileTests(SimpleTestCase):

    @override_settings(TURNSTILE_SECRET_KEY='')
    def test_bypassed_without_secret(self):
        result = verify_turnstile(None)
        self.assertTrue(result.success)
        self.assertTrue(result.bypassed)

    def test_missing_token(self):
        session = fake_session({'success': True})
        result = verify_turnstile('', secret='secret', session=session)
        self.assertFalse(result.success)
        self.assertEqual(result.error_codes, ['missing-input-response'])
        session.post.assert_not_called()

    def test_success(self):
        session = fake_session({'success': True})
        result = verify_turnstile('token', remote_ip='203.0.113.9', secret='secret', session=session)

        self.assertTrue(result.success)
        self.assertFalse(result.bypassed)
        _, kwargs = session.post.call_args
        self.assertEqual(kwargs['data'], {'secret': 'secret', 'response': 'token', 'remoteip': '203.0.113.9'})
        self.assertEqual(kwargs['timeout'], 10)

    def test_rejected_token_maps_message(self):
        session = fake_session({'success': False, 'error-codes': ['timeout-or-duplicate']})
        result = verify_turnstile('token', secret='secret', session=session)
        self.assertFalse(result.success)
        self.assertIn('expired', result.message)

    def test_network_error(self):
        session = fake_session(error=requests.ConnectionError('unreachable'))
        result = verify_turnstile('token', secret='secret', session=session)
        self.assertFalse(result.success)
        self.assertEqual(result.error_codes, ['network-error'])


class FailingAudit:
    """Audit collaborator whose write always fails"""

    @staticmethod
    def record(**kwargs):
        raise DatabaseError('audit table unavailable')


class ExplodingRoleAction(ChangeRoleAction):

    def apply(self, target, params):
        super().apply(target, params)
        raise RuntimeError('mutation failed half way')


class ApprovalGateTests(TestCase):

    def setUp(self):
        self.super_admin = make_user('super@example.com', is_super_admin=True)
        self.target = make_user('target@example.com')

    def run_role_change(self, gate, role='ADMIN', **kwargs):
        kwargs.setdefault('justification', JUSTIFICATION)
        return gate.run(actor=self.super_admin, target_id=self.target.pk, params={'role': role}, **kwargs)

    def test_audit_failure_leaves_no_mutation(self):
        with self.assertRaises(DatabaseError):
            self.run_role_change(ApprovalGate(ChangeRoleAction(), audit=FailingAudit))

        self.target.refresh_from_db()
        self.assertFalse(self.target.is_admin)

    def test_mutation_failure_leaves_no_audit(self):
        with self.assertRaises(RuntimeError):
            self.run_role_change(ApprovalGate(ExplodingRoleAction()))

        self.target.refresh_from_db()
        self.assertFalse(self.target.is_admin)
        self.assertEqual(AuditEvent.objects.count(), 0)

    def test_success_returns_snapshots(self):
        result = self.run_role_change(ApprovalGate(ChangeRoleAction(), audit=AuditTrail))
        self.assertFalse(result.already)
        self.assertEqual(result.before['role'], 'USER')
        self.assertEqual(result.after['role'], 'ADMIN')
        self.assertEqual(result.audit_event.action, 'USER_PROMOTE_ADMIN')

    def test_justification_is_checked_before_target(self):
        with self.assertRaises(JustificationRequired):
            self.run_role_change(ApprovalGate(ChangeRoleAction()), justification='   too short   ')

    def test_self_action_rejected_before_any_write(self):
        gate = ApprovalGate(VerifyEmailAction())
        with self.assertRaises(SelfActionForbidden):
            gate.run(actor=self.super_admin, target_id=str(self.super_admin.pk), justification=JUSTIFICATION)

        self.super_admin.refresh_from_db()
        self.assertIsNone(self.super_admin.email_verified_at)
        self.assertEqual(AuditEvent.objects.count(), 0)

    @override_settings(ELEVATED_ACTIONS_REQUIRE_SECOND_FACTOR=True)
    def test_second_factor_can_be_mandatory(self):
        with self.assertRaises(SecondFactorNotSet) as caught:
            self.run_role_change(ApprovalGate(ChangeRoleAction()))
        self.assertEqual(caught.exception.status_code, 403)
        self.assertEqual(caught.exception.code, 'SECOND_FACTOR_NOT_SET')

    def test_checks_run_in_order(self):
        self.super_admin.set_second_factor('factor-pass-1')
        self.super_admin.save()
        gate = ApprovalGate(ChangeRoleAction())

        # bad params are reported before a missing justification
        with self.assertRaises(ValidationFailed) as caught:
            gate.run(actor=self.super_admin, target_id=self.target.pk, params={'role': 'KING'})
        self.assertEqual(caught.exception.code, 'VALIDATION_FAILED')

        # the second factor is checked before the self-action guard
        with self.assertRaises(SecondFactorInvalid):
            gate.run(actor=self.super_admin, target_id=self.super_admin.pk, params={'role': 'USER'},
                     justification=JUSTIFICATION, second_factor='wrong-factor')

        # the self-action guard runs before the target is looked up
        with self.assertRaises(SelfActionForbidden):
            gate.run(actor=self.super_admin, target_id=self.super_admin.pk, params={'role': 'USER'},
                     justification=JUSTIFICATION, second_factor='factor-pass-1')

        with self.assertRaises(NotFound):
            gate.run(actor=self.super_admin, target_id='00000000-0000-0000-0000-000000000000',
                     params={'role': 'ADMIN'}, justification=JUSTIFICATION, second_factor='factor-pass-1')
        self.assertEqual(AuditEvent.objects.count(), 0)
