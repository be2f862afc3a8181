from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import RequestFactory, TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from .actions import (
    AUDIT_ACTIONS,
    CATEGORY_CONTENT,
    COURSE_UPDATED,
    HOMEPAGE_FEATURED_UPDATED,
    SUPERADMIN_SECOND_FACTOR_SET,
    USER_PROMOTE_ADMIN,
    get_action,
)
from .models import AuditEvent, AuditImmutableError
from .services import AuditPolicyError, AuditTrail, get_client_ip

User = get_user_model()


def make_user(email, **extra):
    return User.objects.create_user(email=email, password='testpass123', first_name='Audit',
                                    last_name='Tester', **extra)


class AuditActionRegistryTests(TestCase):

    def test_identity_and_security_actions_are_durable(self):
        self.assertTrue(get_action(USER_PROMOTE_ADMIN).requires_durable_audit)
        self.assertTrue(get_action(SUPERADMIN_SECOND_FACTOR_SET).requires_durable_audit)

    def test_content_actions_are_best_effort(self):
        for action in AUDIT_ACTIONS.values():
            if action.category == CATEGORY_CONTENT:
                self.assertFalse(action.requires_durable_audit, action.name)

    def test_unknown_action(self):
        with self.assertRaises(ValueError):
            get_action('USER_DELETED_EVERYTHING')


class AuditTrailTests(TestCase):

    def setUp(self):
        self.actor = make_user('actor@example.com', is_admin=True)

    def test_record_durable_event(self):
        event = AuditTrail.record(
            action=USER_PROMOTE_ADMIN,
            actor=self.actor,
            target_type='user',
            target_id=42,
            before={'role': 'USER'},
            after={'role': 'ADMIN'},
            ip_address='203.0.113.7',
        )
        self.assertEqual(event.target_id, '42')
        self.assertEqual(event.category, 'identity')
        self.assertEqual(AuditEvent.objects.count(), 1)

    def test_best_effort_failure_returns_none(self):
        with patch.object(AuditEvent.objects, 'create', side_effect=DatabaseError('disk full')):
            event = AuditTrail.record(action=COURSE_UPDATED, actor=self.actor, target_type='course', target_id=1)
        self.assertIsNone(event)

    def test_durable_failure_propagates(self):
        with patch.object(AuditEvent.objects, 'create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(DatabaseError):
                AuditTrail.record(action=USER_PROMOTE_ADMIN, actor=self.actor, target_type='user', target_id=1)

    def test_events_are_immutable(self):
        event = AuditTrail.record(action=COURSE_UPDATED, actor=self.actor, target_type='course', target_id=1)

        event.target_id = '2'
        with self.assertRaises(AuditImmutableError):
            event.save()
        with self.assertRaises(AuditImmutableError):
            event.delete()
        with self.assertRaises(AuditImmutableError):
            AuditEvent.objects.filter(pk=event.pk).update(target_id='3')
        with self.assertRaises(AuditImmutableError):
            AuditEvent.objects.all().delete()
        self.assertEqual(AuditEvent.objects.get(pk=event.pk).target_id, '1')


class AuditOutsideTransactionTests(TransactionTestCase):

    def test_durable_action_requires_transaction(self):
        actor = make_user('outside@example.com', is_super_admin=True)
        with self.assertRaises(AuditPolicyError):
            AuditTrail.record(action=USER_PROMOTE_ADMIN, actor=actor, target_type='user', target_id=1)
        self.assertEqual(AuditEvent.objects.count(), 0)

    def test_best_effort_action_outside_transaction(self):
        actor = make_user('outside2@example.com', is_admin=True)
        event = AuditTrail.record(action=HOMEPAGE_FEATURED_UPDATED, actor=actor, target_type='course', target_id=1)
        self.assertIsNotNone(event)


class ClientIPTests(TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_forwarded_for_first_hop(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='198.51.100.4, 10.0.0.1')
        self.assertEqual(get_client_ip(request), '198.51.100.4')

    def test_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='192.0.2.10')
        self.assertEqual(get_client_ip(request), '192.0.2.10')

    def test_garbage_is_dropped(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='not-an-ip')
        self.assertIsNone(get_client_ip(request))


class AuditEventsAPITests(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', is_admin=True)
        AuditTrail.record(action=COURSE_UPDATED, actor=self.admin, target_type='course', target_id=7,
                          after={'title': 'Applied Data Science'})
        AuditTrail.record(action=HOMEPAGE_FEATURED_UPDATED, actor=self.admin, target_type='course', target_id=8,
                          meta={'section': 'POPULAR'})

    def test_list_and_filter(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/admin/audit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['data'][0]['action'], HOMEPAGE_FEATURED_UPDATED)

        response = self.client.get('/api/admin/audit/', {'action': COURSE_UPDATED})
        self.assertEqual([row['targetId'] for row in response.data['data']], ['7'])

        response = self.client.get('/api/admin/audit/', {'q': 'data science'})
        self.assertEqual([row['targetId'] for row in response.data['data']], ['7'])

        response = self.client.get('/api/admin/audit/', {'limit': 1})
        self.assertEqual(response.data['count'], 1)

    def test_requires_admin(self):
        self.client.force_authenticate(user=make_user('plain@example.com'))
        response = self.client.get('/api/admin/audit/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=None)
        response = self.client.get('/api/admin/audit/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
