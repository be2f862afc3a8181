from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from rest_framework import status
from rest_framework.test import APITestCase

from audit.actions import NEWSLETTER_SENT, NEWSLETTER_SUBSCRIBER_UPDATED
from audit.models import AuditEvent
from notifications.models import EmailLog

from .models import NewsletterSubscriber

User = get_user_model()

HTML = '<p>Open day is on Saturday.</p>'


class SubscribeAPITests(APITestCase):

    def setUp(self):
        cache.clear()

    def subscribe(self, **body):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.post('/api/newsletter/subscribe/', body, format='json')

    def test_new_subscriber_gets_welcome(self):
        response = self.subscribe(email='Reader@Example.com', name='Reader', source='footer')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['reactivated'])
        subscriber = NewsletterSubscriber.objects.get()
        self.assertEqual(subscriber.email, 'reader@example.com')
        self.assertTrue(subscriber.is_active)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['reader@example.com'])
        self.assertTrue(EmailLog.objects.filter(message_type='newsletter_welcome', status='sent').exists())

    def test_already_active_is_noop(self):
        NewsletterSubscriber.objects.create(email='reader@example.com')
        response = self.subscribe(email='reader@example.com')

        self.assertFalse(response.data['reactivated'])
        self.assertEqual(len(mail.outbox), 0)

    def test_reactivation(self):
        NewsletterSubscriber.objects.create(email='reader@example.com', is_active=False)
        response = self.subscribe(email='reader@example.com', name='Back Again')

        self.assertTrue(response.data['reactivated'])
        subscriber = NewsletterSubscriber.objects.get()
        self.assertTrue(subscriber.is_active)
        self.assertIsNone(subscriber.unsubscribed_at)
        self.assertEqual(subscriber.name, 'Back Again')
        self.assertEqual(len(mail.outbox), 1)

    def test_invalid_email(self):
        response = self.subscribe(email='not-an-email')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_FAILED')
        self.assertFalse(NewsletterSubscriber.objects.exists())

    def test_mail_failure_keeps_subscription(self):
        with patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('smtp down')):
            response = self.subscribe(email='reader@example.com')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(NewsletterSubscriber.objects.filter(email='reader@example.com').exists())
        self.assertEqual(EmailLog.objects.get().status, 'failed')


class SubscriberAdminAPITests(APITestCase):

    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', is_admin=True)
        self.super_admin = User.objects.create_user(email='root@example.com', password='testpass123',
                                                    is_super_admin=True)
        self.active = NewsletterSubscriber.objects.create(email='one@example.com', name='One')
        self.other = NewsletterSubscriber.objects.create(email='two@example.com', name='Two')
        self.inactive = NewsletterSubscriber.objects.create(email='gone@example.com', is_active=False)

    def test_list_filters(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/admin/newsletter/subscribers/', {'active': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/admin/newsletter/subscribers/', {'active': 'false'})
        self.assertEqual([row['email'] for row in response.data['data']], ['gone@example.com'])

        response = self.client.get('/api/admin/newsletter/subscribers/', {'q': 'two', 'limit': 1})
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertFalse(response.data['pagination']['has_more'])

    def test_edit_requires_super_admin(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(f'/api/admin/newsletter/subscribers/{self.active.pk}/',
                                     {'isActive': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate(self):
        self.client.force_authenticate(user=self.super_admin)
        response = self.client.patch(f'/api/admin/newsletter/subscribers/{self.active.pk}/',
                                     {'isActive': False}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.active.refresh_from_db()
        self.assertFalse(self.active.is_active)
        self.assertIsNotNone(self.active.unsubscribed_at)
        event = AuditEvent.objects.get(action=NEWSLETTER_SUBSCRIBER_UPDATED)
        self.assertTrue(event.before['isActive'])
        self.assertFalse(event.after['isActive'])

    def test_delete(self):
        self.client.force_authenticate(user=self.super_admin)
        response = self.client.delete(f'/api/admin/newsletter/subscribers/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(NewsletterSubscriber.objects.filter(pk=self.other.pk).exists())

        response = self.client.delete(f'/api/admin/newsletter/subscribers/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class NewsletterSendAPITests(APITestCase):

    url = '/api/admin/newsletter/send/'

    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', is_admin=True)
        self.client.force_authenticate(user=self.admin)
        self.first = NewsletterSubscriber.objects.create(email='one@example.com')
        self.second = NewsletterSubscriber.objects.create(email='two@example.com')
        NewsletterSubscriber.objects.create(email='gone@example.com', is_active=False)

    def test_all_active(self):
        response = self.client.post(self.url, {'mode': 'ALL_ACTIVE', 'subject': 'Open day', 'html': HTML},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sent'], 2)
        self.assertEqual(response.data['requested'], 2)
        self.assertEqual(sorted(message.to[0] for message in mail.outbox), ['one@example.com', 'two@example.com'])
        event = AuditEvent.objects.get(action=NEWSLETTER_SENT)
        self.assertEqual(event.meta['mode'], 'ALL_ACTIVE')
        self.assertEqual(event.meta['sent'], 2)

    def test_selected(self):
        response = self.client.post(self.url, {'mode': 'SELECTED', 'subject': 'Open day', 'html': HTML},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('ids', response.data['errors'])

        response = self.client.post(self.url, {
            'mode': 'SELECTED', 'subject': 'Open day', 'html': HTML, 'ids': [self.second.pk],
        }, format='json')
        self.assertEqual(response.data['sent'], 1)
        self.assertEqual(mail.outbox[0].to, ['two@example.com'])

    def test_individual(self):
        response = self.client.post(self.url, {'mode': 'INDIVIDUAL', 'subject': 'Open day', 'html': HTML},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url, {
            'mode': 'INDIVIDUAL', 'subject': 'Open day', 'html': HTML, 'email': 'Guest@Example.com',
        }, format='json')
        self.assertEqual(response.data['sent'], 1)
        self.assertEqual(mail.outbox[0].to, ['guest@example.com'])

    def test_partial_failure_is_counted(self):
        with patch('newsletter.services.Mailer.send', side_effect=[None, OSError('smtp down')]):
            response = self.client.post(self.url, {'mode': 'ALL_ACTIVE', 'subject': 'Open day', 'html': HTML},
                                        format='json')
        self.assertEqual(response.data['sent'], 1)
        self.assertEqual(response.data['requested'], 2)

    def test_queued(self):
        with patch('newsletter.views.send_newsletter_task.delay') as delay:
            response = self.client.post(self.url, {
                'mode': 'ALL_ACTIVE', 'subject': 'Open day', 'html': HTML, 'async': True,
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['queued'])
        delay.assert_called_once_with(['one@example.com', 'two@example.com'], 'Open day', HTML)
        self.assertEqual(len(mail.outbox), 0)

    def test_short_body_rejected(self):
        response = self.client.post(self.url, {'mode': 'ALL_ACTIVE', 'subject': 'Hi', 'html': '<p>x</p>'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('subject', response.data['errors'])
        self.assertIn('html', response.data['errors'])
