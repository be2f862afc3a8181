from types import SimpleNamespace
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings

from .mailer import SMTP_BACKEND, EmailNotConfigured, Mailer
from .models import EmailLog


class MailerTests(TestCase):

    def test_send_records_log(self):
        log = Mailer().send('student@example.com', 'Welcome', '<p>Hello <b>there</b></p>',
                            message_type='general', related_entity_type='course', related_entity_id=7)

        self.assertEqual(log.status, 'sent')
        self.assertIsNotNone(log.sent_at)
        self.assertEqual(log.related_entity_id, '7')
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['student@example.com'])
        self.assertEqual(message.body, 'Hello there')
        self.assertEqual(message.alternatives[0][1], 'text/html')

    def test_backend_failure_marks_log_failed(self):
        with patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('connection refused')):
            with self.assertRaises(OSError):
                Mailer().send('student@example.com', 'Welcome', '<p>Hello</p>')

        log = EmailLog.objects.get()
        self.assertEqual(log.status, 'failed')
        self.assertIn('connection refused', log.error_message)

    def test_best_effort_swallows_failure(self):
        with patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('connection refused')):
            self.assertFalse(Mailer().send_best_effort('student@example.com', 'Welcome', '<p>Hello</p>'))
        self.assertTrue(Mailer().send_best_effort('student@example.com', 'Welcome', '<p>Hello</p>'))

    @override_settings(EMAIL_BACKEND=SMTP_BACKEND, EMAIL_HOST='')
    def test_unconfigured_smtp(self):
        mailer = Mailer()
        self.assertFalse(mailer.is_configured())
        with self.assertRaises(EmailNotConfigured):
            mailer.send('student@example.com', 'Welcome', '<p>Hello</p>')
        self.assertFalse(mailer.send_best_effort('student@example.com', 'Welcome', '<p>Hello</p>'))
        self.assertFalse(EmailLog.objects.exists())

    @override_settings(DEBUG=True, DEV_FORCE_EMAIL='dev-inbox@example.com')
    def test_dev_redirect(self):
        Mailer().send('student@example.com', 'Welcome', '<p>Hello</p>')

        message = mail.outbox[0]
        self.assertEqual(message.to, ['dev-inbox@example.com'])
        self.assertEqual(message.subject, '[to: student@example.com] Welcome')

    @override_settings(DEBUG=False, DEV_FORCE_EMAIL='dev-inbox@example.com')
    def test_dev_redirect_ignored_outside_debug(self):
        Mailer().send('student@example.com', 'Welcome', '<p>Hello</p>')
        self.assertEqual(mail.outbox[0].to, ['student@example.com'])

    @override_settings(SITE_NAME='CourseDig')
    def test_render_template(self):
        html = Mailer().render('newsletter_welcome', {'subscriber': SimpleNamespace(name='Ada')})
        self.assertIn('Hi Ada,', html)
        self.assertIn('CourseDig newsletter', html)

    def test_send_template(self):
        Mailer().send_template('ada@example.com', 'Welcome', 'newsletter_welcome',
                               {'subscriber': SimpleNamespace(name='')}, message_type='newsletter_welcome')
        self.assertEqual(EmailLog.objects.get().message_type, 'newsletter_welcome')
        self.assertIn('Hi,', mail.outbox[0].body)
