"""
Outbound email.

``Mailer`` is the only component that talks to the email backend. Callers on
the user-visible path use the ``*_best_effort`` helpers, which log failures
and return ``False`` instead of raising.
"""
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.html import strip_tags

from .models import EmailLog

logger = logging.getLogger(__name__)

SMTP_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'


class EmailNotConfigured(Exception):
    """No usable email backend is configured"""


class Mailer:
    """Sends email through Django's mail backend and records every attempt"""

    def __init__(self, connection=None, from_email=None):
        self.connection = connection
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def is_configured(self):
        if self.connection is not None:
            return True
        if settings.EMAIL_BACKEND == SMTP_BACKEND:
            return bool(settings.EMAIL_HOST)
        return bool(settings.EMAIL_BACKEND)

    def resolve_recipient(self, to, subject):
        forced = getattr(settings, 'DEV_FORCE_EMAIL', '')
        if settings.DEBUG and forced:
            return forced, f"[to: {to}] {subject}"
        return to, subject

    def render(self, template, context=None):
        context = dict(context or {})
        context.setdefault('site_name', settings.SITE_NAME)
        context.setdefault('app_base_url', settings.APP_BASE_URL)
        context.setdefault('current_year', timezone.now().year)
        return render_to_string(f"emails/{template}.html", context)

    def send(self, to, subject, html, text=None, message_type='general',
             related_entity_type='', related_entity_id=''):
        """
        Send one email and record it in ``EmailLog``.

        Raises ``EmailNotConfigured`` when no backend is usable, and re-raises
        any backend error after marking the log row as failed.
        """
        if not self.is_configured():
            raise EmailNotConfigured("Email backend is not configured")

        recipient, subject = self.resolve_recipient(to, subject)
        text = text or strip_tags(html)

        email_log = EmailLog.objects.create(
            recipient=recipient,
            subject=subject[:500],
            message_type=message_type,
            body=html,
            status='pending',
            related_entity_type=related_entity_type,
            related_entity_id=str(related_entity_id or ''),
        )

        email = EmailMultiAlternatives(
            subject=subject,
            body=text,
            from_email=self.from_email,
            to=[recipient],
            connection=self.connection or get_connection(),
        )
        email.attach_alternative(html, "text/html")

        try:
            email.send(fail_silently=False)
        except Exception as e:
            email_log.status = 'failed'
            email_log.error_message = str(e)
            email_log.save(update_fields=['status', 'error_message'])
            logger.error(f"Failed to send {message_type} email to {recipient}: {e}")
            raise

        email_log.status = 'sent'
        email_log.sent_at = timezone.now()
        email_log.save(update_fields=['status', 'sent_at'])
        logger.info(f"Sent {message_type} email to {recipient}")
        return email_log

    def send_template(self, to, subject, template, context=None, message_type='general', **kwargs):
        html = self.render(template, context)
        return self.send(to, subject, html, message_type=message_type, **kwargs)

    def send_best_effort(self, *args, **kwargs):
        """``send`` that never raises; returns True when the email went out"""
        return self.best_effort(self.send, *args, **kwargs)

    def send_template_best_effort(self, *args, **kwargs):
        return self.best_effort(self.send_template, *args, **kwargs)

    def best_effort(self, method, *args, **kwargs):
        if not self.is_configured():
            logger.warning("Email is not configured; skipping notification")
            return False
        try:
            method(*args, **kwargs)
        except Exception as e:
            logger.exception(f"Best-effort email failed: {e}")
            return False
        return True
