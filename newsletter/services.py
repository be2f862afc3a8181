"""
Newsletter subscription and fan-out
"""
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from notifications.mailer import Mailer

from .models import NewsletterSubscriber
from .serializers import MODE_ALL_ACTIVE, MODE_INDIVIDUAL, MODE_SELECTED

logger = logging.getLogger(__name__)


def subscribe(email, name='', source='', mailer=None):
    """
    Create or reactivate a subscriber. Returns ``(subscriber, reactivated)``.
    Subscribing an address that is already active is a no-op.
    """
    reactivated = False
    try:
        with transaction.atomic():
            subscriber, created = NewsletterSubscriber.objects.select_for_update().get_or_create(
                email=email,
                defaults={'name': name, 'source': source},
            )
            if not created and not subscriber.is_active:
                subscriber.is_active = True
                subscriber.unsubscribed_at = None
                if name:
                    subscriber.name = name
                subscriber.save(update_fields=['is_active', 'unsubscribed_at', 'name', 'updated_at'])
                reactivated = True
    except IntegrityError:
        # Lost a race with a concurrent subscribe for the same address
        return NewsletterSubscriber.objects.get(email=email), False

    if created or reactivated:
        mailer = mailer or Mailer()
        transaction.on_commit(lambda: mailer.send_template_best_effort(
            to=subscriber.email,
            subject=f"Welcome to the {settings.SITE_NAME} newsletter",
            template='newsletter_welcome',
            context={'subscriber': subscriber},
            message_type='newsletter_welcome',
            related_entity_type='newsletter_subscriber',
            related_entity_id=subscriber.pk,
        ))
        logger.info(f"Newsletter subscription {'reactivated' if reactivated else 'created'} for {email}")
    return subscriber, reactivated


def resolve_recipients(mode, ids=None, email=None):
    """Distinct recipient addresses for a send, in a stable order"""
    if mode == MODE_INDIVIDUAL:
        return [email] if email else []
    queryset = NewsletterSubscriber.objects.active()
    if mode == MODE_SELECTED:
        queryset = queryset.filter(pk__in=ids or [])
    elif mode != MODE_ALL_ACTIVE:
        raise ValueError(f"Unknown newsletter mode: {mode}")
    return list(queryset.order_by('pk').values_list('email', flat=True))


def send_newsletter(recipients, subject, html, mailer=None):
    """Send to each recipient in turn; returns how many went out"""
    mailer = mailer or Mailer()
    sent = 0
    for recipient in recipients:
        if mailer.send_best_effort(
            to=recipient,
            subject=subject,
            html=html,
            message_type='newsletter',
            related_entity_type='newsletter',
        ):
            sent += 1
    logger.info(f"Newsletter '{subject}' sent to {sent}/{len(recipients)} recipients")
    return sent


def mark_unsubscribed(subscriber):
    subscriber.is_active = False
    subscriber.unsubscribed_at = timezone.now()
