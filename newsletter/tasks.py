import logging

from celery import shared_task

from .services import send_newsletter

logger = logging.getLogger(__name__)


@shared_task
def send_newsletter_task(recipients, subject, html):
    """Background fan-out for large sends"""
    logger.info(f"Sending queued newsletter '{subject}' to {len(recipients)} recipients")
    return send_newsletter(recipients, subject, html)
