from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from .actions import ACTION_CHOICES, AUDIT_ACTIONS


class AuditImmutableError(Exception):
    """Raised on any attempt to change or remove an audit event"""


class AuditEventQuerySet(models.QuerySet):

    def update(self, **kwargs):
        raise AuditImmutableError("Audit events cannot be updated")

    def delete(self):
        raise AuditImmutableError("Audit events cannot be deleted")

    def recent(self, limit=200):
        return self.select_related('actor').order_by('-created_at', '-id')[:limit]


class AuditEvent(models.Model):
    """Append-only record of a sensitive change: who did what to whom"""

    action = models.CharField(max_length=64, choices=ACTION_CHOICES, db_index=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='audit_events',
    )

    target_type = models.CharField(max_length=50, blank=True)
    target_id = models.CharField(max_length=255, blank=True)

    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    meta = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = 'Audit Event'
        verbose_name_plural = 'Audit Events'
        indexes = [
            models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
            models.Index(fields=['actor', '-created_at'], name='audit_actor_created_idx'),
        ]

    def __str__(self):
        return f"{self.action} by {self.actor_id} on {self.target_type}:{self.target_id}"

    @property
    def category(self):
        return AUDIT_ACTIONS[self.action].category

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AuditImmutableError("Audit events cannot be updated")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AuditImmutableError("Audit events cannot be deleted")
