from django.db import models


class EmailLog(models.Model):
    """Model for tracking every outbound email"""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sent', 'Sent'),
        ('failed', 'Failed'),
    ]

    MESSAGE_TYPES = [
        ('enquiry_admin', 'Enquiry Admin Notification'),
        ('enquiry_ack', 'Enquiry Acknowledgement'),
        ('application_confirmation', 'Application Confirmation'),
        ('application_admin', 'Application Admin Notification'),
        ('verify_email', 'Email Verification'),
        ('password_reset', 'Password Reset'),
        ('newsletter_welcome', 'Newsletter Welcome'),
        ('newsletter', 'Newsletter'),
        ('general', 'General'),
    ]

    recipient = models.EmailField()
    subject = models.CharField(max_length=500)
    message_type = models.CharField(max_length=50, choices=MESSAGE_TYPES, default='general')
    body = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    error_message = models.TextField(blank=True)

    related_entity_type = models.CharField(max_length=50, blank=True)
    related_entity_id = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Email Log'
        verbose_name_plural = 'Email Logs'
        indexes = [
            models.Index(fields=['recipient', '-created_at'], name='email_log_recipient_idx'),
            models.Index(fields=['status', '-created_at'], name='email_log_status_idx'),
        ]

    def __str__(self):
        return f"{self.message_type} to {self.recipient} ({self.status})"
