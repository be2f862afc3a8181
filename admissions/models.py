from django.conf import settings
from django.db import models


class EnquiryCounter(models.Model):
    """Monthly enquiry sequence; one row per (year, month)"""
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = 'Enquiry Counter'
        verbose_name_plural = 'Enquiry Counters'
        ordering = ['-year', '-month']
        constraints = [
            models.UniqueConstraint(fields=['year', 'month'], name='uniq_enquiry_counter_scope'),
        ]

    def __str__(self):
        return f"{self.year}-{self.month:02d}: {self.last_value}"


class ApplicationCounter(models.Model):
    """Daily application sequence per application type, keyed ``YYYYMMDD-TYPE``"""
    scope_key = models.CharField(max_length=40, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = 'Application Counter'
        verbose_name_plural = 'Application Counters'
        ordering = ['-scope_key']

    def __str__(self):
        return f"{self.scope_key}: {self.last_value}"


class Enquiry(models.Model):
    ENQUIRY_TYPES = [
        ('GENERAL', 'General'),
        ('COURSE', 'Course information'),
        ('APPLICATION_PROGRESS', 'Application progress'),
        ('SCHOLARSHIP', 'Scholarship'),
        ('FEES', 'Fees and funding'),
        ('OTHER', 'Other'),
    ]

    STATUS_CHOICES = [
        ('NEW', 'New'),
        ('IN_PROGRESS', 'In progress'),
        ('CLOSED', 'Closed'),
    ]

    enquiry_ref = models.CharField(max_length=32, unique=True, editable=False)
    full_name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=30, blank=True)
    enquiry_type = models.CharField(max_length=30, choices=ENQUIRY_TYPES, default='GENERAL')
    message = models.TextField()
    details = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='NEW')

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Enquiry'
        verbose_name_plural = 'Enquiries'
        indexes = [
            models.Index(fields=['email'], name='enquiry_email_idx'),
            models.Index(fields=['enquiry_type', '-created_at'], name='enquiry_type_created_idx'),
        ]

    def __str__(self):
        return f"{self.enquiry_ref} - {self.full_name}"


class Application(models.Model):
    TYPE_STANDARD = 'STANDARD'
    TYPE_SCHOLARSHIP = 'SCHOLARSHIP'
    APPLICATION_TYPES = [
        (TYPE_STANDARD, 'Standard'),
        (TYPE_SCHOLARSHIP, 'Scholarship'),
    ]

    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_CHOICES = [
        (STATUS_SUBMITTED, 'Submitted'),
        ('IN_PROGRESS', 'In progress'),
        ('OFFER_MADE', 'Offer made'),
        ('GRANTED', 'Granted'),
    ]

    application_ref = models.CharField(max_length=80, unique=True, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='applications')
    application_type = models.CharField(max_length=20, choices=APPLICATION_TYPES, default=TYPE_STANDARD)

    course_name = models.CharField(max_length=255)
    other_course_name = models.CharField(max_length=255, blank=True)

    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    date_of_birth = models.DateField()
    email = models.EmailField()
    phone = models.CharField(max_length=30)
    country_of_residence = models.CharField(max_length=100)
    personal_statement = models.TextField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SUBMITTED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Application'
        verbose_name_plural = 'Applications'
        indexes = [
            models.Index(fields=['status', '-created_at'], name='application_status_idx'),
            models.Index(fields=['user', '-created_at'], name='application_user_idx'),
        ]

    def __str__(self):
        return f"{self.application_ref} - {self.first_name} {self.last_name}"

    @property
    def display_course_name(self):
        if self.course_name.upper() in ('OTHER', 'OTHERS') and self.other_course_name:
            return self.other_course_name
        return self.course_name


class ApplicationAttachment(models.Model):
    """Metadata for a file the applicant uploaded straight to object storage"""
    application = models.ForeignKey(Application, on_delete=models.CASCADE, related_name='attachments')
    file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100)
    size_bytes = models.PositiveBigIntegerField()
    s3_key = models.CharField(max_length=512)
    s3_url = models.URLField(max_length=1024, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name = 'Application Attachment'
        verbose_name_plural = 'Application Attachments'

    def __str__(self):
        return f"{self.file_name} ({self.application_id})"
