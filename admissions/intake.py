"""
Submission intake for enquiries and applications.

Order of work for every submission:

1. validate the payload; nothing is written when it is rejected
2. allocate the reference number
3. persist the record (and attachment rows) in the same transaction
4. after commit, send the notification emails on a best-effort basis

Email failures are logged and never undo or fail the submission.
"""
import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from backend.errors import Forbidden, StorageUnavailable, Unauthenticated, validation_failed_from
from notifications.mailer import Mailer

from .allocator import (
    application_scope_key,
    default_allocator,
    format_application_ref,
    format_enquiry_ref,
)
from .models import Application, ApplicationAttachment, Enquiry
from .serializers import ApplicationSerializer, EnquirySerializer

logger = logging.getLogger(__name__)


class SubmissionIntake:
    """Validates and records enquiries and applications"""

    def __init__(self, mailer=None, clock=None, allocator=None):
        self.mailer = mailer or Mailer()
        self.clock = clock or timezone.now
        self.allocator = allocator or default_allocator

    def now(self):
        return timezone.localtime(self.clock())

    def submit_enquiry(self, payload, ip_address=None, user_agent=''):
        serializer = EnquirySerializer(data=payload)
        if not serializer.is_valid():
            raise validation_failed_from(serializer.errors)
        data = serializer.validated_data
        now = self.now()

        try:
            with transaction.atomic():
                sequence = self.allocator.next_enquiry_sequence(now.year, now.month)
                enquiry = Enquiry.objects.create(
                    enquiry_ref=format_enquiry_ref(now.year, now.month, sequence),
                    full_name=data['fullName'].strip(),
                    email=data['email'],
                    phone=data.get('phone', '').strip(),
                    enquiry_type=data['enquiryType'],
                    message=data['message'],
                    details=serializer.details(),
                    ip_address=ip_address,
                    user_agent=(user_agent or '')[:1000],
                )
                transaction.on_commit(lambda: self.notify_enquiry(enquiry))
        except DatabaseError as e:
            logger.error(f"Failed to store enquiry from {data['email']}: {e}")
            raise StorageUnavailable()

        logger.info(f"Enquiry {enquiry.enquiry_ref} received from {enquiry.email}")
        return enquiry

    def submit_application(self, user, payload):
        if user is None or not user.is_authenticated:
            raise Unauthenticated()
        if not user.email_verified_at:
            raise Forbidden('Please verify your email address before applying.', code='EMAIL_NOT_VERIFIED')

        now = self.now()
        serializer = ApplicationSerializer(data=payload, context={
            'user': user,
            'today': now.date(),
            'key_prefix': settings.S3_UPLOAD_PREFIX,
        })
        if not serializer.is_valid():
            raise validation_failed_from(serializer.errors)
        data = serializer.validated_data

        date_key = now.strftime('%Y%m%d')
        application_type = data['applicationType']

        try:
            with transaction.atomic():
                sequence = self.allocator.next_application_sequence(
                    application_scope_key(date_key, application_type)
                )
                application = Application.objects.create(
                    application_ref=format_application_ref(
                        data['lastName'],
                        data['dateOfBirth'].year,
                        date_key,
                        sequence,
                        application_type,
                    ),
                    user=user,
                    application_type=application_type,
                    course_name=data['courseName'].strip(),
                    other_course_name=data.get('otherCourseName', '').strip(),
                    first_name=data['firstName'].strip(),
                    last_name=data['lastName'].strip(),
                    date_of_birth=data['dateOfBirth'],
                    email=data['email'],
                    phone=data['phone'].strip(),
                    country_of_residence=data['countryOfResidence'].strip(),
                    personal_statement=data['personalStatement'].strip(),
                )
                ApplicationAttachment.objects.bulk_create([
                    ApplicationAttachment(
                        application=application,
                        file_name=item['fileName'],
                        mime_type=item['mimeType'].strip().lower(),
                        size_bytes=item['sizeBytes'],
                        s3_key=item['s3Key'],
                        s3_url=item.get('s3Url', ''),
                    )
                    for item in data['attachments']
                ])
                attachment_count = len(data['attachments'])
                transaction.on_commit(lambda: self.notify_application(application, attachment_count))
        except DatabaseError as e:
            logger.error(f"Failed to store application for user {user.pk}: {e}")
            raise StorageUnavailable()

        logger.info(f"Application {application.application_ref} submitted by user {user.pk}")
        return application

    def notify_enquiry(self, enquiry):
        context = {'enquiry': enquiry}
        self.mailer.send_template_best_effort(
            to=settings.ADMIN_NOTIFICATION_EMAIL,
            subject=f"New enquiry {enquiry.enquiry_ref} from {enquiry.full_name}",
            template='enquiry_admin',
            context=context,
            message_type='enquiry_admin',
            related_entity_type='enquiry',
            related_entity_id=enquiry.pk,
        )
        self.mailer.send_template_best_effort(
            to=enquiry.email,
            subject=f"We received your enquiry ({enquiry.enquiry_ref})",
            template='enquiry_ack',
            context=context,
            message_type='enquiry_ack',
            related_entity_type='enquiry',
            related_entity_id=enquiry.pk,
        )

    def notify_application(self, application, attachment_count=0):
        context = {'application': application, 'attachment_count': attachment_count}
        self.mailer.send_template_best_effort(
            to=application.email,
            subject=f"Application received: {application.application_ref}",
            template='application_confirmation',
            context=context,
            message_type='application_confirmation',
            related_entity_type='application',
            related_entity_id=application.pk,
        )
        self.mailer.send_template_best_effort(
            to=settings.ADMIN_NOTIFICATION_EMAIL,
            subject=f"New application {application.application_ref}",
            template='application_admin',
            context=context,
            message_type='application_admin',
            related_entity_type='application',
            related_entity_id=application.pk,
        )
