import smtplib
from datetime import date, datetime, timezone as dt_timezone
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import serializers, status
from rest_framework.test import APITestCase

from audit.actions import APPLICATION_STATUS_CHANGED
from audit.models import AuditEvent
from authentication.turnstile import TurnstileResult

from .allocator import format_application_ref, format_enquiry_ref, normalize_surname, pad_sequence
from .intake import SubmissionIntake
from .models import Application, ApplicationAttachment, Enquiry
from .serializers import parse_date_of_birth

User = get_user_model()

FIXED_NOW = datetime(2025, 3, 14, 10, 30, tzinfo=dt_timezone.utc)


def make_user(email, verified=True, **extra):
    extra.setdefault('first_name', 'Jane')
    extra.setdefault('last_name', 'Doe')
    if verified:
        extra['email_verified_at'] = timezone.now()
    return User.objects.create_user(email=email, password='testpass123', **extra)


def enquiry_payload(**overrides):
    payload = {
        'fullName': 'Sam Applicant',
        'email': 'Sam@Example.com',
        'phone': '07700 900123',
        'enquiryType': 'COURSE',
        'message': 'I would like to know more about the evening study options.',
        'courseInterestedIn': 'Business Management',
    }
    payload.update(overrides)
    return payload


def application_payload(user, **overrides):
    payload = {
        'applicationType': 'STANDARD',
        'courseName': 'Business Management',
        'firstName': 'Jane',
        'lastName': 'Doe',
        'dateOfBirth': '12/04/1990',
        'email': user.email,
        'phone': '+44 7700 900123',
        'countryOfResidence': 'United Kingdom',
        'personalStatement': 'I have worked in retail management for six years and want a formal qualification.',
        'attachments': [
            {
                'fileName': 'cv.pdf',
                'mimeType': 'application/pdf',
                'sizeBytes': 120000,
                's3Key': f'applications/{user.pk}/1710000000000-abc-cv.pdf',
                's3Url': 'https://bucket.s3.eu-west-2.amazonaws.com/applications/cv.pdf',
            },
        ],
    }
    payload.update(overrides)
    return payload


class ReferenceFormatTests(SimpleTestCase):

    def test_enquiry_ref(self):
        self.assertEqual(format_enquiry_ref(2025, 3, 7), 'ENQ-03-2025-0007')

    def test_application_ref(self):
        self.assertEqual(
            format_application_ref('Doe', 1990, '20250314', 1),
            'APP-DOE-1990-20250314-0001',
        )
        self.assertEqual(
            format_application_ref("O'Brien-Smith", 1988, '20250314', 12, 'SCHOLARSHIP'),
            'SCHOLAR-APP-OBRIENSMITH-1988-20250314-0012',
        )

    def test_surname_fallback(self):
        self.assertEqual(normalize_surname('123 '), 'SURNAME')
        self.assertEqual(normalize_surname(None), 'SURNAME')

    def test_sequence_grows_past_four_digits(self):
        self.assertEqual(pad_sequence(9999), '9999')
        self.assertEqual(pad_sequence(10000), '10000')


class DateOfBirthTests(SimpleTestCase):
    today = date(2025, 3, 14)

    def test_accepted_formats(self):
        for value in ('12041990', '12/04/1990', '12-4-1990', '1990-04-12'):
            self.assertEqual(parse_date_of_birth(value, today=self.today), date(1990, 4, 12), value)

    def test_impossible_date(self):
        with self.assertRaises(serializers.ValidationError):
            parse_date_of_birth('31/02/1990', today=self.today)

    def test_future_and_out_of_range(self):
        for value in ('15/03/2025', '01/01/2026', '01/01/1899', 'yesterday'):
            with self.assertRaises(serializers.ValidationError, msg=value):
                parse_date_of_birth(value, today=self.today)


class SubmissionIntakeTests(TestCase):

    def setUp(self):
        self.intake = SubmissionIntake(clock=lambda: FIXED_NOW)

    def test_enquiry_refs_are_sequential_within_month(self):
        first = self.intake.submit_enquiry(enquiry_payload())
        second = self.intake.submit_enquiry(enquiry_payload(email='other@example.com'))

        self.assertEqual(first.enquiry_ref, 'ENQ-03-2025-0001')
        self.assertEqual(second.enquiry_ref, 'ENQ-03-2025-0002')
        self.assertEqual(first.email, 'sam@example.com')
        self.assertEqual(first.details, {'course_interested_in': 'Business Management'})

    def test_application_refs_per_type(self):
        user = make_user('jane@example.com')
        standard = self.intake.submit_application(user, application_payload(user))
        scholarship = self.intake.submit_application(user, application_payload(user, applicationType='SCHOLARSHIP'))
        second = self.intake.submit_application(user, application_payload(user))

        self.assertEqual(standard.application_ref, 'APP-DOE-1990-20250314-0001')
        self.assertEqual(scholarship.application_ref, 'SCHOLAR-APP-DOE-1990-20250314-0001')
        self.assertEqual(second.application_ref, 'APP-DOE-1990-20250314-0002')
        self.assertEqual(standard.attachments.count(), 1)

    def test_notifications_sent_after_commit(self):
        user = make_user('jane@example.com')
        with self.captureOnCommitCallbacks(execute=True):
            application = self.intake.submit_application(user, application_payload(user))

        self.assertEqual(len(mail.outbox), 2)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, sorted(['admissions@coursedig.local', 'jane@example.com']))
        self.assertTrue(any(application.application_ref in message.subject for message in mail.outbox))


class EnquiryAPITests(APITestCase):

    def setUp(self):
        cache.clear()

    def test_submit_enquiry(self):
        response = self.client.post('/api/enquiries/', enquiry_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        now = timezone.localtime()
        self.assertEqual(response.data['enquiryRef'], f'ENQ-{now.month:02d}-{now.year}-0001')
        enquiry = Enquiry.objects.get()
        self.assertEqual(enquiry.ip_address, '127.0.0.1')

    def test_honeypot_blocks(self):
        response = self.client.post('/api/enquiries/', enquiry_payload(hp='http://spam.example'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'REQUEST_BLOCKED')
        self.assertEqual(response.data['message'], 'Request blocked.')
        self.assertEqual(Enquiry.objects.count(), 0)

    def test_array_body_rejected(self):
        response = self.client.post('/api/enquiries/', [1, 2], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_BODY')
        self.assertEqual(Enquiry.objects.count(), 0)

    def test_short_message_rejected(self):
        response = self.client.post('/api/enquiries/', enquiry_payload(message='Hi there'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data['errors'])
        self.assertEqual(Enquiry.objects.count(), 0)

    def test_progress_enquiry_needs_reference(self):
        response = self.client.post('/api/enquiries/', enquiry_payload(enquiryType='APPLICATION_PROGRESS'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('applicationRef', response.data['errors'])

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    def test_turnstile_failure(self):
        rejected = TurnstileResult(success=False, error_codes=['invalid-input-response'])
        with patch('admissions.views.verify_turnstile', return_value=rejected):
            response = self.client.post('/api/enquiries/', enquiry_payload(turnstileToken='bad'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TURNSTILE_FAILED')

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    def test_turnstile_unreachable(self):
        unreachable = TurnstileResult(success=False, error_codes=['network-error'])
        with patch('admissions.views.verify_turnstile', return_value=unreachable):
            response = self.client.post('/api/enquiries/', enquiry_payload(turnstileToken='tok'), format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(Enquiry.objects.count(), 0)

    def test_storage_failure(self):
        with patch('admissions.allocator.ReferenceAllocator._upsert', side_effect=DatabaseError('locked')), \
                patch('admissions.allocator.ReferenceAllocator._locked_increment', side_effect=DatabaseError('locked')):
            response = self.client.post('/api/enquiries/', enquiry_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'STORAGE_UNAVAILABLE')
        self.assertEqual(Enquiry.objects.count(), 0)


class ApplicationAPITests(APITestCase):

    def setUp(self):
        self.user = make_user('jane@example.com')

    def test_requires_authentication(self):
        response = self.client.post('/api/applications/', application_payload(self.user), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_requires_verified_email(self):
        unverified = make_user('new@example.com', verified=False)
        self.client.force_authenticate(user=unverified)
        response = self.client.post('/api/applications/', application_payload(unverified), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'EMAIL_NOT_VERIFIED')

    def test_submit_application(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/applications/', application_payload(self.user), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        today = timezone.localtime().strftime('%Y%m%d')
        self.assertEqual(response.data['applicationRef'], f'APP-DOE-1990-{today}-0001')
        application = Application.objects.get(pk=response.data['id'])
        self.assertEqual(application.user, self.user)
        self.assertEqual(application.status, 'SUBMITTED')

    def test_mailer_failure_does_not_fail_submission(self):
        self.client.force_authenticate(user=self.user)
        with patch('notifications.mailer.Mailer.send', side_effect=smtplib.SMTPException('relay down')):
            with self.captureOnCommitCallbacks(execute=True):
                response = self.client.post('/api/applications/', application_payload(self.user), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Application.objects.filter(application_ref=response.data['applicationRef']).exists())

    def test_other_course_needs_name(self):
        self.client.force_authenticate(user=self.user)
        payload = application_payload(self.user, courseName='OTHER', otherCourseName='Art')
        response = self.client.post('/api/applications/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('otherCourseName', response.data['errors'])

    def test_foreign_upload_key_rejected(self):
        self.client.force_authenticate(user=self.user)
        payload = application_payload(self.user)
        payload['attachments'][0]['s3Key'] = 'applications/someone-else/cv.pdf'
        response = self.client.post('/api/applications/', payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Application.objects.count(), 0)
        self.assertEqual(ApplicationAttachment.objects.count(), 0)

    def test_my_applications(self):
        SubmissionIntake().submit_application(self.user, application_payload(self.user))
        other = make_user('other@example.com')
        SubmissionIntake().submit_application(other, application_payload(other))

        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/applications/mine/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['attachmentCount'], 1)

    def test_my_application_detail(self):
        mine = SubmissionIntake().submit_application(self.user, application_payload(self.user))
        other = make_user('other@example.com')
        theirs = SubmissionIntake().submit_application(other, application_payload(other))

        self.client.force_authenticate(user=self.user)
        response = self.client.get(f'/api/applications/mine/{mine.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['applicationRef'], mine.application_ref)

        response = self.client.get(f'/api/applications/mine/{theirs.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AdminApplicationAPITests(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', is_admin=True)
        self.applicant = make_user('jane@example.com')
        self.application = SubmissionIntake().submit_application(
            self.applicant, application_payload(self.applicant)
        )
        self.client.force_authenticate(user=self.admin)

    def test_list_filters(self):
        response = self.client.get('/api/admin/applications/', {'status': 'SUBMITTED', 'q': 'jane'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get('/api/admin/applications/', {'status': 'GRANTED'})
        self.assertEqual(response.data['data'], [])

    def test_detail(self):
        response = self.client.get(f'/api/admin/applications/{self.application.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']['attachments']), 1)

    def test_status_change_is_audited(self):
        url = f'/api/admin/applications/{self.application.pk}/status/'
        response = self.client.patch(url, {'status': 'IN_PROGRESS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['already'])

        event = AuditEvent.objects.get(action=APPLICATION_STATUS_CHANGED)
        self.assertEqual(event.before, {'status': 'SUBMITTED'})
        self.assertEqual(event.after, {'status': 'IN_PROGRESS'})

        again = self.client.patch(url, {'status': 'IN_PROGRESS'}, format='json')
        self.assertTrue(again.data['already'])
        self.assertEqual(AuditEvent.objects.filter(action=APPLICATION_STATUS_CHANGED).count(), 1)

    def test_invalid_status(self):
        url = f'/api/admin/applications/{self.application.pk}/status/'
        response = self.client.patch(url, {'status': 'REJECTED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(BYPASS_S3_PRESIGN=True)
    def test_attachment_download(self):
        attachment = self.application.attachments.get()
        url = f'/api/admin/applications/{self.application.pk}/attachments/{attachment.pk}/download/'
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('op=get_object', response.data['url'])
        self.assertEqual(response.data['expiresIn'], 600)

    def test_applicant_cannot_use_admin_endpoints(self):
        self.client.force_authenticate(user=self.applicant)
        response = self.client.get('/api/admin/applications/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_enquiries_list(self):
        cache.clear()
        SubmissionIntake().submit_enquiry(enquiry_payload())
        response = self.client.get('/api/admin/enquiries/', {'enquiryType': 'COURSE'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
