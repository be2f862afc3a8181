from unittest.mock import MagicMock

from botocore.exceptions import ClientError
from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from backend.errors import UpstreamUnavailable, ValidationFailed

from .broker import UploadBroker, sanitize_filename
from .limits import MB, UploadLimits, check_file_batch

User = get_user_model()

LIMITS = UploadLimits(max_files=10, max_per_file_bytes=10 * MB, max_total_bytes=100 * MB)


def descriptor(name='cv.pdf', mime_type='application/pdf', size=200 * 1024):
    return {'fileName': name, 'mimeType': mime_type, 'sizeBytes': size}


class FakeS3Client:
    """Records presign calls instead of talking to S3"""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        if self.error is not None:
            raise self.error
        self.calls.append((ClientMethod, Params, ExpiresIn))
        return f"https://signed.example/{Params['Key']}?method={ClientMethod}"


class SanitizeFilenameTests(SimpleTestCase):

    def test_strips_paths_and_unsafe_characters(self):
        self.assertEqual(sanitize_filename('../../etc/passwd'), 'passwd')
        self.assertEqual(sanitize_filename('C:\\Users\\me\\My CV (final).pdf'), 'My_CV_final_.pdf')
        self.assertEqual(sanitize_filename('.hidden'), 'hidden')

    def test_empty_and_long_names(self):
        self.assertEqual(sanitize_filename(''), 'file')
        self.assertEqual(sanitize_filename('///'), 'file')
        self.assertEqual(len(sanitize_filename('a' * 200 + '.pdf')), 80)


class FileBatchLimitTests(SimpleTestCase):

    def test_accepts_valid_batch(self):
        self.assertEqual(check_file_batch([descriptor(), descriptor('photo.png', 'image/png')], LIMITS), {})

    def test_rejects_bad_items(self):
        errors = check_file_batch([
            descriptor(),
            descriptor('notes.docx', 'application/msword'),
            descriptor('zero.pdf', size=0),
        ], LIMITS)
        self.assertEqual(sorted(errors), ['1', '2'])

    def test_batch_limits(self):
        self.assertIn('batch', check_file_batch([], LIMITS))
        self.assertEqual(check_file_batch([], LIMITS, allow_empty=True), {})
        self.assertIn('batch', check_file_batch([descriptor()] * 11, LIMITS))
        self.assertIn('batch', check_file_batch('cv.pdf', LIMITS))

        small_total = UploadLimits(max_files=10, max_per_file_bytes=10 * MB, max_total_bytes=15 * MB)
        errors = check_file_batch([descriptor(size=8 * MB), descriptor(size=8 * MB)], small_total)
        self.assertIn('batch', errors)


class UploadBrokerTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='uploader@example.com', password='testpass123')

    def make_broker(self, client=None, **kwargs):
        kwargs.setdefault('bucket', 'coursedig-uploads')
        kwargs.setdefault('prefix', 'applications')
        kwargs.setdefault('bypass', False)
        return UploadBroker(client=client or FakeS3Client(), limits=LIMITS, clock=lambda: 1710000000.5, **kwargs)

    def test_presign_batch(self):
        client = FakeS3Client()
        uploads = self.make_broker(client).presign_batch(self.user, [descriptor(), descriptor('My Photo.PNG', 'Image/PNG')])

        self.assertEqual(len(uploads), 2)
        self.assertEqual(len(client.calls), 2)
        method, params, expires = client.calls[1]
        self.assertEqual(method, 'put_object')
        self.assertEqual(params['ContentType'], 'image/png')
        self.assertEqual(expires, 600)

        key = uploads[1]['key']
        self.assertTrue(key.startswith(f'applications/{self.user.pk}/1710000000500-'))
        self.assertTrue(key.endswith('-My_Photo.PNG'))
        self.assertEqual(uploads[1]['s3Key'], key)
        self.assertEqual(uploads[1]['mimeType'], 'image/png')
        self.assertIn('coursedig-uploads.s3.', uploads[1]['url'])

    def test_one_oversized_file_rejects_whole_batch(self):
        client = FakeS3Client()
        files = [descriptor(f'doc{i}.pdf') for i in range(5)]
        files[3]['sizeBytes'] = 11 * MB

        with self.assertRaises(ValidationFailed) as ctx:
            self.make_broker(client).presign_batch(self.user, files)

        self.assertEqual(client.calls, [])
        self.assertIn('3', ctx.exception.errors['files'])

    def test_missing_bucket(self):
        with self.assertRaises(UpstreamUnavailable) as ctx:
            self.make_broker(bucket='').presign_batch(self.user, [descriptor()])
        self.assertEqual(ctx.exception.code, 'STORAGE_NOT_CONFIGURED')

    def test_signing_error(self):
        error = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'nope'}}, 'GeneratePresignedUrl')
        with self.assertRaises(UpstreamUnavailable):
            self.make_broker(FakeS3Client(error=error)).presign_batch(self.user, [descriptor()])

    def test_bypass_does_not_touch_client(self):
        client = MagicMock()
        uploads = self.make_broker(client, bucket='', bypass=True).presign_batch(self.user, [descriptor()])
        client.generate_presigned_url.assert_not_called()
        self.assertIn('op=put_object', uploads[0]['uploadUrl'])

    def test_presign_download(self):
        client = FakeS3Client()
        url = self.make_broker(client).presign_download('applications/1/cv.pdf')
        self.assertIn('method=get_object', url)
        self.assertEqual(client.calls[0][1], {'Bucket': 'coursedig-uploads', 'Key': 'applications/1/cv.pdf'})


@override_settings(BYPASS_S3_PRESIGN=True)
class PresignAPITests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='uploader@example.com', password='testpass123')

    def test_requires_authentication(self):
        response = self.client.post('/api/uploads/presign/', {'files': [descriptor()]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_presign(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/uploads/presign/', {'files': [descriptor()]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['uploads']), 1)
        self.assertTrue(response.data['uploads'][0]['s3Key'].startswith(f'applications/{self.user.pk}/'))

    def test_invalid_batch(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/uploads/presign/', {'files': [descriptor(mime_type='text/html')]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_FAILED')
        self.assertIn('files', response.data['errors'])

    def test_array_body_rejected(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/uploads/presign/', [descriptor()], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_BODY')
