from unittest.mock import patch

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from courses.models import Course

from .errors import Conflict, ValidationFailed, first_error_message, json_object, validation_failed_from


class HealthCheckTests(TestCase):

    def test_healthy(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
        self.assertEqual(response.json()['database'], 'ok')

    def test_post_not_allowed(self):
        self.assertEqual(self.client.post('/api/health/').status_code, 405)


class FirstErrorMessageTests(SimpleTestCase):

    def test_field_errors(self):
        self.assertEqual(first_error_message({'email': ['Enter a valid email address.']}),
                         'email: Enter a valid email address.')

    def test_non_field_errors(self):
        self.assertEqual(first_error_message({'non_field_errors': ['Passwords do not match.']}),
                         'Passwords do not match.')

    def test_nested(self):
        self.assertEqual(first_error_message({'files': [{}, {'size': ['Too large.']}]}), 'files: size: Too large.')
        self.assertEqual(first_error_message([]), '')
        self.assertEqual(first_error_message({'detail': 'Not found.'}), 'Not found.')

    def test_validation_failed_from(self):
        error = validation_failed_from({'title': ['This field is required.']})
        self.assertIsInstance(error, ValidationFailed)
        self.assertEqual(error.message, 'title: This field is required.')
        self.assertEqual(error.code, 'VALIDATION_FAILED')

    def test_json_object(self):
        body = {'files': []}
        self.assertIs(json_object(body), body)
        for data in ([1, 2], 'text', None):
            with self.assertRaises(ValidationFailed) as caught:
                json_object(data)
            self.assertEqual(caught.exception.code, 'INVALID_BODY')

    def test_custom_code(self):
        error = Conflict('Taken.', code='SLUG_TAKEN')
        self.assertEqual((error.status_code, error.code, error.message), (409, 'SLUG_TAKEN', 'Taken.'))


class ErrorEnvelopeTests(APITestCase):

    def test_not_found(self):
        response = self.client.get('/api/courses/missing-course/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'success': False, 'message': 'Course not found.', 'code': 'NOT_FOUND'})

    def test_unauthenticated(self):
        response = self.client.get('/api/applications/mine/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['code'], 'UNAUTHENTICATED')

    def test_database_error_is_hidden(self):
        with patch.object(Course.objects, 'published', side_effect=DatabaseError('relation missing')):
            response = self.client.get('/api/courses/')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'STORAGE_UNAVAILABLE')
        self.assertNotIn('relation', response.data['message'])
