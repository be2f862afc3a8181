import json
import os
import tempfile
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from audit.actions import COURSE_CREATED, COURSE_FEE_UPSERTED, COURSE_PUBLISH_TOGGLED, HOMEPAGE_FEATURED_UPDATED
from audit.models import AuditEvent

from .models import Course, CourseFee
from .seed import SeedFormatError, parse_seed_document

User = get_user_model()


def make_course(slug, **extra):
    extra.setdefault('title', slug.replace('-', ' ').title())
    extra.setdefault('is_published', True)
    return Course.objects.create(slug=slug, **extra)


class SeedDocumentParserTests(SimpleTestCase):

    def test_bare_list(self):
        self.assertEqual(parse_seed_document([{'slug': 'a'}]), ('list', [{'slug': 'a'}]))

    def test_wrapped_lists(self):
        self.assertEqual(parse_seed_document({'courses': []}), ('courses', []))
        self.assertEqual(parse_seed_document({'fees': [{'slug': 'a'}]}, expected='fees'), ('fees', [{'slug': 'a'}]))

    def test_rejected_shapes(self):
        bad_documents = [
            {'courses': [], 'fees': []},
            {'courses': [], 'meta': {}},
            {'items': []},
            {},
            {'courses': {'slug': 'a'}},
            'courses',
            42,
            None,
        ]
        for document in bad_documents:
            with self.assertRaises(SeedFormatError, msg=repr(document)):
                parse_seed_document(document)

    def test_wrong_kind(self):
        with self.assertRaises(SeedFormatError):
            parse_seed_document({'fees': []}, expected='courses')


class SeedCommandTests(TestCase):

    def write_seed(self, document):
        handle = tempfile.NamedTemporaryFile('w', suffix='.json', delete=False, encoding='utf-8')
        with handle:
            json.dump(document, handle)
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_seed_courses_upserts_by_slug(self):
        make_course('business-management', title='Old title', is_published=False)
        path = self.write_seed({'courses': [
            {'slug': 'business-management', 'title': 'Business Management', 'isPublished': True},
            {'title': 'Health and Social Care', 'category': 'Vocational', 'sortOrder': 2},
        ]})

        out = StringIO()
        call_command('seed_courses', path, stdout=out)

        self.assertIn('1 created, 1 updated', out.getvalue())
        course = Course.objects.get(slug='business-management')
        self.assertEqual(course.title, 'Business Management')
        self.assertTrue(course.is_published)
        self.assertEqual(Course.objects.get(slug='health-and-social-care').sort_order, 2)

    def test_seed_fees_by_course_slug(self):
        make_course('business-management')
        path = self.write_seed([
            {'courseSlug': 'business-management', 'level': 'LEVEL4_5', 'amountPence': 650000},
            {'courseSlug': 'no-such-course', 'level': 'LEVEL3', 'amountPence': 100},
        ])

        out = StringIO()
        call_command('seed_course_fees', path, stdout=out)

        fee = CourseFee.objects.get(course__slug='business-management')
        self.assertEqual(fee.amount_pence, 650000)
        self.assertEqual(fee.currency, 'GBP')
        self.assertIn('no-such-course', out.getvalue())

    def test_invalid_fee_rolls_back(self):
        make_course('business-management')
        make_course('accounting')
        path = self.write_seed({'fees': [
            {'courseSlug': 'business-management', 'level': 'LEVEL4_5', 'amountPence': 650000},
            {'courseSlug': 'accounting', 'level': 'LEVEL4_5', 'amountPence': 0},
        ]})

        with self.assertRaises(CommandError):
            call_command('seed_course_fees', path, stdout=StringIO())
        self.assertEqual(CourseFee.objects.count(), 0)

    def test_bad_document_shape(self):
        path = self.write_seed({'courses': [], 'fees': []})
        with self.assertRaises(CommandError):
            call_command('seed_courses', path, stdout=StringIO())


class PublicCourseAPITests(APITestCase):

    def setUp(self):
        self.mba = make_course('mba', title='Master of Business Administration', category='Postgraduate',
                               popular_rank=2, level7_rank=1)
        self.care = make_course('health-care', title='Health and Social Care', category='Vocational',
                                popular_rank=1)
        self.hidden = make_course('draft-course', title='Draft Course', is_published=False, popular_rank=3)
        CourseFee.objects.create(course=self.mba, level='LEVEL7', amount_pence=1200000)
        CourseFee.objects.create(course=self.care, level='LEVEL3', amount_pence=0, is_active=False)

    def test_list_only_published(self):
        response = self.client.get('/api/courses/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        slugs = [course['slug'] for course in response.data['data']]
        self.assertEqual(slugs, ['mba', 'health-care'])

        by_slug = {course['slug']: course for course in response.data['data']}
        self.assertEqual(by_slug['mba']['fee']['amountPence'], 1200000)
        self.assertIsNone(by_slug['health-care']['fee'])

    def test_search(self):
        response = self.client.get('/api/courses/', {'q': 'vocational'})
        self.assertEqual([course['slug'] for course in response.data['data']], ['health-care'])

    def test_detail(self):
        self.assertEqual(self.client.get('/api/courses/mba/').status_code, status.HTTP_200_OK)
        response = self.client.get('/api/courses/draft-course/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'NOT_FOUND')

    def test_featured_sections(self):
        response = self.client.get('/api/courses/featured/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        sections = response.data['data']
        self.assertEqual([course['slug'] for course in sections['POPULAR']], ['health-care', 'mba'])
        self.assertEqual([course['slug'] for course in sections['LEVEL7']], ['mba'])
        self.assertEqual(sections['LEVEL45'], [])


class AdminCourseAPITests(APITestCase):

    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', is_admin=True)
        self.client.force_authenticate(user=self.admin)

    def test_create_generates_slug(self):
        response = self.client.post('/api/admin/courses/', {
            'title': 'Applied Data Science MSc',
            'category': 'Postgraduate',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['slug'], 'applied-data-science-msc')
        self.assertFalse(response.data['data']['isPublished'])
        self.assertEqual(AuditEvent.objects.filter(action=COURSE_CREATED).count(), 1)

    def test_duplicate_slug(self):
        make_course('applied-data-science-msc')
        response = self.client.post('/api/admin/courses/', {'title': 'Applied Data Science MSc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'SLUG_TAKEN')

    def test_update_and_delete(self):
        course = make_course('accounting')
        response = self.client.patch(f'/api/admin/courses/{course.pk}/', {'title': 'Accounting and Finance'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        course.refresh_from_db()
        self.assertEqual(course.title, 'Accounting and Finance')
        self.assertEqual(course.slug, 'accounting')

        response = self.client.delete(f'/api/admin/courses/{course.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Course.objects.filter(pk=course.pk).exists())

    def test_publish_toggle(self):
        course = make_course('accounting', is_published=False)
        url = f'/api/admin/courses/{course.pk}/publish/'

        response = self.client.post(url, {}, format='json')
        self.assertTrue(response.data['isPublished'])
        response = self.client.post(url, {'isPublished': False}, format='json')
        self.assertFalse(response.data['isPublished'])
        self.assertEqual(AuditEvent.objects.filter(action=COURSE_PUBLISH_TOGGLED).count(), 2)

    def test_fee_upsert(self):
        course = make_course('accounting')
        url = f'/api/admin/courses/{course.pk}/fee/'

        response = self.client.put(url, {'level': 'LEVEL4_5', 'amountPence': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amountPence', response.data['errors'])

        response = self.client.put(url, {'level': 'LEVEL4_5', 'amountPence': -1, 'isActive': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(url, {'level': 'LEVEL4_5', 'amountPence': 650000}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['created'])

        response = self.client.put(url, {'level': 'LEVEL4_5', 'amountPence': 700000, 'currency': 'gbp'},
                                   format='json')
        self.assertFalse(response.data['created'])
        self.assertEqual(CourseFee.objects.get(course=course).amount_pence, 700000)
        self.assertEqual(AuditEvent.objects.filter(action=COURSE_FEE_UPSERTED).count(), 2)

    def test_homepage_rank(self):
        course = make_course('accounting')
        response = self.client.patch('/api/admin/homepage-featured/', {
            'courseId': course.pk, 'section': 'LEVEL45', 'rank': 4,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        course.refresh_from_db()
        self.assertEqual(course.level45_rank, 4)

        event = AuditEvent.objects.get(action=HOMEPAGE_FEATURED_UPDATED)
        self.assertIsNone(event.before['LEVEL45'])
        self.assertEqual(event.after['LEVEL45'], 4)

        response = self.client.patch('/api/admin/homepage-featured/', {
            'courseId': course.pk, 'section': 'LEVEL45', 'rank': None,
        }, format='json')
        course.refresh_from_db()
        self.assertIsNone(course.level45_rank)

    def test_homepage_rank_validation(self):
        course = make_course('accounting')
        for body in ({'section': 'POPULAR', 'rank': 51}, {'section': 'POPULAR', 'rank': 0},
                     {'section': 'TRENDING', 'rank': 1}):
            response = self.client.patch('/api/admin/homepage-featured/', {'courseId': course.pk, **body},
                                         format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, body)

    def test_audit_failure_does_not_block_rank_change(self):
        course = make_course('accounting')
        with patch.object(AuditEvent.objects, 'create', side_effect=DatabaseError('audit down')):
            response = self.client.patch('/api/admin/homepage-featured/', {
                'courseId': course.pk, 'section': 'POPULAR', 'rank': 1,
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        course.refresh_from_db()
        self.assertEqual(course.popular_rank, 1)
        self.assertEqual(AuditEvent.objects.count(), 0)

    def test_homepage_listing(self):
        make_course('accounting', popular_rank=1)
        response = self.client.get('/api/admin/homepage-featured/', {'q': 'account'})
        self.assertEqual(response.data['data'][0]['popularRank'], 1)

    def test_regular_user_forbidden(self):
        self.client.force_authenticate(user=User.objects.create_user(email='u@example.com', password='pw12345678'))
        response = self.client.get('/api/admin/courses/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
