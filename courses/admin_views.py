"""
Back-office course management. Every mutation writes a best-effort audit
event; an audit failure never fails the change itself.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from audit.actions import (
    COURSE_CREATED,
    COURSE_DELETED,
    COURSE_FEE_UPSERTED,
    COURSE_PUBLISH_TOGGLED,
    COURSE_UPDATED,
    HOMEPAGE_FEATURED_UPDATED,
)
from audit.services import AuditTrail
from authentication.permissions import IsAdminOrSuperAdmin
from backend.errors import Conflict, NotFound, json_object, validation_failed_from
from users.admin_views import parse_paging

from .models import FEATURED_SECTIONS, Course, CourseFee
from .serializers import (
    AdminCourseSerializer,
    CourseFeeInputSerializer,
    CourseFeeSerializer,
    FeaturedCourseSerializer,
    FeaturedRankSerializer,
)

logger = logging.getLogger(__name__)

SLUG_TAKEN_MESSAGE = 'A course with this slug already exists.'


def get_course_or_404(course_id, lock=False):
    queryset = Course.objects.select_related('fee')
    if lock:
        queryset = Course.objects.select_for_update()
    try:
        return queryset.get(pk=course_id)
    except Course.DoesNotExist:
        raise NotFound('Course not found.')


def course_snapshot(course):
    return {
        'slug': course.slug,
        'title': course.title,
        'category': course.category,
        'isPublished': course.is_published,
    }


def save_course(serializer):
    slug = serializer.validated_data.get('slug')
    clash = Course.objects.filter(slug=slug)
    if serializer.instance is not None:
        clash = clash.exclude(pk=serializer.instance.pk)
    if slug and clash.exists():
        raise Conflict(SLUG_TAKEN_MESSAGE, code='SLUG_TAKEN')
    try:
        with transaction.atomic():
            return serializer.save()
    except IntegrityError:
        raise Conflict(SLUG_TAKEN_MESSAGE, code='SLUG_TAKEN')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def courses_collection(request):
    if request.method == 'POST':
        serializer = AdminCourseSerializer(data=request.data)
        if not serializer.is_valid():
            raise validation_failed_from(serializer.errors)
        course = save_course(serializer)
        AuditTrail.record(
            action=COURSE_CREATED,
            actor=request.user,
            target_type='course',
            target_id=course.pk,
            after=course_snapshot(course),
            **AuditTrail.for_request(request),
        )
        logger.info(f"Course {course.slug} created by {request.user.email}")
        return Response({'success': True, 'data': AdminCourseSerializer(course).data},
                        status=status.HTTP_201_CREATED)

    limit, offset = parse_paging(request)
    queryset = Course.objects.with_fee().catalog_order()
    term = request.query_params.get('q', '').strip()
    if term:
        queryset = queryset.filter(
            Q(title__icontains=term) | Q(slug__icontains=term) | Q(category__icontains=term)
        )
    total_count = queryset.count()
    return Response({
        'success': True,
        'data': AdminCourseSerializer(queryset[offset:offset + limit], many=True).data,
        'pagination': {
            'total': total_count,
            'limit': limit,
            'offset': offset,
            'has_more': offset + limit < total_count,
        },
    })


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def course_item(request, course_id):
    course = get_course_or_404(course_id)

    if request.method == 'GET':
        return Response({'success': True, 'data': AdminCourseSerializer(course).data})

    before = course_snapshot(course)

    if request.method == 'DELETE':
        course.delete()
        AuditTrail.record(
            action=COURSE_DELETED,
            actor=request.user,
            target_type='course',
            target_id=course_id,
            before=before,
            **AuditTrail.for_request(request),
        )
        logger.info(f"Course {before['slug']} deleted by {request.user.email}")
        return Response({'success': True})

    serializer = AdminCourseSerializer(course, data=request.data, partial=True)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    course = save_course(serializer)
    AuditTrail.record(
        action=COURSE_UPDATED,
        actor=request.user,
        target_type='course',
        target_id=course.pk,
        before=before,
        after=course_snapshot(course),
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'data': AdminCourseSerializer(course).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def toggle_publish(request, course_id):
    """Flip ``is_published``, or set it when ``isPublished`` is given"""
    requested = json_object(request.data).get('isPublished')
    with transaction.atomic():
        course = get_course_or_404(course_id, lock=True)
        before = course.is_published
        course.is_published = (not before) if requested is None else bool(requested)
        course.save(update_fields=['is_published', 'updated_at'])

    AuditTrail.record(
        action=COURSE_PUBLISH_TOGGLED,
        actor=request.user,
        target_type='course',
        target_id=course.pk,
        before={'isPublished': before},
        after={'isPublished': course.is_published},
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'isPublished': course.is_published})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def upsert_fee(request, course_id):
    course = get_course_or_404(course_id)
    serializer = CourseFeeInputSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    data = serializer.validated_data

    existing = CourseFee.objects.filter(course=course).first()
    before = CourseFeeSerializer(existing).data if existing else None
    fee, created = CourseFee.objects.update_or_create(course=course, defaults={
        'level': data['level'],
        'amount_pence': data['amountPence'],
        'currency': data['currency'],
        'note': data['note'],
        'is_active': data['isActive'],
    })
    after = CourseFeeSerializer(fee).data

    AuditTrail.record(
        action=COURSE_FEE_UPSERTED,
        actor=request.user,
        target_type='course',
        target_id=course.pk,
        before=before,
        after=after,
        meta={'created': created},
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'created': created, 'data': after})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrSuperAdmin])
def homepage_featured(request):
    if request.method == 'GET':
        queryset = Course.objects.catalog_order()
        term = request.query_params.get('q', '').strip()
        if term:
            queryset = queryset.filter(Q(title__icontains=term) | Q(slug__icontains=term))
        return Response({'success': True, 'data': FeaturedCourseSerializer(queryset, many=True).data})

    serializer = FeaturedRankSerializer(data=request.data)
    if not serializer.is_valid():
        raise validation_failed_from(serializer.errors)
    data = serializer.validated_data
    column = FEATURED_SECTIONS[data['section']]

    with transaction.atomic():
        course = get_course_or_404(data['courseId'], lock=True)
        before = course.featured_ranks()
        setattr(course, column, data['rank'])
        course.save(update_fields=[column, 'updated_at'])

    AuditTrail.record(
        action=HOMEPAGE_FEATURED_UPDATED,
        actor=request.user,
        target_type='course',
        target_id=course.pk,
        before=before,
        after=course.featured_ranks(),
        meta={'section': data['section']},
        **AuditTrail.for_request(request),
    )
    return Response({'success': True, 'data': FeaturedCourseSerializer(course).data})
