from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from backend.errors import NotFound

from .models import FEATURED_SECTIONS, Course
from .serializers import CourseSerializer


@api_view(['GET'])
@permission_classes([AllowAny])
def course_list(request):
    """Published catalog, optional ``q`` search"""
    courses = Course.objects.published().with_fee().catalog_order()
    term = request.query_params.get('q', '').strip()
    if term:
        courses = courses.filter(
            Q(title__icontains=term) |
            Q(short_description__icontains=term) |
            Q(category__icontains=term)
        )
    return Response({'success': True, 'data': CourseSerializer(courses, many=True).data})


@api_view(['GET'])
@permission_classes([AllowAny])
def course_detail(request, slug):
    course = Course.objects.published().with_fee().filter(slug=slug).first()
    if course is None:
        raise NotFound('Course not found.')
    return Response({'success': True, 'data': CourseSerializer(course).data})


@api_view(['GET'])
@permission_classes([AllowAny])
def featured_courses(request):
    """Homepage sections, each ordered by its rank"""
    published = Course.objects.published().with_fee()
    sections = {}
    for section, column in FEATURED_SECTIONS.items():
        courses = published.filter(**{f'{column}__isnull': False}).order_by(column, 'title')
        sections[section] = CourseSerializer(courses, many=True).data
    return Response({'success': True, 'data': sections})
