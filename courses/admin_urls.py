from django.urls import path

from . import admin_views

urlpatterns = [
    path('courses/', admin_views.courses_collection, name='admin_courses'),
    path('courses/<int:course_id>/', admin_views.course_item, name='admin_course_item'),
    path('courses/<int:course_id>/publish/', admin_views.toggle_publish, name='admin_course_publish'),
    path('courses/<int:course_id>/fee/', admin_views.upsert_fee, name='admin_course_fee'),
    path('homepage-featured/', admin_views.homepage_featured, name='admin_homepage_featured'),
]
