"""
URL configuration for the CourseDig backend.

Public endpoints live under ``/api/``; every back-office endpoint lives under
``/api/admin/`` and is guarded by role permissions in its view.
"""

from django.contrib import admin
from django.urls import include, path

from .health_views import health_check

admin_api_patterns = [
    path('', include('users.admin_urls')),
    path('', include('audit.urls')),
    path('', include('admissions.admin_urls')),
    path('', include('courses.admin_urls')),
    path('', include('newsletter.admin_urls')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # Health check for deployment
    path('api/health/', health_check, name='health_check'),

    # Authentication and accounts
    path('api/auth/', include('users.urls')),

    # Back office
    path('api/admin/', include(admin_api_patterns)),

    # Enquiries and applications
    path('api/', include('admissions.urls')),

    # Attachment uploads
    path('api/uploads/', include('uploads.urls')),

    # Course catalog
    path('api/courses/', include('courses.urls')),

    # Newsletter
    path('api/newsletter/', include('newsletter.urls')),
]
