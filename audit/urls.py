from django.urls import path

from . import views

urlpatterns = [
    path('audit/', views.get_audit_events, name='admin_audit_events'),
]
