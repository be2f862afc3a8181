from django.urls import path

from . import admin_views

urlpatterns = [
    path('applications/', admin_views.applications_list, name='admin_applications'),
    path('applications/<int:application_id>/', admin_views.application_detail, name='admin_application_detail'),
    path('applications/<int:application_id>/status/', admin_views.update_application_status,
         name='admin_application_status'),
    path('applications/<int:application_id>/attachments/<int:attachment_id>/download/',
         admin_views.attachment_download, name='admin_attachment_download'),
    path('enquiries/', admin_views.enquiries_list, name='admin_enquiries'),
]
