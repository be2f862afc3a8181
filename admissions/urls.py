from django.urls import path

from . import views

urlpatterns = [
    path('enquiries/', views.create_enquiry, name='create_enquiry'),
    path('applications/', views.create_application, name='create_application'),
    path('applications/mine/', views.my_applications, name='my_applications'),
    path('applications/mine/<int:application_id>/', views.my_application_detail, name='my_application_detail'),
]
