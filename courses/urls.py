from django.urls import path

from . import views

urlpatterns = [
    path('', views.course_list, name='course_list'),
    path('featured/', views.featured_courses, name='featured_courses'),
    path('<slug:slug>/', views.course_detail, name='course_detail'),
]
