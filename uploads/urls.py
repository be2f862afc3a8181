from django.urls import path

from . import views

urlpatterns = [
    path('presign/', views.presign_uploads, name='uploads_presign'),
]
