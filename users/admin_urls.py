from django.urls import path

from . import admin_views

urlpatterns = [
    path('users/', admin_views.users_list, name='admin_users'),
    path('users/<str:user_id>/role/', admin_views.change_user_role, name='admin_user_role'),
    path('users/<str:user_id>/verify-email/', admin_views.verify_user_email, name='admin_user_verify_email'),
    path('second-factor/', admin_views.set_second_factor, name='admin_second_factor'),
]
