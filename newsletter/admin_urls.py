from django.urls import path

from . import views

urlpatterns = [
    path('newsletter/subscribers/', views.subscribers_list, name='admin_newsletter_subscribers'),
    path('newsletter/subscribers/<int:subscriber_id>/', views.subscriber_item, name='admin_newsletter_subscriber'),
    path('newsletter/send/', views.send_newsletter, name='admin_newsletter_send'),
]
