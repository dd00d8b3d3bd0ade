from django.urls import path
from . import views

app_name = 'whatsapp'

urlpatterns = [
    path('customer-ratings', views.customer_ratings, name='customer_ratings'),
    path('customer-ratings/<int:rating_id>/respond', views.respond_to_rating, name='respond_to_rating'),
    path('whatsapp/incoming', views.incoming_message, name='incoming_message'),
    path('whatsapp/settings', views.whatsapp_settings, name='settings'),
    path('whatsapp/status', views.whatsapp_status, name='status'),
    path('whatsapp/test-message', views.test_message, name='test_message'),
    path('whatsapp/broadcast', views.broadcast, name='broadcast'),
]
