from django.urls import path
from . import views

app_name = 'dashboard'

urlpatterns = [
    path('stats', views.stats, name='stats'),
    path('admin/logs', views.admin_logs, name='admin_logs'),
    path('admin/export/excel', views.export_excel, name='export_excel'),
    path('admin/backup', views.backup, name='backup'),
]
