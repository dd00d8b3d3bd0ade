from django.apps import AppConfig


class TaskManagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'task_management'
    verbose_name = 'Tasks, Customers & Messaging'
