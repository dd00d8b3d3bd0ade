from django.urls import path
from . import views

app_name = 'task_management'

urlpatterns = [
    # Customers
    path('customers', views.customers, name='customers'),
    path('customers/<int:customer_id>', views.customer_detail, name='customer_detail'),

    # Tasks
    path('tasks', views.tasks, name='tasks'),
    path('tasks/conflicts', views.task_conflicts, name='task_conflicts'),
    path('tasks/<int:task_id>', views.task_detail, name='task_detail'),
    path('tasks/<int:task_id>/cancel', views.task_cancel, name='task_cancel'),
    path('tasks/<int:task_id>/reschedule', views.task_reschedule, name='task_reschedule'),

    # Messages
    path('messages', views.messages_view, name='messages'),
    path('messages/unread-count', views.messages_unread_count, name='messages_unread_count'),
    path('messages/<int:message_id>/read', views.message_mark_read, name='message_mark_read'),

    # Notifications
    path('notifications', views.notifications, name='notifications'),
    path('notifications/unread-count', views.notifications_unread_count, name='notifications_unread_count'),
    path('notifications/read-all', views.notifications_mark_all_read, name='notifications_mark_all_read'),
    path('notifications/<int:notification_id>/read', views.notification_mark_read, name='notification_mark_read'),
]
