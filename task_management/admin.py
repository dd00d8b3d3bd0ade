# task_management/admin.py

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from .models import Customer, Task, Message, Notification, SystemLog
from .utils import active_tasks
from .utils.task_events import stamp_status_change, after_task_created, after_task_saved


# ============================================
# CUSTOMER ADMIN
# ============================================

@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['customer_id', 'name', 'phone', 'email', 'has_location', 'created_at']
    search_fields = ['customer_id', 'name', 'phone', 'email']
    list_filter = ['created_at']
    readonly_fields = ['customer_id', 'created_at', 'updated_at']

    fieldsets = (
        ('Customer Information', {
            'fields': ('customer_id', 'name', 'phone', 'email', 'address')
        }),
        ('Location', {
            'fields': ('gps_latitude', 'gps_longitude', 'gps_address')
        }),
        ('System Information', {
            'fields': ('notes', 'created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    @admin.display(boolean=True, description='GPS')
    def has_location(self, obj):
        return obj.has_location


# ============================================
# TASK ADMIN
# ============================================

@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['task_id', 'title', 'customer_name', 'status_badge', 'priority', 'progress', 'due_date']
    search_fields = ['task_id', 'title', 'customer_name', 'customer_phone']
    list_filter = ['status', 'priority', 'created_at']
    readonly_fields = [
        'task_id', 'started_at', 'completed_at', 'cancelled_at', 'rescheduled_at',
        'reschedule_count', 'previous_due_date', 'created_at', 'updated_at',
    ]

    fieldsets = (
        ('Task Information', {
            'fields': ('task_id', 'title', 'description', 'time', 'notes')
        }),
        ('Customer', {
            'fields': ('customer', 'customer_name', 'customer_phone', 'customer_address')
        }),
        ('Assignment', {
            'fields': ('status', 'priority', 'progress', 'assignee_ids', 'due_date')
        }),
        ('Rescheduling & Cancellation', {
            'fields': (
                'reschedule_count', 'previous_due_date', 'reschedule_reason', 'rescheduled_at',
                'cancelled_by', 'cancellation_reason', 'cancelled_at',
            ),
            'classes': ('collapse',)
        }),
        ('System Information', {
            'fields': ('started_at', 'completed_at', 'created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        colors = {
            'pending': '#f0ad4e',
            'start': '#5bc0de',
            'complete': '#5cb85c',
            'cancelled': '#d9534f',
        }
        color = colors.get(obj.status, '#777')
        return format_html(
            '<span style="background: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
            color, obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    # Mirror the API side effects for edits made here
    def save_model(self, request, obj, form, change):
        obj.assignee_ids = active_tasks.normalize_assignee_ids(obj.assignee_ids)
        now = timezone.now()
        if change:
            previous = Task.objects.get(pk=obj.pk)
            stamp_status_change(obj, previous.status, now)
            super().save_model(request, obj, form, change)
            after_task_saved(obj, previous.status, previous.assignee_ids, request.user)
        else:
            if obj.created_by_id is None:
                obj.created_by = request.user
            stamp_status_change(obj, 'pending', now)
            super().save_model(request, obj, form, change)
            after_task_created(obj, request.user)

    def delete_model(self, request, obj):
        active_tasks.on_task_deleted(obj)
        super().delete_model(request, obj)

    def delete_queryset(self, request, queryset):
        for task in queryset:
            active_tasks.on_task_deleted(task)
        super().delete_queryset(request, queryset)


# ============================================
# MESSAGING
# ============================================

@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['sender', 'receiver', 'message_scope', 'message_type', 'is_read', 'created_at']
    list_filter = ['message_scope', 'message_type', 'is_read']
    search_fields = ['content', 'sender__username', 'receiver__username']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'notification_type', 'title', 'is_read', 'created_at']
    list_filter = ['notification_type', 'is_read', 'created_at']
    search_fields = ['user__username', 'title', 'content']
    readonly_fields = ['created_at', 'read_at']

    actions = ['mark_as_read', 'mark_as_unread']

    def mark_as_read(self, request, queryset):
        updated = queryset.update(is_read=True)
        self.message_user(request, f'{updated} notifications marked as read.')
    mark_as_read.short_description = 'Mark selected as read'

    def mark_as_unread(self, request, queryset):
        updated = queryset.update(is_read=False, read_at=None)
        self.message_user(request, f'{updated} notifications marked as unread.')
    mark_as_unread.short_description = 'Mark selected as unread'


# ============================================
# SYSTEM LOG (read-only)
# ============================================

@admin.register(SystemLog)
class SystemLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'username', 'action', 'ip_address']
    list_filter = ['action', 'timestamp']
    search_fields = ['username', 'action']
    readonly_fields = ['user', 'username', 'action', 'details', 'ip_address', 'user_agent', 'timestamp']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
