from django.contrib import admin
from .models import WhatsAppSettings, CustomerRating


@admin.register(WhatsAppSettings)
class WhatsAppSettingsAdmin(admin.ModelAdmin):
    list_display = ['sender_name', 'auto_send', 'use_real_api', 'updated_at']

    # Single row
    def has_add_permission(self, request):
        return not WhatsAppSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CustomerRating)
class CustomerRatingAdmin(admin.ModelAdmin):
    list_display = ['task', 'customer_name', 'customer_phone', 'rating', 'message_sent', 'response_received', 'points_awarded', 'created_at']
    list_filter = ['rating', 'message_sent', 'response_received', 'points_awarded']
    search_fields = ['customer_name', 'customer_phone', 'task__task_id', 'task__title']
    readonly_fields = ['responded_at', 'points_awarded', 'created_at']
