from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, TeamMember


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'role', 'approval_status', 'phone_number', 'is_active', 'date_joined']
    list_filter = ['role', 'approval_status', 'is_active']
    search_fields = ['username', 'phone_number']
    actions = ['approve_users']

    fieldsets = (
        (None, {'fields': ('username', 'password')}),
        ('Contact', {'fields': ('phone_number',)}),
        ('Access', {'fields': ('role', 'approval_status')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'password1', 'password2', 'role', 'approval_status'),
        }),
    )

    @admin.action(description='Approve selected users')
    def approve_users(self, request, queryset):
        updated = queryset.update(approval_status='approved')
        self.message_user(request, f'{updated} user(s) approved.')


@admin.register(TeamMember)
class TeamMemberAdmin(admin.ModelAdmin):
    list_display = ['name', 'job_title', 'email', 'status', 'active_tasks', 'user']
    list_filter = ['status', 'job_title']
    search_fields = ['name', 'email', 'phone', 'user__username']
    readonly_fields = ['active_tasks', 'created_at']
