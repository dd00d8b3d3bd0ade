from django.contrib import admin
from .models import TeamMemberPoints, PointsHistory, reset_points


@admin.register(TeamMemberPoints)
class TeamMemberPointsAdmin(admin.ModelAdmin):
    list_display = ['team_member', 'points', 'total_earned', 'last_updated', 'updated_by']
    search_fields = ['team_member__name']
    readonly_fields = ['points', 'total_earned', 'last_updated', 'updated_by']

    actions = ['reset_selected']

    def reset_selected(self, request, queryset):
        for record in queryset.select_related('team_member'):
            reset_points(record.team_member, performed_by=request.user, reason='Reset from admin site')
        self.message_user(request, f"{queryset.count()} balances reset.")
    reset_selected.short_description = "Reset points of selected members"


@admin.register(PointsHistory)
class PointsHistoryAdmin(admin.ModelAdmin):
    list_display = ['team_member', 'action', 'points_change', 'reason', 'performed_by', 'created_at']
    list_filter = ['action', 'created_at']
    search_fields = ['team_member__name', 'reason']
    date_hierarchy = 'created_at'

    # Ledger entries are never edited
    def has_change_permission(self, request, obj=None):
        return False
