# dashboard/views.py

import logging

from django.http import HttpResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from accounts.decorators import api_login_required, role_required, json_error, json_ok
from accounts.models import TeamMember
from task_management.models import Customer, Task, SystemLog, log_user_action
from .exports import XLSX_CONTENT_TYPE, workbook_bytes, build_backup_zip

logger = logging.getLogger(__name__)


@api_login_required
@require_http_methods(["GET"])
def stats(request):
    """Task counters for the dashboard cards"""
    now = timezone.now()
    tasks = Task.objects.all()
    active = tasks.exclude(status__in=Task.TERMINAL_STATUSES)

    return json_ok(stats={
        'total_tasks': tasks.count(),
        'pending_tasks': tasks.filter(status='pending').count(),
        'in_progress_tasks': tasks.filter(status='start').count(),
        'completed_tasks': tasks.filter(status='complete').count(),
        'cancelled_tasks': tasks.filter(status='cancelled').count(),
        'active_tasks': active.count(),
        'overdue_tasks': active.filter(due_date__lt=now).count(),
        'team_members': TeamMember.objects.count(),
        'available_members': TeamMember.objects.filter(status='available').count(),
        'customers': Customer.objects.count(),
    })


@role_required('admin')
@require_http_methods(["GET"])
def admin_logs(request):
    logs = SystemLog.objects.all()

    action = request.GET.get('action')
    if action:
        logs = logs.filter(action=action)
    try:
        user_id = int(request.GET['user_id']) if request.GET.get('user_id') else None
        limit = int(request.GET.get('limit', 100))
    except ValueError:
        return json_error('user_id and limit must be integers')
    if user_id:
        logs = logs.filter(user_id=user_id)

    return json_ok(logs=[log.to_dict() for log in logs[:max(limit, 0)]])


@role_required('admin')
@require_http_methods(["GET"])
def export_excel(request):
    content = workbook_bytes()
    log_user_action(request.user, 'export_excel', {'size': len(content)}, request=request)

    response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename=taskflow_{timezone.localdate()}.xlsx'
    return response


@role_required('admin')
@require_http_methods(["GET"])
def backup(request):
    content, counts = build_backup_zip()
    log_user_action(request.user, 'backup_created', {'tables': counts, 'size': len(content)}, request=request)
    logger.info("Backup created by %s (%d bytes)", request.user.username, len(content))

    response = HttpResponse(content, content_type='application/zip')
    stamp = timezone.localtime().strftime('%Y%m%d_%H%M%S')
    response['Content-Disposition'] = f'attachment; filename=taskflow_backup_{stamp}.zip'
    return response
