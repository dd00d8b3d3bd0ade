# dashboard/exports.py
# Excel workbook and zip backup builders used by the admin endpoints

import io
import json
import zipfile

import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill
from django.core import serializers
from django.utils import timezone

from accounts.models import User, TeamMember
from performance.models import TeamMemberPoints, PointsHistory
from task_management.models import Customer, Task, Message, Notification, SystemLog
from whatsapp.models import WhatsAppSettings, CustomerRating


XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

BACKUP_MODELS = [
    ('users', User),
    ('team_members', TeamMember),
    ('customers', Customer),
    ('tasks', Task),
    ('messages', Message),
    ('notifications', Notification),
    ('team_member_points', TeamMemberPoints),
    ('points_history', PointsHistory),
    ('customer_ratings', CustomerRating),
    ('whatsapp_settings', WhatsAppSettings),
    ('system_logs', SystemLog),
]


def _fmt(value):
    # Excel cannot store timezone-aware datetimes
    if value is None:
        return ''
    if hasattr(value, 'tzinfo') and value.tzinfo is not None:
        return timezone.localtime(value).strftime('%Y-%m-%d %H:%M')
    return value


def _write_sheet(ws, headers, rows):
    header_fill = PatternFill(start_color='0066CC', end_color='0066CC', fill_type='solid')
    header_font = Font(bold=True, color='FFFFFF')

    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num)
        cell.value = header
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center')

    for row_num, row in enumerate(rows, 2):
        for col_num, value in enumerate(row, 1):
            ws.cell(row=row_num, column=col_num, value=_fmt(value))

    for col in ws.columns:
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(width + 2, 60)


def build_workbook():
    wb = openpyxl.Workbook()
    members = TeamMember.objects.in_bulk()

    ws = wb.active
    ws.title = 'Tasks'
    _write_sheet(ws, [
        'Task ID', 'Title', 'Customer', 'Phone', 'Status', 'Priority', 'Progress',
        'Assignees', 'Due Date', 'Reschedules', 'Cancelled By', 'Created At', 'Completed At',
    ], [
        [
            t.task_id, t.title, t.customer_name, t.customer_phone, t.get_status_display(),
            t.get_priority_display(), t.progress,
            ', '.join(members[pk].name for pk in t.assignee_ids or [] if pk in members),
            t.due_date, t.reschedule_count, t.get_cancelled_by_display() if t.cancelled_by else '',
            t.created_at, t.completed_at,
        ]
        for t in Task.objects.all()
    ])

    _write_sheet(wb.create_sheet('Customers'), [
        'Customer ID', 'Name', 'Phone', 'Email', 'Address', 'Latitude', 'Longitude', 'Created At',
    ], [
        [
            c.customer_id, c.name, c.phone, c.email, c.address,
            float(c.gps_latitude) if c.gps_latitude is not None else '',
            float(c.gps_longitude) if c.gps_longitude is not None else '',
            c.created_at,
        ]
        for c in Customer.objects.all()
    ])

    _write_sheet(wb.create_sheet('Team Members'), [
        'Name', 'Job Title', 'Email', 'Phone', 'Status', 'Active Tasks', 'Username',
    ], [
        [m.name, m.job_title, m.email, m.phone, m.get_status_display(), m.active_tasks,
         m.user.username if m.user_id else '']
        for m in TeamMember.objects.select_related('user')
    ])

    _write_sheet(wb.create_sheet('Points'), [
        'Team Member', 'Points', 'Total Earned', 'Last Updated',
    ], [
        [p.team_member.name, p.points, p.total_earned, p.last_updated]
        for p in TeamMemberPoints.objects.select_related('team_member')
    ])

    _write_sheet(wb.create_sheet('Ratings'), [
        'Task ID', 'Customer', 'Phone', 'Rating', 'Message Sent', 'Responded At', 'Points Awarded',
    ], [
        [
            r.task.task_id, r.customer_name, r.customer_phone, r.rating_text or r.get_rating_display(),
            'Yes' if r.message_sent else 'No', r.responded_at,
            'Yes' if r.points_awarded else 'No',
        ]
        for r in CustomerRating.objects.select_related('task')
    ])

    return wb


def workbook_bytes():
    buffer = io.BytesIO()
    build_workbook().save(buffer)
    return buffer.getvalue()


def build_backup_zip():
    """Zip archive with one JSON dump per table plus the Excel workbook"""
    stamp = timezone.now()
    buffer = io.BytesIO()
    counts = {}
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, model in BACKUP_MODELS:
            objects = model.objects.all()
            counts[name] = objects.count()
            archive.writestr(f'{name}.json', serializers.serialize('json', objects, indent=2))
        archive.writestr('taskflow_export.xlsx', workbook_bytes())
        archive.writestr('manifest.json', json.dumps({
            'created_at': stamp.isoformat(),
            'tables': counts,
        }, indent=2))
    return buffer.getvalue(), counts
