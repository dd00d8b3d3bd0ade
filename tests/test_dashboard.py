import io
import json
import zipfile
from datetime import timedelta

import openpyxl
import pytest
from django.utils import timezone

from performance.models import add_points
from task_management.models import Customer, SystemLog, log_user_action

pytestmark = pytest.mark.django_db


def test_stats(member_api, make_task, make_member):
    past = timezone.now() - timedelta(days=1)
    make_task(status='pending', due_date=past)
    make_task(status='start')
    make_task(status='complete', due_date=past)
    make_task(status='cancelled')
    Customer.objects.create(name='Reem')

    stats = member_api.get('/api/stats').json()['stats']
    assert stats['total_tasks'] == 4
    assert stats['pending_tasks'] == 1
    assert stats['in_progress_tasks'] == 1
    assert stats['completed_tasks'] == 1
    assert stats['cancelled_tasks'] == 1
    assert stats['active_tasks'] == 2
    assert stats['overdue_tasks'] == 1
    assert stats['customers'] == 1
    assert stats['team_members'] >= 1


def test_admin_logs(admin_api, admin_user, member_user, supervisor_api):
    for i in range(3):
        log_user_action(member_user, 'login')
    log_user_action(admin_user, 'create_task', {'task_id': 'TSK-1'})

    logs = admin_api.get('/api/admin/logs?action=login').json()['logs']
    assert len(logs) == 3
    assert {entry['username'] for entry in logs} == {'nora'}

    assert len(admin_api.get('/api/admin/logs?limit=2').json()['logs']) == 2
    assert admin_api.get('/api/admin/logs?limit=x').status_code == 400
    assert supervisor_api.get('/api/admin/logs').status_code == 403


def test_log_user_action_captures_request_meta(admin_user, rf):
    request = rf.get('/', HTTP_X_FORWARDED_FOR='10.0.0.5, 172.16.0.1', HTTP_USER_AGENT='pytest')
    entry = log_user_action(admin_user, 'export_excel', {'when': timezone.now()}, request=request)
    assert entry.ip_address == '10.0.0.5'
    assert entry.user_agent == 'pytest'
    assert isinstance(entry.details['when'], str)


def test_excel_export(admin_api, make_task, make_member):
    member = make_member(name='Emma Davis')
    make_task(title='Fix sink', assignee_ids=[member.pk], due_date=timezone.now())
    Customer.objects.create(name='Reem', gps_latitude='24.713600', gps_longitude='46.675300')
    add_points(member, 12)

    response = admin_api.get('/api/admin/export/excel')
    assert response.status_code == 200
    assert response['Content-Type'].startswith('application/vnd.openxmlformats')

    wb = openpyxl.load_workbook(io.BytesIO(response.content))
    assert wb.sheetnames == ['Tasks', 'Customers', 'Team Members', 'Points', 'Ratings']
    tasks = wb['Tasks']
    assert tasks.cell(row=1, column=1).value == 'Task ID'
    assert tasks.cell(row=2, column=2).value == 'Fix sink'
    assert tasks.cell(row=2, column=8).value == 'Emma Davis'
    assert wb['Points'].cell(row=2, column=2).value == 12
    assert SystemLog.objects.filter(action='export_excel').exists()


def test_backup_zip(admin_api, make_task):
    make_task(title='Backed up')

    response = admin_api.get('/api/admin/backup')
    assert response.status_code == 200
    assert response['Content-Type'] == 'application/zip'

    archive = zipfile.ZipFile(io.BytesIO(response.content))
    names = set(archive.namelist())
    assert {'tasks.json', 'users.json', 'team_members.json', 'taskflow_export.xlsx', 'manifest.json'} <= names

    tasks = json.loads(archive.read('tasks.json'))
    assert [t['fields']['title'] for t in tasks] == ['Backed up']
    assert json.loads(archive.read('manifest.json'))['tables']['tasks'] == 1
    assert SystemLog.objects.filter(action='backup_created').exists()


def test_exports_are_admin_only(supervisor_api):
    assert supervisor_api.get('/api/admin/export/excel').status_code == 403
    assert supervisor_api.get('/api/admin/backup').status_code == 403
