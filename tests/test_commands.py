from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from accounts.models import User, TeamMember
from task_management.models import Notification

pytestmark = pytest.mark.django_db


def test_createdefaultsu_creates_admin_and_seeds(settings):
    settings.DEFAULT_ADMIN_USERNAME = 'administrator'
    settings.DEFAULT_ADMIN_PASSWORD = 'admin-pass-1'

    call_command('createdefaultsu', stdout=StringIO())

    admin = User.objects.get(username='administrator')
    assert admin.role == 'admin'
    assert admin.is_superuser
    assert admin.check_password('admin-pass-1')
    names = set(TeamMember.objects.filter(user__isnull=True).values_list('name', flat=True))
    assert names == {'Sarah Thompson', 'Mike Johnson', 'Emma Davis', 'Alex Rodriguez'}


def test_createdefaultsu_is_idempotent():
    call_command('createdefaultsu', stdout=StringIO())
    call_command('createdefaultsu', stdout=StringIO())
    assert User.objects.filter(is_superuser=True).count() == 1
    assert TeamMember.objects.filter(user__isnull=True).count() == 4


def test_createdefaultsu_no_seed():
    call_command('createdefaultsu', '--no-seed', stdout=StringIO())
    assert not TeamMember.objects.filter(user__isnull=True).exists()


def test_notify_overdue_tasks_once(member_user, make_task):
    past = timezone.now() - timedelta(hours=2)
    overdue = make_task(due_date=past, assignee_ids=[member_user.team_member.pk])
    make_task(due_date=past, status='complete', assignee_ids=[member_user.team_member.pk])
    make_task(due_date=timezone.now() + timedelta(days=1), assignee_ids=[member_user.team_member.pk])

    out = StringIO()
    call_command('notify_overdue_tasks', stdout=out)
    assert overdue.task_id in out.getvalue()

    notes = Notification.objects.filter(user=member_user, notification_type='task_overdue')
    assert [n.related_id for n in notes] == [str(overdue.pk)]

    call_command('notify_overdue_tasks', stdout=StringIO())
    assert Notification.objects.filter(notification_type='task_overdue').count() == 1
    overdue.refresh_from_db()
    assert overdue.overdue_notified_at is not None
