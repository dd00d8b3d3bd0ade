import pytest
from django.contrib import admin

from task_management.models import Task
from whatsapp.models import CustomerRating

pytestmark = pytest.mark.django_db


@pytest.fixture
def task_admin():
    return admin.site._registry[Task]


def test_completing_in_admin_stamps_and_requests_rating(task_admin, rf, admin_user, make_member, make_task):
    member = make_member(active_tasks=1)
    task = make_task(assignee_ids=[member.pk], customer_phone='0501')
    request = rf.post('/admin/')
    request.user = admin_user

    task.status = 'complete'
    task_admin.save_model(request, task, None, True)

    task.refresh_from_db()
    member.refresh_from_db()
    assert task.completed_at is not None
    assert task.progress == 100
    assert member.active_tasks == 0
    assert CustomerRating.objects.filter(task=task).count() == 1

    # Saving again without a status change keeps the single rating
    task_admin.save_model(request, task, None, True)
    assert CustomerRating.objects.filter(task=task).count() == 1


def test_adding_in_admin_counts_and_sets_creator(task_admin, rf, admin_user, make_member):
    member = make_member()
    request = rf.post('/admin/')
    request.user = admin_user

    task = Task(title='Paint door', customer_name='Huda', assignee_ids=[member.pk, member.pk])
    task_admin.save_model(request, task, None, False)

    member.refresh_from_db()
    assert task.assignee_ids == [member.pk]
    assert task.created_by == admin_user
    assert member.active_tasks == 1
