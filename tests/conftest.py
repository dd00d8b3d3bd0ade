import pytest
from django.test import Client

from accounts.models import User, TeamMember
from task_management.models import Task


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username='boss', password='secret123', role='admin', approval_status='approved', is_staff=True
    )


@pytest.fixture
def supervisor_user(db):
    return User.objects.create_user(
        username='sam', password='secret123', role='supervisor', approval_status='approved'
    )


@pytest.fixture
def member_user(db):
    return User.objects.create_user(
        username='nora', password='secret123', role='user', approval_status='approved'
    )


@pytest.fixture
def other_user(db):
    return User.objects.create_user(
        username='omar', password='secret123', role='user', approval_status='approved'
    )


@pytest.fixture
def pending_user(db):
    return User.objects.create_user(username='newbie', password='secret123')


def _client_for(user):
    client = Client()
    client.force_login(user)
    return client


@pytest.fixture
def admin_api(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def supervisor_api(supervisor_user):
    return _client_for(supervisor_user)


@pytest.fixture
def member_api(member_user):
    return _client_for(member_user)


@pytest.fixture
def other_api(other_user):
    return _client_for(other_user)


@pytest.fixture
def anon_api(db):
    return Client()


@pytest.fixture
def make_member(db):
    counter = {'n': 0}

    def _make(name=None, **kwargs):
        counter['n'] += 1
        name = name or f'Member {counter["n"]}'
        kwargs.setdefault('email', f'member{counter["n"]}@example.com')
        kwargs.setdefault('job_title', 'Technician')
        return TeamMember.objects.create(name=name, **kwargs)

    return _make


@pytest.fixture
def make_task(db, admin_user):
    """Create a task directly in the database (no counter bookkeeping)"""
    def _make(**kwargs):
        kwargs.setdefault('title', 'Fix AC unit')
        kwargs.setdefault('description', 'Unit 4 is leaking')
        kwargs.setdefault('customer_name', 'Huda')
        kwargs.setdefault('time', '2 hours')
        kwargs.setdefault('created_by', admin_user)
        return Task.objects.create(**kwargs)

    return _make


@pytest.fixture
def task_payload():
    def _payload(**overrides):
        data = {
            'title': 'Install water heater',
            'description': 'Replace the old heater in the kitchen',
            'customer_name': 'Khalid',
            'customer_phone': '+966500000001',
            'time': '3 hours',
        }
        data.update(overrides)
        return data

    return _payload