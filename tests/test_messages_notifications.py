import pytest

from accounts.models import User
from task_management.models import Message, Notification

pytestmark = pytest.mark.django_db

JSON = 'application/json'


def test_private_message_notifies_receiver(member_api, member_user, other_user):
    response = member_api.post(
        '/api/messages', {'receiver': other_user.pk, 'content': 'Are you on site?'}, content_type=JSON
    )
    assert response.status_code == 201
    message = response.json()['message']
    assert message['message_scope'] == 'private'
    assert message['sender_id'] == member_user.pk

    notes = Notification.objects.filter(notification_type='new_message')
    assert [n.user_id for n in notes] == [other_user.pk]


def test_group_message_notifies_everyone_else(member_api, member_user, other_user, supervisor_user, pending_user):
    inactive = User.objects.create_user(
        username='gone', password='secret123', approval_status='approved', is_active=False
    )
    response = member_api.post('/api/messages', {'content': 'Team meeting at 5'}, content_type=JSON)
    assert response.status_code == 201
    assert response.json()['message']['message_scope'] == 'group'

    notified = set(Notification.objects.filter(notification_type='new_message').values_list('user_id', flat=True))
    assert notified == {other_user.pk, supervisor_user.pk}
    assert member_user.pk not in notified
    assert pending_user.pk not in notified
    assert inactive.pk not in notified


def test_empty_message_rejected(member_api):
    response = member_api.post('/api/messages', {'content': '   '}, content_type=JSON)
    assert response.status_code == 400


def test_cannot_message_yourself(member_api, member_user):
    response = member_api.post(
        '/api/messages', {'receiver': member_user.pk, 'content': 'hi me'}, content_type=JSON
    )
    assert response.status_code == 400


def test_message_list_scope(member_user, other_user, supervisor_user, member_api):
    to_me = Message.objects.create(sender=other_user, receiver=member_user, content='to nora')
    from_me = Message.objects.create(sender=member_user, receiver=other_user, content='from nora')
    group = Message.objects.create(sender=supervisor_user, content='all hands', message_scope='group')
    Message.objects.create(sender=other_user, receiver=supervisor_user, content='private elsewhere')

    ids = {m['id'] for m in member_api.get('/api/messages').json()['messages']}
    assert ids == {to_me.pk, from_me.pk, group.pk}


def test_conversation(member_user, other_user, supervisor_user, member_api):
    first = Message.objects.create(sender=other_user, receiver=member_user, content='one')
    second = Message.objects.create(sender=member_user, receiver=other_user, content='two')
    Message.objects.create(sender=supervisor_user, receiver=member_user, content='unrelated')

    messages = member_api.get(f'/api/messages?with={other_user.pk}').json()['messages']
    assert [m['id'] for m in messages] == [first.pk, second.pk]


def test_mark_message_read_only_by_receiver(member_user, other_user, member_api, other_api):
    message = Message.objects.create(sender=other_user, receiver=member_user, content='ping')

    assert other_api.patch(f'/api/messages/{message.pk}/read').status_code == 403
    assert member_api.get('/api/messages/unread-count').json()['count'] == 1

    assert member_api.patch(f'/api/messages/{message.pk}/read').status_code == 200
    message.refresh_from_db()
    assert message.is_read
    assert member_api.get('/api/messages/unread-count').json()['count'] == 0


def test_notifications_are_private(member_user, other_user, member_api):
    mine = Notification.objects.create(user=member_user, title='Hi', content='x')
    theirs = Notification.objects.create(user=other_user, title='Hi', content='y')

    ids = [n['id'] for n in member_api.get('/api/notifications').json()['notifications']]
    assert ids == [mine.pk]
    assert member_api.patch(f'/api/notifications/{theirs.pk}/read').status_code == 404


def test_notification_read_flow(member_user, member_api):
    first = Notification.objects.create(user=member_user, title='A', content='a')
    Notification.objects.create(user=member_user, title='B', content='b')

    assert member_api.get('/api/notifications/unread-count').json()['count'] == 2

    response = member_api.patch(f'/api/notifications/{first.pk}/read')
    assert response.json()['notification']['is_read'] is True
    assert response.json()['notification']['read_at'] is not None

    unread = member_api.get('/api/notifications?unread=1').json()['notifications']
    assert [n['title'] for n in unread] == ['B']

    assert member_api.post('/api/notifications/read-all').json()['updated'] == 1
    assert member_api.get('/api/notifications/unread-count').json()['count'] == 0
