from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils.translation import gettext as _

from accounts.models import TeamMember
from task_management.models import Notification


def notify(user, notification_type, title, content, related_id=''):
    return Notification.objects.create(
        user=user,
        notification_type=notification_type,
        title=title,
        content=content,
        related_id=str(related_id) if related_id else '',
    )


def users_for_members(member_ids, exclude_user=None):
    """Accounts behind the given team members; members without an account are skipped"""
    members = TeamMember.objects.filter(pk__in=member_ids or [], user__isnull=False).select_related('user')
    users = [m.user for m in members]
    if exclude_user is not None:
        users = [u for u in users if u.pk != exclude_user.pk]
    return users


def notify_members(member_ids, notification_type, title, content, related_id='', exclude_user=None):
    users = users_for_members(member_ids, exclude_user=exclude_user)
    Notification.objects.bulk_create([
        Notification(
            user=user,
            notification_type=notification_type,
            title=title,
            content=content,
            related_id=str(related_id) if related_id else '',
        )
        for user in users
    ])
    return len(users)


def notify_task_assigned(task, member_ids, actor=None):
    return notify_members(
        member_ids,
        'task_assigned',
        _('New task assigned'),
        _('You have been assigned to "%(title)s"') % {'title': task.title},
        related_id=task.pk,
        exclude_user=actor,
    )


STATUS_NOTIFICATION_TYPES = {
    'complete': 'task_completed',
    'cancelled': 'task_cancelled',
}


def notify_task_status(task, member_ids, actor=None):
    notification_type = STATUS_NOTIFICATION_TYPES.get(task.status, 'task_updated')
    return notify_members(
        member_ids,
        notification_type,
        _('Task status changed'),
        _('"%(title)s" is now %(status)s') % {'title': task.title, 'status': task.get_status_display()},
        related_id=task.pk,
        exclude_user=actor,
    )


def notify_task_completed(task, actor=None):
    """Tell the task creator the work is done"""
    creator = task.created_by
    if creator is None or (actor is not None and creator.pk == actor.pk):
        return None
    return notify(
        creator,
        'task_completed',
        _('Task completed'),
        _('"%(title)s" has been completed') % {'title': task.title},
        related_id=task.pk,
    )


def notify_task_rescheduled(task, actor=None):
    return notify_members(
        task.assignee_ids,
        'task_rescheduled',
        _('Task rescheduled'),
        _('"%(title)s" moved to %(due)s') % {
            'title': task.title,
            'due': task.due_date.strftime('%Y-%m-%d %H:%M') if task.due_date else '-',
        },
        related_id=task.pk,
        exclude_user=actor,
    )


def notify_new_message(message):
    """Private messages notify the receiver; group messages notify every approved active user"""
    sender = message.sender
    preview = message.content[:100]
    title = _('New message from %(name)s') % {'name': sender.username}

    if message.receiver_id:
        notify(message.receiver, 'new_message', title, preview, related_id=message.pk)
        return 1

    User = get_user_model()
    recipients = User.objects.filter(
        Q(approval_status='approved') | Q(role='admin'), is_active=True
    ).exclude(pk=sender.pk)
    Notification.objects.bulk_create([
        Notification(
            user=user,
            notification_type='new_message',
            title=title,
            content=preview,
            related_id=str(message.pk),
        )
        for user in recipients
    ])
    return len(recipients)
