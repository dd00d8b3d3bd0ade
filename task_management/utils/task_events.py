from whatsapp.services import request_customer_rating
from . import active_tasks
from .notifications import notify_task_assigned, notify_task_status, notify_task_completed


def stamp_status_change(task, old_status, now):
    """Timestamps and progress that follow from a status transition"""
    if task.status == old_status:
        return
    if task.status == 'start' and not task.started_at:
        task.started_at = now
    if task.status == 'complete':
        task.completed_at = now
        task.progress = 100
    elif old_status == 'complete':
        task.completed_at = None
    if task.status == 'cancelled' and not task.cancelled_at:
        task.cancelled_at = now


def after_task_created(task, actor):
    """Counters, assignment notifications and rating request for a new task"""
    active_tasks.on_task_created(task)
    if task.assignee_ids:
        notify_task_assigned(task, task.assignee_ids, actor=actor)
    if task.status == 'complete':
        request_customer_rating(task)


def after_task_saved(task, old_status, old_assignee_ids, actor):
    """Counters, notifications and rating request for an updated task"""
    active_tasks.on_task_updated(old_status, old_assignee_ids, task)

    old_ids = set(old_assignee_ids or [])
    added = [pk for pk in task.assignee_ids if pk not in old_ids]
    remaining = [pk for pk in task.assignee_ids if pk in old_ids]

    if added:
        notify_task_assigned(task, added, actor=actor)
    if task.status != old_status:
        if remaining:
            notify_task_status(task, remaining, actor=actor)
        if task.status == 'complete':
            notify_task_completed(task, actor=actor)
            request_customer_rating(task)
