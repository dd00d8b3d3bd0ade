"""
Bookkeeping for TeamMember.active_tasks.

A member's counter equals the number of non-terminal tasks whose
assignee_ids contain that member. Every task write goes through one of
the on_task_* hooks below inside the request transaction.
"""
import logging
from collections import Counter

from django.db.models import F

from accounts.models import TeamMember
from task_management.models import Task

logger = logging.getLogger(__name__)


def normalize_assignee_ids(values):
    """Ordered, de-duplicated list of integer ids"""
    seen = []
    for value in values or []:
        pk = int(value)
        if pk not in seen:
            seen.append(pk)
    return seen


def increment(member_ids):
    if member_ids:
        TeamMember.objects.filter(pk__in=member_ids).update(active_tasks=F('active_tasks') + 1)


def decrement(member_ids):
    # Never goes below zero
    if member_ids:
        TeamMember.objects.filter(
            pk__in=member_ids, active_tasks__gt=0
        ).update(active_tasks=F('active_tasks') - 1)


def on_task_created(task):
    if not Task.is_terminal_status(task.status):
        increment(task.assignee_ids)


def on_task_updated(old_status, old_assignee_ids, task):
    """Apply the counter delta between the previous and the saved state of a task"""
    was_active = not Task.is_terminal_status(old_status)
    is_active = not Task.is_terminal_status(task.status)
    old_ids = set(old_assignee_ids or [])
    new_ids = set(task.assignee_ids or [])

    if was_active and is_active:
        decrement(list(old_ids - new_ids))
        increment(list(new_ids - old_ids))
    elif was_active:
        decrement(list(old_ids))
    elif is_active:
        increment(list(new_ids))


def on_task_deleted(task):
    if not Task.is_terminal_status(task.status):
        decrement(task.assignee_ids)


def tasks_for_member(member_id, queryset=None):
    """Tasks whose assignee list contains member_id"""
    if queryset is None:
        queryset = Task.objects.all()
    return [task for task in queryset if member_id in (task.assignee_ids or [])]


def remove_member_from_tasks(member_id):
    updated = 0
    for task in tasks_for_member(member_id):
        task.assignee_ids = [pk for pk in task.assignee_ids if pk != member_id]
        task.save(update_fields=['assignee_ids', 'updated_at'])
        updated += 1
    if updated:
        logger.info("Removed team member %s from %d task(s)", member_id, updated)
    return updated


def expected_active_counts():
    counts = Counter()
    active = Task.objects.exclude(status__in=Task.TERMINAL_STATUSES).only('assignee_ids')
    for task in active:
        counts.update(set(task.assignee_ids or []))
    return counts


def recount_active_tasks(dry_run=False):
    """
    Recompute every counter from the tasks table.
    Returns (member, stored, expected) for each member that had drifted.
    """
    counts = expected_active_counts()
    drift = []
    for member in TeamMember.objects.all():
        expected = counts.get(member.pk, 0)
        if member.active_tasks != expected:
            drift.append((member, member.active_tasks, expected))
            if not dry_run:
                TeamMember.objects.filter(pk=member.pk).update(active_tasks=expected)
    if drift:
        logger.warning("Active task counters drifted for %d member(s)", len(drift))
    return drift
