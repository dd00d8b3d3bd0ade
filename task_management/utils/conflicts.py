from datetime import timedelta

from django.conf import settings

from task_management.models import Task


def find_time_conflicts(assignee_ids, due_date, exclude_task_id=None, window_minutes=None):
    """
    Non-terminal tasks that share an assignee with assignee_ids and are due
    within window_minutes of due_date.
    """
    if not assignee_ids or due_date is None:
        return []
    if window_minutes is None:
        window_minutes = settings.TASKFLOW_CONFLICT_WINDOW_MINUTES

    window = timedelta(minutes=window_minutes)
    candidates = Task.objects.exclude(status__in=Task.TERMINAL_STATUSES).filter(
        due_date__gte=due_date - window,
        due_date__lte=due_date + window,
    )
    if exclude_task_id:
        candidates = candidates.exclude(pk=exclude_task_id)

    wanted = set(assignee_ids)
    conflicts = []
    for task in candidates.order_by('due_date'):
        shared = [pk for pk in task.assignee_ids or [] if pk in wanted]
        if shared:
            conflicts.append((task, shared))
    return conflicts
