import logging

from django.db import transaction
from django.db.models import Q
from django.forms.models import model_to_dict
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_http_methods

from accounts.decorators import (
    InvalidJSON, api_login_required, is_manager,
    read_json, json_error, json_ok, form_errors,
)
from accounts.models import TeamMember
from .forms import TaskForm, CancelTaskForm, RescheduleTaskForm, CustomerForm, MessageForm
from .models import Customer, Task, Message, Notification, log_user_action
from .utils import active_tasks
from .utils.conflicts import find_time_conflicts
from .utils.notifications import notify_task_status, notify_task_rescheduled, notify_new_message
from .utils.task_events import stamp_status_change, after_task_created, after_task_saved

logger = logging.getLogger(__name__)

# Fields an assigned (non-manager) user may change on their own task
ASSIGNEE_EDITABLE_FIELDS = {'status', 'progress', 'notes'}


def _merged_form_data(instance, data, fields):
    """Stored values overlaid with the request payload, so PUT may be partial"""
    merged = model_to_dict(instance, fields=fields)
    merged.update({k: v for k, v in data.items() if k in fields})
    return merged


# ============================================
# CUSTOMERS
# ============================================

@api_login_required
@require_http_methods(["GET", "POST"])
def customers(request):
    if request.method == 'GET':
        queryset = Customer.objects.all()
        q = request.GET.get('q', '').strip()
        if q:
            queryset = queryset.filter(
                Q(name__icontains=q) | Q(phone__icontains=q) |
                Q(email__icontains=q) | Q(customer_id__icontains=q)
            )
        return json_ok(customers=[c.to_dict() for c in queryset])

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = CustomerForm(_merged_form_data(Customer(), data, CustomerForm.Meta.fields))
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        customer = form.save(commit=False)
        customer.created_by = request.user
        customer.save()
        log_user_action(
            request.user, 'create_customer',
            {'customer_id': customer.customer_id, 'name': customer.name},
            request=request,
        )
    return json_ok(status=201, customer=customer.to_dict())


@api_login_required
@require_http_methods(["GET", "PUT", "DELETE"])
def customer_detail(request, customer_id):
    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        return json_error('Customer not found', status=404)

    if request.method == 'GET':
        data = customer.to_dict()
        data['task_count'] = customer.tasks.count()
        return json_ok(customer=data)

    if request.method == 'DELETE':
        if not is_manager(request.user):
            return json_error('Access denied', status=403)
        with transaction.atomic():
            log_user_action(
                request.user, 'delete_customer',
                {'customer_id': customer.customer_id, 'name': customer.name},
                request=request,
            )
            customer.delete()
        return json_ok(message='Customer deleted')

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = CustomerForm(_merged_form_data(customer, data, CustomerForm.Meta.fields), instance=customer)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        customer = form.save()
        log_user_action(
            request.user, 'update_customer',
            {'customer_id': customer.customer_id, 'fields': sorted(data.keys())},
            request=request,
        )
    return json_ok(customer=customer.to_dict())


# ============================================
# TASKS
# ============================================

def _serialize_tasks(tasks):
    """to_dict for many tasks with a single team member lookup"""
    ids = {pk for task in tasks for pk in task.assignee_ids or []}
    members = TeamMember.objects.in_bulk(ids)
    return [
        task.to_dict(assignees=[members[pk] for pk in task.assignee_ids or [] if pk in members])
        for task in tasks
    ]


def _conflicts_payload(conflicts):
    return [
        {
            'task_id': task.id,
            'task_code': task.task_id,
            'title': task.title,
            'due_date': task.due_date.isoformat() if task.due_date else None,
            'assignee_ids': shared,
        }
        for task, shared in conflicts
    ]


@api_login_required
@require_http_methods(["GET", "POST"])
def tasks(request):
    if request.method == 'GET':
        return _list_tasks(request)

    if not is_manager(request.user):
        return json_error('Only supervisors and admins can create tasks', status=403)

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = TaskForm(_merged_form_data(Task(), data, TaskForm.Meta.fields))
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        task = form.save(commit=False)
        task.created_by = request.user
        stamp_status_change(task, 'pending', timezone.now())
        task.save()

        after_task_created(task, request.user)

        log_user_action(
            request.user, 'create_task',
            {'task_id': task.task_id, 'title': task.title, 'assignee_ids': task.assignee_ids},
            request=request,
        )

    conflicts = find_time_conflicts(task.assignee_ids, task.due_date, exclude_task_id=task.pk)
    return json_ok(
        status=201,
        task=task.to_dict(),
        conflicts=_conflicts_payload(conflicts),
    )


def _list_tasks(request):
    queryset = Task.objects.all()

    status = request.GET.get('status')
    if status:
        queryset = queryset.filter(status=status)
    priority = request.GET.get('priority')
    if priority:
        queryset = queryset.filter(priority=priority)
    q = request.GET.get('q', '').strip()
    if q:
        queryset = queryset.filter(
            Q(title__icontains=q) | Q(description__icontains=q) |
            Q(customer_name__icontains=q) | Q(task_id__icontains=q)
        )

    task_list = list(queryset)

    if not is_manager(request.user):
        member = getattr(request.user, 'team_member', None)
        if member is None:
            return json_ok(tasks=[])
        task_list = [t for t in task_list if member.pk in (t.assignee_ids or [])]

    assignee_id = request.GET.get('assignee_id')
    if assignee_id:
        try:
            assignee_id = int(assignee_id)
        except ValueError:
            return json_error('assignee_id must be an integer')
        task_list = [t for t in task_list if assignee_id in (t.assignee_ids or [])]

    return json_ok(tasks=_serialize_tasks(task_list))


@api_login_required
@require_http_methods(["GET", "PUT", "DELETE"])
def task_detail(request, task_id):
    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return json_error('Task not found', status=404)

    manager = is_manager(request.user)
    if not manager and not task.is_assigned_to(request.user):
        return json_error('You are not assigned to this task', status=403)

    if request.method == 'GET':
        return json_ok(task=task.to_dict())

    if request.method == 'DELETE':
        if not manager:
            return json_error('Only supervisors and admins can delete tasks', status=403)
        with transaction.atomic():
            active_tasks.on_task_deleted(task)
            log_user_action(
                request.user, 'delete_task',
                {'task_id': task.task_id, 'title': task.title},
                request=request,
            )
            task.delete()
        return json_ok(message='Task deleted')

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    if not manager:
        forbidden = sorted(set(data) - ASSIGNEE_EDITABLE_FIELDS)
        if forbidden:
            return json_error(
                'You can only update status, progress and notes',
                status=403,
                fields=forbidden,
            )

    old_status = task.status
    old_assignee_ids = list(task.assignee_ids or [])

    form = TaskForm(_merged_form_data(task, data, TaskForm.Meta.fields), instance=task)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        task = form.save(commit=False)
        stamp_status_change(task, old_status, timezone.now())
        task.save()
        after_task_saved(task, old_status, old_assignee_ids, request.user)

        log_user_action(
            request.user, 'update_task',
            {
                'task_id': task.task_id,
                'fields': sorted(data.keys()),
                'status': [old_status, task.status] if old_status != task.status else task.status,
            },
            request=request,
        )
    return json_ok(task=task.to_dict())


@api_login_required
@require_http_methods(["PUT"])
def task_cancel(request, task_id):
    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return json_error('Task not found', status=404)
    if not is_manager(request.user) and not task.is_assigned_to(request.user):
        return json_error('You are not assigned to this task', status=403)
    if not task.is_active:
        return json_error(f'Task is already {task.status}')

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = CancelTaskForm(data)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        old_status = task.status
        task.status = 'cancelled'
        task.cancelled_by = form.cleaned_data['cancelled_by']
        task.cancellation_reason = form.cleaned_data['cancellation_reason']
        task.cancelled_at = timezone.now()
        task.save()

        active_tasks.on_task_updated(old_status, task.assignee_ids, task)
        notify_task_status(task, task.assignee_ids, actor=request.user)
        log_user_action(
            request.user, 'cancel_task',
            {
                'task_id': task.task_id,
                'cancelled_by': task.cancelled_by,
                'reason': task.cancellation_reason,
            },
            request=request,
        )
    return json_ok(task=task.to_dict())


@api_login_required
@require_http_methods(["PUT"])
def task_reschedule(request, task_id):
    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return json_error('Task not found', status=404)
    if not is_manager(request.user) and not task.is_assigned_to(request.user):
        return json_error('You are not assigned to this task', status=403)
    if not task.is_active:
        return json_error(f'Cannot reschedule a task that is {task.status}')

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = RescheduleTaskForm(data)
    if not form.is_valid():
        return form_errors(form)

    now = timezone.now()
    with transaction.atomic():
        task.previous_due_date = task.due_date
        task.due_date = form.cleaned_data['new_due_date']
        task.reschedule_reason = form.cleaned_data['reschedule_reason']
        task.reschedule_count += 1
        task.rescheduled_at = now
        task.overdue_notified_at = None
        task.save()

        notify_task_rescheduled(task, actor=request.user)
        log_user_action(
            request.user, 'reschedule_task',
            {
                'task_id': task.task_id,
                'from': task.previous_due_date,
                'to': task.due_date,
                'reason': task.reschedule_reason,
            },
            request=request,
        )

    conflicts = find_time_conflicts(task.assignee_ids, task.due_date, exclude_task_id=task.pk)
    return json_ok(task=task.to_dict(), conflicts=_conflicts_payload(conflicts))


@api_login_required
@require_http_methods(["GET"])
def task_conflicts(request):
    """Tasks that share an assignee and fall inside the conflict window"""
    raw_ids = request.GET.get('assignee_ids', '')
    try:
        assignee_ids = [int(x) for x in raw_ids.split(',') if x.strip()]
    except ValueError:
        return json_error('assignee_ids must be a comma separated list of integers')

    due_date = parse_datetime(request.GET.get('due_date', '') or '')
    if due_date is None:
        return json_error('due_date must be an ISO 8601 datetime')
    if timezone.is_naive(due_date):
        due_date = timezone.make_aware(due_date)

    exclude = request.GET.get('exclude')
    try:
        exclude = int(exclude) if exclude else None
    except ValueError:
        return json_error('exclude must be an integer')

    conflicts = find_time_conflicts(assignee_ids, due_date, exclude_task_id=exclude)
    return json_ok(
        has_conflicts=bool(conflicts),
        conflicts=_conflicts_payload(conflicts),
    )


# ============================================
# MESSAGES
# ============================================

@api_login_required
@require_http_methods(["GET", "POST"])
def messages_view(request):
    user = request.user

    if request.method == 'GET':
        other_id = request.GET.get('with')
        if other_id:
            try:
                other_id = int(other_id)
            except ValueError:
                return json_error('with must be a user id')
            conversation = Message.objects.filter(
                Q(sender=user, receiver_id=other_id) | Q(sender_id=other_id, receiver=user)
            ).select_related('sender').order_by('created_at', 'id')
            return json_ok(messages=[m.to_dict() for m in conversation])

        queryset = Message.objects.filter(
            Q(receiver=user) | Q(sender=user) | Q(message_scope='group')
        ).select_related('sender')
        return json_ok(messages=[m.to_dict() for m in queryset])

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = MessageForm(data)
    if not form.is_valid():
        return form_errors(form)

    receiver = form.cleaned_data.get('receiver')
    if receiver is not None and receiver.pk == user.pk:
        return json_error('You cannot send a message to yourself')

    with transaction.atomic():
        message = form.save(commit=False)
        message.sender = user
        message.message_scope = 'private' if receiver else 'group'
        message.save()
        notified = notify_new_message(message)
        log_user_action(
            user, 'send_message',
            {'message_id': message.id, 'scope': message.message_scope, 'receiver_id': message.receiver_id},
            request=request,
        )
    return json_ok(status=201, message=message.to_dict(), notified=notified)


@api_login_required
@require_http_methods(["PATCH"])
def message_mark_read(request, message_id):
    message = Message.objects.filter(pk=message_id).first()
    if message is None:
        return json_error('Message not found', status=404)
    if message.receiver_id != request.user.pk:
        return json_error('Only the receiver can mark a message as read', status=403)

    if not message.is_read:
        message.is_read = True
        message.save(update_fields=['is_read'])
    return json_ok(message=message.to_dict())


@api_login_required
@require_http_methods(["GET"])
def messages_unread_count(request):
    count = Message.objects.filter(receiver=request.user, is_read=False).count()
    return json_ok(count=count)


# ============================================
# NOTIFICATIONS
# ============================================

@api_login_required
@require_http_methods(["GET"])
def notifications(request):
    queryset = Notification.objects.filter(user=request.user)
    if request.GET.get('unread') in ('1', 'true'):
        queryset = queryset.filter(is_read=False)
    try:
        limit = int(request.GET.get('limit', 50))
    except ValueError:
        return json_error('limit must be an integer')
    return json_ok(notifications=[n.to_dict() for n in queryset[:max(limit, 0)]])


@api_login_required
@require_http_methods(["PATCH"])
def notification_mark_read(request, notification_id):
    notification = Notification.objects.filter(pk=notification_id, user=request.user).first()
    if notification is None:
        return json_error('Notification not found', status=404)
    notification.mark_as_read()
    return json_ok(notification=notification.to_dict())


@api_login_required
@require_http_methods(["POST"])
def notifications_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return json_ok(updated=updated)


@api_login_required
@require_http_methods(["GET"])
def notifications_unread_count(request):
    count = Notification.objects.filter(user=request.user, is_read=False).count()
    return json_ok(count=count)
