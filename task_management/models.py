# task_management/models.py

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
from decimal import Decimal


# ============================================
# CUSTOMER
# ============================================

class Customer(models.Model):
    """Customer contact card, optionally pinned on the map"""
    customer_id = models.CharField(max_length=20, unique=True, blank=True)
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)

    gps_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    gps_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    gps_address = models.TextField(blank=True, help_text="Reverse-geocoded address of the GPS point")
    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_customers'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.customer_id} - {self.name}"

    def save(self, *args, **kwargs):
        if not self.customer_id:
            last = Customer.objects.all().order_by('id').last()
            if last and last.customer_id:
                self.customer_id = f"CUST{int(last.customer_id[4:]) + 1:04d}"
            else:
                self.customer_id = "CUST0001"
        super().save(*args, **kwargs)

    @property
    def has_location(self):
        return self.gps_latitude is not None and self.gps_longitude is not None

    @property
    def maps_url(self):
        if not self.has_location:
            return ''
        return f"https://www.google.com/maps?q={self.gps_latitude},{self.gps_longitude}"

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'gps_latitude': str(self.gps_latitude) if self.gps_latitude is not None else None,
            'gps_longitude': str(self.gps_longitude) if self.gps_longitude is not None else None,
            'gps_address': self.gps_address,
            'maps_url': self.maps_url,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ============================================
# TASK
# ============================================

class Task(models.Model):
    """Field task assigned to one or more team members"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('start', 'Started'),
        ('complete', 'Complete'),
        ('cancelled', 'Cancelled'),
    ]

    TERMINAL_STATUSES = ('complete', 'cancelled')

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]

    CANCELLED_BY_CHOICES = [
        ('customer', 'Customer request'),
        ('admin', 'Company decision'),
        ('system', 'Technical or emergency reasons'),
    ]

    task_id = models.CharField(max_length=20, unique=True, blank=True)
    title = models.CharField(max_length=200)
    description = models.TextField()

    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks'
    )
    customer_name = models.CharField(max_length=150)
    customer_phone = models.CharField(max_length=20, blank=True)
    customer_address = models.TextField(blank=True)

    time = models.CharField(max_length=100, help_text="Estimated time or schedule")
    notes = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='medium')
    progress = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    assignee_ids = models.JSONField(default=list, blank=True, help_text="Ordered TeamMember ids")
    due_date = models.DateTimeField(null=True, blank=True)

    # Rescheduling
    reschedule_count = models.PositiveIntegerField(default=0)
    previous_due_date = models.DateTimeField(null=True, blank=True)
    reschedule_reason = models.TextField(blank=True)
    rescheduled_at = models.DateTimeField(null=True, blank=True)

    # Cancellation
    cancelled_by = models.CharField(max_length=20, choices=CANCELLED_BY_CHOICES, blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    overdue_notified_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_tasks'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['due_date']),
        ]

    def __str__(self):
        return f"{self.task_id} - {self.title}"

    def save(self, *args, **kwargs):
        if not self.task_id:
            today = timezone.localdate()
            date_str = today.strftime('%y%m%d')
            prefix = f"TSK-{date_str}-"
            last = Task.objects.filter(task_id__startswith=prefix).order_by('task_id').last()
            seq = int(last.task_id.split('-')[-1]) + 1 if last else 1
            self.task_id = f"{prefix}{seq:04d}"
        super().save(*args, **kwargs)

    @classmethod
    def is_terminal_status(cls, status):
        return status in cls.TERMINAL_STATUSES

    @property
    def is_active(self):
        return not self.is_terminal_status(self.status)

    @property
    def is_overdue(self):
        return bool(self.due_date and self.is_active and self.due_date < timezone.now())

    def get_assignees(self):
        """Team members in assignee_ids order, skipping ids that no longer exist"""
        from accounts.models import TeamMember
        members = TeamMember.objects.in_bulk(self.assignee_ids or [])
        return [members[pk] for pk in self.assignee_ids or [] if pk in members]

    def is_assigned_to(self, user):
        member = getattr(user, 'team_member', None)
        return member is not None and member.pk in (self.assignee_ids or [])

    def to_dict(self, assignees=None):
        if assignees is None:
            assignees = self.get_assignees()
        return {
            'id': self.id,
            'task_id': self.task_id,
            'title': self.title,
            'description': self.description,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_address': self.customer_address,
            'time': self.time,
            'notes': self.notes,
            'status': self.status,
            'priority': self.priority,
            'progress': self.progress,
            'assignee_ids': list(self.assignee_ids or []),
            'assignees': [member.to_dict() for member in assignees],
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'is_overdue': self.is_overdue,
            'reschedule_count': self.reschedule_count,
            'previous_due_date': self.previous_due_date.isoformat() if self.previous_due_date else None,
            'reschedule_reason': self.reschedule_reason,
            'cancelled_by': self.cancelled_by,
            'cancellation_reason': self.cancellation_reason,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'created_by': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


# ============================================
# MESSAGES
# ============================================

class Message(models.Model):
    """In-app chat message, either private or broadcast to the whole team"""
    TYPE_CHOICES = [
        ('text', 'Text'),
        ('task', 'Task'),
        ('system', 'System'),
    ]

    SCOPE_CHOICES = [
        ('private', 'Private'),
        ('group', 'Group'),
    ]

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sent_messages'
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='received_messages'
    )
    content = models.TextField()
    message_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='text')
    message_scope = models.CharField(max_length=20, choices=SCOPE_CHOICES, default='private')
    task = models.ForeignKey(
        Task,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='messages'
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['receiver', 'is_read']),
        ]

    def __str__(self):
        return f"{self.sender} -> {self.receiver or 'group'}: {self.content[:30]}"

    def to_dict(self):
        return {
            'id': self.id,
            'sender_id': self.sender_id,
            'sender_name': self.sender.username if self.sender_id else None,
            'receiver_id': self.receiver_id,
            'content': self.content,
            'message_type': self.message_type,
            'message_scope': self.message_scope,
            'task_id': self.task_id,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ============================================
# NOTIFICATIONS
# ============================================

class Notification(models.Model):
    """System notifications for users"""

    NOTIFICATION_TYPES = [
        ('task_assigned', 'Task Assigned'),
        ('task_updated', 'Task Updated'),
        ('task_completed', 'Task Completed'),
        ('task_cancelled', 'Task Cancelled'),
        ('task_rescheduled', 'Task Rescheduled'),
        ('task_overdue', 'Task Overdue'),
        ('new_message', 'New Message'),
        ('points_awarded', 'Points Awarded'),
        ('rating_received', 'Rating Received'),
        ('general', 'General'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )

    notification_type = models.CharField(
        max_length=50,
        choices=NOTIFICATION_TYPES,
        default='general'
    )

    title = models.CharField(max_length=200)
    content = models.TextField()
    related_id = models.CharField(
        max_length=50,
        blank=True,
        help_text="Id of the task, message or rating this refers to"
    )

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read']),
            models.Index(fields=['-created_at']),
        ]

    def __str__(self):
        return f"{self.title} - {self.user.username}"

    def mark_as_read(self):
        """Mark notification as read"""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.notification_type,
            'title': self.title,
            'content': self.content,
            'related_id': self.related_id,
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ============================================
# SYSTEM LOG
# ============================================

class SystemLog(models.Model):
    """Track user and admin actions for accountability"""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='system_logs'
    )
    username = models.CharField(max_length=150, blank=True)
    action = models.CharField(max_length=50, db_index=True)
    details = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['user', '-timestamp']),
            models.Index(fields=['-timestamp']),
        ]

    def __str__(self):
        return f"{self.username or 'System'} {self.action} at {self.timestamp}"

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'user_id': self.user_id,
            'username': self.username,
            'details': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }


def _json_safe(value):
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    if isinstance(value, models.Model):
        return value.pk
    return value


# Helper function to log actions
def log_user_action(user, action, details=None, request=None):
    """Helper to create system log entries"""
    ip_address = None
    user_agent = ''
    if request:
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            ip_address = x_forwarded_for.split(',')[0].strip()
        else:
            ip_address = request.META.get('REMOTE_ADDR')
        user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]

    authenticated = user is not None and getattr(user, 'is_authenticated', False)
    return SystemLog.objects.create(
        user=user if authenticated else None,
        username=user.username if authenticated else '',
        action=action,
        details=_json_safe(details) if details is not None else None,
        ip_address=ip_address or None,
        user_agent=user_agent,
    )
