from django.db import models


DEFAULT_RATING_MESSAGE = (
    "مرحباً {customer_name}، تم إكمال مهمة \"{task_title}\".\n"
    "يرجى تقييم الخدمة بالرد برقم:\n"
    "1 = غاضب\n"
    "2 = راضي\n"
    "3 = راضي جداً"
)


class WhatsAppSettings(models.Model):
    """Single-row configuration for the customer survey channel"""
    default_message = models.TextField(
        default=DEFAULT_RATING_MESSAGE,
        help_text="Placeholders: {customer_name}, {task_title}"
    )
    sender_name = models.CharField(max_length=100, default='TaskFlow')
    auto_send = models.BooleanField(default=True, help_text="Send the survey when a task is completed")
    use_real_api = models.BooleanField(default=False, help_text="POST to WHATSAPP_API_URL instead of only logging")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'WhatsApp settings'
        verbose_name_plural = 'WhatsApp settings'

    def __str__(self):
        return f"WhatsApp settings ({self.sender_name})"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, created = cls.objects.get_or_create(pk=1)
        return obj

    def render_message(self, customer_name, task_title):
        return (
            self.default_message
            .replace('{customer_name}', customer_name or '')
            .replace('{task_title}', task_title or '')
        )

    def to_dict(self):
        return {
            'default_message': self.default_message,
            'sender_name': self.sender_name,
            'auto_send': self.auto_send,
            'use_real_api': self.use_real_api,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class CustomerRating(models.Model):
    """Satisfaction survey for one completed task"""
    RATING_CHOICES = [
        ('pending', 'Pending'),
        ('angry', 'Angry'),
        ('satisfied', 'Satisfied'),
        ('very_satisfied', 'Very satisfied'),
    ]

    RATING_LABELS = {
        'angry': 'غاضب',
        'satisfied': 'راضي',
        'very_satisfied': 'راضي جداً',
    }

    POSITIVE_RATINGS = ('satisfied', 'very_satisfied')

    task = models.OneToOneField(
        'task_management.Task',
        on_delete=models.CASCADE,
        related_name='customer_rating'
    )
    customer = models.ForeignKey(
        'task_management.Customer',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ratings'
    )
    customer_name = models.CharField(max_length=150)
    customer_phone = models.CharField(max_length=20, blank=True, db_index=True)
    rating = models.CharField(max_length=20, choices=RATING_CHOICES, default='pending')
    rating_text = models.CharField(max_length=50, blank=True)
    message_sent = models.BooleanField(default=False)
    response_received = models.BooleanField(default=False)
    responded_at = models.DateTimeField(null=True, blank=True)
    points_awarded = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.customer_name} - {self.get_rating_display()}"

    @property
    def is_positive(self):
        return self.rating in self.POSITIVE_RATINGS

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'task_title': self.task.title if self.task_id else None,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'rating': self.rating,
            'rating_text': self.rating_text,
            'message_sent': self.message_sent,
            'response_received': self.response_received,
            'responded_at': self.responded_at.isoformat() if self.responded_at else None,
            'points_awarded': self.points_awarded,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
