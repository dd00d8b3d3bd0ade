# accounts/models.py

from django.contrib.auth.models import AbstractUser, UserManager as BaseUserManager
from django.core.validators import FileExtensionValidator, MinValueValidator
from django.db import models


class UserManager(BaseUserManager):
    """Superusers are always approved admins"""

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', 'admin')
        extra_fields.setdefault('approval_status', 'approved')
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    Application user with role-based access and an approval gate.
    Newly registered users stay 'pending' until an admin approves them.
    """
    ROLE_CHOICES = [
        ('user', 'User'),
        ('supervisor', 'Supervisor'),
        ('admin', 'Admin'),
    ]

    APPROVAL_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='user')
    approval_status = models.CharField(max_length=20, choices=APPROVAL_CHOICES, default='pending')
    phone_number = models.CharField(max_length=20, blank=True)

    objects = UserManager()

    class Meta:
        ordering = ['username']

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_supervisor_or_admin(self):
        return self.role in ('supervisor', 'admin')

    @property
    def can_login(self):
        """Admins bypass the approval gate"""
        return self.is_active and (self.role == 'admin' or self.approval_status == 'approved')

    def change_role(self, role):
        """Update the role and the job title of the linked team member"""
        self.role = role
        self.is_staff = role == 'admin'
        self.save(update_fields=['role', 'is_staff'])
        TeamMember.objects.filter(user=self).update(job_title=TeamMember.job_title_for_role(role))

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'role': self.role,
            'approval_status': self.approval_status,
            'is_active': self.is_active,
            'phone_number': self.phone_number,
            'date_joined': self.date_joined.isoformat() if self.date_joined else None,
            'last_login': self.last_login.isoformat() if self.last_login else None,
        }


class TeamMember(models.Model):
    """
    Team directory profile, linked 1:1 to a User when the member has an account.
    active_tasks is kept in step with the tasks that reference this member
    (see task_management.utils.active_tasks).
    """
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('busy', 'Busy'),
        ('offline', 'Offline'),
    ]

    JOB_TITLES = {
        'admin': 'مدير النظام',
        'supervisor': 'مشرف',
        'user': 'عضو فريق',
    }

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='team_member'
    )
    name = models.CharField(max_length=100)
    job_title = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')
    active_tasks = models.PositiveIntegerField(default=0, validators=[MinValueValidator(0)])
    avatar = models.CharField(max_length=10, blank=True, help_text="Initials shown when there is no image")
    profile_image = models.ImageField(
        upload_to='profile_images/',
        blank=True,
        null=True,
        validators=[FileExtensionValidator(allowed_extensions=['jpg', 'jpeg', 'png', 'webp'])]
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} - {self.job_title}"

    @classmethod
    def job_title_for_role(cls, role):
        return cls.JOB_TITLES.get(role, cls.JOB_TITLES['user'])

    def save(self, *args, **kwargs):
        if not self.avatar and self.name:
            self.avatar = ''.join(part[0] for part in self.name.split()[:2]).upper()
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'job_title': self.job_title,
            'email': self.email,
            'phone': self.phone,
            'status': self.status,
            'active_tasks': self.active_tasks,
            'avatar': self.avatar,
            'profile_image': self.profile_image.url if self.profile_image else None,
        }
