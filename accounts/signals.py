# accounts/signals.py

from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from .models import User, TeamMember


@receiver(post_save, sender=User)
def create_team_member(sender, instance, created, raw=False, **kwargs):
    """Every new user gets a team member profile"""
    if raw or not created:
        return

    email = instance.email or f"{instance.username}@company.com"
    if TeamMember.objects.filter(email=email).exists():
        email = f"{instance.username}.{instance.pk}@company.com"

    TeamMember.objects.create(
        user=instance,
        name=instance.username,
        job_title=TeamMember.job_title_for_role(instance.role),
        email=email,
        status='available',
        avatar=instance.username[:1].upper(),
    )


@receiver(pre_delete, sender=TeamMember)
def detach_member_from_tasks(sender, instance, **kwargs):
    """Deleted members disappear from every task's assignee list"""
    from task_management.utils.active_tasks import remove_member_from_tasks
    remove_member_from_tasks(instance.pk)
