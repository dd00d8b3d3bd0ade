from django.db import models, transaction
from django.db.models import F
from django.conf import settings
from django.core.validators import MinValueValidator


class TeamMemberPoints(models.Model):
    """
    Current points balance per team member.
    total_earned only ever grows; points drops back to zero on reset.
    """
    team_member = models.OneToOneField(
        'accounts.TeamMember',
        on_delete=models.CASCADE,
        related_name='points'
    )
    points = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    total_earned = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    last_updated = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        ordering = ['-points', 'team_member__name']
        verbose_name_plural = "Team member points"

    def __str__(self):
        return f"{self.team_member.name} - {self.points} pts"

    @classmethod
    def for_member(cls, team_member):
        record, created = cls.objects.get_or_create(team_member=team_member)
        return record

    def to_dict(self):
        return {
            'id': self.id,
            'team_member_id': self.team_member_id,
            'team_member_name': self.team_member.name,
            'points': self.points,
            'total_earned': self.total_earned,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
            'updated_by': self.updated_by_id,
        }


class PointsHistory(models.Model):
    """Append-only ledger of every balance change"""
    ACTION_CHOICES = [
        ('earned', 'Earned'),
        ('reset', 'Reset'),
    ]

    team_member = models.ForeignKey(
        'accounts.TeamMember',
        on_delete=models.CASCADE,
        related_name='points_history'
    )
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    points_change = models.IntegerField()
    reason = models.TextField(blank=True)
    task = models.ForeignKey(
        'task_management.Task',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='points_history'
    )
    rating = models.ForeignKey(
        'whatsapp.CustomerRating',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='points_history'
    )
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='points_actions'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name_plural = "Points history"

    def __str__(self):
        return f"{self.team_member.name} {self.points_change:+d} ({self.action})"

    def to_dict(self):
        return {
            'id': self.id,
            'team_member_id': self.team_member_id,
            'team_member_name': self.team_member.name,
            'action': self.action,
            'points_change': self.points_change,
            'reason': self.reason,
            'task_id': self.task_id,
            'rating_id': self.rating_id,
            'performed_by': self.performed_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@transaction.atomic
def add_points(team_member, points, reason='', performed_by=None, task=None, rating=None):
    """Credit points to a member and record the 'earned' entry"""
    points = int(points)
    if points <= 0:
        raise ValueError('Points must be a positive number')

    record = TeamMemberPoints.for_member(team_member)
    TeamMemberPoints.objects.filter(pk=record.pk).update(
        points=F('points') + points,
        total_earned=F('total_earned') + points,
        updated_by=performed_by,
    )
    PointsHistory.objects.create(
        team_member=team_member,
        action='earned',
        points_change=points,
        reason=reason,
        task=task,
        rating=rating,
        performed_by=performed_by,
    )
    record.refresh_from_db()
    return record


@transaction.atomic
def reset_points(team_member, performed_by=None, reason='Points reset'):
    """Zero the balance; history only records resets that removed something"""
    record = TeamMemberPoints.for_member(team_member)
    previous = record.points
    if previous > 0:
        PointsHistory.objects.create(
            team_member=team_member,
            action='reset',
            points_change=-previous,
            reason=reason,
            performed_by=performed_by,
        )
    record.points = 0
    record.updated_by = performed_by
    record.save(update_fields=['points', 'updated_by', 'last_updated'])
    return previous


@transaction.atomic
def reset_all_points(performed_by=None, reason='Points reset for all members'):
    from accounts.models import TeamMember

    reset_count = 0
    for member in TeamMember.objects.all():
        if reset_points(member, performed_by=performed_by, reason=reason) > 0:
            reset_count += 1
    return reset_count
