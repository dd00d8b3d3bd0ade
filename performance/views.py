# performance/views.py

import logging

from django.db import transaction
from django.utils.translation import gettext as _
from django.views.decorators.http import require_http_methods

from accounts.decorators import (
    InvalidJSON, api_login_required, role_required, is_manager,
    read_json, json_error, json_ok,
)
from accounts.models import TeamMember
from task_management.models import log_user_action
from task_management.utils.notifications import notify_members
from .models import TeamMemberPoints, PointsHistory, add_points, reset_points, reset_all_points

logger = logging.getLogger(__name__)


def _leaderboard():
    """Every team member with their balance, highest first"""
    records = {p.team_member_id: p for p in TeamMemberPoints.objects.all()}
    rows = []
    for member in TeamMember.objects.all():
        record = records.get(member.pk)
        rows.append({
            'team_member_id': member.pk,
            'team_member_name': member.name,
            'job_title': member.job_title,
            'avatar': member.avatar,
            'points': record.points if record else 0,
            'total_earned': record.total_earned if record else 0,
            'last_updated': record.last_updated.isoformat() if record else None,
        })
    rows.sort(key=lambda row: (-row['points'], row['team_member_name']))
    return rows


@api_login_required
@require_http_methods(["GET"])
def team_points(request):
    rows = _leaderboard()
    if is_manager(request.user):
        return json_ok(team_points=rows)

    member = getattr(request.user, 'team_member', None)
    own = [row for row in rows if member and row['team_member_id'] == member.pk]
    return json_ok(team_points=own)


@api_login_required
@require_http_methods(["GET"])
def team_points_stats(request):
    rows = _leaderboard()

    if is_manager(request.user):
        total = sum(row['points'] for row in rows)
        average = round(total / len(rows), 2) if rows else 0
        return json_ok(stats={
            'total_points': total,
            'average_points': average,
            'member_count': len(rows),
            'top_scorer': rows[0] if rows and rows[0]['points'] > 0 else None,
            'top_performers': [row for row in rows if row['points'] > 0][:5],
        })

    member = getattr(request.user, 'team_member', None)
    if member is None:
        return json_ok(stats={'points': 0, 'total_earned': 0, 'rank': None, 'member_count': len(rows)})

    own = next((row for row in rows if row['team_member_id'] == member.pk), None)
    points = own['points'] if own else 0
    rank = 1 + sum(1 for row in rows if row['points'] > points)
    return json_ok(stats={
        'points': points,
        'total_earned': own['total_earned'] if own else 0,
        'rank': rank,
        'member_count': len(rows),
    })


@role_required('admin')
@require_http_methods(["POST"])
def add_member_points(request, member_id):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    member = TeamMember.objects.filter(pk=member_id).first()
    if member is None:
        return json_error('Team member not found', status=404)

    points = data.get('points')
    reason = (data.get('reason') or '').strip()
    if isinstance(points, bool) or not isinstance(points, (int, str)):
        return json_error('Points must be a positive whole number')
    try:
        points = int(points)
    except ValueError:
        return json_error('Points must be a positive whole number')
    if points <= 0:
        return json_error('Points must be a positive whole number')
    if not reason:
        return json_error('A reason is required')

    with transaction.atomic():
        record = add_points(member, points, reason=reason, performed_by=request.user)
        notify_members(
            [member.pk],
            'points_awarded',
            _('Points awarded'),
            _('You earned %(points)s points: %(reason)s') % {'points': points, 'reason': reason},
            exclude_user=request.user,
        )
        log_user_action(
            request.user, 'add_points',
            {'team_member_id': member.pk, 'points': points, 'reason': reason},
            request=request,
        )
    return json_ok(points=record.to_dict())


@role_required('admin')
@require_http_methods(["POST"])
def reset_member_points(request, member_id):
    member = TeamMember.objects.filter(pk=member_id).first()
    if member is None:
        return json_error('Team member not found', status=404)

    with transaction.atomic():
        previous = reset_points(member, performed_by=request.user)
        log_user_action(
            request.user, 'reset_points',
            {'team_member_id': member.pk, 'previous_points': previous},
            request=request,
        )
    return json_ok(points=TeamMemberPoints.for_member(member).to_dict(), previous_points=previous)


@role_required('admin')
@require_http_methods(["POST"])
def reset_all_member_points(request):
    with transaction.atomic():
        reset_count = reset_all_points(performed_by=request.user)
        log_user_action(request.user, 'reset_all_points', {'members_reset': reset_count}, request=request)
    logger.info("%s reset points for %d member(s)", request.user.username, reset_count)
    return json_ok(members_reset=reset_count)


@api_login_required
@require_http_methods(["GET"])
def points_history(request):
    queryset = PointsHistory.objects.select_related('team_member')

    member_id = request.GET.get('team_member_id')
    if member_id:
        try:
            member_id = int(member_id)
        except ValueError:
            return json_error('team_member_id must be an integer')

    if not is_manager(request.user):
        member = getattr(request.user, 'team_member', None)
        if member is None:
            return json_ok(history=[])
        if member_id and member_id != member.pk:
            return json_error('Access denied', status=403)
        member_id = member.pk

    if member_id:
        queryset = queryset.filter(team_member_id=member_id)

    try:
        limit = int(request.GET.get('limit', 50))
    except ValueError:
        return json_error('limit must be an integer')

    return json_ok(history=[h.to_dict() for h in queryset[:max(limit, 0)]])
