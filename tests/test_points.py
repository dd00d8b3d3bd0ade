import pytest

from performance.models import TeamMemberPoints, PointsHistory, add_points, reset_points, reset_all_points
from task_management.models import Notification

pytestmark = pytest.mark.django_db

JSON = 'application/json'


def test_add_points_updates_balance_and_history(make_member, admin_user):
    member = make_member()
    add_points(member, 15, reason='Great job', performed_by=admin_user)
    record = add_points(member, 5, reason='Extra')

    assert record.points == 20
    assert record.total_earned == 20
    entries = PointsHistory.objects.filter(team_member=member)
    assert sorted(e.points_change for e in entries) == [5, 15]
    assert {e.action for e in entries} == {'earned'}


def test_add_points_rejects_non_positive(make_member):
    with pytest.raises(ValueError):
        add_points(make_member(), 0)


def test_reset_keeps_total_earned(make_member):
    member = make_member()
    add_points(member, 30)

    assert reset_points(member) == 30
    record = TeamMemberPoints.objects.get(team_member=member)
    assert record.points == 0
    assert record.total_earned == 30
    reset_entry = PointsHistory.objects.get(team_member=member, action='reset')
    assert reset_entry.points_change == -30


def test_reset_of_empty_balance_writes_no_history(make_member):
    member = make_member()
    assert reset_points(member) == 0
    assert not PointsHistory.objects.filter(team_member=member).exists()


def test_reset_all(make_member):
    a, b, c = make_member(), make_member(), make_member()
    add_points(a, 10)
    add_points(b, 3)

    assert reset_all_points() == 2
    assert set(TeamMemberPoints.objects.values_list('points', flat=True)) == {0}
    assert not PointsHistory.objects.filter(team_member=c).exists()


def test_team_points_leaderboard_for_managers(supervisor_api, make_member):
    low, high = make_member(name='Low'), make_member(name='High')
    add_points(low, 5)
    add_points(high, 50)

    rows = supervisor_api.get('/api/team-points').json()['team_points']
    assert rows[0]['team_member_name'] == 'High'
    assert rows[0]['points'] == 50
    assert [r['team_member_name'] for r in rows].index('Low') == 1


def test_team_points_users_see_only_themselves(member_api, member_user, make_member):
    add_points(make_member(), 10)
    rows = member_api.get('/api/team-points').json()['team_points']
    assert [r['team_member_id'] for r in rows] == [member_user.team_member.pk]


def test_stats_for_managers(admin_api, make_member):
    a, b = make_member(name='A'), make_member(name='B')
    add_points(a, 40)
    add_points(b, 20)

    stats = admin_api.get('/api/team-points/stats').json()['stats']
    assert stats['total_points'] == 60
    assert stats['top_scorer']['team_member_name'] == 'A'
    assert [p['team_member_name'] for p in stats['top_performers']] == ['A', 'B']
    # The admin's own team member profile counts towards the average
    assert stats['average_points'] == round(60 / stats['member_count'], 2)


def test_stats_for_user_include_rank(member_api, member_user, make_member):
    add_points(make_member(), 40)
    add_points(member_user.team_member, 20)

    stats = member_api.get('/api/team-points/stats').json()['stats']
    assert stats['points'] == 20
    assert stats['rank'] == 2


def test_add_points_endpoint(admin_api, member_user):
    member = member_user.team_member
    response = admin_api.post(
        f'/api/team-points/{member.pk}/add', {'points': 25, 'reason': 'Weekend shift'}, content_type=JSON
    )
    assert response.status_code == 200
    assert response.json()['points']['points'] == 25
    note = Notification.objects.get(user=member_user, notification_type='points_awarded')
    assert note.title == 'Points awarded'
    assert note.content == 'You earned 25 points: Weekend shift'


@pytest.mark.parametrize('points', [0, -5, 'abc', None, True])
def test_add_points_endpoint_validation(admin_api, make_member, points):
    member = make_member()
    response = admin_api.post(
        f'/api/team-points/{member.pk}/add', {'points': points, 'reason': 'x'}, content_type=JSON
    )
    assert response.status_code == 400


def test_add_points_endpoint_requires_reason(admin_api, make_member):
    member = make_member()
    response = admin_api.post(f'/api/team-points/{member.pk}/add', {'points': 5}, content_type=JSON)
    assert response.status_code == 400


def test_points_admin_only(supervisor_api, make_member):
    member = make_member()
    assert supervisor_api.post(
        f'/api/team-points/{member.pk}/add', {'points': 5, 'reason': 'x'}, content_type=JSON
    ).status_code == 403
    assert supervisor_api.post(f'/api/team-points/{member.pk}/reset').status_code == 403
    assert supervisor_api.post('/api/team-points/reset-all').status_code == 403


def test_reset_endpoints(admin_api, make_member):
    a, b = make_member(), make_member()
    add_points(a, 10)
    add_points(b, 10)

    response = admin_api.post(f'/api/team-points/{a.pk}/reset')
    assert response.json()['previous_points'] == 10

    response = admin_api.post('/api/team-points/reset-all')
    assert response.json()['members_reset'] == 1


def test_points_history_scoping(member_api, member_user, supervisor_api, make_member):
    other = make_member()
    add_points(other, 7)
    add_points(member_user.team_member, 3)

    mine = member_api.get('/api/points-history').json()['history']
    assert [h['points_change'] for h in mine] == [3]
    assert member_api.get(f'/api/points-history?team_member_id={other.pk}').status_code == 403

    theirs = supervisor_api.get(f'/api/points-history?team_member_id={other.pk}').json()['history']
    assert [h['points_change'] for h in theirs] == [7]
    assert len(supervisor_api.get('/api/points-history?limit=1').json()['history']) == 1
