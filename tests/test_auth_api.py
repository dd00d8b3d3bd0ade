import io

import pytest
from PIL import Image
from django.core.files.uploadedfile import SimpleUploadedFile

from accounts.models import User, TeamMember
from task_management.models import SystemLog

pytestmark = pytest.mark.django_db

JSON = 'application/json'


def png_upload(name):
    buffer = io.BytesIO()
    Image.new('RGB', (2, 2), 'red').save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


# ============================================
# USER / TEAM MEMBER LINK
# ============================================

def test_new_user_gets_team_member():
    user = User.objects.create_user(username='layla', password='secret123', role='supervisor')
    member = user.team_member
    assert member.name == 'layla'
    assert member.email == 'layla@company.com'
    assert member.job_title == TeamMember.JOB_TITLES['supervisor']
    assert member.avatar == 'L'


def test_role_change_updates_job_title(member_user):
    member_user.change_role('admin')
    member_user.team_member.refresh_from_db()
    assert member_user.team_member.job_title == TeamMember.JOB_TITLES['admin']
    assert member_user.is_staff


def test_login_does_not_reset_custom_job_title(anon_api, member_user):
    TeamMember.objects.filter(user=member_user).update(job_title='Electrician')
    anon_api.post('/api/auth/login', {'username': 'nora', 'password': 'secret123'}, content_type=JSON)
    assert TeamMember.objects.get(user=member_user).job_title == 'Electrician'


def test_superuser_is_approved_admin():
    user = User.objects.create_superuser(username='root', password='secret123')
    assert user.role == 'admin'
    assert user.approval_status == 'approved'


# ============================================
# LOGIN / LOGOUT / REGISTER
# ============================================

def test_login_success(anon_api, member_user):
    response = anon_api.post('/api/auth/login', {'username': 'nora', 'password': 'secret123'}, content_type=JSON)
    assert response.status_code == 200
    body = response.json()
    assert body['user']['username'] == 'nora'
    assert body['user']['team_member']['id'] == member_user.team_member.pk
    assert SystemLog.objects.filter(action='login', user=member_user).exists()

    assert anon_api.get('/api/auth/user').json()['user']['id'] == member_user.pk


def test_login_missing_fields(anon_api):
    assert anon_api.post('/api/auth/login', {'username': 'nora'}, content_type=JSON).status_code == 400


def test_login_wrong_password(anon_api, member_user):
    response = anon_api.post('/api/auth/login', {'username': 'nora', 'password': 'nope'}, content_type=JSON)
    assert response.status_code == 401


def test_pending_user_cannot_login(anon_api, pending_user):
    response = anon_api.post('/api/auth/login', {'username': 'newbie', 'password': 'secret123'}, content_type=JSON)
    assert response.status_code == 403
    assert response.json()['approval_status'] == 'pending'


def test_unapproved_admin_can_login(anon_api):
    User.objects.create_user(username='chief', password='secret123', role='admin', approval_status='pending')
    response = anon_api.post('/api/auth/login', {'username': 'chief', 'password': 'secret123'}, content_type=JSON)
    assert response.status_code == 200


def test_logout(member_api):
    assert member_api.post('/api/auth/logout').status_code == 200
    assert member_api.get('/api/auth/user').status_code == 401


def test_csrf_cookie(anon_api):
    response = anon_api.get('/api/auth/csrf')
    assert response.status_code == 200
    assert 'csrftoken' in response.cookies


def test_register_creates_pending_user(anon_api):
    response = anon_api.post(
        '/api/auth/register', {'username': 'fresh', 'password': 'secret123'}, content_type=JSON
    )
    assert response.status_code == 201
    user = User.objects.get(username='fresh')
    assert user.role == 'user'
    assert user.approval_status == 'pending'
    assert TeamMember.objects.filter(user=user).exists()


def test_register_duplicate_username(anon_api, member_user):
    response = anon_api.post(
        '/api/auth/register', {'username': 'nora', 'password': 'secret123'}, content_type=JSON
    )
    assert response.status_code == 409


def test_register_short_password(anon_api):
    response = anon_api.post('/api/auth/register', {'username': 'x1', 'password': '123'}, content_type=JSON)
    assert response.status_code == 400
    assert 'password' in response.json()['errors']


def test_change_password(member_api, member_user):
    response = member_api.post('/api/auth/change-password', {
        'current_password': 'secret123',
        'new_password1': 'newsecret',
        'new_password2': 'newsecret',
    }, content_type=JSON)
    assert response.status_code == 200
    member_user.refresh_from_db()
    assert member_user.check_password('newsecret')
    # Session survives the password change
    assert member_api.get('/api/auth/user').status_code == 200


def test_change_password_wrong_current(member_api):
    response = member_api.post('/api/auth/change-password', {
        'current_password': 'wrong',
        'new_password1': 'newsecret',
        'new_password2': 'newsecret',
    }, content_type=JSON)
    assert response.status_code == 400


# ============================================
# ADMIN USER MANAGEMENT
# ============================================

def test_admin_endpoints_require_admin(supervisor_api, anon_api):
    assert supervisor_api.get('/api/admin/users').status_code == 403
    assert anon_api.get('/api/admin/users').status_code == 401


def test_admin_lists_pending_users(admin_api, pending_user, member_user):
    users = admin_api.get('/api/admin/users?approval_status=pending').json()['users']
    assert [u['username'] for u in users] == ['newbie']


def test_admin_creates_approved_user(admin_api):
    response = admin_api.post(
        '/api/admin/users', {'username': 'tech1', 'password': 'secret123', 'role': 'supervisor'}, content_type=JSON
    )
    assert response.status_code == 201
    user = User.objects.get(username='tech1')
    assert user.approval_status == 'approved'
    assert user.role == 'supervisor'


def test_admin_approves_user(admin_api, pending_user, anon_api):
    response = admin_api.patch(
        f'/api/admin/users/{pending_user.pk}/approve', {'approval_status': 'approved'}, content_type=JSON
    )
    assert response.status_code == 200
    login = anon_api.post('/api/auth/login', {'username': 'newbie', 'password': 'secret123'}, content_type=JSON)
    assert login.status_code == 200


def test_admin_rejects_with_boolean(admin_api, pending_user):
    admin_api.patch(f'/api/admin/users/{pending_user.pk}/approve', {'is_approved': False}, content_type=JSON)
    pending_user.refresh_from_db()
    assert pending_user.approval_status == 'rejected'


def test_admin_changes_role(admin_api, member_user):
    response = admin_api.patch(f'/api/admin/users/{member_user.pk}/role', {'role': 'supervisor'}, content_type=JSON)
    assert response.status_code == 200
    member_user.refresh_from_db()
    assert member_user.role == 'supervisor'
    assert member_user.team_member.job_title == TeamMember.JOB_TITLES['supervisor']


def test_admin_invalid_role(admin_api, member_user):
    response = admin_api.patch(f'/api/admin/users/{member_user.pk}/role', {'role': 'king'}, content_type=JSON)
    assert response.status_code == 400


def test_admin_toggles_active(admin_api, member_user, admin_user):
    admin_api.patch(f'/api/admin/users/{member_user.pk}/toggle-active')
    member_user.refresh_from_db()
    assert member_user.is_active is False
    assert admin_api.patch(f'/api/admin/users/{admin_user.pk}/toggle-active').status_code == 400


def test_admin_resets_password(admin_api, member_user):
    response = admin_api.post(f'/api/admin/users/{member_user.pk}/reset-password', {}, content_type=JSON)
    assert response.status_code == 200
    new_password = response.json()['new_password']
    member_user.refresh_from_db()
    assert member_user.check_password(new_password)


def test_admin_deletes_user_but_not_self(admin_api, admin_user, member_user):
    assert admin_api.delete(f'/api/admin/users/{admin_user.pk}').status_code == 400
    assert admin_api.delete(f'/api/admin/users/{member_user.pk}').status_code == 200
    assert not User.objects.filter(pk=member_user.pk).exists()
    assert not TeamMember.objects.filter(name='nora').exists()
    assert admin_api.delete('/api/admin/users/99999').status_code == 404


# ============================================
# TEAM DIRECTORY
# ============================================

def test_team_members_list(member_api, member_user, make_member):
    make_member(name='Alex Rodriguez')
    names = [m['name'] for m in member_api.get('/api/team-members').json()['team_members']]
    assert 'Alex Rodriguez' in names
    assert 'nora' in names


def test_team_member_create_requires_manager(member_api, supervisor_api):
    payload = {'name': 'Emma Davis', 'job_title': 'Support', 'email': 'emma@example.com'}
    assert member_api.post('/api/team-members', payload, content_type=JSON).status_code == 403

    response = supervisor_api.post('/api/team-members', payload, content_type=JSON)
    assert response.status_code == 201
    assert response.json()['team_member']['avatar'] == 'ED'


def test_team_member_partial_update(supervisor_api, make_member):
    member = make_member(name='Mike Johnson')
    response = supervisor_api.put(f'/api/team-members/{member.pk}', {'status': 'busy'}, content_type=JSON)
    assert response.status_code == 200
    member.refresh_from_db()
    assert member.status == 'busy'
    assert member.name == 'Mike Johnson'


def test_team_member_duplicate_email(supervisor_api, make_member):
    make_member(email='taken@example.com')
    response = supervisor_api.post(
        '/api/team-members', {'name': 'X', 'job_title': 'Y', 'email': 'taken@example.com'}, content_type=JSON
    )
    assert response.status_code == 400
    assert 'email' in response.json()['errors']


def test_team_member_not_found(member_api):
    assert member_api.get('/api/team-members/99999').status_code == 404


def test_profile_image_upload(member_api, member_user, other_api, settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    member = member_user.team_member
    image = png_upload('me.png')

    response = member_api.post(f'/api/team-members/{member.pk}/profile-image', {'profile_image': image})
    assert response.status_code == 200, response.content
    member.refresh_from_db()
    assert member.profile_image.name.startswith('profile_images/')

    other = png_upload('x.png')
    response = other_api.post(f'/api/team-members/{member.pk}/profile-image', {'profile_image': other})
    assert response.status_code == 403


def test_profile_image_requires_file(member_api, member_user):
    response = member_api.post(f'/api/team-members/{member_user.team_member.pk}/profile-image', {})
    assert response.status_code == 400
