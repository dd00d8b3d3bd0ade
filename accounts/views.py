import logging
import secrets
import string

from django.contrib.auth import login, authenticate, logout, update_session_auth_hash
from django.db import transaction
from django.forms.models import model_to_dict
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_http_methods

from task_management.models import log_user_action
from .decorators import (
    InvalidJSON, api_login_required, role_required, is_manager,
    read_json, json_error, json_ok, form_errors,
)
from .forms import (
    RegisterForm, AdminUserCreateForm, TeamMemberForm, ProfileImageForm, ChangePasswordForm,
)
from .models import User, TeamMember

logger = logging.getLogger(__name__)


def _merged(member, data):
    """Stored values overlaid with the payload, so PUT may be partial"""
    fields = TeamMemberForm.Meta.fields
    merged = model_to_dict(member, fields=fields)
    merged.update({k: v for k, v in data.items() if k in fields})
    return merged


def _user_payload(user):
    data = user.to_dict()
    member = getattr(user, 'team_member', None)
    data['team_member'] = member.to_dict() if member else None
    return data


# ============================================
# AUTH
# ============================================

@require_http_methods(["GET"])
@ensure_csrf_cookie
def csrf_view(request):
    """Sets the csrftoken cookie for the client"""
    return json_ok()


@require_http_methods(["POST"])
def login_view(request):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    if not username or not password:
        return json_error('Username and password are required')

    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.info("Failed login for %s", username)
        return json_error('Invalid username or password', status=401)

    if not user.can_login:
        return json_error(
            'Account is awaiting admin approval',
            status=403,
            approval_status=user.approval_status,
        )

    login(request, user)
    log_user_action(user, 'login', {'username': user.username}, request=request)
    return json_ok(user=_user_payload(user))


@require_http_methods(["POST"])
def logout_view(request):
    if request.user.is_authenticated:
        log_user_action(request.user, 'logout', request=request)
    logout(request)
    return json_ok(message='Logged out')


@api_login_required
@require_http_methods(["GET"])
def current_user(request):
    return json_ok(user=_user_payload(request.user))


@require_http_methods(["POST"])
def register_view(request):
    """Self-registration; the account waits for admin approval"""
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = RegisterForm(data)
    if not form.is_valid():
        return form_errors(form)

    if User.objects.filter(username=form.cleaned_data['username']).exists():
        return json_error('Username already exists', status=409)

    with transaction.atomic():
        user = form.save()
        log_user_action(user, 'register', {'username': user.username}, request=request)

    return json_ok(
        status=201,
        message='Account created and awaiting approval',
        user=user.to_dict(),
    )


@api_login_required
@require_http_methods(["POST"])
def change_password(request):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = ChangePasswordForm(request.user, data)
    if not form.is_valid():
        return form_errors(form)

    form.save()
    update_session_auth_hash(request, request.user)
    log_user_action(request.user, 'change_password', request=request)
    return json_ok(message='Password changed successfully')


# ============================================
# ADMIN: USER MANAGEMENT
# ============================================

@role_required('admin')
@require_http_methods(["GET", "POST"])
def admin_users(request):
    if request.method == 'GET':
        users = User.objects.select_related('team_member')
        approval_status = request.GET.get('approval_status')
        if approval_status:
            users = users.filter(approval_status=approval_status)
        return json_ok(users=[_user_payload(u) for u in users])

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = AdminUserCreateForm(data)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        user = form.save()
        log_user_action(
            request.user, 'create_user',
            {'user_id': user.id, 'username': user.username, 'role': user.role},
            request=request,
        )
    return json_ok(status=201, user=_user_payload(user))


@role_required('admin')
@require_http_methods(["PATCH"])
def admin_approve_user(request, user_id):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return json_error('User not found', status=404)

    status = data.get('approval_status')
    if status is None and 'is_approved' in data:
        status = 'approved' if data['is_approved'] else 'rejected'
    if status not in ('approved', 'rejected'):
        return json_error("approval_status must be 'approved' or 'rejected'")

    with transaction.atomic():
        user.approval_status = status
        user.save(update_fields=['approval_status'])
        log_user_action(
            request.user, 'approve_user' if status == 'approved' else 'reject_user',
            {'user_id': user.id, 'username': user.username},
            request=request,
        )
    return json_ok(user=user.to_dict())


@role_required('admin')
@require_http_methods(["PATCH"])
def admin_change_role(request, user_id):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return json_error('User not found', status=404)

    role = data.get('role')
    if role not in dict(User.ROLE_CHOICES):
        return json_error('Invalid role')
    if user.pk == request.user.pk and role != 'admin':
        return json_error('You cannot remove your own admin role')

    with transaction.atomic():
        old_role = user.role
        user.change_role(role)
        log_user_action(
            request.user, 'change_role',
            {'user_id': user.id, 'username': user.username, 'from': old_role, 'to': role},
            request=request,
        )
    return json_ok(user=_user_payload(user))


@role_required('admin')
@require_http_methods(["PATCH"])
def admin_toggle_active(request, user_id):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return json_error('User not found', status=404)
    if user.pk == request.user.pk:
        return json_error('You cannot deactivate your own account')

    with transaction.atomic():
        user.is_active = not user.is_active
        user.save(update_fields=['is_active'])
        log_user_action(
            request.user, 'activate_user' if user.is_active else 'deactivate_user',
            {'user_id': user.id, 'username': user.username},
            request=request,
        )
    return json_ok(user=user.to_dict())


@role_required('admin')
@require_http_methods(["POST"])
def admin_reset_password(request, user_id):
    """Set a new password, generating one when none is given"""
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return json_error('User not found', status=404)

    new_password = data.get('new_password')
    if new_password is None:
        new_password = ''.join(secrets.choice(string.ascii_letters + string.digits) for _ in range(12))
    elif len(new_password) < 6:
        return json_error('Password must be at least 6 characters.')

    user.set_password(new_password)
    user.save(update_fields=['password'])
    log_user_action(
        request.user, 'reset_password',
        {'user_id': user.id, 'username': user.username},
        request=request,
    )
    return json_ok(message='Password reset successfully', new_password=new_password)


@role_required('admin')
@require_http_methods(["DELETE"])
def admin_delete_user(request, user_id):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return json_error('User not found', status=404)
    if user.pk == request.user.pk:
        return json_error('You cannot delete your own account')

    with transaction.atomic():
        username = user.username
        user.delete()
        log_user_action(
            request.user, 'delete_user',
            {'user_id': user_id, 'username': username},
            request=request,
        )
    return json_ok(message=f'{username} deleted')


# ============================================
# TEAM DIRECTORY
# ============================================

@api_login_required
@require_http_methods(["GET", "POST"])
def team_members(request):
    if request.method == 'GET':
        members = TeamMember.objects.all()
        status = request.GET.get('status')
        if status:
            members = members.filter(status=status)
        return json_ok(team_members=[m.to_dict() for m in members])

    if not is_manager(request.user):
        return json_error('Access denied', status=403)

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = TeamMemberForm(_merged(TeamMember(), data))
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        member = form.save()
        log_user_action(
            request.user, 'create_team_member',
            {'team_member_id': member.id, 'name': member.name},
            request=request,
        )
    return json_ok(status=201, team_member=member.to_dict())


@api_login_required
@require_http_methods(["GET", "PUT", "DELETE"])
def team_member_detail(request, member_id):
    member = TeamMember.objects.filter(pk=member_id).first()
    if member is None:
        return json_error('Team member not found', status=404)

    if request.method == 'GET':
        return json_ok(team_member=member.to_dict())

    if not is_manager(request.user):
        return json_error('Access denied', status=403)

    if request.method == 'DELETE':
        with transaction.atomic():
            name = member.name
            member.delete()
            log_user_action(
                request.user, 'delete_team_member',
                {'team_member_id': member_id, 'name': name},
                request=request,
            )
        return json_ok(message=f'{name} deleted')

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    form = TeamMemberForm(_merged(member, data), instance=member)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        member = form.save()
        log_user_action(
            request.user, 'update_team_member',
            {'team_member_id': member.id, 'fields': sorted(data.keys())},
            request=request,
        )
    return json_ok(team_member=member.to_dict())


@api_login_required
@require_http_methods(["POST"])
def team_member_profile_image(request, member_id):
    """Multipart upload of the member's profile picture"""
    member = TeamMember.objects.filter(pk=member_id).first()
    if member is None:
        return json_error('Team member not found', status=404)

    if member.user_id != request.user.pk and not is_manager(request.user):
        return json_error('Access denied', status=403)

    form = ProfileImageForm(request.POST, request.FILES, instance=member)
    if not form.is_valid():
        return form_errors(form)

    member = form.save()
    log_user_action(
        request.user, 'upload_profile_image',
        {'team_member_id': member.id},
        request=request,
    )
    return json_ok(team_member=member.to_dict())
