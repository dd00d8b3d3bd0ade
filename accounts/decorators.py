# accounts/decorators.py
# Shared helpers for the JSON API views

import json
from functools import wraps

from django.http import JsonResponse


class InvalidJSON(ValueError):
    pass


def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting"""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'success': False, 'error': 'Authentication required'}, status=401)
        return view_func(request, *args, **kwargs)
    return _wrapped


def role_required(*roles):
    """Restrict a view to the given roles; implies api_login_required"""
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({'success': False, 'error': 'Authentication required'}, status=401)
            if request.user.role not in roles:
                return JsonResponse({'success': False, 'error': 'Access denied'}, status=403)
            return view_func(request, *args, **kwargs)
        return _wrapped
    return decorator


def is_admin(user):
    return user.is_authenticated and user.role == 'admin'


def is_manager(user):
    """Supervisors and admins manage tasks and the team directory"""
    return user.is_authenticated and user.role in ('supervisor', 'admin')


def read_json(request):
    """Decode a JSON object body; an empty body is an empty dict"""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJSON(str(e))
    if not isinstance(data, dict):
        raise InvalidJSON('Expected a JSON object')
    return data


def json_error(error, status=400, **extra):
    payload = {'success': False, 'error': error}
    payload.update(extra)
    return JsonResponse(payload, status=status, json_dumps_params={'ensure_ascii': False})


def json_ok(status=200, **payload):
    return JsonResponse(
        {'success': True, **payload},
        status=status,
        json_dumps_params={'ensure_ascii': False},
    )


def form_errors(form):
    return json_error('Validation failed', status=400, errors=form.errors.get_json_data())
