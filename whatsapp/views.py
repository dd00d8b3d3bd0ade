import logging

from django.conf import settings
from django.db import transaction
from django.utils.crypto import constant_time_compare
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from accounts.decorators import (
    InvalidJSON, api_login_required, role_required, is_manager,
    read_json, json_error, json_ok, form_errors,
)
from task_management.models import Customer, log_user_action
from .forms import WhatsAppSettingsForm
from .models import WhatsAppSettings, CustomerRating
from .services import (
    RatingAlreadyRecorded, send_message, connection_status, parse_reply,
    record_customer_rating, find_pending_rating,
)

logger = logging.getLogger(__name__)


def _rating_value(data):
    """Accepts either a rating value or a survey reply digit"""
    value = data.get('rating')
    if value is None and 'reply' in data:
        value = parse_reply(data['reply'])
    return value


@role_required('supervisor', 'admin')
@require_http_methods(["GET"])
def customer_ratings(request):
    ratings = CustomerRating.objects.select_related('task')
    rating = request.GET.get('rating')
    if rating:
        ratings = ratings.filter(rating=rating)
    return json_ok(ratings=[r.to_dict() for r in ratings])


@role_required('supervisor', 'admin')
@require_http_methods(["POST"])
def respond_to_rating(request, rating_id):
    """Record a customer's answer on their behalf (e.g. taken over the phone)"""
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    rating = CustomerRating.objects.filter(pk=rating_id).first()
    if rating is None:
        return json_error('Rating not found', status=404)

    value = _rating_value(data)
    if value not in CustomerRating.RATING_LABELS:
        return json_error("rating must be one of 'angry', 'satisfied', 'very_satisfied'")

    try:
        rating = record_customer_rating(rating, value)
    except RatingAlreadyRecorded:
        return json_error('This rating has already been answered', status=409)

    log_user_action(
        request.user, 'record_rating',
        {'rating_id': rating.pk, 'task_id': rating.task_id, 'rating': value},
        request=request,
    )
    return json_ok(rating=rating.to_dict())


def _webhook_authorized(request):
    if request.user.is_authenticated and is_manager(request.user):
        return True
    token = settings.WHATSAPP_API_TOKEN
    supplied = request.headers.get('X-WhatsApp-Token', '')
    return bool(token) and constant_time_compare(supplied, token)


@csrf_exempt
@require_http_methods(["POST"])
def incoming_message(request):
    """Customer reply to a survey, matched to their latest unanswered rating"""
    if not _webhook_authorized(request):
        return json_error('Authentication required', status=401)

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    phone = (data.get('phone') or '').strip()
    value = parse_reply(data.get('reply'))
    if not phone:
        return json_error('phone is required')
    if value is None:
        return json_error('Reply must be 1, 2 or 3')

    rating = find_pending_rating(phone)
    if rating is None:
        return json_error('No pending rating for this phone number', status=404)

    try:
        rating = record_customer_rating(rating, value)
    except RatingAlreadyRecorded:
        return json_error('This rating has already been answered', status=409)

    logger.info("Incoming rating reply from %s recorded on rating %s", phone, rating.pk)
    return json_ok(rating=rating.to_dict())


@api_login_required
@require_http_methods(["GET", "PUT"])
def whatsapp_settings(request):
    config = WhatsAppSettings.load()

    if request.method == 'GET':
        if not is_manager(request.user):
            return json_error('Access denied', status=403)
        return json_ok(settings=config.to_dict())

    if request.user.role != 'admin':
        return json_error('Access denied', status=403)

    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    merged = config.to_dict()
    merged.update(data)
    form = WhatsAppSettingsForm(merged, instance=config)
    if not form.is_valid():
        return form_errors(form)

    with transaction.atomic():
        config = form.save()
        log_user_action(request.user, 'update_whatsapp_settings', {'fields': sorted(data.keys())}, request=request)
    return json_ok(settings=config.to_dict())


@api_login_required
@require_http_methods(["GET"])
def whatsapp_status(request):
    return json_ok(connection=connection_status())


@role_required('admin')
@require_http_methods(["POST"])
def test_message(request):
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    phone = (data.get('phone') or '').strip()
    text = (data.get('message') or '').strip() or 'TaskFlow test message'
    if not phone:
        return json_error('phone is required')

    sent = send_message(phone, text)
    log_user_action(request.user, 'whatsapp_test_message', {'phone': phone, 'sent': sent}, request=request)
    if not sent:
        return json_error('Message could not be sent', status=502)
    return json_ok(message='Test message sent')


@role_required('admin')
@require_http_methods(["POST"])
def broadcast(request):
    """Send one text to the given phones, or to every customer with a phone number"""
    try:
        data = read_json(request)
    except InvalidJSON:
        return json_error('Invalid JSON data')

    text = (data.get('message') or '').strip()
    if not text:
        return json_error('message is required')

    phones = data.get('phones')
    if phones is None:
        phones = Customer.objects.exclude(phone='').values_list('phone', flat=True)
    elif not isinstance(phones, list):
        return json_error('phones must be a list')

    recipients = list(dict.fromkeys(str(p).strip() for p in phones if str(p).strip()))
    sent = [phone for phone in recipients if send_message(phone, text)]

    log_user_action(
        request.user, 'whatsapp_broadcast',
        {'recipients': len(recipients), 'sent': len(sent)},
        request=request,
    )
    return json_ok(recipients=len(recipients), sent=len(sent), failed=len(recipients) - len(sent))
