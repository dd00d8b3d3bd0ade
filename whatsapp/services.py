"""
Customer satisfaction surveys over WhatsApp.

Sending is logged only, unless the settings row enables the real API and
WHATSAPP_API_URL is configured, in which case the message is POSTed.
"""
import logging

import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext as _

from performance.models import add_points
from task_management.utils.notifications import notify_members
from .models import WhatsAppSettings, CustomerRating

logger = logging.getLogger(__name__)


REPLY_RATINGS = {
    '1': 'angry',
    '2': 'satisfied',
    '3': 'very_satisfied',
}


class RatingAlreadyRecorded(Exception):
    pass


def send_message(phone, text):
    """Returns True when the message was handed over (or logged in stub mode)"""
    if not phone or not text:
        logger.warning("WhatsApp send skipped (missing phone or text)")
        return False

    config = WhatsAppSettings.load()
    api_url = settings.WHATSAPP_API_URL
    if not (config.use_real_api and api_url):
        logger.info("WhatsApp [%s] -> %s: %s", config.sender_name, phone, text)
        return True

    headers = {'Content-Type': 'application/json'}
    if settings.WHATSAPP_API_TOKEN:
        headers['Authorization'] = f"Bearer {settings.WHATSAPP_API_TOKEN}"
    payload = {
        'from': settings.WHATSAPP_SENDER_NUMBER,
        'to': phone,
        'type': 'text',
        'text': {'body': text},
    }
    try:
        response = requests.post(api_url, headers=headers, json=payload, timeout=settings.WHATSAPP_TIMEOUT)
    except requests.RequestException:
        logger.exception("WhatsApp send to %s failed", phone)
        return False

    if not 200 <= response.status_code < 300:
        logger.error("WhatsApp API answered %s for %s: %s", response.status_code, phone, response.text[:200])
        return False
    return True


def connection_status():
    config = WhatsAppSettings.load()
    real = bool(config.use_real_api and settings.WHATSAPP_API_URL)
    return {
        'connected': True,
        'mode': 'api' if real else 'simulated',
        'sender_number': settings.WHATSAPP_SENDER_NUMBER,
        'sender_name': config.sender_name,
        'auto_send': config.auto_send,
    }


def parse_reply(text):
    """Map a survey reply ("1", "2", "3") to a rating value, or None"""
    if text is None:
        return None
    return REPLY_RATINGS.get(str(text).strip())


def request_customer_rating(task):
    """
    Ensure the task has its rating row and send the survey if enabled.
    A task only ever gets one rating row.
    """
    rating, created = CustomerRating.objects.get_or_create(
        task=task,
        defaults={
            'customer': task.customer,
            'customer_name': task.customer_name,
            'customer_phone': task.customer_phone,
        },
    )
    if not created:
        return rating

    config = WhatsAppSettings.load()
    if config.auto_send and rating.customer_phone:
        text = config.render_message(rating.customer_name, task.title)
        if send_message(rating.customer_phone, text):
            rating.message_sent = True
            rating.save(update_fields=['message_sent'])
    return rating


@transaction.atomic
def record_customer_rating(rating, value):
    """
    Store the customer's answer. Positive answers reward every assignee of
    the task once.
    """
    if value not in CustomerRating.RATING_LABELS:
        raise ValueError(f"Invalid rating: {value}")

    rating = CustomerRating.objects.select_for_update().get(pk=rating.pk)
    if rating.response_received:
        raise RatingAlreadyRecorded(f"Rating {rating.pk} was already answered")

    rating.rating = value
    rating.rating_text = CustomerRating.RATING_LABELS[value]
    rating.response_received = True
    rating.responded_at = timezone.now()

    awarded = []
    if rating.is_positive and not rating.points_awarded:
        reward = settings.TASKFLOW_RATING_REWARD_POINTS
        task = rating.task
        for member in task.get_assignees():
            add_points(
                member,
                reward,
                reason=_('Customer rating "%(label)s" for %(task)s') % {
                    'label': rating.rating_text, 'task': task.task_id,
                },
                task=task,
                rating=rating,
            )
            awarded.append(member.pk)
        rating.points_awarded = True
        if awarded:
            notify_members(
                awarded,
                'points_awarded',
                _('Points awarded'),
                _('You earned %(points)s points for a positive customer rating on "%(title)s"') % {
                    'points': reward, 'title': task.title,
                },
                related_id=rating.pk,
            )

    rating.save()
    logger.info("Rating %s recorded as %s (%d member(s) rewarded)", rating.pk, value, len(awarded))
    return rating


def find_pending_rating(phone):
    """Latest unanswered rating for a customer phone number"""
    return (
        CustomerRating.objects.filter(customer_phone=phone, response_received=False)
        .order_by('-created_at', '-id')
        .first()
    )
