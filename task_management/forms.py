from decimal import Decimal, ROUND_HALF_UP

from django import forms
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import TeamMember
from .models import Customer, Task, Message

COORDINATE_PLACES = Decimal('0.000001')


def _round_coordinate(value):
    if value is None:
        return None
    return value.quantize(COORDINATE_PLACES, rounding=ROUND_HALF_UP)


class TaskForm(forms.ModelForm):
    """Create/update a task; the view merges partial payloads over the stored values first"""
    assignee_ids = forms.JSONField(required=False)

    class Meta:
        model = Task
        fields = [
            'title', 'description', 'customer', 'customer_name', 'customer_phone',
            'customer_address', 'time', 'notes', 'status', 'priority', 'progress',
            'assignee_ids', 'due_date',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Filled from the linked customer when omitted
        self.fields['customer_name'].required = False

    def clean_title(self):
        title = (self.cleaned_data.get('title') or '').strip()
        if not title:
            raise forms.ValidationError('Title is required.')
        return title

    def clean_assignee_ids(self):
        value = self.cleaned_data.get('assignee_ids')
        if value in (None, ''):
            return []
        if not isinstance(value, list):
            raise forms.ValidationError('assignee_ids must be a list of team member ids.')

        ids = []
        for item in value:
            if isinstance(item, bool):
                raise forms.ValidationError(f'Invalid team member id: {item}')
            try:
                pk = int(item)
            except (TypeError, ValueError):
                raise forms.ValidationError(f'Invalid team member id: {item}')
            if pk not in ids:
                ids.append(pk)

        existing = set(TeamMember.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = [pk for pk in ids if pk not in existing]
        if missing:
            raise forms.ValidationError(f'Unknown team member id(s): {missing}')
        return ids

    def clean(self):
        cleaned_data = super().clean()
        customer = cleaned_data.get('customer')
        if customer:
            # On a customer switch, contact fields not sent with it follow the new customer
            switched = self.instance.pk is not None and 'customer' in self.changed_data
            contact = {
                'customer_name': customer.name,
                'customer_phone': customer.phone,
                'customer_address': customer.address,
            }
            for field, value in contact.items():
                if not cleaned_data.get(field) or (switched and field not in self.changed_data):
                    cleaned_data[field] = value
        if not cleaned_data.get('customer_name') and 'customer_name' not in self.errors:
            self.add_error('customer_name', 'Customer name is required.')
        return cleaned_data


class CancelTaskForm(forms.Form):
    cancelled_by = forms.ChoiceField(choices=Task.CANCELLED_BY_CHOICES)
    cancellation_reason = forms.CharField()

    def clean_cancellation_reason(self):
        reason = self.cleaned_data['cancellation_reason'].strip()
        if not reason:
            raise forms.ValidationError('A cancellation reason is required.')
        return reason


class RescheduleTaskForm(forms.Form):
    new_due_date = forms.DateTimeField()
    reschedule_reason = forms.CharField()

    def clean_new_due_date(self):
        value = self.cleaned_data['new_due_date']
        if timezone.is_naive(value):
            value = timezone.make_aware(value)
        return value

    def clean_reschedule_reason(self):
        reason = self.cleaned_data['reschedule_reason'].strip()
        if not reason:
            raise forms.ValidationError('A reschedule reason is required.')
        return reason


class CustomerForm(forms.ModelForm):
    # Browser geolocation sends 15+ decimals; stored to 6 places
    gps_latitude = forms.DecimalField(required=False)
    gps_longitude = forms.DecimalField(required=False)

    class Meta:
        model = Customer
        fields = [
            'name', 'phone', 'email', 'address',
            'gps_latitude', 'gps_longitude', 'gps_address', 'notes',
        ]

    def clean_name(self):
        name = (self.cleaned_data.get('name') or '').strip()
        if not name:
            raise forms.ValidationError('Name is required.')
        return name

    def clean_gps_latitude(self):
        lat = self.cleaned_data.get('gps_latitude')
        if lat is not None and not -90 <= lat <= 90:
            raise forms.ValidationError('Latitude must be between -90 and 90.')
        return _round_coordinate(lat)

    def clean_gps_longitude(self):
        lng = self.cleaned_data.get('gps_longitude')
        if lng is not None and not -180 <= lng <= 180:
            raise forms.ValidationError('Longitude must be between -180 and 180.')
        return _round_coordinate(lng)

    def clean(self):
        cleaned_data = super().clean()
        if 'gps_latitude' in self.errors or 'gps_longitude' in self.errors:
            return cleaned_data
        lat = cleaned_data.get('gps_latitude')
        lng = cleaned_data.get('gps_longitude')
        if (lat is None) != (lng is None):
            raise forms.ValidationError('Latitude and longitude must be given together.')
        return cleaned_data


class MessageForm(forms.ModelForm):
    receiver = forms.ModelChoiceField(queryset=get_user_model().objects.filter(is_active=True), required=False)

    class Meta:
        model = Message
        fields = ['receiver', 'content', 'message_type', 'task']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['message_type'].required = False

    def clean_message_type(self):
        return self.cleaned_data.get('message_type') or 'text'

    def clean_content(self):
        content = (self.cleaned_data.get('content') or '').strip()
        if not content:
            raise forms.ValidationError('Message cannot be empty.')
        return content
