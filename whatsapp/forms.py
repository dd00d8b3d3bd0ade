from django import forms
from .models import WhatsAppSettings


class WhatsAppSettingsForm(forms.ModelForm):

    class Meta:
        model = WhatsAppSettings
        fields = ['default_message', 'sender_name', 'auto_send', 'use_real_api']

    def clean_default_message(self):
        message = (self.cleaned_data.get('default_message') or '').strip()
        if not message:
            raise forms.ValidationError('The message template cannot be empty.')
        return message
