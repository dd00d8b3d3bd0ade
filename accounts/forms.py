from django import forms
from .models import User, TeamMember


class RegisterForm(forms.Form):
    """Self-registration; accounts start out pending approval"""
    username = forms.CharField(max_length=150)
    password = forms.CharField(min_length=6)
    phone_number = forms.CharField(max_length=20, required=False)

    def clean_username(self):
        username = self.cleaned_data['username'].strip()
        if not username:
            raise forms.ValidationError('Username is required.')
        return username

    def save(self):
        return User.objects.create_user(
            username=self.cleaned_data['username'],
            password=self.cleaned_data['password'],
            phone_number=self.cleaned_data.get('phone_number', ''),
            role='user',
            approval_status='pending',
        )


class AdminUserCreateForm(RegisterForm):
    """Admin-created accounts are approved straight away"""
    role = forms.ChoiceField(choices=User.ROLE_CHOICES, initial='user')

    def clean_username(self):
        username = super().clean_username()
        if User.objects.filter(username=username).exists():
            raise forms.ValidationError('Username already exists.')
        return username

    def save(self):
        role = self.cleaned_data['role']
        return User.objects.create_user(
            username=self.cleaned_data['username'],
            password=self.cleaned_data['password'],
            phone_number=self.cleaned_data.get('phone_number', ''),
            role=role,
            approval_status='approved',
            is_staff=role == 'admin',
        )


class TeamMemberForm(forms.ModelForm):

    class Meta:
        model = TeamMember
        fields = ['name', 'job_title', 'email', 'phone', 'status', 'avatar']

    def clean_name(self):
        name = self.cleaned_data.get('name', '').strip()
        if not name:
            raise forms.ValidationError('Name is required.')
        return name


class ProfileImageForm(forms.ModelForm):

    class Meta:
        model = TeamMember
        fields = ['profile_image']

    def clean_profile_image(self):
        image = self.cleaned_data.get('profile_image')
        if not image or 'profile_image' not in self.files:
            raise forms.ValidationError('An image file is required.')
        if image.size > 5 * 1024 * 1024:
            raise forms.ValidationError('Image must be smaller than 5MB.')
        return image


class ChangePasswordForm(forms.Form):
    """Custom password change form"""

    current_password = forms.CharField()
    new_password1 = forms.CharField(label='New Password')
    new_password2 = forms.CharField(label='Confirm New Password')

    def __init__(self, user, *args, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)

    def clean_current_password(self):
        """Verify current password"""
        current_password = self.cleaned_data.get('current_password')
        if not self.user.check_password(current_password):
            raise forms.ValidationError('Current password is incorrect.')
        return current_password

    def clean(self):
        """Verify new passwords match"""
        cleaned_data = super().clean()
        new_password1 = cleaned_data.get('new_password1')
        new_password2 = cleaned_data.get('new_password2')

        if new_password1 and new_password2:
            if new_password1 != new_password2:
                raise forms.ValidationError('New passwords do not match.')

            if len(new_password1) < 6:
                raise forms.ValidationError('Password must be at least 6 characters.')

        return cleaned_data

    def save(self):
        """Save the new password"""
        self.user.set_password(self.cleaned_data['new_password1'])
        self.user.save()
