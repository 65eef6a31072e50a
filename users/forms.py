# users/forms.py
from django import forms

from website.forms import GENDER_CHOICES, DashboardForm

ROLE_CHOICES = [
    ('USER', 'User'),
    ('ADMIN', 'Admin'),
    ('RECEPTION', 'Reception'),
    ('GRAPHIC_DESIGNER', 'Graphic designer'),
    ('OPERATOR', 'Operator'),
    ('FINANCE', 'Finance'),
    ('STORE_REPRESENTATIVE', 'Store representative'),
    ('PURCHASER', 'Purchaser'),
]


class UserForm(DashboardForm):
    """
    Create or edit a user account.

    A new user needs a password; on edit the password pair is optional
    but must be given together, and is left out of the payload when blank.
    """

    email = forms.EmailField(error_messages={'required': 'Email is required', 'invalid': 'Invalid email'})
    first_name = forms.CharField(max_length=100, error_messages={'required': 'First name is required'})
    middle_name = forms.CharField(max_length=100, required=False)
    last_name = forms.CharField(max_length=100, required=False)
    gender = forms.ChoiceField(choices=[('', '---------')] + GENDER_CHOICES, required=False)
    phone = forms.CharField(max_length=30, error_messages={'required': 'Phone is required'})
    address = forms.CharField(max_length=500, required=False)
    roles = forms.MultipleChoiceField(
        choices=ROLE_CHOICES,
        widget=forms.CheckboxSelectMultiple,
        error_messages={'required': 'Select at least one role'},
    )
    is_active = forms.BooleanField(label='Active', required=False, initial=True)
    password = forms.CharField(
        min_length=6, required=False, strip=False,
        error_messages={'min_length': 'Password must be at least 6 characters'},
        widget=forms.PasswordInput,
    )
    confirm_password = forms.CharField(required=False, strip=False, widget=forms.PasswordInput)

    always_send = ('is_active',)

    def __init__(self, *args, is_update=False, **kwargs):
        self.is_update = is_update
        super().__init__(*args, **kwargs)
        if is_update:
            self.fields['password'].help_text = 'Leave blank to keep the current password'
        else:
            self.fields['password'].required = True
            self.fields['confirm_password'].required = True
            self.fields['password'].error_messages['required'] = 'Password is required'
            self.fields['confirm_password'].error_messages['required'] = 'Please confirm the password'

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()

    def clean(self):
        cleaned = super().clean()
        password, confirm = cleaned.get('password'), cleaned.get('confirm_password')
        if 'password' in self.errors or 'confirm_password' in self.errors:
            return cleaned
        if password and not confirm:
            self.add_error('confirm_password', 'Please confirm the password')
        elif confirm and not password:
            self.add_error('password', 'Enter the new password as well')
        elif password != confirm:
            self.add_error('confirm_password', 'Passwords do not match')
        return cleaned


class UserPermissionsForm(forms.Form):
    codes = forms.MultipleChoiceField(required=False, widget=forms.CheckboxSelectMultiple)

    def __init__(self, *args, catalogue=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['codes'].choices = [(entry['code'], entry['code']) for entry in catalogue]
