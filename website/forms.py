# website/forms.py
import datetime
import re
from decimal import Decimal

from django import forms
from django.conf import settings

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def to_camel(name):
    head, *tail = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in tail)


def to_snake(name):
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def payload_value(value):
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def is_blank(value):
    return value is None or value == '' or value == [] or (isinstance(value, str) and not value.strip())


class DashboardForm(forms.Form):
    """
    Base form for every entity form.

    Fields are declared in snake_case and sent to the API in camelCase.
    Blank optional values are left out of the payload; ``payload_exclude``
    lists fields that are only used for validation.
    """

    payload_exclude = ()
    always_send = ()

    def __init__(self, *args, choices=None, **kwargs):
        super().__init__(*args, **kwargs)
        for name, options in (choices or {}).items():
            if name in self.fields:
                self.fields[name].choices = [('', '---------')] + list(options)
        for field in self.fields.values():
            widget = field.widget
            if isinstance(widget, (forms.CheckboxInput, forms.CheckboxSelectMultiple)):
                css = 'form-check-input'
            elif isinstance(widget, forms.Select):
                css = 'form-select'
            else:
                css = 'form-control'
            existing = widget.attrs.get('class', '')
            if css not in existing.split():
                widget.attrs['class'] = f"{existing} {css}".strip()

    def to_payload(self):
        payload = {}
        for name in self.fields:
            if name in self.payload_exclude:
                continue
            value = self.cleaned_data.get(name)
            if is_blank(value) and name not in self.always_send:
                continue
            payload[to_camel(name)] = payload_value(value)
        return payload

    @classmethod
    def initial_from_record(cls, record):
        """Map an API record (camelCase, nested references) onto the form's fields."""
        if not record:
            return {}
        initial = {}
        for name, field in cls.base_fields.items():
            key = to_camel(name)
            value = record.get(key)
            if value is None and name.endswith('_id'):
                ref = record.get(to_camel(name[:-3]))
                if isinstance(ref, dict):
                    value = ref.get('id')
            if value is None:
                continue
            if isinstance(field, forms.DateField) and isinstance(value, str):
                value = value[:10]
            initial[name] = value
        return initial


# ============================================
# AUTHENTICATION FORMS
# ============================================

class SignInForm(forms.Form):
    email = forms.EmailField(
        error_messages={'required': 'Email is required', 'invalid': 'Invalid email address'},
        widget=forms.EmailInput(attrs={
            'class': 'form-control',
            'placeholder': 'name@pharmacy.com',
            'autofocus': True,
        }),
    )
    password = forms.CharField(
        error_messages={'required': 'Password is required'},
        strip=False,
        widget=forms.PasswordInput(attrs={'class': 'form-control'}),
    )

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()


class SignUpForm(forms.Form):
    email = forms.EmailField(
        error_messages={'required': 'Email is required', 'invalid': 'Invalid email address'},
        widget=forms.EmailInput(attrs={'class': 'form-control'}),
    )
    password = forms.CharField(
        min_length=6,
        strip=False,
        error_messages={'min_length': 'Password must be at least 6 characters'},
        widget=forms.PasswordInput(attrs={'class': 'form-control'}),
    )
    confirm_password = forms.CharField(
        strip=False,
        widget=forms.PasswordInput(attrs={'class': 'form-control'}),
    )
    phone = forms.CharField(max_length=30, widget=forms.TextInput(attrs={'class': 'form-control'}))
    address = forms.CharField(max_length=500, widget=forms.TextInput(attrs={'class': 'form-control'}))

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('password') and cleaned.get('password') != cleaned.get('confirm_password'):
            self.add_error('confirm_password', 'Passwords do not match')
        return cleaned


# ============================================
# ACCOUNT FORMS
# ============================================

GENDER_CHOICES = [
    ('MALE', 'Male'),
    ('FEMALE', 'Female'),
    ('OTHER', 'Other'),
]


class AccountForm(DashboardForm):
    first_name = forms.CharField(max_length=100, required=False)
    middle_name = forms.CharField(max_length=100, required=False)
    last_name = forms.CharField(max_length=100, required=False)
    gender = forms.ChoiceField(choices=[('', '---------')] + GENDER_CHOICES, required=False)
    phone = forms.CharField(max_length=30, required=False)
    address = forms.CharField(max_length=500, required=False)


class ChangePasswordForm(DashboardForm):
    current_password = forms.CharField(strip=False, widget=forms.PasswordInput)
    new_password = forms.CharField(
        min_length=6,
        strip=False,
        error_messages={'min_length': 'Password must be at least 6 characters'},
        widget=forms.PasswordInput,
    )
    confirm_password = forms.CharField(strip=False, widget=forms.PasswordInput)

    def clean(self):
        cleaned = super().clean()
        new = cleaned.get('new_password')
        if new and new != cleaned.get('confirm_password'):
            self.add_error('confirm_password', 'Passwords do not match')
        return cleaned


# ============================================
# LINE ITEMS
# ============================================

class BaseItemFormSet(forms.BaseFormSet):
    """Line items of a sale, quotation or purchase; at least one is required."""

    def clean(self):
        super().clean()
        if any(self.errors):
            return
        if not self.filled_forms():
            raise forms.ValidationError('At least one item is required')

    def filled_forms(self):
        return [
            form for form in self.forms
            if form.cleaned_data and not (self.can_delete and form.cleaned_data.get('DELETE'))
        ]

    def to_payload(self):
        items = []
        for form in self.filled_forms():
            item = form.to_payload()
            item.pop('DELETE', None)
            items.append(item)
        return items


# ============================================
# CUSTOMER / SUPPLIER FORMS
# ============================================

PARTY_TYPE_CHOICES = [
    ('WALK_IN', 'Walk-in'),
    ('LICENSED', 'Licensed'),
]

LICENSE_FIELDS = ('license_issue_date', 'license_expiry_date', 'tin_number')


class LicensedPartyForm(DashboardForm):
    """
    Customers and suppliers share a LICENSED / WALK_IN discriminator.

    Licensed parties must carry both license dates, with the expiry after
    the issue date. Walk-in parties never send license fields.
    """

    type_field = None
    party_label = 'customers'

    license_issue_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    license_expiry_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    tin_number = forms.CharField(label='TIN number', max_length=50, required=False)

    def clean(self):
        cleaned = super().clean()
        party_type = cleaned.get(self.type_field) or 'WALK_IN'
        cleaned[self.type_field] = party_type
        if party_type != 'LICENSED':
            return cleaned

        issued = cleaned.get('license_issue_date')
        expires = cleaned.get('license_expiry_date')
        if not issued and 'license_issue_date' not in self.errors:
            self.add_error('license_issue_date', f"License issue date is required for licensed {self.party_label}")
        if not expires and 'license_expiry_date' not in self.errors:
            self.add_error('license_expiry_date', f"License expiry date is required for licensed {self.party_label}")
        if issued and expires and expires <= issued:
            self.add_error('license_expiry_date', 'License expiry date must be after the issue date')
        return cleaned

    def to_payload(self):
        payload = super().to_payload()
        if self.cleaned_data.get(self.type_field) != 'LICENSED':
            for name in LICENSE_FIELDS:
                payload.pop(to_camel(name), None)
        return payload


# ============================================
# PHARMACY SETTINGS
# ============================================

class PharmacySettingsForm(DashboardForm):
    """Pharmacy name, logo and contacts printed on vouchers; ``logo`` is uploaded on its own."""

    payload_exclude = ('logo',)

    pharmacy_name = forms.CharField(max_length=200, required=False)
    pharmacy_logo_url = forms.CharField(
        label='Logo URL',
        max_length=500,
        required=False,
        widget=forms.TextInput(attrs={'placeholder': '/uploads/logo/abc.png or https://...'}),
    )
    logo = forms.FileField(
        label='Upload logo',
        required=False,
        widget=forms.ClearableFileInput(attrs={'accept': 'image/*'}),
    )
    address = forms.CharField(max_length=500, required=False)
    phone = forms.CharField(max_length=30, required=False)
    email = forms.EmailField(required=False, error_messages={'invalid': 'Invalid email address'})

    def clean_logo(self):
        logo = self.cleaned_data.get('logo')
        if not logo:
            return logo
        content_type = getattr(logo, 'content_type', '') or ''
        if not content_type.startswith('image/'):
            raise forms.ValidationError('Please choose an image file')
        limit = settings.PHARMACY_API['LOGO_MAX_UPLOAD_SIZE']
        if logo.size > limit:
            raise forms.ValidationError(f"Logo must be smaller than {limit // (1024 * 1024)}MB")
        return logo
