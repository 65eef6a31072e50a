# sales/forms.py
from decimal import Decimal

from django import forms

from website.forms import BaseItemFormSet, DashboardForm, LicensedPartyForm, PARTY_TYPE_CHOICES

CUSTOMER_STATUS_CHOICES = [
    ('ACTIVE', 'Active'),
    ('INACTIVE', 'Inactive'),
]

SALE_STATUS_CHOICES = [
    ('PENDING', 'Pending'),
    ('COMPLETED', 'Completed'),
    ('CANCELLED', 'Cancelled'),
]

QUOTATION_STATUS_CHOICES = [
    ('DRAFT', 'Draft'),
    ('SENT', 'Sent'),
    ('ACCEPTED', 'Accepted'),
    ('REJECTED', 'Rejected'),
    ('EXPIRED', 'Expired'),
]


# ============================================
# CUSTOMERS
# ============================================

class CustomerForm(LicensedPartyForm):
    type_field = 'customer_type'
    party_label = 'customers'

    name = forms.CharField(max_length=200, error_messages={'required': 'Name is required'})
    phone = forms.CharField(max_length=30, required=False)
    email = forms.EmailField(required=False, error_messages={'invalid': 'Invalid email'})
    address = forms.CharField(max_length=500, required=False, widget=forms.Textarea(attrs={'rows': 2}))
    status = forms.ChoiceField(choices=[('', '---------')] + CUSTOMER_STATUS_CHOICES, required=False)
    customer_type = forms.ChoiceField(label='Customer type', choices=PARTY_TYPE_CHOICES, required=False)

    field_order = [
        'name', 'phone', 'email', 'address', 'status', 'customer_type',
        'license_issue_date', 'license_expiry_date', 'tin_number',
    ]


# ============================================
# SALES
# ============================================

class SaleForm(DashboardForm):
    customer_id = forms.ChoiceField(label='Customer', error_messages={'required': 'Customer is required'})
    date = forms.DateField(
        error_messages={'required': 'Date is required'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    status = forms.ChoiceField(choices=SALE_STATUS_CHOICES, required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class PricedItemForm(DashboardForm):
    """Line with a unit price and an optional discount; ``totalPrice`` is derived."""

    product_id = forms.ChoiceField(label='Product', error_messages={'required': 'Product is required'})
    quantity = forms.IntegerField(min_value=1, error_messages={'min_value': 'Quantity must be at least 1'})
    unit_price = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Unit price cannot be negative'},
    )
    discount = forms.DecimalField(
        min_value=0, decimal_places=2, required=False,
        error_messages={'min_value': 'Discount cannot be negative'},
    )
    notes = forms.CharField(required=False)

    def to_payload(self):
        payload = super().to_payload()
        data = self.cleaned_data
        total = Decimal(data['quantity']) * data['unit_price'] - (data.get('discount') or Decimal('0'))
        payload['totalPrice'] = float(total)
        return payload


class SaleItemForm(PricedItemForm):
    batch_id = forms.CharField(
        label='Batch',
        max_length=100,
        error_messages={'required': 'Batch is required'},
        widget=forms.TextInput(attrs={'data-batch-picker': 'true', 'autocomplete': 'off'}),
    )

    field_order = ['product_id', 'batch_id', 'quantity', 'unit_price', 'discount', 'notes']


SaleItemFormSet = forms.formset_factory(SaleItemForm, formset=BaseItemFormSet, extra=1, can_delete=True)


# ============================================
# QUOTATIONS
# ============================================

class QuotationForm(DashboardForm):
    customer_id = forms.ChoiceField(label='Customer', error_messages={'required': 'Customer is required'})
    date = forms.DateField(
        error_messages={'required': 'Date is required'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    valid_until = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    status = forms.ChoiceField(choices=QUOTATION_STATUS_CHOICES, required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def clean(self):
        cleaned = super().clean()
        date, valid_until = cleaned.get('date'), cleaned.get('valid_until')
        if date and valid_until and valid_until < date:
            self.add_error('valid_until', 'Valid until date cannot be before the quotation date')
        return cleaned


class QuotationItemForm(PricedItemForm):
    batch_number = forms.CharField(max_length=100, required=False)
    expiry_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))

    field_order = ['product_id', 'batch_number', 'expiry_date', 'quantity', 'unit_price', 'discount', 'notes']


QuotationItemFormSet = forms.formset_factory(
    QuotationItemForm, formset=BaseItemFormSet, extra=1, can_delete=True,
)


# ============================================
# PAYMENT METHODS
# ============================================

class PaymentMethodForm(DashboardForm):
    name = forms.CharField(
        max_length=100,
        error_messages={'required': 'Name is required', 'max_length': 'Max 100 characters'},
    )
    description = forms.CharField(
        max_length=500, required=False,
        error_messages={'max_length': 'Max 500 characters'},
        widget=forms.Textarea(attrs={'rows': 2}),
    )
    icon = forms.CharField(max_length=100, required=False, error_messages={'max_length': 'Max 100 characters'})
    sort_order = forms.IntegerField(
        min_value=0, required=False,
        error_messages={'min_value': 'Sort order cannot be negative'},
    )
    is_active = forms.BooleanField(label='Active', required=False, initial=True)
