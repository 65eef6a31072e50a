# purchases/forms.py
from decimal import Decimal

from django import forms

from website.forms import BaseItemFormSet, DashboardForm, LicensedPartyForm, PARTY_TYPE_CHOICES

PURCHASE_STATUS_CHOICES = [
    ('PENDING', 'Pending'),
    ('COMPLETED', 'Completed'),
    ('CANCELLED', 'Cancelled'),
    ('PARTIALLY_RECEIVED', 'Partially received'),
]


# ============================================
# SUPPLIERS
# ============================================

class SupplierForm(LicensedPartyForm):
    type_field = 'supplier_type'
    party_label = 'suppliers'

    name = forms.CharField(max_length=200, error_messages={'required': 'Name is required'})
    contact = forms.CharField(max_length=200, required=False)
    email = forms.EmailField(required=False, error_messages={'invalid': 'Invalid email format'})
    address = forms.CharField(max_length=500, required=False, widget=forms.Textarea(attrs={'rows': 2}))
    supplier_type = forms.ChoiceField(label='Supplier type', choices=PARTY_TYPE_CHOICES, required=False)

    field_order = [
        'name', 'contact', 'email', 'address', 'supplier_type',
        'license_issue_date', 'license_expiry_date', 'tin_number',
    ]


# ============================================
# PURCHASES
# ============================================

class PurchaseForm(DashboardForm):
    supplier_id = forms.ChoiceField(label='Supplier', error_messages={'required': 'Supplier is required'})
    invoice_no = forms.CharField(
        label='Invoice number',
        max_length=255,
        error_messages={'required': 'Invoice number is required', 'max_length': 'Max 255 characters'},
    )
    date = forms.DateField(
        error_messages={'required': 'Date is required', 'invalid': 'Invalid date format (YYYY-MM-DD)'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    status = forms.ChoiceField(choices=PURCHASE_STATUS_CHOICES, required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class PurchaseItemForm(DashboardForm):
    product_id = forms.ChoiceField(label='Product', error_messages={'required': 'Product is required'})
    uom_id = forms.ChoiceField(label='Unit', required=False)
    batch_number = forms.CharField(max_length=100, error_messages={'required': 'Batch number is required'})
    expiry_date = forms.DateField(
        error_messages={'required': 'Expiry date is required', 'invalid': 'Invalid date format (YYYY-MM-DD)'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    quantity = forms.IntegerField(min_value=1, error_messages={'min_value': 'Quantity must be at least 1'})
    unit_cost = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Unit cost must be at least 0'},
    )
    notes = forms.CharField(required=False)

    def to_payload(self):
        payload = super().to_payload()
        total = Decimal(self.cleaned_data['quantity']) * self.cleaned_data['unit_cost']
        payload['totalCost'] = float(total)
        return payload


PurchaseItemFormSet = forms.formset_factory(
    PurchaseItemForm, formset=BaseItemFormSet, extra=1, can_delete=True,
)
