# credits/forms.py
from decimal import Decimal

from django import forms
from django.utils import timezone

from website.forms import DashboardForm

CREDIT_TYPE_CHOICES = [
    ('PAYABLE', 'Payable'),
    ('RECEIVABLE', 'Receivable'),
]

CREDIT_STATUS_CHOICES = [
    ('PENDING', 'Pending'),
    ('PARTIAL', 'Partial'),
    ('PAID', 'Paid'),
    ('OVERDUE', 'Overdue'),
]

PAYMENT_METHOD_CHOICES = [
    ('CASH', 'Cash'),
    ('BANK_TRANSFER', 'Bank transfer'),
    ('CHECK', 'Check'),
    ('CREDIT_CARD', 'Credit card'),
    ('DEBIT_CARD', 'Debit card'),
    ('MOBILE_MONEY', 'Mobile money'),
    ('OTHER', 'Other'),
]

PARTY_REQUIRED_MESSAGE = 'Supplier is required for PAYABLE credits, Customer is required for RECEIVABLE credits'


class CreditForm(DashboardForm):
    """
    New payable or receivable.

    A payable belongs to a supplier (and optionally a purchase), a
    receivable to a customer (and optionally a sale); the other side's
    fields are not sent.
    """

    type = forms.ChoiceField(choices=CREDIT_TYPE_CHOICES)
    total_amount = forms.DecimalField(
        min_value=Decimal('0.01'), decimal_places=2,
        error_messages={'min_value': 'Total amount must be greater than 0'},
    )
    paid_amount = forms.DecimalField(
        min_value=0, decimal_places=2, required=False,
        error_messages={'min_value': 'Paid amount must be >= 0'},
    )
    supplier_id = forms.ChoiceField(label='Supplier', required=False)
    purchase_id = forms.ChoiceField(label='Purchase', required=False)
    customer_id = forms.ChoiceField(label='Customer', required=False)
    sale_id = forms.ChoiceField(label='Sale', required=False)
    due_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def clean(self):
        cleaned = super().clean()
        credit_type = cleaned.get('type')
        if credit_type == 'PAYABLE' and not cleaned.get('supplier_id'):
            self.add_error('supplier_id', PARTY_REQUIRED_MESSAGE)
        elif credit_type == 'RECEIVABLE' and not cleaned.get('customer_id'):
            self.add_error('customer_id', PARTY_REQUIRED_MESSAGE)

        total, paid = cleaned.get('total_amount'), cleaned.get('paid_amount')
        if total is not None and paid is not None and paid > total:
            self.add_error('paid_amount', 'Paid amount cannot exceed total amount')
        return cleaned

    def to_payload(self):
        payload = super().to_payload()
        if self.cleaned_data.get('type') == 'PAYABLE':
            payload.pop('customerId', None)
            payload.pop('saleId', None)
        else:
            payload.pop('supplierId', None)
            payload.pop('purchaseId', None)
        return payload


class CreditUpdateForm(DashboardForm):
    status = forms.ChoiceField(choices=[('', '---------')] + CREDIT_STATUS_CHOICES, required=False)
    due_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    paid_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class PaymentForm(DashboardForm):
    """Payment against a credit; ``balance`` caps the amount before anything is sent."""

    amount = forms.DecimalField(
        min_value=Decimal('0.01'), decimal_places=2,
        error_messages={'required': 'Amount is required', 'min_value': 'Amount must be greater than 0'},
    )
    payment_method = forms.ChoiceField(choices=PAYMENT_METHOD_CHOICES, required=False, initial='CASH')
    reference_number = forms.CharField(max_length=100, required=False)
    payment_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, balance=None, **kwargs):
        self.balance = balance
        super().__init__(*args, **kwargs)
        if balance is not None:
            self.fields['amount'].widget.attrs['max'] = f"{balance:.2f}"
            self.fields['amount'].help_text = f"Maximum payment: {balance:.2f}"

    def clean_amount(self):
        amount = self.cleaned_data['amount']
        if self.balance is not None and amount > self.balance:
            raise forms.ValidationError(f"Payment amount cannot exceed balance ({self.balance:.2f})")
        return amount

    def clean(self):
        cleaned = super().clean()
        cleaned['payment_method'] = cleaned.get('payment_method') or 'CASH'
        cleaned['payment_date'] = cleaned.get('payment_date') or timezone.localdate()
        return cleaned
