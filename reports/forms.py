# reports/forms.py
from django import forms
from django.utils import timezone

from reports.services import DEFAULT_PERIOD, PERIOD_CHOICES
from website.forms import DashboardForm

FILTER_LABELS = {
    'customer_id': 'All customers',
    'supplier_id': 'All suppliers',
    'salesperson_id': 'All salespeople',
    'category_id': 'All categories',
    'product_id': 'All products',
}


class ReportFilterForm(DashboardForm):
    """
    Period and party filters of a report, submitted by GET.

    Only the pickers named in ``filters`` are kept; start and end dates are
    sent only for the custom period.
    """

    period = forms.ChoiceField(choices=PERIOD_CHOICES, required=False)
    start_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    end_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    customer_id = forms.ChoiceField(label='Customer', required=False)
    supplier_id = forms.ChoiceField(label='Supplier', required=False)
    salesperson_id = forms.ChoiceField(label='Salesperson', required=False)
    category_id = forms.ChoiceField(label='Category', required=False)
    product_id = forms.ChoiceField(label='Product', required=False)

    def __init__(self, *args, filters=(), dated=True, **kwargs):
        super().__init__(*args, **kwargs)
        for name in list(FILTER_LABELS):
            if name not in filters:
                del self.fields[name]
            elif name in self.fields:
                options = self.fields[name].choices[1:] if self.fields[name].choices else []
                self.fields[name].choices = [('', FILTER_LABELS[name])] + list(options)
        if not dated:
            for name in ('period', 'start_date', 'end_date'):
                del self.fields[name]

    def clean(self):
        cleaned = super().clean()
        if 'period' not in self.fields:
            return cleaned
        cleaned['period'] = cleaned.get('period') or DEFAULT_PERIOD
        if cleaned['period'] != 'custom':
            cleaned['start_date'] = cleaned['end_date'] = None
            return cleaned

        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if not start:
            self.add_error('start_date', 'Start date is required for a custom range')
        if not end:
            self.add_error('end_date', 'End date is required for a custom range')
        if start and end and end < start:
            self.add_error('end_date', 'End date cannot be before start date')
        return cleaned

    def to_params(self):
        """Query string of the report request."""
        return self.to_payload()


class CommissionPayForm(DashboardForm):
    paid_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    notes = forms.CharField(max_length=500, required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def clean(self):
        cleaned = super().clean()
        cleaned['paid_date'] = cleaned.get('paid_date') or timezone.localdate()
        return cleaned
