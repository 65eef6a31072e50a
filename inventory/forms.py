# inventory/forms.py
import os

from django import forms
from django.conf import settings
from django.utils import timezone

from website.forms import DashboardForm, to_camel


class CategoryForm(DashboardForm):
    name = forms.CharField(
        max_length=100,
        error_messages={'required': 'Category name is required'},
        widget=forms.TextInput(attrs={'placeholder': 'e.g. Antibiotics'}),
    )
    description = forms.CharField(
        max_length=500,
        required=False,
        widget=forms.Textarea(attrs={'rows': 3}),
    )


class ManufacturerForm(DashboardForm):
    name = forms.CharField(max_length=200, error_messages={'required': 'Manufacturer name is required'})
    contact = forms.CharField(max_length=200, required=False)
    address = forms.CharField(max_length=500, required=False)


class ProductForm(DashboardForm):
    """
    Product master data.

    The picker fields (category, unit category, manufacturer, units of
    measure) get their choices from the view; ``image`` is uploaded
    separately once the product exists.
    """

    payload_exclude = ('image',)

    name = forms.CharField(max_length=200, error_messages={'required': 'Product name is required'})
    product_code = forms.CharField(max_length=100, error_messages={'required': 'Product code is required'})
    generic_name = forms.CharField(max_length=200, required=False)
    description = forms.CharField(max_length=1000, required=False, widget=forms.Textarea(attrs={'rows': 3}))
    category_id = forms.ChoiceField(label='Category', error_messages={'required': 'Category is required'})
    unit_category_id = forms.ChoiceField(
        label='Unit category',
        error_messages={'required': 'Unit category is required'},
    )
    manufacturer_id = forms.ChoiceField(label='Manufacturer', required=False)
    default_uom_id = forms.ChoiceField(label='Default unit', required=False)
    purchase_uom_id = forms.ChoiceField(label='Purchase unit', required=False)
    min_level = forms.IntegerField(
        min_value=0,
        required=False,
        error_messages={'min_value': 'Minimum level cannot be negative'},
    )
    image = forms.FileField(
        required=False,
        widget=forms.ClearableFileInput(attrs={'accept': 'image/*'}),
    )


class BatchForm(DashboardForm):
    product_id = forms.ChoiceField(label='Product', error_messages={'required': 'Product is required'})
    supplier_id = forms.ChoiceField(label='Supplier', error_messages={'required': 'Supplier is required'})
    batch_number = forms.CharField(max_length=100, error_messages={'required': 'Batch number is required'})
    expiry_date = forms.DateField(
        error_messages={'required': 'Expiry date is required', 'invalid': 'Use the YYYY-MM-DD format'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    quantity = forms.IntegerField(min_value=0, error_messages={'min_value': 'Quantity cannot be negative'})
    purchase_price = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Purchase price cannot be negative'},
    )
    selling_price = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Selling price cannot be negative'},
    )


class MedicineForm(DashboardForm):
    """Pharmaceutical stock entry with manufacturing/expiry dates."""

    # form field -> API field
    payload_names = {'product_name': 'name', 'barcode_number': 'barcode'}

    product_name = forms.CharField(
        min_length=2,
        error_messages={
            'required': 'Product name must be at least 2 characters',
            'min_length': 'Product name must be at least 2 characters',
        },
    )
    category_id = forms.ChoiceField(label='Category', error_messages={'required': 'Category is required'})
    quantity = forms.IntegerField(min_value=0, error_messages={'min_value': 'Quantity cannot be negative'})
    selling_price = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Selling price cannot be negative'},
    )
    cost_price = forms.DecimalField(
        min_value=0, decimal_places=2,
        error_messages={'min_value': 'Cost price cannot be negative'},
    )
    expiry_date = forms.DateField(
        error_messages={'required': 'Expiry date is required'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    manufacturing_date = forms.DateField(
        error_messages={'required': 'Manufacturing date is required'},
        widget=forms.DateInput(attrs={'type': 'date'}),
    )
    barcode_number = forms.CharField(max_length=100, required=False)

    def clean(self):
        cleaned = super().clean()
        expiry = cleaned.get('expiry_date')
        manufactured = cleaned.get('manufacturing_date')

        if manufactured and manufactured > timezone.localdate():
            self.add_error('manufacturing_date', 'Manufacturing date cannot be in the future')
        if expiry and manufactured and expiry <= manufactured:
            self.add_error('expiry_date', 'Expiry date must be ahead of manufacturing date')
        return cleaned

    def to_payload(self):
        payload = super().to_payload()
        for field, api_name in self.payload_names.items():
            camel = to_camel(field)
            if camel in payload:
                payload[api_name] = payload.pop(camel)
        return payload

    @classmethod
    def initial_from_record(cls, record):
        initial = super().initial_from_record(record)
        if record:
            for field, api_name in cls.payload_names.items():
                if record.get(api_name) is not None:
                    initial[field] = record[api_name]
        return initial


class ProductImportForm(forms.Form):
    file = forms.FileField(
        error_messages={'required': 'Please choose a file to import'},
        widget=forms.ClearableFileInput(attrs={'class': 'form-control', 'accept': '.xlsx,.xls'}),
    )

    def clean_file(self):
        upload = self.cleaned_data['file']
        config = settings.PHARMACY_API
        extension = os.path.splitext(upload.name)[1].lower()
        if extension not in config['IMPORT_ALLOWED_EXTENSIONS']:
            raise forms.ValidationError('Please upload an Excel file (.xlsx or .xls)')
        limit = config['IMPORT_MAX_UPLOAD_SIZE']
        if upload.size > limit:
            raise forms.ValidationError(f"File size must be less than {limit // (1024 * 1024)}MB")
        return upload


class UnitCategoryForm(DashboardForm):
    name = forms.CharField(
        max_length=100,
        error_messages={'required': 'Name is required'},
        widget=forms.TextInput(attrs={'placeholder': 'e.g. Weight'}),
    )
    description = forms.CharField(max_length=500, required=False, widget=forms.Textarea(attrs={'rows': 3}))


class UomForm(DashboardForm):
    """
    Unit of measure within a unit category.

    ``base_units`` maps a unit category id to its current base unit record,
    so a form that marks another unit as base can report the one it replaces.
    """

    name = forms.CharField(max_length=100, error_messages={'required': 'Name is required'})
    abbreviation = forms.CharField(max_length=20, required=False)
    unit_category_id = forms.ChoiceField(
        label='Unit category',
        error_messages={'required': 'Unit category is required'},
    )
    conversion_rate = forms.DecimalField(
        max_digits=20, decimal_places=6,
        error_messages={'required': 'Conversion rate is required'},
        help_text='How many base units one of this unit holds',
    )
    base_unit = forms.BooleanField(required=False, label='Base unit of the category')

    def __init__(self, *args, base_units=None, current_id=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.base_units = base_units or {}
        self.current_id = current_id

    def clean_conversion_rate(self):
        rate = self.cleaned_data['conversion_rate']
        if rate <= 0:
            raise forms.ValidationError('Conversion rate must be greater than 0')
        return rate

    @property
    def replaced_base_unit(self):
        """The category's base unit this form takes over from, if any."""
        if not self.cleaned_data.get('base_unit'):
            return None
        existing = self.base_units.get(self.cleaned_data.get('unit_category_id'))
        if existing and str(existing.get('id')) != str(self.current_id):
            return existing
        return None

    def to_payload(self):
        payload = super().to_payload()
        # the API stores the rate as a decimal string
        payload['conversionRate'] = format(self.cleaned_data['conversion_rate'].normalize(), 'f')
        return payload
