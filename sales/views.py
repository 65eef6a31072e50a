import logging

from django.conf import settings
from django.http import JsonResponse
from django.shortcuts import redirect
from django.views import View
from django.views.generic import TemplateView

from inventory import services as inventory
from sales import services
from sales.forms import (
    CUSTOMER_STATUS_CHOICES,
    QUOTATION_STATUS_CHOICES,
    SALE_STATUS_CHOICES,
    CustomerForm,
    PaymentMethodForm,
    QuotationForm,
    QuotationItemFormSet,
    SaleForm,
    SaleItemFormSet,
)
from sales.utils.vouchers import build_requisition, build_sale_voucher
from website.middleware import wants_json
from website.mixins import (
    LineItemsMixin,
    PermissionRequiredMixin,
    RemoteDeleteView,
    RemoteDetailView,
    RemoteFormView,
    RemoteListView,
    reraise_unauthorized,
)
from website.permissions import CUSTOMERS, PAYMENT_METHODS, QUOTATIONS, SALES, request_can
from website.services.api_client import ApiError
from website.utils.api_errors import handle_api_error, handle_api_success
from website.utils.tables import Column, DataTable

logger = logging.getLogger(__name__)

MONEY = 'website/cells/money.html'
DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'

ITEM_COLUMNS = [
    Column('product', 'Product'),
    Column('quantity', 'Qty', css_class='text-end'),
    Column('unitPrice', 'Unit Price', template=MONEY, css_class='text-end'),
    Column('discount', 'Discount', template=MONEY, css_class='text-end'),
    Column('totalPrice', 'Total', template=MONEY, css_class='text-end'),
]


def document_choices(client):
    """Customer and product pickers shared by the sale and quotation forms."""
    return {
        'customer_id': inventory.choices(services.all_customers(client)),
        'product_id': inventory.choices(inventory.all_products(client)),
    }


# ====================================
# CUSTOMERS
# ====================================

class CustomerMixin:
    resource = services.customers
    entity_label = 'Customer'
    list_url_name = 'sales:customer-list'
    create_url_name = 'sales:customer-create'
    detail_url_name = 'sales:customer-detail'
    update_url_name = 'sales:customer-update'
    delete_url_name = 'sales:customer-delete'
    create_permission = CUSTOMERS['create']
    update_permission = CUSTOMERS['update']
    delete_permission = CUSTOMERS['delete']


class CustomerListView(CustomerMixin, RemoteListView):
    title = 'Customers'
    template_name = 'sales/customer_list.html'
    permission_required = CUSTOMERS['read']
    filters = ('status', 'customerType')
    columns = [
        Column('name', 'Name', link=True),
        Column('phone', 'Phone', sortable=False),
        Column('email', 'Email'),
        Column('customerType', 'Type', template=STATUS),
        Column('status', 'Status', template=STATUS),
        Column('tinNumber', 'TIN', visible=False),
        Column('createdAt', 'Created', template=DATE, visible=False),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['status_choices'] = CUSTOMER_STATUS_CHOICES
        return context


class CustomerDetailView(CustomerMixin, RemoteDetailView):
    permission_required = CUSTOMERS['read']
    fields = [
        ('name', 'Name'),
        ('phone', 'Phone'),
        ('email', 'Email'),
        ('address', 'Address'),
        ('status', 'Status'),
        ('customerType', 'Type'),
        ('tinNumber', 'TIN number'),
        ('licenseIssueDate', 'License issued'),
        ('licenseExpiryDate', 'License expires'),
    ]


class CustomerFormView(CustomerMixin, RemoteFormView):
    form_class = CustomerForm

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('status', 'ACTIVE')
            initial.setdefault('customer_type', 'WALK_IN')
        return initial


class CustomerDeleteView(CustomerMixin, RemoteDeleteView):
    pass


# ====================================
# SALES
# ====================================

class SaleMixin:
    resource = services.sales
    entity_label = 'Sale'
    list_url_name = 'sales:sale-list'
    create_url_name = 'sales:sale-create'
    detail_url_name = 'sales:sale-detail'
    update_url_name = 'sales:sale-update'
    delete_url_name = 'sales:sale-delete'
    create_permission = SALES['create']
    update_permission = SALES['update']
    delete_permission = SALES['delete']


class SaleListView(SaleMixin, RemoteListView):
    title = 'Sales'
    template_name = 'sales/sale_list.html'
    permission_required = SALES['read']
    filters = ('status', 'customerId')
    columns = [
        Column('date', 'Date', template=DATE, link=True),
        Column('customer', 'Customer', sortable=False),
        Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
        Column('status', 'Status', template=STATUS),
        Column('notes', 'Notes', sortable=False, visible=False),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['status_choices'] = SALE_STATUS_CHOICES
        return context


class SaleDetailView(SaleMixin, RemoteDetailView):
    template_name = 'sales/sale_detail.html'
    permission_required = SALES['read']
    fields = [
        ('customer', 'Customer'),
        ('date', 'Date'),
        ('status', 'Status'),
        ('notes', 'Notes'),
    ]
    item_columns = ITEM_COLUMNS[:1] + [Column('batch.batchNumber', 'Batch')] + ITEM_COLUMNS[1:]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        record = context.get('object')
        if record:
            context['items_table'] = DataTable(record.get('items') or [], self.item_columns, page_size=100)
            context['total'] = services.document_total(record)
        return context


class SaleFormView(SaleMixin, LineItemsMixin, RemoteFormView):
    """
    Sale with its line items.

    ``?quotation=<id>`` starts a new sale from the quotation's sale draft.
    """

    form_class = SaleForm
    item_formset_class = SaleItemFormSet

    def get_choices(self):
        return document_choices(self.request.api)

    def get_draft(self):
        quotation_id = self.request.GET.get('quotation')
        if self.is_update() or not quotation_id or self.request.method != 'GET':
            return {}
        if not hasattr(self, '_draft'):
            try:
                self._draft = services.get_sale_draft(self.request.api, quotation_id)
            except ApiError as e:
                reraise_unauthorized(e)
                handle_api_error(self.request, e, default_message='Failed to load quotation', is_mutation=False)
                self._draft = {}
        return self._draft

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.update(self.form_class.initial_from_record(self.get_draft()))
            initial.setdefault('status', 'PENDING')
        return initial

    def get_item_records(self):
        return super().get_item_records() or self.get_draft().get(self.items_key) or []


class SaleDeleteView(SaleMixin, RemoteDeleteView):
    pass


class SaleVoucherView(PermissionRequiredMixin, TemplateView):
    """Printable cash / credit sales voucher."""

    template_name = 'sales/voucher.html'
    permission_required = SALES['read']

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Sales Voucher'
        try:
            sale = services.sales.get(self.request.api, self.kwargs['pk'])
        except ApiError as e:
            reraise_unauthorized(e)
            context['error'] = handle_api_error(self.request, e, default_message='Failed to load sale voucher',
                                                is_mutation=False)
            return context
        if not sale:
            context['error'] = 'Sale not found.'
            return context
        context['voucher'] = build_sale_voucher(sale, settings.PHARMACY_COMPANY)
        return context


# ====================================
# QUOTATIONS
# ====================================

class QuotationMixin:
    resource = services.quotations
    entity_label = 'Quotation'
    list_url_name = 'sales:quotation-list'
    create_url_name = 'sales:quotation-create'
    detail_url_name = 'sales:quotation-detail'
    update_url_name = 'sales:quotation-update'
    delete_url_name = 'sales:quotation-delete'
    create_permission = QUOTATIONS['create']
    update_permission = QUOTATIONS['update']
    delete_permission = QUOTATIONS['delete']


class QuotationListView(QuotationMixin, RemoteListView):
    title = 'Quotations'
    template_name = 'sales/quotation_list.html'
    permission_required = QUOTATIONS['read']
    server_paginated = False
    filters = ('status', 'customerId')
    columns = [
        Column('date', 'Date', template=DATE, link=True),
        Column('customer', 'Customer', sortable=False),
        Column('validUntil', 'Valid Until', template=DATE),
        Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
        Column('status', 'Status', template=STATUS),
    ]

    def fetch_rows(self, search=None, **filters):
        return services.list_quotations(self.request.api, search=search, **filters)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['status_choices'] = QUOTATION_STATUS_CHOICES
        return context


class QuotationDetailView(QuotationMixin, RemoteDetailView):
    template_name = 'sales/quotation_detail.html'
    permission_required = QUOTATIONS['read']
    fields = [
        ('customer', 'Customer'),
        ('date', 'Date'),
        ('validUntil', 'Valid until'),
        ('status', 'Status'),
        ('notes', 'Notes'),
    ]
    item_columns = ITEM_COLUMNS[:1] + [
        Column('batchNumber', 'Batch'),
        Column('expiryDate', 'Expiry', template=DATE),
    ] + ITEM_COLUMNS[1:]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        record = context.get('object')
        if record:
            context['items_table'] = DataTable(record.get('items') or [], self.item_columns, page_size=100)
            context['total'] = services.document_total(record)
            context['can_accept'] = (
                record.get('status') not in ('ACCEPTED', 'REJECTED', 'EXPIRED')
                and request_can(self.request, QUOTATIONS['accept'])
            )
            context['can_create_sale'] = request_can(self.request, SALES['create'])
        return context


class QuotationFormView(QuotationMixin, LineItemsMixin, RemoteFormView):
    form_class = QuotationForm
    item_formset_class = QuotationItemFormSet

    def get_choices(self):
        return document_choices(self.request.api)

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('status', 'DRAFT')
        return initial


class QuotationDeleteView(QuotationMixin, RemoteDeleteView):
    pass


class QuotationAcceptView(PermissionRequiredMixin, View):
    permission_required = QUOTATIONS['accept']

    def post(self, request, pk):
        try:
            services.accept_quotation(request.api, pk)
        except ApiError as e:
            reraise_unauthorized(e)
            message = handle_api_error(request, e, default_message='Failed to accept quotation')
            if wants_json(request):
                return JsonResponse({'success': False, 'message': message}, status=e.status or 502)
            return redirect('sales:quotation-detail', pk=pk)

        message = 'Quotation accepted successfully'
        handle_api_success(request, message)
        if wants_json(request):
            return JsonResponse({'success': True, 'message': message})
        return redirect('sales:quotation-detail', pk=pk)


class RequisitionView(PermissionRequiredMixin, TemplateView):
    """A quotation printed as a requisition form."""

    template_name = 'sales/requisition.html'
    permission_required = QUOTATIONS['read']

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Requisition Form'
        try:
            quotation = services.quotations.get(self.request.api, self.kwargs['pk'])
        except ApiError as e:
            reraise_unauthorized(e)
            context['error'] = handle_api_error(
                self.request, e, default_message='Failed to load requisition. Please try again.', is_mutation=False
            )
            return context
        if not quotation:
            context['error'] = 'Quotation not found.'
            return context
        context['requisition'] = build_requisition(quotation, settings.PHARMACY_COMPANY)
        return context


# ====================================
# PAYMENT METHODS
# ====================================

class PaymentMethodMixin:
    resource = services.payment_methods
    entity_label = 'Payment method'
    list_url_name = 'sales:payment-method-list'
    create_url_name = 'sales:payment-method-create'
    update_url_name = 'sales:payment-method-update'
    delete_url_name = 'sales:payment-method-delete'
    create_permission = PAYMENT_METHODS['create']
    update_permission = PAYMENT_METHODS['update']
    delete_permission = PAYMENT_METHODS['delete']


class PaymentMethodListView(PaymentMethodMixin, RemoteListView):
    title = 'Payment Methods'
    permission_required = PAYMENT_METHODS['read']
    server_paginated = False
    search_enabled = False
    columns = [
        Column('name', 'Name'),
        Column('description', 'Description', sortable=False),
        Column('icon', 'Icon', sortable=False, visible=False),
        Column('sortOrder', 'Order', css_class='text-end'),
        Column('isActive', 'Active'),
    ]

    def fetch_rows(self, search=None, **filters):
        return services.list_payment_methods(self.request.api)


class PaymentMethodFormView(PaymentMethodMixin, RemoteFormView):
    form_class = PaymentMethodForm


class PaymentMethodDeleteView(PaymentMethodMixin, RemoteDeleteView):
    pass
