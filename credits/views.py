import logging

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.views.generic import FormView

from credits import services
from credits.forms import CREDIT_STATUS_CHOICES, CREDIT_TYPE_CHOICES, CreditForm, CreditUpdateForm, PaymentForm
from inventory.services import LOOKUP_LIMIT, choices
from purchases import services as purchasing
from sales import services as selling
from website.middleware import wants_json
from website.mixins import (
    PermissionRequiredMixin,
    RemoteDeleteView,
    RemoteDetailView,
    RemoteFormView,
    RemoteListView,
    reraise_unauthorized,
)
from website.permissions import CREDITS, PAYMENTS, request_can
from website.services.api_client import ApiError
from website.utils.api_errors import handle_api_error, handle_api_success
from website.utils.tables import Column, DataTable

logger = logging.getLogger(__name__)

MONEY = 'website/cells/money.html'
DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'

PAYMENT_COLUMNS = [
    Column('paymentDate', 'Date', template=DATE),
    Column('amount', 'Amount', template=MONEY, css_class='text-end'),
    Column('paymentMethod', 'Method', template=STATUS),
    Column('referenceNumber', 'Reference', sortable=False),
    Column('notes', 'Notes', sortable=False, visible=False),
]


# ====================================
# CREDITS
# ====================================

class CreditMixin:
    resource = services.credits
    entity_label = 'Credit'
    list_url_name = 'credits:credit-list'
    create_url_name = 'credits:credit-create'
    detail_url_name = 'credits:credit-detail'
    update_url_name = 'credits:credit-update'
    delete_url_name = 'credits:credit-delete'
    create_permission = CREDITS['create']
    update_permission = CREDITS['update']
    delete_permission = CREDITS['delete']


class CreditListView(CreditMixin, RemoteListView):
    """Payables and receivables, with the totals for the selected type on top."""

    title = 'Credits'
    template_name = 'credits/credit_list.html'
    permission_required = CREDITS['read']
    filters = ('type', 'status')
    columns = [
        Column('type', 'Type', template=STATUS),
        Column('supplier', 'Supplier / Customer', accessor=lambda row: row.get('supplier') or row.get('customer'),
               sortable=False, link=True),
        Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
        Column('paidAmount', 'Paid', template=MONEY, css_class='text-end'),
        Column('balanceAmount', 'Balance', template=MONEY, css_class='text-end'),
        Column('dueDate', 'Due', template=DATE),
        Column('status', 'Status', template=STATUS),
    ]

    def get_summary(self):
        try:
            return services.get_summary(self.request.api, self.request.GET.get('type') or None)
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load credit summary', is_mutation=False)
            return None

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['summary'] = self.get_summary()
        context['type_choices'] = CREDIT_TYPE_CHOICES
        context['status_choices'] = CREDIT_STATUS_CHOICES
        return context


class CreditDetailView(CreditMixin, RemoteDetailView):
    template_name = 'credits/credit_detail.html'
    permission_required = CREDITS['read']
    fields = [
        ('type', 'Type'),
        ('supplier', 'Supplier'),
        ('customer', 'Customer'),
        ('purchase.invoiceNo', 'Purchase'),
        ('sale.invoiceNo', 'Sale'),
        ('totalAmount', 'Total amount'),
        ('paidAmount', 'Paid amount'),
        ('balanceAmount', 'Balance'),
        ('dueDate', 'Due date'),
        ('paidDate', 'Paid date'),
        ('status', 'Status'),
        ('notes', 'Notes'),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        record = context.get('object')
        if record:
            balance = services.balance_of(record)
            context['balance'] = balance
            context['payments_table'] = DataTable(
                record.get('payments') or [], PAYMENT_COLUMNS, page_size=50,
                empty_message='No payments recorded yet.',
            )
            context['can_pay'] = balance > 0 and request_can(self.request, CREDITS['pay'])
        return context


class CreditFormView(CreditMixin, RemoteFormView):
    """New credits take the full form; existing ones only status, dates and notes."""

    def get_form_class(self):
        return CreditUpdateForm if self.is_update() else CreditForm

    def get_choices(self):
        if self.is_update():
            return {}
        api = self.request.api
        purchases = purchasing.purchases.list(api, page=1, limit=LOOKUP_LIMIT).items
        sales = selling.sales.list(api, page=1, limit=LOOKUP_LIMIT).items
        return {
            'supplier_id': choices(purchasing.all_suppliers(api)),
            'customer_id': choices(selling.all_customers(api)),
            'purchase_id': choices(purchases, label_key='invoiceNo'),
            'sale_id': choices(sales, label_key='invoiceNo'),
        }

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('type', self.request.GET.get('type') or 'PAYABLE')
        return initial


class CreditDeleteView(CreditMixin, RemoteDeleteView):
    pass


class CreditPayView(PermissionRequiredMixin, FormView):
    """
    Record a payment against a credit.

    The credit is loaded first so that the amount can be checked against
    its balance; an amount over the balance never reaches the API.
    """

    template_name = 'credits/credit_pay.html'
    form_class = PaymentForm
    permission_required = CREDITS['pay']

    def get_credit(self):
        if not hasattr(self, '_credit'):
            self._credit = services.credits.get(self.request.api, self.kwargs['pk'])
        return self._credit

    def load_failed(self):
        try:
            credit = self.get_credit()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load credit', is_mutation=False)
            return redirect('credits:credit-list')
        if not credit:
            messages.error(self.request, 'Credit not found')
            return redirect('credits:credit-list')
        return None

    def get(self, request, *args, **kwargs):
        return self.load_failed() or super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.load_failed() or super().post(request, *args, **kwargs)

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs['balance'] = services.balance_of(self.get_credit())
        return kwargs

    def get_initial(self):
        initial = super().get_initial()
        initial['amount'] = services.balance_of(self.get_credit())
        return initial

    def get_success_url(self):
        return reverse('credits:credit-detail', kwargs={'pk': self.kwargs['pk']})

    def form_valid(self, form):
        try:
            services.record_payment(self.request.api, self.kwargs['pk'], form.to_payload())
        except ApiError as e:
            reraise_unauthorized(e)
            message = handle_api_error(self.request, e, default_message='Failed to record payment', is_mutation=True)
            if wants_json(self.request):
                return JsonResponse({'success': False, 'message': message}, status=e.status or 502)
            form.add_error(None, message)
            return self.form_invalid(form)

        message = 'Payment recorded successfully'
        handle_api_success(self.request, message)
        if wants_json(self.request):
            return JsonResponse({'success': True, 'message': message})
        return redirect(self.get_success_url())

    def form_invalid(self, form):
        if wants_json(self.request):
            return JsonResponse({
                'success': False,
                'message': 'Validation error',
                'errors': form.errors.get_json_data(),
            }, status=400)
        return super().form_invalid(form)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Record Payment'
        context['credit'] = self.get_credit()
        context['balance'] = services.balance_of(self.get_credit())
        return context


# ====================================
# PAYMENTS
# ====================================

class PaymentListView(RemoteListView):
    title = 'Payments'
    entity_label = 'Payment'
    resource = services.payments
    list_url_name = 'credits:payment-list'
    delete_url_name = 'credits:payment-delete'
    delete_permission = PAYMENTS['delete']
    permission_required = PAYMENTS['read']
    template_name = 'credits/payment_list.html'
    search_enabled = False
    filters = ('startDate', 'endDate', 'creditId')
    columns = PAYMENT_COLUMNS[:3] + [
        Column('credit.type', 'Credit', sortable=False),
        Column('createdAt', 'Recorded', template=DATE),
    ] + PAYMENT_COLUMNS[3:]


class PaymentDeleteView(RemoteDeleteView):
    entity_label = 'Payment'
    resource = services.payments
    list_url_name = 'credits:payment-list'
    delete_permission = PAYMENTS['delete']
