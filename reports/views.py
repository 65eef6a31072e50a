import logging

from django.contrib import messages
from django.http import Http404, JsonResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.views import View
from django.views.generic import FormView, TemplateView

from inventory import services as inventory
from purchases.services import all_suppliers
from reports import services
from reports.forms import CommissionPayForm, ReportFilterForm
from sales.services import all_customers
from users import services as accounts
from website.middleware import wants_json
from website.mixins import PermissionRequiredMixin, RemoteListView, reraise_unauthorized
from website.permissions import COMMISSIONS, request_can
from website.services.api_client import ApiError
from website.utils.api_errors import get_permission_error_message, handle_api_error, handle_api_success
from website.utils.tables import Column, DataTable, resolve

logger = logging.getLogger(__name__)

MONEY = 'website/cells/money.html'
DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'

REPORT_ROWS = 100

# (path in the report, label, format)
REPORT_CARDS = {
    'sales': [
        ('summary.totalSales', 'Sales', 'number'),
        ('summary.totalRevenue', 'Revenue', 'money'),
        ('summary.totalPaid', 'Paid', 'money'),
        ('summary.totalCredit', 'On credit', 'money'),
        ('summary.averageSaleAmount', 'Average sale', 'money'),
    ],
    'purchases': [
        ('summary.totalPurchases', 'Purchases', 'number'),
        ('summary.totalAmount', 'Total amount', 'money'),
        ('summary.totalPaid', 'Paid', 'money'),
        ('summary.totalCredit', 'On credit', 'money'),
        ('summary.averagePurchaseAmount', 'Average purchase', 'money'),
    ],
    'inventory': [
        ('summary.totalProducts', 'Products', 'number'),
        ('summary.totalValue', 'Stock value', 'money'),
        ('summary.lowStockCount', 'Low stock', 'number'),
        ('summary.expiredBatchesCount', 'Expired batches', 'number'),
        ('summary.expiringSoonCount', 'Expiring soon', 'number'),
    ],
    'financial': [
        ('summary.revenue', 'Revenue', 'money'),
        ('summary.expenses', 'Expenses', 'money'),
        ('summary.commissionExpenses', 'Commissions', 'money'),
        ('summary.totalExpenses', 'Total expenses', 'money'),
        ('summary.profit', 'Profit', 'money'),
        ('summary.profitMargin', 'Profit margin', 'percent'),
        ('cashFlow.paymentsReceived', 'Payments received', 'money'),
        ('cashFlow.paymentsMade', 'Payments made', 'money'),
        ('cashFlow.netCashFlow', 'Net cash flow', 'money'),
        ('outstanding.receivables', 'Receivables', 'money'),
        ('outstanding.payables', 'Payables', 'money'),
        ('outstanding.netOutstanding', 'Net outstanding', 'money'),
    ],
    'commissions': [
        ('summary.totalCommissions', 'Commissions', 'number'),
        ('summary.totalAmount', 'Total amount', 'money'),
        ('summary.paidAmount', 'Paid', 'money'),
        ('summary.pendingAmount', 'Pending', 'money'),
    ],
    'products': [
        ('summary.totalProducts', 'Products sold', 'number'),
        ('summary.totalQuantitySold', 'Quantity sold', 'number'),
        ('summary.totalRevenue', 'Revenue', 'money'),
    ],
}

STOCK_LEVEL_COLUMNS = [
    Column('productName', 'Product'),
    Column('category', 'Category'),
    Column('currentQuantity', 'Quantity', css_class='text-end'),
    Column('minLevel', 'Min', css_class='text-end'),
    Column('maxLevel', 'Max', css_class='text-end'),
    Column('status', 'Status', template=STATUS),
    Column('batches', 'Batches', css_class='text-end'),
]

# (report key, title, columns)
REPORT_TABLES = {
    'sales': [
        ('salesByDay', 'Sales by day', [
            Column('date', 'Date', template=DATE),
            Column('count', 'Sales', css_class='text-end'),
            Column('revenue', 'Revenue', template=MONEY, css_class='text-end'),
        ]),
        ('topProducts', 'Top products', [
            Column('productName', 'Product'),
            Column('quantity', 'Quantity', css_class='text-end'),
            Column('revenue', 'Revenue', template=MONEY, css_class='text-end'),
        ]),
        ('topCustomers', 'Top customers', [
            Column('customerName', 'Customer'),
            Column('count', 'Sales', css_class='text-end'),
            Column('revenue', 'Revenue', template=MONEY, css_class='text-end'),
        ]),
        ('sales', 'Sales', [
            Column('date', 'Date', template=DATE),
            Column('customer', 'Customer'),
            Column('salesperson', 'Salesperson'),
            Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
            Column('paidAmount', 'Paid', template=MONEY, css_class='text-end'),
            Column('status', 'Status', template=STATUS),
        ]),
    ],
    'purchases': [
        ('purchasesByDay', 'Purchases by day', [
            Column('date', 'Date', template=DATE),
            Column('count', 'Purchases', css_class='text-end'),
            Column('amount', 'Amount', template=MONEY, css_class='text-end'),
        ]),
        ('topSuppliers', 'Top suppliers', [
            Column('supplierName', 'Supplier'),
            Column('count', 'Purchases', css_class='text-end'),
            Column('amount', 'Amount', template=MONEY, css_class='text-end'),
        ]),
        ('purchases', 'Purchases', [
            Column('date', 'Date', template=DATE),
            Column('supplier', 'Supplier'),
            Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
            Column('paidAmount', 'Paid', template=MONEY, css_class='text-end'),
            Column('status', 'Status', template=STATUS),
        ]),
    ],
    'inventory': [
        ('lowStockItems', 'Low stock', STOCK_LEVEL_COLUMNS),
        ('expiredBatches', 'Expired batches', [
            Column('batchNumber', 'Batch'),
            Column('productName', 'Product'),
            Column('quantity', 'Quantity', css_class='text-end'),
            Column('expiryDate', 'Expired on', template=DATE),
            Column('daysExpired', 'Days expired', css_class='text-end'),
        ]),
        ('expiringSoon', 'Expiring soon', [
            Column('batchNumber', 'Batch'),
            Column('productName', 'Product'),
            Column('quantity', 'Quantity', css_class='text-end'),
            Column('expiryDate', 'Expires on', template=DATE),
            Column('daysUntilExpiry', 'Days left', css_class='text-end'),
        ]),
        ('stockLevels', 'Stock levels', STOCK_LEVEL_COLUMNS),
    ],
    'financial': [],
    'commissions': [
        ('bySalesperson', 'By salesperson', [
            Column('salespersonName', 'Salesperson'),
            Column('count', 'Commissions', css_class='text-end'),
            Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
            Column('paidAmount', 'Paid', template=MONEY, css_class='text-end'),
            Column('pendingAmount', 'Pending', template=MONEY, css_class='text-end'),
        ]),
        ('commissions', 'Commissions', [
            Column('salesperson', 'Salesperson'),
            Column('customer', 'Customer'),
            Column('saleAmount', 'Sale amount', template=MONEY, css_class='text-end'),
            Column('commissionRate', 'Rate', css_class='text-end'),
            Column('commissionAmount', 'Commission', template=MONEY, css_class='text-end'),
            Column('status', 'Status', template=STATUS),
            Column('paidDate', 'Paid on', template=DATE),
        ]),
    ],
    'products': [
        ('products', 'Product performance', [
            Column('productName', 'Product'),
            Column('category', 'Category'),
            Column('totalQuantitySold', 'Sold', css_class='text-end'),
            Column('totalRevenue', 'Revenue', template=MONEY, css_class='text-end'),
            Column('averagePrice', 'Average price', template=MONEY, css_class='text-end'),
            Column('currentStock', 'In stock', css_class='text-end'),
            Column('minLevel', 'Min level', css_class='text-end'),
        ]),
    ],
}


def report_tabs(request):
    """The reports the signed-in user may open, in menu order."""
    return [
        {'kind': kind, 'label': report.label, 'url': reverse('reports:report', kwargs={'kind': kind})}
        for kind, report in services.REPORT_DEFINITIONS.items()
        if request_can(request, report.permission)
    ]


# ====================================
# REPORTS
# ====================================

class ReportIndexView(View):
    """Opens the first report the user has access to."""

    def get(self, request):
        tabs = report_tabs(request)
        if not tabs:
            messages.error(request, get_permission_error_message(request.path), fail_silently=True)
            return redirect('website:unauthorized')
        return redirect(tabs[0]['url'])


class ReportView(PermissionRequiredMixin, TemplateView):
    template_name = 'reports/report.html'

    def dispatch(self, request, *args, **kwargs):
        self.kind = kwargs['kind']
        if self.kind not in services.REPORT_DEFINITIONS:
            raise Http404(f"Unknown report: {self.kind}")
        self.report = services.REPORT_DEFINITIONS[self.kind]
        self.permission_required = self.report.permission
        return super().dispatch(request, *args, **kwargs)

    def get_filter_choices(self):
        api = self.request.api
        loaders = {
            'customer_id': lambda: inventory.choices(all_customers(api)),
            'supplier_id': lambda: inventory.choices(all_suppliers(api)),
            'salesperson_id': lambda: [
                (str(user['id']), accounts.full_name(user))
                for user in accounts.users.list(api, page=1, limit=inventory.LOOKUP_LIMIT).items
                if user.get('id')
            ],
            'category_id': lambda: inventory.choices(inventory.all_categories(api)),
            'product_id': lambda: inventory.choices(inventory.all_products(api)),
        }
        try:
            return {name: loaders[name]() for name in self.report.filters}
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load report filters', is_mutation=False)
            return {}

    def get_form(self):
        data = self.request.GET.copy()
        if self.report.dated:
            data.setdefault('period', services.DEFAULT_PERIOD)
        return ReportFilterForm(
            data, choices=self.get_filter_choices(),
            filters=self.report.filters, dated=self.report.dated,
        )

    def get_cards(self, data):
        cards = []
        for path, label, kind in REPORT_CARDS[self.kind]:
            cards.append({'label': label, 'value': resolve(data, path) or 0, 'format': kind})
        return cards

    def get_tables(self, data):
        return [
            (title, DataTable(
                data.get(key) or [], columns, page_size=REPORT_ROWS,
                empty_message='No data for this period.',
            ))
            for key, title, columns in REPORT_TABLES[self.kind]
        ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        form = self.get_form()
        context.update({
            'title': f"{self.report.label} Report",
            'kind': self.kind,
            'tabs': report_tabs(self.request),
            'form': form,
            'report': None,
        })
        if not form.is_valid():
            return context

        try:
            data = services.get_report(self.request.api, self.kind, form.to_params())
        except ApiError as e:
            reraise_unauthorized(e)
            context['error'] = handle_api_error(
                self.request, e, default_message=f"Failed to load {self.report.label.lower()} report",
                is_mutation=False,
            )
            return context

        context['report'] = data
        context['period'] = resolve(data, 'summary.period')
        context['cards'] = self.get_cards(data)
        context['tables'] = self.get_tables(data)
        return context


# ====================================
# COMMISSIONS
# ====================================

class CommissionListView(RemoteListView):
    title = 'Commissions'
    entity_label = 'Commission'
    resource = services.commissions
    list_url_name = 'reports:commission-list'
    permission_required = COMMISSIONS['read']
    template_name = 'reports/commission_list.html'
    server_paginated = False
    search_enabled = False
    filters = ('salespersonId', 'status', 'startDate', 'endDate')
    columns = [
        Column('createdAt', 'Date', template=DATE),
        Column('salesperson', 'Salesperson', sortable=False),
        Column('sale.customer', 'Customer', sortable=False),
        Column('saleAmount', 'Sale amount', template=MONEY, css_class='text-end'),
        Column('commissionRate', 'Rate', css_class='text-end'),
        Column('commissionAmount', 'Commission', template=MONEY, css_class='text-end'),
        Column('status', 'Status', template=STATUS),
        Column('paidDate', 'Paid on', template=DATE),
        Column('id', 'Action', template='reports/cells/pay.html', sortable=False, hideable=False, css_class='text-end'),
    ]

    def fetch_rows(self, search=None, salespersonId=None, status=None, startDate=None, endDate=None):
        return services.list_commissions(
            self.request.api,
            salesperson_id=salespersonId, status=status, start_date=startDate, end_date=endDate,
        )

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['status_choices'] = services.COMMISSION_STATUS_CHOICES
        context['can_pay'] = request_can(self.request, COMMISSIONS['pay'])
        return context


class CommissionPayView(PermissionRequiredMixin, FormView):
    """Mark a pending commission as paid."""

    template_name = 'reports/commission_pay.html'
    form_class = CommissionPayForm
    permission_required = COMMISSIONS['pay']

    def get_commission(self):
        if not hasattr(self, '_commission'):
            self._commission = services.commissions.get(self.request.api, self.kwargs['pk'])
        return self._commission

    def load_failed(self):
        try:
            commission = self.get_commission()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load commission', is_mutation=False)
            return redirect('reports:commission-list')
        if not commission:
            messages.error(self.request, 'Commission not found')
            return redirect('reports:commission-list')
        if commission.get('status') != 'PENDING':
            messages.error(self.request, 'Only pending commissions can be paid')
            return redirect('reports:commission-list')
        return None

    def get(self, request, *args, **kwargs):
        return self.load_failed() or super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.load_failed() or super().post(request, *args, **kwargs)

    def form_valid(self, form):
        try:
            services.pay_commission(self.request.api, self.kwargs['pk'], form.to_payload())
        except ApiError as e:
            reraise_unauthorized(e)
            message = handle_api_error(self.request, e, default_message='Failed to pay commission', is_mutation=True)
            if wants_json(self.request):
                return JsonResponse({'success': False, 'message': message}, status=e.status or 502)
            form.add_error(None, message)
            return self.form_invalid(form)

        message = 'Commission marked as paid'
        handle_api_success(self.request, message)
        if wants_json(self.request):
            return JsonResponse({'success': True, 'message': message})
        return redirect('reports:commission-list')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Pay Commission'
        context['commission'] = self.get_commission()
        return context
