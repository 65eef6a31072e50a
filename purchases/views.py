import logging

from inventory import services as inventory
from purchases import services
from purchases.forms import PURCHASE_STATUS_CHOICES, PurchaseForm, PurchaseItemFormSet, SupplierForm
from website.mixins import (
    LineItemsMixin,
    RemoteDeleteView,
    RemoteDetailView,
    RemoteFormView,
    RemoteListView,
)
from website.permissions import PURCHASES, SUPPLIERS
from website.utils.tables import Column, DataTable

logger = logging.getLogger(__name__)

MONEY = 'website/cells/money.html'
DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'


# ====================================
# SUPPLIERS
# ====================================

class SupplierMixin:
    resource = services.suppliers
    entity_label = 'Supplier'
    list_url_name = 'purchases:supplier-list'
    create_url_name = 'purchases:supplier-create'
    detail_url_name = 'purchases:supplier-detail'
    update_url_name = 'purchases:supplier-update'
    delete_url_name = 'purchases:supplier-delete'
    create_permission = SUPPLIERS['create']
    update_permission = SUPPLIERS['update']
    delete_permission = SUPPLIERS['delete']


class SupplierListView(SupplierMixin, RemoteListView):
    title = 'Suppliers'
    permission_required = SUPPLIERS['read']
    columns = [
        Column('name', 'Name', link=True),
        Column('contact', 'Contact', sortable=False),
        Column('email', 'Email'),
        Column('supplierType', 'Type', template=STATUS),
        Column('tinNumber', 'TIN', visible=False),
        Column('licenseExpiryDate', 'License Expiry', template=DATE, visible=False),
    ]


class SupplierDetailView(SupplierMixin, RemoteDetailView):
    permission_required = SUPPLIERS['read']
    fields = [
        ('name', 'Name'),
        ('contact', 'Contact'),
        ('email', 'Email'),
        ('address', 'Address'),
        ('supplierType', 'Type'),
        ('tinNumber', 'TIN number'),
        ('licenseIssueDate', 'License issued'),
        ('licenseExpiryDate', 'License expires'),
    ]


class SupplierFormView(SupplierMixin, RemoteFormView):
    form_class = SupplierForm


class SupplierDeleteView(SupplierMixin, RemoteDeleteView):
    pass


# ====================================
# PURCHASES
# ====================================

class PurchaseMixin:
    resource = services.purchases
    entity_label = 'Purchase'
    list_url_name = 'purchases:purchase-list'
    create_url_name = 'purchases:purchase-create'
    detail_url_name = 'purchases:purchase-detail'
    update_url_name = 'purchases:purchase-update'
    delete_url_name = 'purchases:purchase-delete'
    create_permission = PURCHASES['create']
    update_permission = PURCHASES['update']
    delete_permission = PURCHASES['delete']


class PurchaseListView(PurchaseMixin, RemoteListView):
    title = 'Purchases'
    template_name = 'purchases/purchase_list.html'
    permission_required = PURCHASES['read']
    filters = ('status', 'supplierId')
    columns = [
        Column('invoiceNo', 'Invoice No', link=True),
        Column('supplier', 'Supplier', sortable=False),
        Column('date', 'Date', template=DATE),
        Column('totalAmount', 'Total', template=MONEY, css_class='text-end'),
        Column('status', 'Status', template=STATUS),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['status_choices'] = PURCHASE_STATUS_CHOICES
        return context


class PurchaseDetailView(PurchaseMixin, RemoteDetailView):
    template_name = 'purchases/purchase_detail.html'
    permission_required = PURCHASES['read']
    fields = [
        ('invoiceNo', 'Invoice number'),
        ('supplier', 'Supplier'),
        ('date', 'Date'),
        ('status', 'Status'),
        ('notes', 'Notes'),
    ]
    item_columns = [
        Column('product', 'Product'),
        Column('batchNumber', 'Batch'),
        Column('expiryDate', 'Expiry', template=DATE),
        Column('uom', 'Unit'),
        Column('quantity', 'Qty', css_class='text-end'),
        Column('unitCost', 'Unit Cost', template=MONEY, css_class='text-end'),
        Column('totalCost', 'Total', template=MONEY, css_class='text-end'),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        record = context.get('object')
        if record:
            context['items_table'] = DataTable(record.get('items') or [], self.item_columns, page_size=100)
            context['total'] = services.purchase_total(record)
        return context


class PurchaseFormView(PurchaseMixin, LineItemsMixin, RemoteFormView):
    form_class = PurchaseForm
    item_formset_class = PurchaseItemFormSet

    def get_choices(self):
        api = self.request.api
        uoms = [(str(uom['id']), uom.get('abbreviation') or uom.get('name')) for uom in inventory.all_uoms(api)]
        return {
            'supplier_id': inventory.choices(services.all_suppliers(api)),
            'product_id': inventory.choices(inventory.all_products(api)),
            'uom_id': uoms,
        }

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('status', 'PENDING')
        return initial


class PurchaseDeleteView(PurchaseMixin, RemoteDeleteView):
    pass
