import logging

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import redirect
from django.views import View
from django.views.generic import FormView, TemplateView

from inventory import services
from inventory.forms import (
    BatchForm,
    CategoryForm,
    ManufacturerForm,
    MedicineForm,
    ProductForm,
    ProductImportForm,
    UnitCategoryForm,
    UomForm,
)
from inventory.utils.uom import convert_from_base, format_quantity_with_uom, is_base_unit
from purchases.services import all_suppliers
from website.mixins import (
    PermissionRequiredMixin,
    RemoteDeleteView,
    RemoteDetailView,
    RemoteFormView,
    RemoteListView,
    reraise_unauthorized,
)
from website.permissions import (
    BATCHES,
    CATEGORIES,
    MANUFACTURERS,
    PRODUCTS,
    UNIT_CATEGORIES,
    UOMS,
    request_can,
)
from website.services.api_client import ApiError
from website.utils.api_errors import handle_api_error, handle_api_success
from website.utils.tables import Column, DataTable

logger = logging.getLogger(__name__)

MONEY = 'website/cells/money.html'
DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'

PRODUCT_STATUSES = [
    ('ACTIVE', 'Active'),
    ('INACTIVE', 'Inactive'),
]


# ====================================
# CATEGORIES
# ====================================

class CategoryMixin:
    resource = services.categories
    entity_label = 'Category'
    list_url_name = 'inventory:category-list'
    create_url_name = 'inventory:category-create'
    update_url_name = 'inventory:category-update'
    delete_url_name = 'inventory:category-delete'
    create_permission = CATEGORIES['create']
    update_permission = CATEGORIES['update']
    delete_permission = CATEGORIES['delete']


class CategoryListView(CategoryMixin, RemoteListView):
    title = 'Categories'
    permission_required = CATEGORIES['read']
    detail_template = 'inventory/category_drawer.html'
    columns = [
        Column('name', 'Name', link=True),
        Column('description', 'Description', sortable=False),
        Column('createdAt', 'Created', template=DATE),
    ]


class CategoryFormView(CategoryMixin, RemoteFormView):
    form_class = CategoryForm


class CategoryDeleteView(CategoryMixin, RemoteDeleteView):
    pass


# ====================================
# MANUFACTURERS
# ====================================

class ManufacturerMixin:
    resource = services.manufacturers
    entity_label = 'Manufacturer'
    list_url_name = 'inventory:manufacturer-list'
    create_url_name = 'inventory:manufacturer-create'
    update_url_name = 'inventory:manufacturer-update'
    delete_url_name = 'inventory:manufacturer-delete'
    create_permission = MANUFACTURERS['create']
    update_permission = MANUFACTURERS['update']
    delete_permission = MANUFACTURERS['delete']


class ManufacturerListView(ManufacturerMixin, RemoteListView):
    title = 'Manufacturers'
    permission_required = MANUFACTURERS['read']
    columns = [
        Column('name', 'Name'),
        Column('contact', 'Contact', sortable=False),
        Column('address', 'Address', sortable=False),
    ]


class ManufacturerFormView(ManufacturerMixin, RemoteFormView):
    form_class = ManufacturerForm


class ManufacturerDeleteView(ManufacturerMixin, RemoteDeleteView):
    pass


# ====================================
# PRODUCTS
# ====================================

class ProductMixin:
    resource = services.products
    entity_label = 'Product'
    list_url_name = 'inventory:product-list'
    create_url_name = 'inventory:product-create'
    detail_url_name = 'inventory:product-detail'
    update_url_name = 'inventory:product-update'
    delete_url_name = 'inventory:product-delete'
    create_permission = PRODUCTS['create']
    update_permission = PRODUCTS['update']
    delete_permission = PRODUCTS['delete']


class ProductListView(ProductMixin, RemoteListView):
    title = 'Products'
    template_name = 'inventory/product_list.html'
    permission_required = PRODUCTS['read']
    filters = ('status',)
    columns = [
        Column('productCode', 'Code'),
        Column('name', 'Name', link=True),
        Column('genericName', 'Generic Name'),
        Column('category', 'Category', sortable=False),
        Column('quantity', 'Stock', css_class='text-end'),
        Column('minLevel', 'Min Level', css_class='text-end'),
        Column('sellingPrice', 'Selling Price', template=MONEY, css_class='text-end'),
        Column('status', 'Status', template=STATUS),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['can_import'] = request_can(self.request, PRODUCTS['import'])
        context['status_choices'] = PRODUCT_STATUSES
        return context


class ProductDetailView(ProductMixin, RemoteDetailView):
    template_name = 'inventory/product_detail.html'
    permission_required = PRODUCTS['read']
    fields = [
        ('productCode', 'Product code'),
        ('name', 'Name'),
        ('genericName', 'Generic name'),
        ('category', 'Category'),
        ('unitCategory', 'Unit category'),
        ('manufacturer', 'Manufacturer'),
        ('defaultUom', 'Default unit'),
        ('purchaseUom', 'Purchase unit'),
        ('quantity', 'Quantity in stock'),
        ('minLevel', 'Minimum level'),
        ('purchasePrice', 'Purchase price'),
        ('sellingPrice', 'Selling price'),
        ('status', 'Status'),
        ('description', 'Description'),
    ]

    batch_columns = [
        Column('batchNumber', 'Batch'),
        Column('expiryDate', 'Expiry', template=DATE),
        Column('quantity', 'Quantity', css_class='text-end'),
        Column('sellingPrice', 'Selling Price', template=MONEY, css_class='text-end'),
    ]

    def get_detail_fields(self, record):
        fields = super().get_detail_fields(record)
        if record.get('quantity') is None:
            return fields
        uom = record.get('defaultUom') if isinstance(record.get('defaultUom'), dict) else None
        # stock is held in base units
        stock = format_quantity_with_uom(convert_from_base(record['quantity'], uom), uom)
        return [(label, stock if label == 'Quantity in stock' else value) for label, value in fields]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        record = context.get('object') or {}
        context['batches_table'] = DataTable(
            record.get('batches') or [], self.batch_columns, page_size=50,
            empty_message='No batches recorded for this product.',
        )
        return context


class ProductFormView(ProductMixin, RemoteFormView):
    form_class = ProductForm
    image = None

    def get_choices(self):
        api = self.request.api
        uoms = [
            (str(uom['id']), f"{uom.get('name')} ({uom['abbreviation']})" if uom.get('abbreviation') else uom.get('name'))
            for uom in services.all_uoms(api)
        ]
        return {
            'category_id': services.choices(services.all_categories(api)),
            'unit_category_id': services.choices(services.all_unit_categories(api)),
            'manufacturer_id': services.choices(services.all_manufacturers(api)),
            'default_uom_id': uoms,
            'purchase_uom_id': uoms,
        }

    def form_valid(self, form):
        self.image = form.cleaned_data.get('image')
        return super().form_valid(form)

    def save(self, payload):
        record = super().save(payload)
        if self.image:
            product_id = self.kwargs.get('pk') or (record or {}).get('id')
            try:
                services.upload_product_image(self.request.api, product_id, self.image)
            except ApiError as e:
                reraise_unauthorized(e)
                handle_api_error(self.request, e, default_message='Product saved, but the image upload failed')
        return record


class ProductDeleteView(ProductMixin, RemoteDeleteView):
    pass


class ProductImageView(PermissionRequiredMixin, View):
    permission_required = PRODUCTS['update']

    def post(self, request, pk):
        image = request.FILES.get('file')
        if image is None:
            messages.error(request, 'Please choose an image to upload')
        else:
            try:
                services.upload_product_image(request.api, pk, image)
                handle_api_success(request, 'Product image updated successfully')
            except ApiError as e:
                reraise_unauthorized(e)
                handle_api_error(request, e, default_message='Failed to upload image')
        return redirect('inventory:product-detail', pk=pk)


class BinCardView(PermissionRequiredMixin, TemplateView):
    """Stock card of one product: every movement in and out with the running balance."""

    template_name = 'inventory/bin_card.html'
    permission_required = PRODUCTS['read']
    columns = [
        Column('date', 'Date', template=DATE),
        Column('documentNo', 'Document No'),
        Column('entityName', 'From / To'),
        Column('batch.batchNumber', 'Batch'),
        Column('quantityIn', 'In', css_class='text-end'),
        Column('quantityOut', 'Out', css_class='text-end'),
        Column('lossAdjustment', 'Loss / Adj.', css_class='text-end'),
        Column('balance', 'Balance', css_class='text-end'),
        Column('unitPrice', 'Unit Price', template=MONEY, css_class='text-end'),
        Column('remark', 'Remark', sortable=False),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        api = self.request.api
        pk = self.kwargs['pk']
        try:
            context['product'] = services.products.get(api, pk)
            entries = services.get_bin_card(
                api, pk,
                startDate=self.request.GET.get('start') or None,
                endDate=self.request.GET.get('end') or None,
            )
            context['table'] = DataTable.from_request(
                self.request, entries, self.columns,
                base_params={'start': self.request.GET.get('start', ''), 'end': self.request.GET.get('end', '')},
            )
        except ApiError as e:
            reraise_unauthorized(e)
            context['table'] = DataTable(
                [], self.columns, error=handle_api_error(self.request, e, is_mutation=False)
            )
        context['title'] = 'Bin Card'
        return context


class ProductImportView(PermissionRequiredMixin, FormView):
    template_name = 'inventory/product_import.html'
    form_class = ProductImportForm
    permission_required = PRODUCTS['import']

    def form_valid(self, form):
        try:
            result = services.import_products(self.request.api, form.cleaned_data['file'])
        except ApiError as e:
            reraise_unauthorized(e)
            form.add_error(None, handle_api_error(self.request, e, default_message='Import failed'))
            return self.form_invalid(form)

        if result['failed']:
            messages.warning(self.request, f"Imported {result['success']} product(s); {result['failed']} row(s) failed")
        else:
            handle_api_success(self.request, f"Imported {result['success']} product(s) successfully")
        return self.render_to_response(self.get_context_data(form=ProductImportForm(), result=result))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Import Products'
        return context


class ProductImportTemplateView(PermissionRequiredMixin, View):
    permission_required = PRODUCTS['import']

    def get(self, request):
        try:
            content, content_type, filename = services.download_import_template(request.api)
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(request, e, default_message='Failed to download template')
            return redirect('inventory:product-import')

        response = HttpResponse(content, content_type=content_type)
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response


# ====================================
# BATCHES
# ====================================

class BatchMixin:
    resource = services.batches
    entity_label = 'Batch'
    list_url_name = 'inventory:batch-list'
    create_url_name = 'inventory:batch-create'
    update_url_name = 'inventory:batch-update'
    delete_url_name = 'inventory:batch-delete'
    create_permission = BATCHES['create']
    update_permission = BATCHES['update']
    delete_permission = BATCHES['delete']


class BatchListView(BatchMixin, RemoteListView):
    title = 'Batches'
    template_name = 'inventory/batch_list.html'
    permission_required = BATCHES['read']
    server_paginated = False
    search_enabled = False
    filters = ('productId', 'supplierId', 'expiredOnly')
    columns = [
        Column('batchNumber', 'Batch'),
        Column('product', 'Product'),
        Column('supplier', 'Supplier'),
        Column('expiryDate', 'Expiry', template=DATE),
        Column('quantity', 'Quantity', css_class='text-end'),
        Column('purchasePrice', 'Purchase Price', template=MONEY, css_class='text-end'),
        Column('sellingPrice', 'Selling Price', template=MONEY, css_class='text-end'),
    ]

    def fetch_rows(self, search=None, productId=None, supplierId=None, expiredOnly=None):
        return services.list_batches(
            self.request.api,
            product_id=productId,
            supplier_id=supplierId,
            expired_only=True if expiredOnly == 'true' else None,
        )


class BatchFormView(BatchMixin, RemoteFormView):
    form_class = BatchForm

    def get_choices(self):
        api = self.request.api
        return {
            'product_id': services.choices(services.all_products(api)),
            'supplier_id': services.choices(all_suppliers(api)),
        }

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update() and self.request.GET.get('product'):
            initial['product_id'] = self.request.GET['product']
        return initial


class BatchDeleteView(BatchMixin, RemoteDeleteView):
    pass


# ====================================
# MEDICINES
# ====================================

class MedicineMixin:
    resource = services.medicines
    entity_label = 'Medicine'
    list_url_name = 'inventory:medicine-list'
    create_url_name = 'inventory:medicine-create'
    update_url_name = 'inventory:medicine-update'
    delete_url_name = 'inventory:medicine-delete'
    create_permission = BATCHES['create']
    update_permission = BATCHES['update']
    delete_permission = BATCHES['delete']


class MedicineListView(MedicineMixin, RemoteListView):
    title = 'Medicines'
    permission_required = BATCHES['read']
    columns = [
        Column('name', 'Name'),
        Column('category', 'Category', sortable=False),
        Column('quantity', 'Quantity', css_class='text-end'),
        Column('costPrice', 'Cost Price', template=MONEY, css_class='text-end'),
        Column('sellingPrice', 'Selling Price', template=MONEY, css_class='text-end'),
        Column('manufacturingDate', 'Manufactured', template=DATE),
        Column('expiryDate', 'Expiry', template=DATE),
        Column('barcode', 'Barcode', visible=False),
    ]


class MedicineFormView(MedicineMixin, RemoteFormView):
    form_class = MedicineForm

    def get_choices(self):
        return {'category_id': services.choices(services.all_categories(self.request.api))}


class MedicineDeleteView(MedicineMixin, RemoteDeleteView):
    pass




# ====================================
# UNITS OF MEASURE
# ====================================

BOOLEAN = 'website/cells/boolean.html'


class UnitCategoryMixin:
    resource = services.unit_categories
    entity_label = 'Unit category'
    list_url_name = 'inventory:unit-category-list'
    create_url_name = 'inventory:unit-category-create'
    update_url_name = 'inventory:unit-category-update'
    delete_url_name = 'inventory:unit-category-delete'
    create_permission = UNIT_CATEGORIES['create']
    update_permission = UNIT_CATEGORIES['update']
    delete_permission = UNIT_CATEGORIES['delete']


class UnitCategoryListView(UnitCategoryMixin, RemoteListView):
    title = 'Unit Categories'
    permission_required = UNIT_CATEGORIES['read']
    columns = [
        Column('name', 'Name'),
        Column('description', 'Description', sortable=False),
    ]

    def fetch_page(self, page, limit, search=None, sort_by=None, sort_order=None, **filters):
        return services.list_unit_categories(self.request.api, page=page, limit=limit, q=search)


class UnitCategoryFormView(UnitCategoryMixin, RemoteFormView):
    form_class = UnitCategoryForm


class UnitCategoryDeleteView(UnitCategoryMixin, RemoteDeleteView):
    pass


class UomMixin:
    resource = services.uoms
    entity_label = 'Unit of measure'
    list_url_name = 'inventory:uom-list'
    create_url_name = 'inventory:uom-create'
    update_url_name = 'inventory:uom-update'
    delete_url_name = 'inventory:uom-delete'
    create_permission = UOMS['create']
    update_permission = UOMS['update']
    delete_permission = UOMS['delete']


class UomListView(UomMixin, RemoteListView):
    title = 'Units of Measure'
    template_name = 'inventory/uom_list.html'
    permission_required = UOMS['read']
    filters = ('unitCategoryId',)
    columns = [
        Column('name', 'Name'),
        Column('abbreviation', 'Abbreviation'),
        Column('unitCategory', 'Unit Category', sortable=False),
        Column('conversionRate', 'Conversion Rate', css_class='text-end'),
        Column('baseUnit', 'Base Unit', accessor=is_base_unit, template=BOOLEAN, sortable=False),
    ]

    def fetch_page(self, page, limit, search=None, sort_by=None, sort_order=None, unitCategoryId=None):
        return services.list_uoms(self.request.api, page=page, limit=limit, q=search, unit_category_id=unitCategoryId)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        try:
            context['unit_category_choices'] = services.choices(services.all_unit_categories(self.request.api))
        except ApiError as e:
            reraise_unauthorized(e)
            logger.warning(f"Unit category filter unavailable: {e.message}")
            context['unit_category_choices'] = []
        return context


class UomFormView(UomMixin, RemoteFormView):
    form_class = UomForm

    def get_choices(self):
        api = self.request.api
        self.base_units = services.base_units_by_category(services.all_uoms(api))
        return {'unit_category_id': services.choices(services.all_unit_categories(api))}

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs['base_units'] = getattr(self, 'base_units', {})
        kwargs['current_id'] = self.kwargs.get('pk')
        return kwargs

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('conversion_rate', 1)
            if self.request.GET.get('unitCategory'):
                initial['unit_category_id'] = self.request.GET['unitCategory']
        return initial

    def form_valid(self, form):
        replaced = form.replaced_base_unit
        response = super().form_valid(form)
        if replaced and response.status_code == 302:
            messages.warning(
                self.request,
                f"\"{replaced.get('name')}\" is no longer the base unit for this category.",
                fail_silently=True,
            )
        return response


class UomDeleteView(UomMixin, RemoteDeleteView):
    pass
