"""Inventory endpoints: catalogue lookups, products, batches and medicines."""

import logging

from website.services.resources import RemoteResource
from website.utils.envelopes import is_success_response, unwrap_collection, unwrap_list, unwrap_record

logger = logging.getLogger(__name__)

# ====================================
# RESOURCES
# ====================================

categories = RemoteResource('/categories', label='Category')
manufacturers = RemoteResource('/manufacturers', label='Manufacturer')
products = RemoteResource('/products', label='Product')
batches = RemoteResource('/batches', label='Batch', paginated=False)
medicines = RemoteResource('/medicines', label='Medicine')
uoms = RemoteResource('/uoms', collection_key='data', label='Unit of measure')
unit_categories = RemoteResource('/unit-categories', collection_key='data', label='Unit category')

# Lookups load every row at once
LOOKUP_LIMIT = 1000


def choices(records, label_key='name'):
    """(id, label) pairs for a picker field."""
    return [(str(record['id']), record.get(label_key) or str(record['id'])) for record in records if record.get('id')]


# ====================================
# UNITS OF MEASURE
# ====================================

def list_uoms(client, page=1, limit=20, q=None, unit_category_id=None):
    params = {'page': page, 'limit': limit, 'q': q, 'unitCategoryId': unit_category_id}
    return unwrap_collection(client.get(uoms.path, params=params), uoms.collection_key)


def all_uoms(client, unit_category_id=None):
    return list_uoms(client, page=1, limit=LOOKUP_LIMIT, unit_category_id=unit_category_id).items


def list_unit_categories(client, page=1, limit=20, q=None):
    params = {'page': page, 'limit': limit, 'q': q}
    return unwrap_collection(client.get(unit_categories.path, params=params), unit_categories.collection_key)


def all_unit_categories(client):
    return list_unit_categories(client, page=1, limit=LOOKUP_LIMIT).items


def base_units_by_category(uom_records):
    """unit category id -> the unit flagged as that category's base."""
    base_units = {}
    for uom in uom_records:
        category = uom.get('unitCategory')
        category_id = uom.get('unitCategoryId') or (category.get('id') if isinstance(category, dict) else None)
        if uom.get('baseUnit') and category_id:
            base_units[str(category_id)] = uom
    return base_units


def all_categories(client):
    return categories.list(client, page=1, limit=LOOKUP_LIMIT).items


def all_manufacturers(client):
    return manufacturers.list(client, page=1, limit=LOOKUP_LIMIT).items


def all_products(client, search=None):
    return products.list(client, page=1, limit=LOOKUP_LIMIT, search=search).items


# ====================================
# PRODUCTS
# ====================================

def upload_product_image(client, product_id, image):
    response = client.upload(products.detail_path(product_id, 'image'), image, field_name='file')
    logger.info(f"Uploaded image for product {product_id}")
    return unwrap_record(response)


def get_bin_card(client, product_id, **params):
    """Stock movement ledger of one product, oldest first."""
    response = client.get(products.detail_path(product_id, 'bin-card'), params=params)
    return unwrap_list(response, 'entries')


def import_products(client, upload):
    """
    Bulk-create products from an Excel sheet.

    Returns ``{success, failed, errors, products}`` where success/failed are
    row counts.
    """
    response = client.upload(f"{products.path}/import/simple", upload, field_name='file')
    # Import results carry an integer "success" count of their own
    result = response['data'] if is_success_response(response) else response
    result = result if isinstance(result, dict) else {}
    summary = {
        'success': result['success'] if isinstance(result.get('success'), int) else 0,
        'failed': result.get('failed', 0) or 0,
        'errors': result.get('errors') or [],
        'products': result.get('products') or [],
    }
    logger.info(f"Product import: {summary['success']} created, {summary['failed']} failed")
    return summary


def download_import_template(client):
    return client.download(f"{products.path}/import/template")


# ====================================
# BATCHES
# ====================================

def list_batches(client, product_id=None, supplier_id=None, expired_only=None):
    params = {
        'productId': product_id,
        'supplierId': supplier_id,
        'expiredOnly': None if expired_only is None else str(bool(expired_only)).lower(),
    }
    return unwrap_list(client.get(batches.path, params=params), 'batches')


def available_batches(client, product_id, quantity=None):
    """Batches of a product that can still cover ``quantity`` units."""
    response = client.get(f"{batches.path}/product/{product_id}/available", params={'quantity': quantity})
    return unwrap_list(response, 'batches')
