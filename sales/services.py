# sales/services.py
import logging

from website.services.resources import RemoteResource
from website.utils.envelopes import unwrap_data, unwrap_list, unwrap_record

logger = logging.getLogger(__name__)

customers = RemoteResource('/customers', label='Customer')
sales = RemoteResource('/sales', label='Sale', default_sort=('date', 'DESC'))
quotations = RemoteResource('/quotations', label='Quotation', paginated=False)
payment_methods = RemoteResource('/payment-methods', collection_key='paymentMethods', label='Payment method', paginated=False)


# ====================================
# CUSTOMERS
# ====================================

def all_customers(client, search=None):
    return customers.all(client, search=search)


# ====================================
# QUOTATIONS
# ====================================

def list_quotations(client, **params):
    """/quotations answers with a bare array; filters pass straight through."""
    return unwrap_list(client.get(quotations.path, params=params), 'quotations')


def accept_quotation(client, pk):
    response = client.post(quotations.detail_path(pk, 'accept'))
    logger.info(f"Accepted quotation {pk}")
    return unwrap_data(response)


def get_sale_draft(client, pk):
    """Sale header and items pre-filled from a quotation."""
    return unwrap_record(client.get(quotations.detail_path(pk, 'sale-draft'))) or {}


# ====================================
# PAYMENT METHODS
# ====================================

def list_payment_methods(client, include_inactive=True):
    params = {'includeInactive': 'true'} if include_inactive else {}
    methods = unwrap_list(client.get(payment_methods.path, params=params), payment_methods.collection_key)
    return sorted(methods, key=lambda method: (method.get('sortOrder') or 0, method.get('name') or ''))


# ====================================
# TOTALS
# ====================================

def line_total(quantity, unit_price, discount=0):
    """Sale / quotation line: quantity * unit price less the line discount."""
    return round(float(quantity or 0) * float(unit_price or 0) - float(discount or 0), 2)


def document_total(record):
    """Header total of a sale or quotation, summed from its lines when missing."""
    if record.get('totalAmount') is not None:
        return float(record['totalAmount'])
    total = 0.0
    for item in record.get('items') or []:
        if item.get('totalPrice') is not None:
            total += float(item['totalPrice'])
        else:
            total += line_total(item.get('quantity'), item.get('unitPrice'), item.get('discount'))
    return round(total, 2)
