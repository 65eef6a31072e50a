# reports/services.py
import logging
from collections import namedtuple

from website.permissions import REPORTS
from website.services.resources import RemoteResource
from website.utils.envelopes import unwrap_data, unwrap_list, unwrap_record

logger = logging.getLogger(__name__)

# ====================================
# REPORTS
# ====================================

Report = namedtuple('Report', ['path', 'label', 'permission', 'dated', 'filters'])

REPORT_DEFINITIONS = {
    'sales': Report(
        '/reports/sales', 'Sales', REPORTS['sales'], True,
        ('customer_id', 'salesperson_id', 'category_id', 'product_id'),
    ),
    'purchases': Report(
        '/reports/purchases', 'Purchases', REPORTS['purchases'], True,
        ('supplier_id', 'category_id', 'product_id'),
    ),
    'inventory': Report('/reports/inventory', 'Inventory', REPORTS['inventory'], False, ()),
    'financial': Report('/reports/financial', 'Financial', REPORTS['financial'], True, ()),
    'commissions': Report(
        '/reports/commissions', 'Commissions', REPORTS['commissions'], True, ('salesperson_id',),
    ),
    'products': Report(
        '/reports/products', 'Products', REPORTS['products'], True, ('product_id', 'category_id'),
    ),
}

PERIOD_CHOICES = [
    ('day', 'Today'),
    ('week', 'This Week'),
    ('month', 'This Month'),
    ('year', 'This Year'),
    ('custom', 'Custom Range'),
]
DEFAULT_PERIOD = 'month'


def get_report(client, kind, params=None):
    """One report as a dict; an unexpected body gives an empty report."""
    report = REPORT_DEFINITIONS[kind]
    data = unwrap_record(client.get(report.path, params=params or None))
    if data is None:
        logger.warning(f"{report.path} returned no report body")
    return data or {}


# ====================================
# COMMISSIONS
# ====================================

commissions = RemoteResource('/commissions', label='Commission', paginated=False)

COMMISSION_STATUS_CHOICES = [
    ('PENDING', 'Pending'),
    ('PAID', 'Paid'),
    ('CANCELLED', 'Cancelled'),
]


def list_commissions(client, salesperson_id=None, status=None, start_date=None, end_date=None):
    params = {
        'salespersonId': salesperson_id,
        'status': status,
        'startDate': start_date,
        'endDate': end_date,
    }
    return unwrap_list(client.get(commissions.path, params=params), 'commissions')


def pay_commission(client, pk, payload):
    response = client.patch(commissions.detail_path(pk, 'pay'), json=payload)
    logger.info(f"Marked commission {pk} as paid")
    return unwrap_data(response)
