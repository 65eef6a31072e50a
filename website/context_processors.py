from django.conf import settings
from django.urls import reverse

from website import permissions as perms
from website.permissions import can_perform_action
from website.session import get_current_user, get_permissions

# (label, url name, required permission codes)
NAVIGATION = [
    ('Overview', [
        ('Dashboard', 'website:home', None),
        ('Notifications', 'website:notifications', None),
    ]),
    ('Inventory', [
        ('Products', 'inventory:product-list', perms.PRODUCTS['read']),
        ('Medicines', 'inventory:medicine-list', perms.BATCHES['read']),
        ('Batches', 'inventory:batch-list', perms.BATCHES['read']),
        ('Categories', 'inventory:category-list', perms.CATEGORIES['read']),
        ('Manufacturers', 'inventory:manufacturer-list', perms.MANUFACTURERS['read']),
        ('Units of Measure', 'inventory:uom-list', perms.UOMS['read']),
        ('Unit Categories', 'inventory:unit-category-list', perms.UNIT_CATEGORIES['read']),
    ]),
    ('Sales', [
        ('Sales', 'sales:sale-list', perms.SALES['read']),
        ('Quotations', 'sales:quotation-list', perms.QUOTATIONS['read']),
        ('Customers', 'sales:customer-list', perms.CUSTOMERS['read']),
        ('Payment Methods', 'sales:payment-method-list', perms.PAYMENT_METHODS['read']),
    ]),
    ('Purchasing', [
        ('Purchases', 'purchases:purchase-list', perms.PURCHASES['read']),
        ('Suppliers', 'purchases:supplier-list', perms.SUPPLIERS['read']),
    ]),
    ('Finance', [
        ('Credits', 'credits:credit-list', perms.CREDITS['read']),
        ('Payments', 'credits:payment-list', perms.PAYMENTS['read']),
        ('Commissions', 'reports:commission-list', perms.COMMISSIONS['read']),
    ]),
    ('Reports', [
        ('Reports', 'reports:report-index', list(perms.REPORTS.values())),
    ]),
    ('Administration', [
        ('Users', 'users:user-list', perms.USERS['read']),
        ('Pharmacy Settings', 'website:pharmacy-settings', perms.SETTINGS['read']),
    ]),
]


def pharmacy(request):
    return {
        'pharmacy_company': settings.PHARMACY_COMPANY,
        'page_size_options': settings.PHARMACY_API['PAGE_SIZE_OPTIONS'],
    }


def dashboard_user(request):
    if not hasattr(request, 'session'):
        return {'dashboard_user': None, 'user_permissions': [], 'is_admin': False}

    user = get_current_user(request)
    return {
        'dashboard_user': user,
        'user_permissions': get_permissions(request),
        'is_admin': perms.is_admin(user),
    }


def navigation(request):
    """Sidebar sections, filtered down to what the signed-in user may open."""
    if not hasattr(request, 'session') or get_current_user(request) is None:
        return {'navigation': []}

    user = get_current_user(request)
    codes = get_permissions(request)
    current = request.path
    sections = []
    for label, items in NAVIGATION:
        links = []
        for item_label, url_name, required in items:
            if not can_perform_action(user, codes, required):
                continue
            url = reverse(url_name)
            links.append({
                'label': item_label,
                'url': url,
                'active': current == url or (url != '/' and current.startswith(url)),
            })
        if links:
            sections.append({'label': label, 'links': links})
    return {'navigation': sections}
