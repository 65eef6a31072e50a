"""
Permission codes and checks.

Codes follow the ``<resource>.<action>`` convention of the pharmacy API
(``customers.read``, ``credits.pay``...). Users with the ADMIN role bypass
every check.
"""

from rest_framework.permissions import BasePermission

from website.session import get_current_user, get_permissions, is_authenticated

ADMIN_ROLE = 'ADMIN'

PERMISSIONS_MANAGE = 'permissions.manage'

DASHBOARD_VIEW = 'dashboard.view'
NOTIFICATIONS_READ = 'notifications.read'


def crud(resource):
    return {
        'read': f"{resource}.read",
        'create': f"{resource}.create",
        'update': f"{resource}.update",
        'delete': f"{resource}.delete",
    }


USERS = crud('users')
CATEGORIES = crud('categories')
MANUFACTURERS = crud('manufacturers')
PRODUCTS = dict(crud('products'), **{'import': 'products.import'})
UOMS = crud('uoms')
UNIT_CATEGORIES = crud('unitCategories')
BATCHES = crud('batches')
CUSTOMERS = crud('customers')
SUPPLIERS = crud('suppliers')
SALES = crud('sales')
PURCHASES = crud('purchases')
QUOTATIONS = dict(crud('quotations'), accept='quotations.accept')
PAYMENT_METHODS = crud('paymentMethods')
PAYMENTS = {'read': 'payments.read', 'delete': 'payments.delete'}
CREDITS = dict(crud('credits'), pay='credits.pay')
COMMISSIONS = dict(crud('commissions'), pay='commissions.pay')
REPORTS = {kind: f"reports.{kind}" for kind in ('sales', 'purchases', 'inventory', 'financial', 'commissions', 'products')}
SETTINGS = {'read': 'settings.read', 'update': 'settings.update'}


def user_roles(user):
    if not user:
        return set()
    roles = set(user.get('roles') or [])
    if user.get('role'):
        roles.add(user['role'])
    return roles


def is_admin(user):
    return ADMIN_ROLE in user_roles(user)


def has_permission(user_permissions, required, require_all=False):
    if not user_permissions:
        return False
    required = [required] if isinstance(required, str) else list(required)
    if require_all:
        return all(code in user_permissions for code in required)
    return any(code in user_permissions for code in required)


def can_perform_action(user, user_permissions, required, require_all=False):
    if not required:
        return True
    if is_admin(user):
        return True
    return has_permission(user_permissions, required, require_all)


def request_can(request, required, require_all=False):
    return can_perform_action(get_current_user(request), get_permissions(request), required, require_all)


class HasDashboardSession(BasePermission):
    """DRF permission: the caller holds a dashboard session with an API token."""

    message = 'Authentication required. Please log in.'

    def has_permission(self, request, view):
        if not is_authenticated(request):
            return False
        required = getattr(view, 'permission_required', None)
        return request_can(request, required) if required else True
