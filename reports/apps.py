from django.apps import AppConfig


class ReportsConfig(AppConfig):
    """
    Configuration for the Reports application.

    Period reports computed by the API (sales, purchases, inventory,
    financial, commissions, product performance) and the salesperson
    commission ledger with its pay action.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'reports'
    verbose_name = 'Reports & Commissions'
