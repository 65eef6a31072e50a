from django.apps import AppConfig


class SalesConfig(AppConfig):
    """
    Configuration for the Sales application.

    Covers everything on the selling side of the pharmacy API:
    - Customers (licensed or walk-in)
    - Sales with line items and the printable sales voucher
    - Quotations, their acceptance, sale drafts and the requisition form
    - Payment methods
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'sales'
    verbose_name = 'Sales Management'
