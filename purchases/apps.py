from django.apps import AppConfig


class PurchasesConfig(AppConfig):
    """
    Configuration for the Purchases application.

    Suppliers (licensed or walk-in) and purchase invoices with their
    received line items, all stored by the remote pharmacy API.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'purchases'
    verbose_name = 'Purchasing'
