from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """
    Configuration for the Inventory application.

    This app manages the pharmacy's catalogue through the remote API:
    - Categories and manufacturers
    - Products (with image upload, bin card and Excel import)
    - Batches and medicines (expiry / manufacturing dates)
    - Units of measure and unit categories (read-only lookups)

    It also serves the JSON product/batch lookups used by the sale,
    quotation and purchase line-item pickers.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inventory'
    verbose_name = 'Inventory Management'
