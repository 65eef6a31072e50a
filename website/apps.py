from django.apps import AppConfig


class WebsiteConfig(AppConfig):
    """
    Core of the pharmacy dashboard.

    Provides everything the entity apps build on:
    - PharmacyAPIClient and the response envelope helpers
    - Session storage for API tokens, the current user and permissions
    - DashboardSessionMiddleware (login redirect, 401 handling)
    - Generic list/detail/form/delete views over remote resources
    - Dashboard home, account and notifications pages
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'website'
    verbose_name = 'Pharmacy Dashboard'
