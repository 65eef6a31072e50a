from django.apps import AppConfig


class CreditsConfig(AppConfig):
    """
    Configuration for the Credits application.

    Payables (owed to suppliers) and receivables (owed by customers),
    recording payments against them, and the payment history.
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'credits'
    verbose_name = 'Credits & Payments'
