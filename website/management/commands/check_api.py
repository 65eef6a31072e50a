from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from website.services.api_client import ApiError, PharmacyAPIClient
from website.utils.envelopes import unwrap_collection


class Command(BaseCommand):
    help = 'Check that the pharmacy API is reachable and (optionally) that a token is accepted'

    def add_arguments(self, parser):
        parser.add_argument('--token', help='Access token used for an authenticated check')
        parser.add_argument('--path', default='/permissions/me', help='Authenticated endpoint to call')

    def handle(self, *args, **options):
        base_url = settings.PHARMACY_API['BASE_URL']
        self.stdout.write(self.style.WARNING(f"Checking {base_url} ..."))

        client = PharmacyAPIClient(token=options.get('token'))
        try:
            client.request('GET', '/', raw=True)
            self.stdout.write(self.style.SUCCESS('✓ API reachable'))
        except ApiError as e:
            if e.is_network_error:
                raise CommandError(f"API unreachable: {e.message}")
            # Any HTTP answer means the server is up
            self.stdout.write(self.style.SUCCESS(f"✓ API reachable (HTTP {e.status})"))

        if not options.get('token'):
            return

        try:
            body = client.get(options['path'])
        except ApiError as e:
            raise CommandError(f"Authenticated check failed ({e.status}): {e.message}")

        page = unwrap_collection(body)
        self.stdout.write(self.style.SUCCESS(
            f"✓ Token accepted on {options['path']} ({page.total} item(s))"
        ))
