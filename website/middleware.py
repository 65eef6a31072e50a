# website/middleware.py
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect
from django.utils.functional import SimpleLazyObject

from website.services.api_client import ApiError, client_for_request
from website.session import clear_session, get_current_user, is_authenticated

logger = logging.getLogger(__name__)


def wants_json(request):
    return (
        request.headers.get('X-Requested-With') == 'XMLHttpRequest'
        or '/api/' in request.path
    )


def login_redirect(request):
    query = urlencode({'next': request.get_full_path()})
    return redirect(f"{settings.LOGIN_URL}?{query}")


class DashboardSessionMiddleware:
    """
    Binds every request to the dashboard session.

    - ``request.api``: a PharmacyAPIClient carrying the session's bearer token
    - ``request.pharmacy_user``: the signed-in user's profile (or None)

    Requests for dashboard pages without a session are sent to the login
    page; an ApiError with status 401 escaping a view ends the session.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def is_public(self, path):
        return any(path.startswith(prefix) for prefix in settings.DASHBOARD_PUBLIC_PATHS)

    def __call__(self, request):
        request.api = SimpleLazyObject(lambda: client_for_request(request))
        request.pharmacy_user = get_current_user(request)

        if not self.is_public(request.path) and not is_authenticated(request):
            if wants_json(request):
                return JsonResponse(
                    {'success': False, 'message': 'Authentication required. Please log in.'},
                    status=401,
                )
            return login_redirect(request)

        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ApiError) and exception.status == 401:
            logger.warning(f"API rejected session token on {request.path}; signing out")
            clear_session(request)
            if wants_json(request):
                return JsonResponse(
                    {'success': False, 'message': 'Session expired. Please sign in again.'},
                    status=401,
                )
            messages.error(request, 'Session expired. Please sign in again.', fail_silently=True)
            return login_redirect(request)
        return None
