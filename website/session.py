# website/session.py
"""
Dashboard session: the API tokens, the signed-in user's profile and their
permission codes, kept in ``request.session``.
"""

import logging

from website.utils.envelopes import unwrap_data

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = 'accessToken'
REFRESH_TOKEN_KEY = 'refreshToken'
USER_KEY = 'user'
PERMISSIONS_KEY = 'permissions'


def _auth_payload(response):
    payload = unwrap_data(response)
    return payload if isinstance(payload, dict) else {}


def store_tokens(request, response):
    """Persist the tokens of an auth response (signin/signup/refresh)."""
    payload = _auth_payload(response)
    tokens = payload.get('tokens') if isinstance(payload.get('tokens'), dict) else payload
    access = tokens.get('accessToken')
    if access:
        request.session[ACCESS_TOKEN_KEY] = access
    refresh = tokens.get('refreshToken')
    if refresh:
        request.session[REFRESH_TOKEN_KEY] = refresh
    if isinstance(payload.get('user'), dict):
        request.session[USER_KEY] = payload['user']
    return access


def store_session(request, response, permissions=None):
    """Start a dashboard session from a sign-in/sign-up response."""
    request.session.cycle_key()
    access = store_tokens(request, response)
    if permissions is not None:
        store_permissions(request, permissions)
    user = get_current_user(request) or {}
    logger.info(f"Session started for {user.get('email', 'unknown user')}")
    return access


def store_user(request, user):
    if isinstance(user, dict):
        current = dict(request.session.get(USER_KEY) or {})
        current.update(user)
        request.session[USER_KEY] = current


def store_permissions(request, codes):
    request.session[PERMISSIONS_KEY] = sorted({code for code in codes or [] if isinstance(code, str)})


def clear_session(request):
    user = get_current_user(request) or {}
    request.session.flush()
    if user:
        logger.info(f"Session cleared for {user.get('email', 'unknown user')}")


def get_access_token(request):
    return request.session.get(ACCESS_TOKEN_KEY)


def get_refresh_token(request):
    return request.session.get(REFRESH_TOKEN_KEY)


def get_current_user(request):
    return request.session.get(USER_KEY)


def get_permissions(request):
    return request.session.get(PERMISSIONS_KEY) or []


def is_authenticated(request):
    return bool(get_access_token(request))
