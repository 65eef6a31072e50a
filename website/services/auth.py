"""Authentication and account endpoints."""

import logging

from website.services.api_client import PharmacyAPIClient
from website.utils.envelopes import unwrap_data, unwrap_record

logger = logging.getLogger(__name__)


def sign_in(email, password, client=None):
    client = client or PharmacyAPIClient()
    logger.info(f"Sign-in attempt for {email}")
    return client.post('/signin', json={'email': email, 'password': password})


def sign_up(email, password, confirm_password, phone, address, client=None):
    client = client or PharmacyAPIClient()
    logger.info(f"Sign-up attempt for {email}")
    return client.post('/signup', json={
        'email': email,
        'password': password,
        'confirm_password': confirm_password,
        'phone': phone,
        'address': address,
    })


def refresh_tokens(refresh_token, base_url=None):
    """Exchange a refresh token (sent as the bearer) for a new token pair."""
    return PharmacyAPIClient(base_url=base_url, token=refresh_token).post('/refresh')


def sign_out(client):
    return client.post('/logout')


def get_my_permissions(client):
    """Permission codes of the signed-in user."""
    response = client.get('/permissions/me')
    codes = unwrap_data(response)
    if isinstance(codes, dict):
        codes = codes.get('codes') or codes.get('permissions') or []
    return [code for code in (codes or []) if isinstance(code, str)]


def get_profile(client):
    return unwrap_record(client.get('/users/me'))


def update_account(client, payload):
    return unwrap_record(client.patch('/users/me', json=payload))


def change_password(client, current_password, new_password, confirm_password):
    return unwrap_data(client.patch('/users/me/password', json={
        'currentPassword': current_password,
        'newPassword': new_password,
        'confirmPassword': confirm_password,
    }))
