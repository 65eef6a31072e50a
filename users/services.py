# users/services.py
import logging
from itertools import groupby

from website.services.resources import RemoteResource
from website.utils.envelopes import unwrap_data, unwrap_list

logger = logging.getLogger(__name__)

users = RemoteResource('/users', collection_key='users', label='User')

PERMISSIONS_PATH = '/permissions'


def full_name(user):
    parts = [user.get('firstName'), user.get('middleName'), user.get('lastName')]
    return ' '.join(part for part in parts if part) or user.get('email') or '-'


# ====================================
# PERMISSIONS
# ====================================

def _codes(data):
    if isinstance(data, dict):
        data = data.get('codes') or data.get('permissions') or []
    codes = []
    for entry in data or []:
        code = entry.get('code') if isinstance(entry, dict) else entry
        if isinstance(code, str):
            codes.append(code)
    return codes


def list_permissions(client):
    """Every permission the API defines, as ``{'code', 'description'}`` dicts sorted by code."""
    catalogue = []
    for entry in unwrap_list(client.get(PERMISSIONS_PATH), 'permissions'):
        if isinstance(entry, str):
            entry = {'code': entry}
        if isinstance(entry, dict) and entry.get('code'):
            catalogue.append(entry)
    return sorted(catalogue, key=lambda entry: entry['code'])


def group_permissions(catalogue):
    """``[(resource, [permission, ...]), ...]`` keyed on the part of the code before the dot."""
    def resource(entry):
        return entry['code'].split('.', 1)[0] or 'other'

    ordered = sorted(catalogue, key=lambda entry: (resource(entry), entry['code']))
    return [(name, list(entries)) for name, entries in groupby(ordered, key=resource)]


def get_user_permissions(client, pk):
    return _codes(unwrap_data(client.get(f"{PERMISSIONS_PATH}/users/{pk}")))


def set_user_permissions(client, pk, codes):
    """Replace the user's permission codes with ``codes``."""
    codes = sorted(set(codes))
    response = client.patch(f"{PERMISSIONS_PATH}/users/{pk}", json={'codes': codes})
    logger.info(f"Set {len(codes)} permission(s) for user {pk}")
    return _codes(unwrap_data(response))
