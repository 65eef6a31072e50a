"""
Normalization of the response envelopes returned by the pharmacy API.

Endpoints answer in one of several shapes:

* a raw list: ``[{...}, {...}]``
* a keyed collection: ``{"customers": [...], "total": 42}`` (or ``items``/``entities``)
* a success envelope: ``{"success": true, "message": "...", "data": <payload>}``
* a paginated envelope: ``{"success": true, "data": [...], "pagination": {...}}``

The helpers below collapse all of them into one in-memory shape and never
raise: an unrecognized shape yields an empty Page or None.
"""

from collections import namedtuple

COLLECTION_KEYS = ('items', 'entities', 'data', 'results')
TOTAL_KEYS = ('total', 'count', 'totalCount')

STATUS_ERROR_CODES = {
    400: 'BAD_REQUEST',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    409: 'CONFLICT',
    422: 'VALIDATION_ERROR',
    429: 'RATE_LIMIT_EXCEEDED',
    500: 'INTERNAL_ERROR',
    503: 'SERVICE_UNAVAILABLE',
}

DEFAULT_RESPONSE_MESSAGE = 'An error occurred'


class Page(namedtuple('Page', ['items', 'total', 'page', 'limit', 'total_pages'])):
    """One page of a remote collection."""

    __slots__ = ()

    def __new__(cls, items=None, total=None, page=None, limit=None, total_pages=None):
        items = list(items or [])
        if total is None:
            total = len(items)
        return super().__new__(cls, items, total, page, limit, total_pages)


class ListResult(namedtuple('ListResult', ['items', 'total', 'error'])):
    """What a list page receives: the rows, the remote total and the load error text."""

    __slots__ = ()

    @classmethod
    def from_page(cls, page):
        return cls(page.items, page.total, None)

    @classmethod
    def failed(cls, message):
        return cls([], 0, message)


# ============================================
# ENVELOPE PREDICATES
# ============================================

def is_success_response(response):
    return isinstance(response, dict) and response.get('success') is True and 'data' in response


def is_error_response(response):
    return isinstance(response, dict) and response.get('success') is False and 'error' in response


def is_paginated_response(response):
    return is_success_response(response) and 'pagination' in response


# ============================================
# UNWRAPPING
# ============================================

def unwrap_data(response):
    """
    Return the payload of a success envelope, or the response itself when it
    is not enveloped. Anything else (failed envelope, scalar, None) gives None.
    """
    if isinstance(response, list):
        return response
    if not isinstance(response, dict):
        return None
    if is_success_response(response):
        return response['data']
    if 'success' not in response:
        return response
    return None


def unwrap_record(response):
    """Like unwrap_data, but only ever returns a dict (or None)."""
    data = unwrap_data(response)
    return data if isinstance(data, dict) else None


def _first_total(container, default):
    for key in TOTAL_KEYS:
        value = container.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return default


def _keyed_collection(container, key=None):
    keys = (key,) + COLLECTION_KEYS if key else COLLECTION_KEYS
    for candidate in keys:
        value = container.get(candidate)
        if isinstance(value, list):
            return value
    return None


def unwrap_collection(response, key=None):
    """
    Collapse any known collection shape into a Page.

    ``key`` names the entity-specific list field (``customers``, ``sales``...)
    tried before the generic ``items``/``entities``/``data``/``results``.
    """
    if isinstance(response, list):
        return Page(response)
    if not isinstance(response, dict):
        return Page()

    if is_paginated_response(response) and isinstance(response['data'], list):
        meta = response.get('pagination') or {}
        return Page(
            response['data'],
            total=meta.get('total'),
            page=meta.get('page'),
            limit=meta.get('limit'),
            total_pages=meta.get('totalPages'),
        )

    if 'success' in response:
        if not is_success_response(response):
            return Page()
        inner = response['data']
        if isinstance(inner, list):
            return Page(inner, total=_first_total(response, None))
        if not isinstance(inner, dict):
            return Page()
        container = inner
    else:
        container = response

    items = _keyed_collection(container, key)
    if items is None:
        return Page()

    meta = container.get('pagination') or container.get('meta') or {}
    total = _first_total(container, None)
    if total is None and isinstance(meta, dict):
        total = _first_total(meta, None)
    return Page(
        items,
        total=total,
        page=container.get('page') or (meta.get('page') if isinstance(meta, dict) else None),
        limit=container.get('limit') or (meta.get('limit') if isinstance(meta, dict) else None),
        total_pages=container.get('totalPages') or (meta.get('totalPages') if isinstance(meta, dict) else None),
    )


def unwrap_list(response, key=None):
    """Plain list of items for picker endpoints (``/all``, lookups)."""
    return unwrap_collection(response, key).items


# ============================================
# METADATA & MESSAGES
# ============================================

def get_pagination_meta(response):
    if is_paginated_response(response):
        return response['pagination']
    return None


def extract_response_message(response):
    """
    Message carried by an error body, in either the standardized
    ``{success: false, message, error: {...}}`` form or a legacy
    ``{statusCode, message}`` form.
    """
    if not isinstance(response, dict):
        return DEFAULT_RESPONSE_MESSAGE

    if is_error_response(response):
        error = response.get('error') or {}
        details = error.get('details') if isinstance(error, dict) else None
        for candidate in (response.get('message'), details):
            if isinstance(candidate, str) and candidate:
                return candidate
        return DEFAULT_RESPONSE_MESSAGE

    message = response.get('message')
    if isinstance(message, str):
        return message
    if isinstance(message, list):
        return next((entry for entry in message if isinstance(entry, str) and entry), 'Validation error')
    if isinstance(message, dict):
        nested = message.get('message') or message.get('error')
        if isinstance(nested, list):
            nested = next((entry for entry in nested if isinstance(entry, str)), None)
        return nested if isinstance(nested, str) and nested else DEFAULT_RESPONSE_MESSAGE

    if isinstance(response.get('error'), str):
        return response['error']

    return DEFAULT_RESPONSE_MESSAGE


def extract_error_code(response):
    if not isinstance(response, dict):
        return None

    error = response.get('error')
    if is_error_response(response) and isinstance(error, dict) and error.get('code'):
        return error['code']
    if isinstance(error, dict) and error.get('code'):
        return error['code']

    status = response.get('statusCode')
    if status:
        return STATUS_ERROR_CODES.get(status)
    return None


def get_error_field(response):
    if is_error_response(response) and isinstance(response.get('error'), dict):
        return response['error'].get('field')
    return None
