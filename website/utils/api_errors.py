"""
Error classification for calls to the pharmacy API.

extract_error_message() turns any failure (ApiError, a raw error body, a
plain exception) into one user-facing sentence; handle_api_error() logs the
diagnostic detail and shows that sentence as a Django message. Neither ever
raises.
"""

import logging
import re

from django.contrib import messages

from website.utils.envelopes import (
    DEFAULT_RESPONSE_MESSAGE,
    extract_error_code,
    extract_response_message,
)

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = 'Operation failed'
PERMISSION_DENIED_MESSAGE = 'You do not have permission to perform this action.'

CODE_MESSAGES = {
    409: 'This resource already exists or conflicts with existing data',
    'CONFLICT': 'This resource already exists or conflicts with existing data',
    'DUPLICATE_ENTRY': 'This resource already exists or conflicts with existing data',
    404: 'Resource not found',
    'NOT_FOUND': 'Resource not found',
    400: 'Invalid data provided. Please check all fields.',
    'BAD_REQUEST': 'Invalid data provided. Please check all fields.',
    422: 'Validation failed. Please check your input.',
    'VALIDATION_ERROR': 'Validation failed. Please check your input.',
    401: 'Authentication required. Please log in.',
    'UNAUTHORIZED': 'Authentication required. Please log in.',
    'INVALID_CREDENTIALS': 'Authentication required. Please log in.',
    'TOKEN_EXPIRED': 'Authentication required. Please log in.',
    403: PERMISSION_DENIED_MESSAGE,
    'FORBIDDEN': PERMISSION_DENIED_MESSAGE,
    429: 'Too many requests. Please try again later.',
    'RATE_LIMIT_EXCEEDED': 'Too many requests. Please try again later.',
    500: 'An internal server error occurred. Please try again later.',
    'INTERNAL_ERROR': 'An internal server error occurred. Please try again later.',
    503: 'Service temporarily unavailable. Please try again later.',
    'SERVICE_UNAVAILABLE': 'Service temporarily unavailable. Please try again later.',
}


def get_error_message_from_code(code):
    if code in CODE_MESSAGES:
        return CODE_MESSAGES[code]
    if isinstance(code, int):
        return f"Operation failed ({code})"
    return f"Operation failed: {code}"


def rewrite_constraint_message(message):
    """Translate a raw foreign-key violation into a sentence a user can act on."""
    if 'violates foreign key constraint' not in message and 'foreign key constraint' not in message:
        return message
    if 'on table "sale"' in message or 'on table "purchase"' in message:
        table = 'sales' if 'on table "sale"' in message else 'purchases'
        return (
            f"Cannot delete this record because it has associated {table}. "
            f"Please delete the related {table} first."
        )
    return (
        'Cannot delete this record because it is referenced by other records. '
        'Please remove the references first.'
    )


def _as_text(value):
    """A non-blank string, the first string of a list, or a nested ``message``."""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    if isinstance(value, dict):
        return _as_text(value.get('message'))
    return None


def _blank(value):
    return not isinstance(value, str) or not value.strip()


def _error_parts(err):
    """(status, data, message) for an ApiError, a requests-like error or a bare body."""
    if isinstance(err, dict) and 'status' not in err and 'data' not in err:
        return None, err, err.get('message') if isinstance(err.get('message'), str) else None
    if isinstance(err, dict):
        return err.get('status'), err.get('data'), err.get('message')
    status = getattr(err, 'status', None)
    data = getattr(err, 'data', None)
    message = getattr(err, 'message', None)
    if message is None and isinstance(err, Exception) and err.args:
        message = str(err)
    return status, data, message


def extract_error_message(err):
    """
    Priority-ordered extraction of a user-facing message.

    403 short-circuits to the permission text whatever the body says.
    Otherwise: body ``message``, nested ``error.message``/``error.details``,
    the standardized/legacy body message, the error's own message, and
    finally a status/error-code lookup.
    """
    if not err:
        return DEFAULT_ERROR_MESSAGE

    status, data, message = _error_parts(err)

    if status == 403:
        return PERMISSION_DENIED_MESSAGE

    if isinstance(data, dict):
        if 'message' in data:
            msg = data['message']
            if not _blank(msg):
                return rewrite_constraint_message(msg)
            if isinstance(msg, list) and msg and isinstance(msg[0], str):
                return rewrite_constraint_message(msg[0])

        nested = data.get('error')
        if isinstance(nested, dict):
            if not _blank(nested.get('message')):
                return rewrite_constraint_message(nested['message'])
            if not _blank(nested.get('details')):
                return rewrite_constraint_message(nested['details'])

        standardized = _as_text(extract_response_message(data))
        if standardized and standardized != DEFAULT_RESPONSE_MESSAGE:
            return standardized

        if data.get('success') is False and not _blank(data.get('message')):
            return data['message']

    candidates = []
    if isinstance(data, dict):
        candidates.append(_as_text(data.get('message')))
        nested = data.get('error')
        if isinstance(nested, dict):
            candidates.append(nested.get('details'))
    candidates.append(message)

    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return rewrite_constraint_message(candidate)

    code = extract_error_code(data) or status
    if code:
        return get_error_message_from_code(code)

    return DEFAULT_ERROR_MESSAGE


def extract_form_error(err):
    """Message for a form's non-field error region; no toast."""
    return extract_error_message(err)


# ============================================
# PERMISSION ERRORS
# ============================================

def is_permission_error(err):
    if not err:
        return False
    status, data, _ = _error_parts(err)
    if status == 403:
        return True
    if isinstance(data, dict):
        if data.get('statusCode') == 403 or data.get('errorCode') == 'FORBIDDEN' or data.get('isPermissionError'):
            return True
    return False


def get_permission_error_message(endpoint=None):
    if endpoint:
        match = re.search(r'/([^/]+)(?:\?|$)', endpoint)
        if match:
            resource = re.sub(r's$', '', match.group(1))
            name = ' '.join(word[:1].upper() + word[1:] for word in resource.split('-'))
            return f"You don't have permission to access {name}. Please contact your administrator."
    return 'You do not have permission to perform this action. Please contact your administrator.'


def should_suppress_permission_error_toast(err, is_mutation=None):
    """Permission failures on background reads stay quiet; mutations always toast."""
    if not is_permission_error(err):
        return False
    return is_mutation is False


# ============================================
# CALL-SITE HELPERS
# ============================================

def _log_error(err):
    status, data, message = _error_parts(err)
    log_data = {}
    if isinstance(status, int):
        log_data['status'] = status
    if isinstance(message, str) and message.strip():
        log_data['message'] = message
    if data is not None:
        if isinstance(data, dict):
            if not _blank(data.get('message')):
                log_data['errorMessage'] = data['message']
            if data:
                log_data['data'] = data
        else:
            log_data['data'] = data
    logger.error(f"API Error: {log_data or err!r}")


def handle_api_error(request, err, default_message=DEFAULT_ERROR_MESSAGE, show_toast=True,
                     log_error=True, is_mutation=None):
    """
    Log ``err``, show its message as a Django error message and return it.

    ``is_mutation=False`` marks a read: permission failures on reads are not
    toasted. Safe to call from any except block.
    """
    if log_error:
        _log_error(err)

    message_text = (extract_error_message(err) if err else default_message) or default_message

    if show_toast and message_text and request is not None:
        if not should_suppress_permission_error_toast(err, is_mutation):
            messages.error(request, message_text, fail_silently=True)

    return message_text


def handle_api_success(request, message_text, show_toast=True):
    if show_toast and request is not None:
        messages.success(request, message_text, fail_silently=True)
