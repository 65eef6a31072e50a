"""
HTTP client for the pharmacy management REST API.

One PharmacyAPIClient wraps one requests.Session. Every call returns the
decoded JSON body as-is (envelope unwrapping lives in
website.utils.envelopes) and every failure is raised as ApiError.
"""

import logging
import re

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Unable to reach the server. Please check your connection."

# Auth endpoints never trigger a token refresh
AUTH_PATHS = ('/signin', '/signup', '/refresh', '/logout', '/auth/')


class ApiError(Exception):
    """
    A failed call to the pharmacy API.

    ``status`` is the HTTP status (or the ``statusCode`` of a
    ``success: false`` body); it is None when the server could not be
    reached. ``data`` is the decoded response body.
    """

    def __init__(self, message, status=None, data=None, method=None, url=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data
        self.method = method
        self.url = url

    @property
    def is_read(self):
        return (self.method or '').upper() == 'GET'

    @property
    def is_network_error(self):
        return self.status is None

    def __repr__(self):
        return f"ApiError(status={self.status!r}, message={self.message!r}, url={self.url!r})"


def _decode(response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _body_message(data):
    if isinstance(data, dict):
        message = data.get('message')
        if isinstance(message, str) and message.strip():
            return message
        if isinstance(message, list) and message and isinstance(message[0], str):
            return message[0]
        error = data.get('error')
        if isinstance(error, dict):
            return error.get('message') or error.get('details')
        if isinstance(error, str):
            return error
    return None


class PharmacyAPIClient:
    """
    Configured client for the pharmacy API.

    Attaches ``Authorization: Bearer <token>`` to every request when a token
    is held. When a refresh token is also held, a single 401 on a data call
    triggers one refresh attempt; ``on_tokens_refreshed`` receives the new
    auth payload so the caller can persist it.
    """

    def __init__(self, base_url=None, token=None, timeout=None, session=None,
                 refresh_token=None, on_tokens_refreshed=None):
        config = settings.PHARMACY_API
        self.base_url = (base_url or config['BASE_URL']).rstrip('/')
        self.timeout = timeout or config['TIMEOUT']
        self.token = token
        self.refresh_token = refresh_token
        self.on_tokens_refreshed = on_tokens_refreshed
        self.session = session or requests.Session()
        self.session.headers.setdefault('Accept', 'application/json')

    def build_url(self, path):
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def clean_params(params):
        if not params:
            return None
        return {key: value for key, value in params.items() if value is not None and value != ''}

    def _headers(self, token=None, extra=None):
        headers = {}
        token = token or self.token
        if token:
            headers['Authorization'] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method, path, params=None, json=None, files=None, data=None, token=None):
        url = self.build_url(path)
        logger.debug(f"{method} {url} params={params}")
        try:
            return self.session.request(
                method,
                url,
                params=self.clean_params(params),
                json=json,
                files=files,
                data=data,
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ApiError(NETWORK_ERROR_MESSAGE, status=None, data=None, method=method, url=url) from e

    def _raise_for_response(self, method, response, body):
        url = response.url or ''
        if not response.ok:
            message = _body_message(body) or response.reason or f"Request failed ({response.status_code})"
            logger.warning(f"{method} {url} -> {response.status_code}: {message}")
            raise ApiError(message, status=response.status_code, data=body, method=method, url=url)

        if isinstance(body, dict) and body.get('success') is False:
            status = body.get('statusCode') or 500
            message = _body_message(body) or "Operation failed"
            logger.warning(f"{method} {url} -> success=false ({status}): {message}")
            raise ApiError(message, status=status, data=body, method=method, url=url)

    def _can_refresh(self, path):
        return bool(self.refresh_token) and not any(path.startswith(p) for p in AUTH_PATHS)

    def _refresh(self):
        response = self._send('POST', '/refresh', token=self.refresh_token)
        body = _decode(response)
        self._raise_for_response('POST', response, body)

        payload = body.get('data', body) if isinstance(body, dict) and 'success' in body else body
        tokens = (payload or {}).get('tokens') or payload or {}
        access = tokens.get('accessToken')
        if not access:
            raise ApiError("Session expired. Please sign in again.", status=401, data=body, method='POST')

        self.token = access
        self.refresh_token = tokens.get('refreshToken') or self.refresh_token
        logger.info("Access token refreshed")
        if self.on_tokens_refreshed:
            self.on_tokens_refreshed(payload)

    def request(self, method, path, params=None, json=None, files=None, data=None, raw=False):
        """
        Perform a request and return the decoded body (or the raw response
        when ``raw`` is set). Raises ApiError on any failure.
        """
        method = method.upper()
        response = self._send(method, path, params=params, json=json, files=files, data=data)

        if response.status_code == 401 and self._can_refresh(path):
            try:
                self._refresh()
            except ApiError as e:
                logger.warning(f"Token refresh failed: {e.message}")
            else:
                if files:
                    for handle in files.values():
                        fileobj = handle[1] if isinstance(handle, tuple) else handle
                        if hasattr(fileobj, 'seek'):
                            fileobj.seek(0)
                response = self._send(method, path, params=params, json=json, files=files, data=data)

        if raw and response.ok:
            return response

        body = _decode(response)
        self._raise_for_response(method, response, body)
        return body

    # ------------------------------------------------------------------
    # Verb helpers
    # ------------------------------------------------------------------
    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None, files=None, data=None):
        return self.request('POST', path, json=json, files=files, data=data)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def put(self, path, json=None):
        return self.request('PUT', path, json=json)

    def delete(self, path):
        return self.request('DELETE', path)

    def upload(self, path, uploaded_file, field_name='file', method='POST'):
        """Send a Django UploadedFile as multipart/form-data."""
        files = {
            field_name: (
                uploaded_file.name,
                uploaded_file,
                getattr(uploaded_file, 'content_type', None) or 'application/octet-stream',
            )
        }
        return self.request(method, path, files=files)

    def download(self, path, params=None):
        """Return ``(content, content_type, filename)`` for a binary endpoint."""
        response = self.request('GET', path, params=params, raw=True)
        disposition = response.headers.get('Content-Disposition', '')
        match = re.search(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', disposition)
        filename = match.group(1) if match else path.rstrip('/').rsplit('/', 1)[-1]
        content_type = response.headers.get('Content-Type', 'application/octet-stream')
        return response.content, content_type, filename


def client_for_request(request):
    """Build a client bound to the tokens held in the request's session."""
    from website.session import get_access_token, get_refresh_token, store_tokens

    def persist(payload):
        store_tokens(request, payload)

    return PharmacyAPIClient(
        token=get_access_token(request),
        refresh_token=get_refresh_token(request),
        on_tokens_refreshed=persist,
    )
