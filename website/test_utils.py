"""
Test utilities shared by the dashboard apps.
"""
import json

import requests
from django.conf import settings
from django.contrib.messages import get_messages

from website.services.api_client import ApiError
from website.session import ACCESS_TOKEN_KEY, PERMISSIONS_KEY, REFRESH_TOKEN_KEY, USER_KEY


def make_response(body=None, status=200, url='https://api.test/resource', headers=None):
    """Build a real requests.Response carrying ``body`` as JSON."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.reason = 'OK' if status < 400 else 'Error'
    response._content = b'' if body is None else json.dumps(body).encode()
    response.headers['Content-Type'] = 'application/json'
    response.headers.update(headers or {})
    return response


def api_error(status=400, message='Bad request', method='POST', **body):
    data = dict({'message': message}, **body)
    return ApiError(message, status=status, data=data, method=method, url='https://api.test/x')


class DashboardTestMixin:
    """Signs the test client in by writing the dashboard session directly."""

    default_user = {'id': 'u-1', 'email': 'staff@pharmacy.test', 'role': 'STAFF'}

    def sign_in(self, permissions=(), role='STAFF', **user):
        session = self.client.session
        session[ACCESS_TOKEN_KEY] = 'access-token'
        session[REFRESH_TOKEN_KEY] = 'refresh-token'
        session[USER_KEY] = dict(self.default_user, role=role, **user)
        session[PERMISSIONS_KEY] = list(permissions)
        session.save()
        self.client.cookies[settings.SESSION_COOKIE_NAME] = session.session_key
        return session

    def sign_in_admin(self):
        return self.sign_in(role='ADMIN')

    def messages_of(self, response):
        return [str(message) for message in get_messages(response.wsgi_request)]


def formset_data(rows, prefix='items', initial=0, **data):
    """POST data for a header form plus a line-item formset."""
    data[f"{prefix}-TOTAL_FORMS"] = str(len(rows))
    data[f"{prefix}-INITIAL_FORMS"] = str(initial)
    for index, row in enumerate(rows):
        for name, value in row.items():
            data[f"{prefix}-{index}-{name}"] = value
    return data
