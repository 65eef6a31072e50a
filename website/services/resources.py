"""
Generic per-entity endpoint definitions.

A RemoteResource describes one REST collection of the pharmacy API
(``/customers``, ``/products``...) and exposes the list/all/get/create/
update/delete calls every entity page needs, returning unwrapped data.
"""

import logging

from django.conf import settings

from website.services.api_client import ApiError
from website.utils.api_errors import extract_error_message
from website.utils.envelopes import ListResult, unwrap_collection, unwrap_data, unwrap_record

logger = logging.getLogger(__name__)


class RemoteResource:
    def __init__(self, path, collection_key=None, label=None, default_sort=None, paginated=True):
        self.path = '/' + path.strip('/')
        self.collection_key = collection_key or self.path.rsplit('/', 1)[-1]
        self.label = label or self.collection_key.rstrip('s').replace('-', ' ').capitalize()
        self.default_sort = default_sort
        self.paginated = paginated

    def __repr__(self):
        return f"RemoteResource({self.path!r})"

    def detail_path(self, pk, suffix=''):
        path = f"{self.path}/{pk}"
        if suffix:
            path = f"{path}/{suffix.strip('/')}"
        return path

    def list_params(self, page=1, limit=None, search=None, sort_by=None, sort_order=None, **filters):
        params = {}
        if self.paginated:
            params['page'] = page or 1
            params['limit'] = limit or settings.PHARMACY_API['DEFAULT_PAGE_SIZE']
        if search:
            params['search'] = search
        if not sort_by and self.default_sort:
            sort_by, default_order = self.default_sort
            sort_order = sort_order or default_order
        if sort_by:
            params['sortBy'] = sort_by
            params['sortOrder'] = (sort_order or 'ASC').upper()
        params.update(filters)
        return params

    # ============================================
    # READS
    # ============================================
    def list(self, client, page=1, limit=None, search=None, sort_by=None, sort_order=None, **filters):
        """One page of the collection as a Page; raises ApiError."""
        params = self.list_params(page, limit, search, sort_by, sort_order, **filters)
        response = client.get(self.path, params=params)
        return unwrap_collection(response, self.collection_key)

    def load(self, client, **kwargs):
        """Like list(), but a failure is returned as ListResult.error instead of raised."""
        try:
            return ListResult.from_page(self.list(client, **kwargs))
        except ApiError as e:
            logger.warning(f"Loading {self.path} failed: {e.message}")
            return ListResult.failed(extract_error_message(e))

    def all(self, client, **params):
        response = client.get(f"{self.path}/all", params=params)
        return unwrap_collection(response, self.collection_key).items

    def get(self, client, pk):
        return unwrap_record(client.get(self.detail_path(pk)))

    # ============================================
    # WRITES
    # ============================================
    def create(self, client, payload):
        response = client.post(self.path, json=payload)
        logger.info(f"Created {self.label.lower()} via {self.path}")
        return unwrap_data(response)

    def update(self, client, pk, payload):
        response = client.patch(self.detail_path(pk), json=payload)
        logger.info(f"Updated {self.label.lower()} {pk}")
        return unwrap_data(response)

    def delete(self, client, pk):
        response = client.delete(self.detail_path(pk))
        logger.info(f"Deleted {self.label.lower()} {pk}")
        return unwrap_data(response)
