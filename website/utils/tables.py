"""
Generic data table state for list pages.

A DataTable holds the rows for one list page plus its presentation state
(pagination, sort, visible columns, selected row). Pagination is either
server driven (``page_count`` given, rows are already one page) or client
driven (the table slices ``rows`` itself). No network calls happen here.
"""

import math
from urllib.parse import urlencode

from django.conf import settings


def resolve(row, path):
    """Fetch ``a.b.c`` from nested dicts/objects; missing parts give None."""
    value = row
    for part in path.split('.'):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


class Column:
    def __init__(self, key, label=None, accessor=None, sortable=True, hideable=True,
                 visible=True, template=None, css_class='', link=False):
        self.key = key
        self.label = label or key.replace('_', ' ').title()
        self.accessor = accessor
        self.sortable = sortable
        self.hideable = hideable
        self.visible = visible
        self.template = template
        self.css_class = css_class
        self.link = link

    def value(self, row):
        if callable(self.accessor):
            return self.accessor(row)
        return resolve(row, self.accessor or self.key)

    def __repr__(self):
        return f"Column({self.key!r})"


class BoundRow:
    """A row paired with its column values, in visible-column order."""

    def __init__(self, row, columns, selected=False):
        self.row = row
        self.id = resolve(row, 'id')
        self.cells = [(column, column.value(row)) for column in columns]
        self.selected = selected


class DataTable:
    def __init__(self, rows, columns, page_index=0, page_size=None, page_count=None, total=None,
                 sort_by=None, sort_desc=False, hidden=(), selected_id=None, detail_template=None,
                 empty_message='No results.', error=None, loading=False, base_params=None):
        self.rows = list(rows or [])
        self.columns = list(columns)
        self.page_size = max(1, int(page_size or settings.PHARMACY_API['DEFAULT_PAGE_SIZE']))
        self.manual_pagination = page_count is not None
        if self.manual_pagination:
            self.page_count = max(1, int(page_count))
            self.total = len(self.rows) if total is None else total
        else:
            self.total = len(self.rows) if total is None else total
            self.page_count = max(1, math.ceil(len(self.rows) / self.page_size))
        self.page_index = min(max(0, int(page_index or 0)), self.page_count - 1)
        self.sort_by = sort_by
        self.sort_desc = sort_desc
        self.hidden = set(hidden or ())
        self.selected_id = selected_id
        self.detail_template = detail_template
        self.empty_message = empty_message
        self.error = error
        self.loading = loading
        self.base_params = dict(base_params or {})

    # ============================================
    # PAGINATION
    # ============================================
    @property
    def can_previous_page(self):
        return self.page_index > 0

    @property
    def can_next_page(self):
        return self.page_index < self.page_count - 1

    def previous_page(self):
        if self.can_previous_page:
            self.page_index -= 1
        return self.page_index

    def next_page(self):
        if self.can_next_page:
            self.page_index += 1
        return self.page_index

    def first_page(self):
        self.page_index = 0
        return self.page_index

    def last_page(self):
        self.page_index = self.page_count - 1
        return self.page_index

    def set_page_size(self, size):
        self.page_size = max(1, int(size))
        if not self.manual_pagination:
            self.page_count = max(1, math.ceil(len(self.rows) / self.page_size))
        self.page_index = 0
        return self.page_size

    @property
    def page_number(self):
        return self.page_index + 1

    @property
    def page_size_options(self):
        return settings.PHARMACY_API['PAGE_SIZE_OPTIONS']

    # ============================================
    # COLUMNS & ROWS
    # ============================================
    @property
    def visible_columns(self):
        return [
            column for column in self.columns
            if column.visible and (not column.hideable or column.key not in self.hidden)
        ]

    @property
    def hideable_columns(self):
        return [column for column in self.columns if column.hideable]

    def _sorted(self, rows):
        if self.manual_pagination or not self.sort_by:
            return rows
        column = next((c for c in self.columns if c.key == self.sort_by and c.sortable), None)
        if column is None:
            return rows

        def sort_key(row):
            value = column.value(row)
            return (value is None, value if value is not None else 0)

        try:
            return sorted(rows, key=sort_key, reverse=self.sort_desc)
        except TypeError:
            return sorted(rows, key=lambda row: str(column.value(row) or ''), reverse=self.sort_desc)

    @property
    def page_rows(self):
        rows = self._sorted(self.rows)
        if self.manual_pagination:
            return rows
        start = self.page_index * self.page_size
        return rows[start:start + self.page_size]

    @property
    def bound_rows(self):
        columns = self.visible_columns
        return [
            BoundRow(row, columns, selected=self._matches_selected(row))
            for row in self.page_rows
        ]

    def _matches_selected(self, row):
        return self.selected_id is not None and str(resolve(row, 'id')) == str(self.selected_id)

    @property
    def selected_row(self):
        if self.selected_id is None:
            return None
        return next((row for row in self.rows if self._matches_selected(row)), None)

    @property
    def is_empty(self):
        return not self.rows and not self.error and not self.loading

    # ============================================
    # QUERY STRINGS
    # ============================================
    def state_params(self):
        params = dict(self.base_params)
        params['page'] = self.page_number
        params['page_size'] = self.page_size
        if self.sort_by:
            params['sort'] = self.sort_by
            params['dir'] = 'desc' if self.sort_desc else 'asc'
        if self.hidden:
            params['hide'] = ','.join(sorted(self.hidden))
        return params

    def querystring(self, **overrides):
        params = self.state_params()
        for key, value in overrides.items():
            if value is None:
                params.pop(key, None)
            else:
                params[key] = value
        return '?' + urlencode([(k, v) for k, v in params.items() if v != ''])

    def page_url(self, page_index):
        return self.querystring(page=page_index + 1, selected=None)

    @property
    def previous_url(self):
        return self.page_url(self.page_index - 1) if self.can_previous_page else None

    @property
    def next_url(self):
        return self.page_url(self.page_index + 1) if self.can_next_page else None

    @property
    def first_url(self):
        return self.page_url(0) if self.can_previous_page else None

    @property
    def last_url(self):
        return self.page_url(self.page_count - 1) if self.can_next_page else None

    def sort_url(self, key):
        desc = not self.sort_desc if self.sort_by == key else False
        return self.querystring(sort=key, dir='desc' if desc else 'asc', page=1, selected=None)

    def toggle_column_url(self, key):
        hidden = set(self.hidden)
        hidden.symmetric_difference_update({key})
        return self.querystring(hide=','.join(sorted(hidden)) or None)

    def select_url(self, row_id):
        return self.querystring(selected=row_id)

    @property
    def sort_links(self):
        return {column.key: self.sort_url(column.key) for column in self.columns if column.sortable}

    # ============================================
    # REQUEST BINDING
    # ============================================
    @staticmethod
    def read_request_state(request):
        """Parse the table state carried in the query string."""
        get = request.GET
        try:
            page_index = max(0, int(get.get('page', 1)) - 1)
        except (TypeError, ValueError):
            page_index = 0
        try:
            page_size = int(get.get('page_size') or settings.PHARMACY_API['DEFAULT_PAGE_SIZE'])
        except (TypeError, ValueError):
            page_size = settings.PHARMACY_API['DEFAULT_PAGE_SIZE']
        hidden = [key for key in get.get('hide', '').split(',') if key]
        return {
            'page_index': page_index,
            'page_size': max(1, page_size),
            'sort_by': get.get('sort') or None,
            'sort_desc': get.get('dir') == 'desc',
            'hidden': hidden,
            'selected_id': get.get('selected') or None,
        }

    @classmethod
    def from_request(cls, request, rows, columns, **kwargs):
        state = cls.read_request_state(request)
        state.update(kwargs)
        return cls(rows, columns, **state)
