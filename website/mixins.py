# website/mixins.py
"""
Generic class-based views for pages backed by a RemoteResource.

Every entity page (customers, products, sales...) is a thin subclass of
one of these: list, detail, create/update form and delete confirmation.
"""

import logging
import math

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.views.generic import FormView, TemplateView

from website.forms import to_snake
from website.middleware import wants_json
from website.permissions import request_can
from website.services.api_client import ApiError
from website.utils.api_errors import (
    get_permission_error_message,
    handle_api_error,
    handle_api_success,
)
from website.utils.envelopes import get_error_field
from website.utils.tables import DataTable, resolve

logger = logging.getLogger(__name__)


def reraise_unauthorized(error):
    """401s are handled once, by DashboardSessionMiddleware."""
    if isinstance(error, ApiError) and error.status == 401:
        raise error


# ====================================
# PERMISSIONS
# ====================================

class PermissionRequiredMixin:
    permission_required = None
    require_all = False

    def has_permission(self):
        return request_can(self.request, self.permission_required, self.require_all)

    def handle_no_permission(self):
        message = get_permission_error_message(self.request.path)
        logger.warning(f"Permission denied on {self.request.path}: {self.permission_required}")
        if wants_json(self.request):
            return JsonResponse({'success': False, 'message': message}, status=403)
        messages.error(self.request, message, fail_silently=True)
        return redirect('website:unauthorized')

    def dispatch(self, request, *args, **kwargs):
        if self.permission_required and not self.has_permission():
            return self.handle_no_permission()
        return super().dispatch(request, *args, **kwargs)


class EntityMixin(PermissionRequiredMixin):
    """Shared attributes of the remote entity views."""

    resource = None
    title = None
    entity_label = None
    list_url_name = None
    create_url_name = None
    detail_url_name = None
    update_url_name = None
    delete_url_name = None

    create_permission = None
    update_permission = None
    delete_permission = None

    def get_entity_label(self):
        return self.entity_label or (self.resource.label if self.resource else 'Record')

    def get_list_url(self):
        return reverse(self.list_url_name) if self.list_url_name else '/'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update({
            'title': self.title or self.get_entity_label(),
            'entity_label': self.get_entity_label(),
            'list_url': self.get_list_url(),
            'create_url_name': self.create_url_name,
            'detail_url_name': self.detail_url_name,
            'update_url_name': self.update_url_name,
            'delete_url_name': self.delete_url_name,
            'can_create': bool(self.create_url_name) and request_can(self.request, self.create_permission),
            'can_update': bool(self.update_url_name) and request_can(self.request, self.update_permission),
            'can_delete': bool(self.delete_url_name) and request_can(self.request, self.delete_permission),
        })
        return context


class RemoteObjectMixin:
    """Loads the record named by the ``pk`` URL kwarg once per request."""

    def get_object(self):
        if not hasattr(self, '_object'):
            self._object = self.resource.get(self.request.api, self.kwargs['pk'])
        return self._object


# ====================================
# LIST
# ====================================

class RemoteListView(EntityMixin, TemplateView):
    template_name = 'website/entity_list.html'
    columns = []
    filters = ()
    search_enabled = True
    server_paginated = True
    detail_template = None
    empty_message = 'No results.'

    def get_columns(self):
        return self.columns

    def get_filters(self):
        return {name: self.request.GET.get(name) for name in self.filters if self.request.GET.get(name)}

    def fetch_page(self, page, limit, search=None, sort_by=None, sort_order=None, **filters):
        return self.resource.list(
            self.request.api, page=page, limit=limit, search=search,
            sort_by=sort_by, sort_order=sort_order, **filters
        )

    def fetch_rows(self, search=None, **filters):
        params = dict(filters)
        if search:
            params['search'] = search
        return self.resource.all(self.request.api, **params)

    def get_table(self):
        state = DataTable.read_request_state(self.request)
        search = self.request.GET.get('search', '').strip()
        filters = self.get_filters()
        base = dict(filters, search=search)
        columns = self.get_columns()

        try:
            if self.server_paginated:
                page = self.fetch_page(
                    state['page_index'] + 1,
                    state['page_size'],
                    search=search or None,
                    sort_by=state['sort_by'],
                    sort_order=('DESC' if state['sort_desc'] else 'ASC') if state['sort_by'] else None,
                    **filters
                )
                page_count = page.total_pages or max(1, math.ceil((page.total or 0) / state['page_size']))
                return DataTable(
                    page.items, columns, page_count=page_count, total=page.total,
                    detail_template=self.detail_template, empty_message=self.empty_message,
                    base_params=base, **state
                )
            rows = self.fetch_rows(search=search or None, **filters)
            return DataTable(
                rows, columns, detail_template=self.detail_template,
                empty_message=self.empty_message, base_params=base, **state
            )
        except ApiError as e:
            reraise_unauthorized(e)
            error = handle_api_error(self.request, e, is_mutation=False)
            return DataTable([], columns, error=error, base_params=base, **state)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['table'] = self.get_table()
        context['search'] = self.request.GET.get('search', '')
        context['search_enabled'] = self.search_enabled
        context['active_filters'] = self.get_filters()
        return context


# ====================================
# DETAIL
# ====================================

class RemoteDetailView(EntityMixin, RemoteObjectMixin, TemplateView):
    template_name = 'website/entity_detail.html'
    fields = []

    def get_detail_fields(self, record):
        return [(label, resolve(record, path)) for path, label in self.fields]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        try:
            record = self.get_object()
            context['object'] = record
            context['detail_fields'] = self.get_detail_fields(record or {})
        except ApiError as e:
            reraise_unauthorized(e)
            context['object'] = None
            context['error'] = handle_api_error(self.request, e, is_mutation=False)
        return context


# ====================================
# CREATE / UPDATE
# ====================================

class RemoteFormView(EntityMixin, RemoteObjectMixin, FormView):
    template_name = 'website/entity_form.html'
    success_url_name = None
    default_error_message = None

    def is_update(self):
        return 'pk' in self.kwargs

    def dispatch(self, request, *args, **kwargs):
        self.permission_required = self.update_permission if self.is_update() else self.create_permission
        return super().dispatch(request, *args, **kwargs)

    def load_failed(self):
        """Load the record being edited; returns a redirect response when that fails."""
        if not self.is_update():
            return None
        try:
            self.get_object()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message=f"Failed to load {self.get_entity_label().lower()}")
            return redirect(self.get_list_url())
        return None

    def get(self, request, *args, **kwargs):
        return self.load_failed() or super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.load_failed() or super().post(request, *args, **kwargs)

    def get_choices(self):
        """Choices for picker fields, keyed by form field name."""
        return {}

    def load_choices(self):
        if hasattr(self, '_choices'):
            return self._choices
        try:
            self._choices = self.get_choices()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load form options', is_mutation=False)
            self._choices = {}
        return self._choices

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        choices = self.load_choices()
        if choices:
            kwargs['choices'] = choices
        return kwargs

    def get_initial(self):
        initial = super().get_initial()
        if self.is_update():
            initial.update(self.get_form_class().initial_from_record(self.get_object()))
        return initial

    def get_success_message(self):
        verb = 'updated' if self.is_update() else 'created'
        return f"{self.get_entity_label()} {verb} successfully"

    def get_error_message(self):
        return self.default_error_message or f"Failed to save {self.get_entity_label().lower()}"

    def get_success_url(self):
        if self.success_url_name:
            return reverse(self.success_url_name)
        return self.get_list_url()

    def get_payload(self, form):
        return form.to_payload()

    def save(self, payload):
        api = self.request.api
        if self.is_update():
            return self.resource.update(api, self.kwargs['pk'], payload)
        return self.resource.create(api, payload)

    def apply_api_error(self, form, error):
        message = handle_api_error(
            self.request, error, default_message=self.get_error_message(), is_mutation=True
        )
        field = get_error_field(error.data)
        if field:
            name = to_snake(field)
            if name in form.fields:
                form.add_error(name, message)
                return message
        form.add_error(None, message)
        return message

    def form_valid(self, form):
        payload = self.get_payload(form)
        try:
            self.object = self.save(payload)
        except ApiError as e:
            reraise_unauthorized(e)
            message = self.apply_api_error(form, e)
            if wants_json(self.request):
                return JsonResponse({'success': False, 'message': message}, status=e.status or 502)
            return self.form_invalid(form)

        success_message = self.get_success_message()
        handle_api_success(self.request, success_message)
        if wants_json(self.request):
            return JsonResponse({'success': True, 'message': success_message, 'data': self.object})
        return redirect(self.get_success_url())

    def form_invalid(self, form):
        logger.info(f"Form invalid on {self.request.path}: {form.errors.as_json()}")
        if wants_json(self.request):
            return JsonResponse({
                'success': False,
                'message': 'Validation error',
                'errors': form.errors.get_json_data(),
            }, status=400)
        return super().form_invalid(form)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['is_update'] = self.is_update()
        context['object'] = self.get_object() if self.is_update() else None
        label = self.get_entity_label()
        context['title'] = f"Edit {label}" if self.is_update() else f"New {label}"
        context['button_text'] = f"Update {label}" if self.is_update() else f"Create {label}"
        return context


class LineItemsMixin:
    """
    Adds a line-item formset to a RemoteFormView.

    The header form and the items are validated together and sent as one
    payload, the items under ``items_key``.
    """

    item_formset_class = None
    items_key = 'items'
    item_prefix = 'items'
    template_name = 'website/entity_items_form.html'

    def get_formset(self):
        if not hasattr(self, '_formset'):
            kwargs = {
                'prefix': self.item_prefix,
                'form_kwargs': {'choices': self.load_choices()},
            }
            if self.request.method == 'POST':
                kwargs['data'] = self.request.POST
            else:
                item_form = self.item_formset_class.form
                kwargs['initial'] = [item_form.initial_from_record(item) for item in self.get_item_records()]
            self._formset = self.item_formset_class(**kwargs)
        return self._formset

    def get_item_records(self):
        """API line items the formset starts from."""
        if self.is_update():
            return (self.get_object() or {}).get(self.items_key) or []
        return []

    def post(self, request, *args, **kwargs):
        failed = self.load_failed()
        if failed:
            return failed
        form = self.get_form()
        formset = self.get_formset()
        form_ok = form.is_valid()
        items_ok = formset.is_valid()
        if form_ok and items_ok:
            return self.form_valid(form)
        return self.form_invalid(form)

    def form_invalid(self, form):
        formset = self.get_formset()
        if wants_json(self.request) and form.is_valid():
            return JsonResponse({
                'success': False,
                'message': 'Validation error',
                'errors': {
                    'items': [item.errors.get_json_data() for item in formset.forms],
                    '__all__': list(formset.non_form_errors()),
                },
            }, status=400)
        return super().form_invalid(form)

    def get_payload(self, form):
        payload = super().get_payload(form)
        payload[self.items_key] = self.get_formset().to_payload()
        return payload

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['formset'] = self.get_formset()
        return context


# ====================================
# DELETE
# ====================================

class RemoteDeleteView(EntityMixin, RemoteObjectMixin, TemplateView):
    template_name = 'website/entity_confirm_delete.html'

    def dispatch(self, request, *args, **kwargs):
        self.permission_required = self.delete_permission or self.permission_required
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        try:
            context['object'] = self.get_object()
        except ApiError as e:
            reraise_unauthorized(e)
            context['object'] = None
            context['error'] = handle_api_error(self.request, e, is_mutation=False)
        return context

    def post(self, request, *args, **kwargs):
        label = self.get_entity_label()
        try:
            self.resource.delete(request.api, kwargs['pk'])
        except ApiError as e:
            reraise_unauthorized(e)
            message = handle_api_error(request, e, default_message=f"Failed to delete {label.lower()}")
            if wants_json(request):
                return JsonResponse({'success': False, 'message': message}, status=e.status or 502)
            return redirect(self.get_list_url())

        success_message = f"{label} deleted successfully"
        handle_api_success(request, success_message)
        if wants_json(request):
            return JsonResponse({'success': True, 'message': success_message})
        return redirect(self.get_list_url())
