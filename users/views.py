# users/views.py
import logging

from django.shortcuts import redirect
from django.urls import reverse
from django.views.generic import FormView

from users import services
from users.forms import ROLE_CHOICES, UserForm, UserPermissionsForm
from website.forms import GENDER_CHOICES
from website.mixins import (
    PermissionRequiredMixin,
    RemoteDeleteView,
    RemoteDetailView,
    RemoteFormView,
    RemoteListView,
    reraise_unauthorized,
)
from website.permissions import PERMISSIONS_MANAGE, USERS, request_can
from website.services.api_client import ApiError
from website.utils.api_errors import handle_api_error, handle_api_success
from website.utils.tables import Column

logger = logging.getLogger(__name__)

DATE = 'website/cells/datetime.html'
STATUS = 'website/cells/status.html'
BOOLEAN = 'website/cells/boolean.html'


class UserMixin:
    resource = services.users
    entity_label = 'User'
    list_url_name = 'users:user-list'
    create_url_name = 'users:user-create'
    detail_url_name = 'users:user-detail'
    update_url_name = 'users:user-update'
    delete_url_name = 'users:user-delete'
    create_permission = USERS['create']
    update_permission = USERS['update']
    delete_permission = USERS['delete']


class UserListView(UserMixin, RemoteListView):
    title = 'Users'
    template_name = 'users/user_list.html'
    permission_required = USERS['read']
    filters = ('role', 'isActive', 'gender')
    columns = [
        Column('firstName', 'Name', accessor=services.full_name, link=True),
        Column('email', 'Email'),
        Column('phone', 'Phone', sortable=False),
        Column('roles', 'Roles', sortable=False),
        Column('gender', 'Gender', sortable=False, visible=False),
        Column('isActive', 'Active', template=BOOLEAN, sortable=False),
        Column('createdAt', 'Created', template=DATE),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['role_choices'] = ROLE_CHOICES
        context['gender_choices'] = GENDER_CHOICES
        return context


class UserDetailView(UserMixin, RemoteDetailView):
    template_name = 'users/user_detail.html'
    permission_required = USERS['read']
    fields = [
        ('email', 'Email'),
        ('firstName', 'First name'),
        ('middleName', 'Middle name'),
        ('lastName', 'Last name'),
        ('gender', 'Gender'),
        ('phone', 'Phone'),
        ('address', 'Address'),
        ('roles', 'Roles'),
        ('isActive', 'Active'),
        ('createdAt', 'Created'),
    ]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['can_manage_permissions'] = request_can(self.request, PERMISSIONS_MANAGE)
        return context


class UserFormView(UserMixin, RemoteFormView):
    form_class = UserForm

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs['is_update'] = self.is_update()
        return kwargs

    def get_initial(self):
        initial = super().get_initial()
        if not self.is_update():
            initial.setdefault('roles', ['USER'])
            initial.setdefault('is_active', True)
        return initial


class UserDeleteView(UserMixin, RemoteDeleteView):
    pass


class UserPermissionsView(PermissionRequiredMixin, FormView):
    """
    Replace the permission codes of one user.

    The catalogue from ``GET /permissions`` is shown grouped by resource;
    the checked codes are sent as the user's complete set.
    """

    template_name = 'users/user_permissions.html'
    form_class = UserPermissionsForm
    permission_required = PERMISSIONS_MANAGE

    def load(self):
        api = self.request.api
        self.user = services.users.get(api, self.kwargs['pk'])
        self.catalogue = services.list_permissions(api)
        self.codes = services.get_user_permissions(api, self.kwargs['pk'])

    def load_failed(self):
        try:
            self.load()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load permissions', is_mutation=False)
            return redirect('users:user-list')
        return None

    def get(self, request, *args, **kwargs):
        return self.load_failed() or super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        return self.load_failed() or super().post(request, *args, **kwargs)

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs['catalogue'] = self.catalogue
        return kwargs

    def get_initial(self):
        return {'codes': self.codes}

    def form_valid(self, form):
        try:
            services.set_user_permissions(self.request.api, self.kwargs['pk'], form.cleaned_data['codes'])
        except ApiError as e:
            reraise_unauthorized(e)
            message = handle_api_error(self.request, e, default_message='Failed to update permissions', is_mutation=True)
            form.add_error(None, message)
            return self.form_invalid(form)

        handle_api_success(self.request, 'Permissions updated')
        return redirect(reverse('users:user-detail', kwargs={'pk': self.kwargs['pk']}))

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        form = context['form']
        selected = set(form['codes'].value() or [])
        context['title'] = 'Manage Permissions'
        context['account'] = self.user or {}
        context['account_name'] = services.full_name(self.user or {})
        context['groups'] = services.group_permissions(self.catalogue)
        context['selected'] = selected
        return context
