import logging

from django.conf import settings
from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views import View
from django.views.generic import FormView, TemplateView

from website.forms import AccountForm, ChangePasswordForm, PharmacySettingsForm, SignInForm, SignUpForm
from website.middleware import wants_json
from website.mixins import PermissionRequiredMixin, reraise_unauthorized
from website.permissions import DASHBOARD_VIEW, SETTINGS, request_can
from website.services import auth, dashboard, notifications, pharmacy
from website.services.api_client import ApiError, PharmacyAPIClient
from website.session import clear_session, is_authenticated, store_permissions, store_session, store_user
from website.utils.api_errors import extract_form_error, handle_api_error, handle_api_success
from website.utils.tables import Column, DataTable

logger = logging.getLogger(__name__)


# ====================================
# AUTHENTICATION
# ====================================

class SessionStartMixin:
    """Shared by sign-in and sign-up: store the session, load permissions, redirect."""

    def get_redirect_url(self):
        target = self.request.POST.get('next') or self.request.GET.get('next')
        if target and url_has_allowed_host_and_scheme(
            target, allowed_hosts={self.request.get_host()}, require_https=self.request.is_secure()
        ):
            return target
        return settings.LOGIN_REDIRECT_URL

    def start_session(self, response):
        store_session(self.request, response)
        client = PharmacyAPIClient(token=self.request.session.get('accessToken'))
        try:
            store_permissions(self.request, auth.get_my_permissions(client))
        except ApiError as e:
            logger.warning(f"Could not load permissions after sign-in: {e.message}")
            store_permissions(self.request, [])

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['next'] = self.request.GET.get('next', '')
        return context


class LoginView(SessionStartMixin, FormView):
    template_name = 'website/login.html'
    form_class = SignInForm

    def get(self, request, *args, **kwargs):
        if is_authenticated(request):
            return redirect(self.get_redirect_url())
        return super().get(request, *args, **kwargs)

    def form_valid(self, form):
        try:
            response = auth.sign_in(form.cleaned_data['email'], form.cleaned_data['password'])
        except ApiError as e:
            logger.warning(f"Sign-in failed for {form.cleaned_data['email']}: {e.status}")
            form.add_error(None, extract_form_error(e))
            return self.form_invalid(form)

        self.start_session(response)
        handle_api_success(self.request, 'Signed in successfully')
        return redirect(self.get_redirect_url())


class SignUpView(SessionStartMixin, FormView):
    template_name = 'website/signup.html'
    form_class = SignUpForm

    def form_valid(self, form):
        data = form.cleaned_data
        try:
            response = auth.sign_up(
                data['email'], data['password'], data['confirm_password'], data['phone'], data['address']
            )
        except ApiError as e:
            form.add_error(None, extract_form_error(e))
            return self.form_invalid(form)

        self.start_session(response)
        handle_api_success(self.request, 'Account created successfully')
        return redirect(self.get_redirect_url())


class LogoutView(View):
    def post(self, request):
        try:
            auth.sign_out(request.api)
        except ApiError as e:
            logger.warning(f"Logout call failed: {e.message}")
        clear_session(request)
        messages.success(request, 'You have been signed out')
        return redirect(settings.LOGIN_URL)

    def get(self, request):
        return self.post(request)


class UnauthorizedView(TemplateView):
    template_name = 'website/unauthorized.html'


# ====================================
# DASHBOARD
# ====================================

TABLE_DATA_COLUMNS = [
    Column('header', 'Header'),
    Column('type', 'Section Type'),
    Column('status', 'Status', template='website/cells/status.html'),
    Column('target', 'Target'),
    Column('limit', 'Limit'),
    Column('reviewer', 'Reviewer'),
]


class DashboardView(TemplateView):
    template_name = 'website/dashboard.html'

    def get_time_range(self):
        time_range = self.request.GET.get('range')
        return time_range if time_range in dashboard.TIME_RANGES else dashboard.DEFAULT_TIME_RANGE

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        api = self.request.api
        time_range = self.get_time_range()
        context['time_range'] = time_range
        context['time_ranges'] = dashboard.TIME_RANGES
        context['can_view_stats'] = request_can(self.request, DASHBOARD_VIEW)
        if not context['can_view_stats']:
            return context

        try:
            context['summary'] = dashboard.load_summary(api, time_range)
        except ApiError as e:
            reraise_unauthorized(e)
            context['summary'] = None
            context['summary_error'] = handle_api_error(self.request, e, is_mutation=False)

        state = DataTable.read_request_state(self.request)
        try:
            page = dashboard.get_table_data(api, page=state['page_index'] + 1, limit=state['page_size'])
            page_count = page.total_pages or max(1, -(-page.total // state['page_size']))
            context['table'] = DataTable(
                page.items, TABLE_DATA_COLUMNS, page_count=page_count, total=page.total,
                base_params={'range': time_range}, **state
            )
        except ApiError as e:
            reraise_unauthorized(e)
            context['table'] = DataTable(
                [], TABLE_DATA_COLUMNS, error=handle_api_error(self.request, e, is_mutation=False), **state
            )
        return context


# ====================================
# ACCOUNT
# ====================================

class AccountView(TemplateView):
    template_name = 'website/account.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        user = self.request.pharmacy_user or {}
        context.setdefault('profile_form', AccountForm(initial=AccountForm.initial_from_record(user)))
        context.setdefault('password_form', ChangePasswordForm())
        return context

    def post(self, request, *args, **kwargs):
        if request.POST.get('action') == 'password':
            return self.change_password()
        return self.update_profile()

    def update_profile(self):
        form = AccountForm(self.request.POST)
        if not form.is_valid():
            return self.render_to_response(self.get_context_data(profile_form=form))
        try:
            updated = auth.update_account(self.request.api, form.to_payload())
        except ApiError as e:
            reraise_unauthorized(e)
            form.add_error(None, handle_api_error(self.request, e, default_message='Failed to update profile'))
            return self.render_to_response(self.get_context_data(profile_form=form))

        store_user(self.request, updated or form.to_payload())
        handle_api_success(self.request, 'Profile updated successfully')
        return redirect('website:account')

    def change_password(self):
        form = ChangePasswordForm(self.request.POST)
        if not form.is_valid():
            return self.render_to_response(self.get_context_data(password_form=form))
        data = form.cleaned_data
        try:
            auth.change_password(
                self.request.api, data['current_password'], data['new_password'], data['confirm_password']
            )
        except ApiError as e:
            reraise_unauthorized(e)
            form.add_error(None, handle_api_error(self.request, e, default_message='Failed to change password'))
            return self.render_to_response(self.get_context_data(password_form=form))

        handle_api_success(self.request, 'Password changed successfully')
        return redirect('website:account')


# ====================================
# NOTIFICATIONS
# ====================================

NOTIFICATION_COLUMNS = [
    Column('title', 'Title'),
    Column('message', 'Message', sortable=False),
    Column('type', 'Type'),
    Column('isRead', 'Read', template='website/cells/boolean.html'),
    Column('createdAt', 'Received', template='website/cells/datetime.html'),
]


class NotificationListView(TemplateView):
    template_name = 'website/notifications.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        state = DataTable.read_request_state(self.request)
        unread_only = self.request.GET.get('unread') == '1'
        try:
            page = notifications.list_notifications(
                self.request.api,
                page=state['page_index'] + 1,
                limit=state['page_size'],
                is_read=False if unread_only else None,
            )
            page_count = page.total_pages or max(1, -(-page.total // state['page_size']))
            context['table'] = DataTable(
                page.items, NOTIFICATION_COLUMNS, page_count=page_count, total=page.total,
                base_params={'unread': '1' if unread_only else ''}, **state
            )
        except ApiError as e:
            reraise_unauthorized(e)
            context['table'] = DataTable(
                [], NOTIFICATION_COLUMNS, error=handle_api_error(self.request, e, is_mutation=False), **state
            )
        context['unread_only'] = unread_only
        context['title'] = 'Notifications'
        return context


class NotificationReadView(View):
    def post(self, request, pk=None):
        try:
            if pk is None:
                notifications.mark_all_read(request.api)
                message = 'All notifications marked as read'
            else:
                notifications.mark_read(request.api, pk)
                message = 'Notification marked as read'
        except ApiError as e:
            reraise_unauthorized(e)
            text = handle_api_error(request, e, default_message='Failed to update notification')
            if wants_json(request):
                return JsonResponse({'success': False, 'message': text}, status=e.status or 502)
            return redirect('website:notifications')

        if wants_json(request):
            return JsonResponse({'success': True, 'message': message})
        handle_api_success(request, message)
        return redirect(request.POST.get('next') or reverse('website:notifications'))


class UnreadCountView(View):
    def get(self, request):
        try:
            count = notifications.unread_count(request.api)
        except ApiError as e:
            reraise_unauthorized(e)
            logger.warning(f"Unread count unavailable: {e.message}")
            count = 0
        return JsonResponse({'success': True, 'count': count})


# ====================================
# PHARMACY SETTINGS
# ====================================

class PharmacySettingsView(PermissionRequiredMixin, FormView):
    """
    Pharmacy name, logo and contacts.

    Saving PATCHes the text fields and then uploads the logo file when one
    was chosen; ``action=remove_logo`` clears the stored logo URL.
    """

    template_name = 'website/pharmacy_settings.html'
    form_class = PharmacySettingsForm

    def dispatch(self, request, *args, **kwargs):
        self.permission_required = SETTINGS['update'] if request.method == 'POST' else SETTINGS['read']
        return super().dispatch(request, *args, **kwargs)

    def get_settings(self):
        if not hasattr(self, '_settings'):
            self._settings = pharmacy.get_settings(self.request.api)
        return self._settings

    def load_failed(self):
        try:
            self.get_settings()
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to load settings', is_mutation=False)
            return redirect('website:home')
        return None

    def get(self, request, *args, **kwargs):
        return self.load_failed() or super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        if request.POST.get('action') == 'remove_logo':
            return self.remove_logo()
        return self.load_failed() or super().post(request, *args, **kwargs)

    def get_initial(self):
        return self.form_class.initial_from_record(self.get_settings())

    def remove_logo(self):
        try:
            pharmacy.update_settings(self.request.api, {'pharmacyLogoUrl': ''})
        except ApiError as e:
            reraise_unauthorized(e)
            handle_api_error(self.request, e, default_message='Failed to remove logo')
        else:
            handle_api_success(self.request, 'Logo removed')
        return redirect('website:pharmacy-settings')

    def form_valid(self, form):
        api = self.request.api
        try:
            pharmacy.update_settings(api, form.to_payload())
        except ApiError as e:
            reraise_unauthorized(e)
            form.add_error(None, handle_api_error(
                self.request, e, default_message='Failed to update pharmacy settings', is_mutation=True
            ))
            return self.form_invalid(form)

        logo = form.cleaned_data.get('logo')
        if logo:
            try:
                pharmacy.upload_logo(api, logo)
            except ApiError as e:
                reraise_unauthorized(e)
                handle_api_error(self.request, e, default_message='Settings saved, but the logo upload failed')
                return redirect('website:pharmacy-settings')

        handle_api_success(self.request, 'Pharmacy settings updated')
        return redirect('website:pharmacy-settings')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['title'] = 'Pharmacy Settings'
        context['pharmacy_settings'] = self.get_settings()
        context['can_update'] = request_can(self.request, SETTINGS['update'])
        return context
