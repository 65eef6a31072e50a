"""
Test suite for the dashboard core
Tests: envelope unwrapping, error messages, API client, data tables, permissions,
session middleware, authentication, dashboard and pharmacy settings pages
"""
from unittest.mock import Mock, patch

import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase

from website.forms import PharmacySettingsForm, SignUpForm, to_camel, to_snake
from website.permissions import can_perform_action, has_permission
from website.services import dashboard
from website.services.api_client import NETWORK_ERROR_MESSAGE, ApiError, PharmacyAPIClient
from website.test_utils import DashboardTestMixin, api_error, make_response
from website.utils.api_errors import (
    PERMISSION_DENIED_MESSAGE,
    extract_error_message,
    get_permission_error_message,
    handle_api_error,
)
from website.utils.envelopes import (
    Page,
    extract_error_code,
    extract_response_message,
    unwrap_collection,
    unwrap_data,
)
from website.utils.tables import Column, DataTable

ROWS = [{'id': 'c-1', 'name': 'Acme'}, {'id': 'c-2', 'name': 'Beta'}]


class EnvelopeTests(SimpleTestCase):
    """Every known collection shape collapses to the same Page"""

    def assertPage(self, page, total=2):
        self.assertEqual(page.items, ROWS)
        self.assertEqual(page.total, total)

    def test_raw_list(self):
        """Test a bare JSON array"""
        self.assertPage(unwrap_collection(ROWS))

    def test_paginated_envelope(self):
        """Test success envelope with pagination block"""
        page = unwrap_collection({
            'success': True,
            'data': ROWS,
            'pagination': {'total': 42, 'page': 3, 'limit': 2, 'totalPages': 21},
        })
        self.assertPage(page, total=42)
        self.assertEqual(page.page, 3)
        self.assertEqual(page.total_pages, 21)

    def test_keyed_collection(self):
        """Test entity-keyed collection with total"""
        self.assertPage(unwrap_collection({'customers': ROWS, 'total': 2}, 'customers'))

    def test_success_envelope_wrapping_keyed_collection(self):
        """Test success envelope whose data is a keyed collection"""
        self.assertPage(unwrap_collection({'success': True, 'data': {'items': ROWS, 'total': 2}}))

    def test_unknown_shapes_are_empty(self):
        """Test unrecognized shapes yield an empty page instead of raising"""
        for response in (None, 'oops', 12, {'foo': 'bar'}, {'success': False, 'error': {'code': 'X'}}):
            page = unwrap_collection(response)
            self.assertEqual(page, Page())
            self.assertEqual(page.total, 0)

    def test_unwrap_data(self):
        """Test payload extraction from success and plain responses"""
        self.assertEqual(unwrap_data({'success': True, 'data': {'id': 1}}), {'id': 1})
        self.assertEqual(unwrap_data({'id': 1}), {'id': 1})
        self.assertIsNone(unwrap_data({'success': False, 'message': 'nope'}))

    def test_error_code_from_status(self):
        """Test legacy statusCode maps to an error code"""
        self.assertEqual(extract_error_code({'statusCode': 404, 'message': 'x'}), 'NOT_FOUND')
        self.assertEqual(
            extract_error_code({'success': False, 'error': {'code': 'DUPLICATE_ENTRY'}}),
            'DUPLICATE_ENTRY',
        )


class ErrorMessageTests(SimpleTestCase):
    """Test user-facing error extraction"""

    def test_forbidden_without_body_message(self):
        """Test 403 falls back to the generic permission message"""
        err = ApiError('Forbidden', status=403, data={})
        self.assertEqual(extract_error_message(err), PERMISSION_DENIED_MESSAGE)

    def test_forbidden_ignores_server_message(self):
        """Test 403 always yields the permission message, whatever the body says"""
        err = ApiError('Forbidden', status=403, data={'message': 'Forbidden resource'})
        self.assertEqual(extract_error_message(err), PERMISSION_DENIED_MESSAGE)

        err = api_error(403, 'Sales are locked', method='GET', success=False, error={'code': 'FORBIDDEN'})
        self.assertEqual(extract_error_message(err), PERMISSION_DENIED_MESSAGE)

    def test_nested_validation_list(self):
        """Test a nested list of validation messages collapses to its first string"""
        err = ApiError('x', status=400, data={'message': {'message': ['name must be a string'], 'statusCode': 400}})
        message = extract_error_message(err)
        self.assertIsInstance(message, str)
        self.assertEqual(message, 'name must be a string')

    def test_message_list_of_lists(self):
        """Test a list message holding no plain string falls back to text"""
        self.assertEqual(extract_response_message({'message': [['too short']]}), 'Validation error')
        self.assertEqual(extract_response_message({'message': [['x'], 'name is required']}), 'name is required')

    def test_nested_validation_list_in_toast(self):
        """Test the toast text for a nested validation list is a plain sentence"""
        request = Mock()
        err = ApiError('x', status=400, data={'message': {'message': ['name must be a string']}})
        with patch('website.utils.api_errors.messages') as mock_messages:
            message = handle_api_error(request, err, is_mutation=True)
        self.assertEqual(message, 'name must be a string')
        mock_messages.error.assert_called_once_with(request, 'name must be a string', fail_silently=True)

    def test_foreign_key_violation_on_sale(self):
        """Test raw constraint errors are rewritten"""
        err = api_error(
            500,
            'update or delete on table "customer" violates foreign key constraint "fk_1" on table "sale"',
        )
        self.assertEqual(
            extract_error_message(err),
            'Cannot delete this record because it has associated sales. '
            'Please delete the related sales first.',
        )

    def test_nested_error_details(self):
        """Test nested error details are used when the top-level message is blank"""
        err = ApiError('', status=400, data={'success': False, 'message': '', 'error': {'details': 'Batch expired'}})
        self.assertEqual(extract_error_message(err), 'Batch expired')

    def test_status_code_lookup(self):
        """Test messageless errors fall back to the status table"""
        err = ApiError('', status=409, data=None)
        self.assertEqual(
            extract_error_message(err),
            'This resource already exists or conflicts with existing data',
        )

    def test_empty_error(self):
        """Test missing error yields default message"""
        self.assertEqual(extract_error_message(None), 'Operation failed')

    def test_permission_message_for_endpoint(self):
        """Test resource name derived from the endpoint"""
        self.assertEqual(
            get_permission_error_message('/payment-methods'),
            "You don't have permission to access Payment Method. Please contact your administrator.",
        )

    @patch('website.utils.api_errors.messages')
    def test_permission_error_on_read_is_not_toasted(self, mock_messages):
        """Test 403 on a background read shows no toast"""
        message = handle_api_error(Mock(), ApiError('Forbidden', status=403, data={}), is_mutation=False)
        self.assertEqual(message, PERMISSION_DENIED_MESSAGE)
        mock_messages.error.assert_not_called()

    @patch('website.utils.api_errors.messages')
    def test_permission_error_on_mutation_is_toasted(self, mock_messages):
        """Test 403 on a write is always shown"""
        handle_api_error(Mock(), ApiError('Forbidden', status=403, data={}), is_mutation=True)
        mock_messages.error.assert_called_once()


class ApiClientTests(SimpleTestCase):
    """Test PharmacyAPIClient request handling"""

    def make_client(self, **kwargs):
        session = Mock()
        session.headers = {}
        return PharmacyAPIClient(base_url='https://api.test', session=session, **kwargs), session

    def test_bearer_header_and_param_cleaning(self):
        """Test token header and removal of empty params"""
        client, session = self.make_client(token='tok')
        session.request.return_value = make_response([])
        client.get('/customers', params={'search': '', 'status': None, 'page': 1})

        kwargs = session.request.call_args.kwargs
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer tok')
        self.assertEqual(kwargs['params'], {'page': 1})
        self.assertEqual(session.request.call_args.args, ('GET', 'https://api.test/customers'))

    def test_success_false_body_raises(self):
        """Test a 200 carrying success=false becomes an ApiError"""
        client, session = self.make_client()
        session.request.return_value = make_response(
            {'success': False, 'statusCode': 409, 'message': 'Duplicate entry'}
        )
        with self.assertRaises(ApiError) as ctx:
            client.post('/customers', json={'name': 'Acme'})
        self.assertEqual(ctx.exception.status, 409)
        self.assertEqual(ctx.exception.message, 'Duplicate entry')

    def test_http_error_raises_with_body(self):
        """Test non-2xx responses carry status and body"""
        client, session = self.make_client()
        session.request.return_value = make_response({'message': 'Not here'}, status=404)
        with self.assertRaises(ApiError) as ctx:
            client.get('/customers/9')
        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(ctx.exception.data, {'message': 'Not here'})
        self.assertTrue(ctx.exception.is_read)

    def test_network_error(self):
        """Test unreachable server yields the network message and no status"""
        client, session = self.make_client()
        session.request.side_effect = requests.ConnectionError('boom')
        with self.assertRaises(ApiError) as ctx:
            client.get('/customers')
        self.assertIsNone(ctx.exception.status)
        self.assertEqual(ctx.exception.message, NETWORK_ERROR_MESSAGE)

    def test_refresh_and_retry_on_401(self):
        """Test one refresh and replay after an expired access token"""
        persisted = Mock()
        client, session = self.make_client(token='old', refresh_token='r1', on_tokens_refreshed=persisted)
        session.request.side_effect = [
            make_response({'message': 'Unauthorized'}, status=401),
            make_response({'accessToken': 'new', 'refreshToken': 'r2'}),
            make_response({'ok': True}),
        ]
        self.assertEqual(client.get('/sales'), {'ok': True})
        self.assertEqual(client.token, 'new')
        self.assertEqual(session.request.call_args.kwargs['headers']['Authorization'], 'Bearer new')
        persisted.assert_called_once()

    def test_no_refresh_for_auth_paths(self):
        """Test sign-in failures are not retried"""
        client, session = self.make_client(refresh_token='r1')
        session.request.return_value = make_response({'message': 'Invalid credentials'}, status=401)
        with self.assertRaises(ApiError):
            client.post('/signin', json={})
        self.assertEqual(session.request.call_count, 1)


class DataTableTests(SimpleTestCase):
    """Test table pagination and state"""

    columns = [Column('name', 'Name'), Column('id', 'ID', hideable=False)]

    def test_manual_pagination_bounds(self):
        """Test previous/next are no-ops at the ends"""
        table = DataTable([], self.columns, page_index=0, page_size=10, page_count=5)
        self.assertFalse(table.can_previous_page)
        self.assertEqual(table.previous_page(), 0)
        table.last_page()
        self.assertEqual(table.page_index, 4)
        self.assertFalse(table.can_next_page)
        self.assertEqual(table.next_page(), 4)
        self.assertIsNone(table.next_url)

    def test_page_index_clamped(self):
        """Test out-of-range page index is clamped"""
        table = DataTable([], self.columns, page_index=99, page_size=10, page_count=3)
        self.assertEqual(table.page_index, 2)

    def test_client_side_slicing_and_sort(self):
        """Test client pagination slices the sorted rows"""
        rows = [{'id': i, 'name': f"item-{i:02d}"} for i in range(25)]
        table = DataTable(rows, self.columns, page_index=2, page_size=10, sort_by='name', sort_desc=True)
        self.assertEqual(table.page_count, 3)
        self.assertEqual(len(table.page_rows), 5)
        self.assertEqual(table.page_rows[0]['name'], 'item-04')

    def test_hidden_columns(self):
        """Test hiding respects non-hideable columns"""
        table = DataTable(ROWS, self.columns, hidden=['name', 'id'])
        self.assertEqual([c.key for c in table.visible_columns], ['id'])

    def test_querystring_keeps_filters(self):
        """Test navigation links carry the base params"""
        table = DataTable([], self.columns, page_size=10, page_count=3, base_params={'search': 'para'})
        self.assertEqual(table.next_url, '?search=para&page=2&page_size=10')

    def test_selected_row(self):
        """Test the detail drawer row lookup"""
        table = DataTable(ROWS, self.columns, selected_id='c-2')
        self.assertEqual(table.selected_row['name'], 'Beta')


class PermissionTests(SimpleTestCase):

    def test_admin_bypass(self):
        """Test ADMIN role passes every check"""
        self.assertTrue(can_perform_action({'role': 'ADMIN'}, [], 'customers.delete'))

    def test_any_and_all(self):
        """Test any-of and all-of checks"""
        codes = ['customers.read']
        self.assertTrue(has_permission(codes, ['customers.read', 'customers.create']))
        self.assertFalse(has_permission(codes, ['customers.read', 'customers.create'], require_all=True))
        self.assertFalse(can_perform_action({'role': 'STAFF'}, [], 'customers.read'))

    def test_no_requirement(self):
        """Test empty requirement is allowed"""
        self.assertTrue(can_perform_action(None, [], None))


class FormHelperTests(SimpleTestCase):

    def test_case_conversion(self):
        self.assertEqual(to_camel('first_name'), 'firstName')
        self.assertEqual(to_snake('batchNumber'), 'batch_number')

    def test_signup_password_mismatch(self):
        """Test confirm password must match"""
        form = SignUpForm(data={
            'email': 'a@b.co', 'password': 'secret1', 'confirm_password': 'secret2',
            'phone': '0700', 'address': 'Main St',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('Passwords do not match', form.errors['confirm_password'])


class DashboardServiceTests(SimpleTestCase):

    def test_chart_rows(self):
        """Test chart data flattened with config labels"""
        labels, rows = dashboard.chart_rows({
            'config': {'sales': {'label': 'Sales'}},
            'chartData': [{'date': '2024-01-01', 'sales': 3}],
        })
        self.assertEqual(labels, [('sales', 'Sales')])
        self.assertEqual(rows, [{'date': '2024-01-01', 'values': [3]}])

    def test_stat_cards_skip_missing(self):
        """Test optional cards are skipped"""
        cards = dashboard.stat_cards({'totalRevenue': {'value': 10, 'trend': 5, 'trendDirection': 'up'}})
        self.assertEqual([card['key'] for card in cards], ['totalRevenue'])

    def test_summary_fails_as_a_unit(self):
        """Test a failing chart request fails the whole summary"""
        client = Mock()
        client.get.side_effect = [{'totalSales': {'value': 1}}, ApiError('down', status=500)]
        with self.assertRaises(ApiError):
            dashboard.load_summary(client, '30d')
        self.assertEqual(client.get.call_count, 2)


class SessionMiddlewareTests(DashboardTestMixin, SimpleTestCase):
    """Test login redirect and session expiry"""

    def test_anonymous_redirected_to_login(self):
        response = self.client.get('/notifications/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/login/?next=%2Fnotifications%2F')

    def test_anonymous_ajax_gets_401(self):
        response = self.client.get('/notifications/unread-count/', HTTP_X_REQUESTED_WITH='XMLHttpRequest')
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()['success'])

    @patch('website.services.notifications.list_notifications')
    def test_remote_401_ends_session(self, mock_list):
        """Test an API 401 clears the session and redirects to login"""
        self.sign_in()
        mock_list.side_effect = ApiError('Unauthorized', status=401, data={}, method='GET')
        response = self.client.get('/notifications/')
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response['Location'].startswith('/login/'))
        self.assertNotIn('accessToken', self.client.session)

    def test_login_page_is_public(self):
        response = self.client.get('/login/')
        self.assertEqual(response.status_code, 200)


class AuthViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('website.views.auth.get_my_permissions', return_value=['customers.read'])
    @patch('website.views.auth.sign_in')
    def test_login_success_stores_session(self, mock_sign_in, mock_permissions):
        """Test tokens, user and permissions are stored on sign-in"""
        mock_sign_in.return_value = {
            'success': True,
            'data': {
                'user': {'id': 'u-9', 'email': 'staff@pharmacy.test', 'role': 'STAFF'},
                'tokens': {'accessToken': 'a-1', 'refreshToken': 'r-1'},
            },
        }
        response = self.client.post('/login/', {'email': 'Staff@Pharmacy.test', 'password': 'secret'})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/')
        mock_sign_in.assert_called_once_with('staff@pharmacy.test', 'secret')
        session = self.client.session
        self.assertEqual(session['accessToken'], 'a-1')
        self.assertEqual(session['refreshToken'], 'r-1')
        self.assertEqual(session['permissions'], ['customers.read'])
        self.assertEqual(session['user']['id'], 'u-9')

    @patch('website.views.auth.sign_in')
    def test_login_failure_shows_message(self, mock_sign_in):
        mock_sign_in.side_effect = api_error(401, 'Invalid credentials')
        response = self.client.post('/login/', {'email': 'staff@pharmacy.test', 'password': 'bad'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid credentials')

    def test_login_validation(self):
        response = self.client.post('/login/', {'email': '', 'password': ''})
        self.assertContains(response, 'Email is required')
        self.assertContains(response, 'Password is required')

    @patch('website.views.auth.sign_out')
    def test_logout_clears_session(self, mock_sign_out):
        self.sign_in()
        response = self.client.post('/logout/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/login/')
        self.assertNotIn('accessToken', self.client.session)
        mock_sign_out.assert_called_once()

    @patch('website.views.auth.update_account', return_value={'firstName': 'Ann'})
    def test_profile_update(self, mock_update):
        self.sign_in()
        response = self.client.post('/account/', {'action': 'profile', 'first_name': 'Ann'})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(mock_update.call_args.args[1], {'firstName': 'Ann'})
        self.assertEqual(self.client.session['user']['firstName'], 'Ann')
        self.assertIn('Profile updated successfully', self.messages_of(response))


class DashboardViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('website.views.dashboard.load_summary')
    def test_stats_hidden_without_permission(self, mock_summary):
        self.sign_in(permissions=[])
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.context['can_view_stats'])
        mock_summary.assert_not_called()

    @patch('website.views.dashboard.get_table_data')
    @patch('website.views.dashboard.load_summary')
    def test_admin_sees_summary(self, mock_summary, mock_table):
        self.sign_in_admin()
        mock_summary.return_value = {
            'stats': {},
            'cards': [{
                'key': 'totalRevenue', 'label': 'Total Revenue', 'value': 1200, 'trend': 4,
                'trend_direction': 'up', 'footer_text': '', 'footer_subtext': '',
            }],
            'charts': {'sales': ([('sales', 'Sales')], [{'date': '2024-01-01', 'values': [5]}])},
        }
        mock_table.return_value = Page([{'id': 1, 'header': 'Cover page', 'status': 'Done'}], total=1)

        response = self.client.get('/?range=30d')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Total Revenue')
        self.assertContains(response, 'Cover page')
        self.assertEqual(mock_summary.call_args.args[1], '30d')

    @patch('website.views.dashboard.get_table_data', return_value=Page())
    @patch('website.views.dashboard.load_summary')
    def test_summary_failure_shows_error(self, mock_summary, mock_table):
        self.sign_in(permissions=['dashboard.view'])
        mock_summary.side_effect = api_error(500, 'Stats unavailable', method='GET')
        response = self.client.get('/')
        self.assertEqual(response.context['summary_error'], 'Stats unavailable')


class NotificationViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('website.views.notifications.mark_all_read')
    def test_mark_all_read(self, mock_mark):
        self.sign_in()
        response = self.client.post('/notifications/read-all/')
        self.assertEqual(response.status_code, 302)
        mock_mark.assert_called_once()

    @patch('website.views.notifications.unread_count', return_value=3)
    def test_unread_count(self, mock_count):
        self.sign_in()
        response = self.client.get('/notifications/unread-count/', HTTP_X_REQUESTED_WITH='XMLHttpRequest')
        self.assertEqual(response.json(), {'success': True, 'count': 3})


PHARMACY_SETTINGS = {
    'id': 's1', 'pharmacyName': 'Qenenia Pharmacy', 'pharmacyLogoUrl': '/uploads/logo/old.png',
    'address': 'Bole, Addis Ababa', 'phone': '+251911000000', 'email': 'info@qenenia.test',
}


@patch('website.views.pharmacy.get_settings', return_value=PHARMACY_SETTINGS)
class PharmacySettingsViewTests(DashboardTestMixin, SimpleTestCase):
    """Test the pharmacy settings page and logo upload"""

    def test_prefills_current_settings(self, mock_get):
        self.sign_in(permissions=['settings.read'])
        response = self.client.get('/settings/pharmacy/')
        initial = response.context['form'].initial
        self.assertEqual(initial['pharmacy_name'], 'Qenenia Pharmacy')
        self.assertEqual(initial['email'], 'info@qenenia.test')
        self.assertFalse(response.context['can_update'])

    def test_read_permission_required(self, mock_get):
        self.sign_in(permissions=[])
        response = self.client.get('/settings/pharmacy/')
        self.assertEqual(response['Location'], '/unauthorized/')

    @patch('website.views.pharmacy.update_settings')
    def test_save_requires_update_permission(self, mock_update, mock_get):
        self.sign_in(permissions=['settings.read'])
        response = self.client.post('/settings/pharmacy/', {'pharmacy_name': 'Other'})
        self.assertEqual(response['Location'], '/unauthorized/')
        mock_update.assert_not_called()

    @patch('website.views.pharmacy.upload_logo')
    @patch('website.views.pharmacy.update_settings')
    def test_save_patches_then_uploads_logo(self, mock_update, mock_upload, mock_get):
        self.sign_in(permissions=['settings.read', 'settings.update'])
        logo = SimpleUploadedFile('logo.png', b'\x89PNG', content_type='image/png')
        response = self.client.post('/settings/pharmacy/', {
            'pharmacy_name': ' Qenenia Pharmacy ', 'phone': '', 'email': 'info@qenenia.test', 'logo': logo,
        })
        self.assertEqual(response['Location'], '/settings/pharmacy/')
        self.assertEqual(mock_update.call_args.args[1], {
            'pharmacyName': 'Qenenia Pharmacy', 'email': 'info@qenenia.test',
        })
        self.assertEqual(mock_upload.call_args.args[1].name, 'logo.png')
        self.assertIn('Pharmacy settings updated', self.messages_of(response))

    @patch('website.views.pharmacy.update_settings')
    def test_remove_logo_clears_url(self, mock_update, mock_get):
        self.sign_in_admin()
        response = self.client.post('/settings/pharmacy/', {'action': 'remove_logo'})
        mock_update.assert_called_once()
        self.assertEqual(mock_update.call_args.args[1], {'pharmacyLogoUrl': ''})
        self.assertIn('Logo removed', self.messages_of(response))

    @patch('website.views.pharmacy.update_settings')
    def test_api_error_kept_on_form(self, mock_update, mock_get):
        self.sign_in_admin()
        mock_update.side_effect = api_error(400, 'email must be an email', method='PATCH')
        response = self.client.post('/settings/pharmacy/', {'email': 'info@qenenia.test'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('email must be an email', response.context['form'].non_field_errors())

    def test_logo_must_be_an_image(self, mock_get):
        upload = SimpleUploadedFile('logo.txt', b'hello', content_type='text/plain')
        form = PharmacySettingsForm(data={}, files={'logo': upload})
        self.assertFalse(form.is_valid())
        self.assertIn('Please choose an image file', form.errors['logo'])


class CheckApiCommandTests(SimpleTestCase):

    @patch('website.management.commands.check_api.PharmacyAPIClient')
    def test_unreachable_api(self, mock_client_class):
        mock_client_class.return_value.request.side_effect = ApiError(NETWORK_ERROR_MESSAGE, status=None)
        with self.assertRaises(CommandError):
            call_command('check_api')
