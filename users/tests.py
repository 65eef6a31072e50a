"""
Test suite for Users module
Tests: user form password rules, permission catalogue, user and permission views
"""
from unittest.mock import Mock, patch

from django.test import SimpleTestCase

from users import services
from users.forms import UserForm
from website.test_utils import DashboardTestMixin, api_error
from website.utils.envelopes import Page


def user_data(**overrides):
    data = {
        'email': '  Abebe@Pharmacy.TEST ',
        'first_name': 'Abebe',
        'phone': '+251911000000',
        'roles': ['RECEPTION'],
        'is_active': 'on',
        'password': 'secret1',
        'confirm_password': 'secret1',
    }
    data.update(overrides)
    return data


class UserFormTests(SimpleTestCase):
    """Test create / update password handling"""

    def test_create_payload(self):
        form = UserForm(data=user_data())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {
            'email': 'abebe@pharmacy.test',
            'firstName': 'Abebe',
            'phone': '+251911000000',
            'roles': ['RECEPTION'],
            'isActive': True,
            'password': 'secret1',
            'confirmPassword': 'secret1',
        })

    def test_create_requires_password(self):
        form = UserForm(data=user_data(password='', confirm_password=''))
        self.assertFalse(form.is_valid())
        self.assertIn('Password is required', form.errors['password'])

    def test_passwords_must_match(self):
        form = UserForm(data=user_data(confirm_password='secret2'))
        self.assertFalse(form.is_valid())
        self.assertIn('Passwords do not match', form.errors['confirm_password'])

    def test_password_min_length(self):
        form = UserForm(data=user_data(password='abc', confirm_password='abc'))
        self.assertFalse(form.is_valid())
        self.assertIn('Password must be at least 6 characters', form.errors['password'])

    def test_at_least_one_role(self):
        form = UserForm(data=user_data(roles=[]))
        self.assertFalse(form.is_valid())
        self.assertIn('Select at least one role', form.errors['roles'])

    def test_required_profile_fields(self):
        form = UserForm(data=user_data(first_name='', phone=''))
        self.assertFalse(form.is_valid())
        self.assertIn('First name is required', form.errors['first_name'])
        self.assertIn('Phone is required', form.errors['phone'])

    def test_update_leaves_blank_password_out(self):
        form = UserForm(data=user_data(password='', confirm_password='', is_active=''), is_update=True)
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertNotIn('password', payload)
        self.assertNotIn('confirmPassword', payload)
        self.assertIs(payload['isActive'], False)

    def test_update_password_needs_confirmation(self):
        form = UserForm(data=user_data(confirm_password=''), is_update=True)
        self.assertFalse(form.is_valid())
        self.assertIn('Please confirm the password', form.errors['confirm_password'])

        form = UserForm(data=user_data(password=''), is_update=True)
        self.assertFalse(form.is_valid())
        self.assertIn('Enter the new password as well', form.errors['password'])


class PermissionServiceTests(SimpleTestCase):

    def test_catalogue_accepts_strings_and_objects(self):
        client = Mock()
        client.get.return_value = {'success': True, 'data': [
            {'code': 'sales.read', 'description': 'View sales'},
            'customers.create',
            {'description': 'no code'},
        ]}
        catalogue = services.list_permissions(client)
        self.assertEqual([entry['code'] for entry in catalogue], ['customers.create', 'sales.read'])

    def test_group_by_resource(self):
        catalogue = [{'code': 'sales.read'}, {'code': 'customers.read'}, {'code': 'sales.create'}]
        groups = services.group_permissions(catalogue)
        self.assertEqual([name for name, _ in groups], ['customers', 'sales'])
        self.assertEqual([entry['code'] for entry in groups[1][1]], ['sales.create', 'sales.read'])

    def test_set_user_permissions_sends_codes(self):
        client = Mock()
        client.patch.return_value = {'success': True, 'data': ['sales.read']}
        codes = services.set_user_permissions(client, 'u2', ['sales.read', 'sales.read'])
        client.patch.assert_called_once_with('/permissions/users/u2', json={'codes': ['sales.read']})
        self.assertEqual(codes, ['sales.read'])

    def test_full_name(self):
        self.assertEqual(services.full_name({'firstName': 'Abebe', 'lastName': 'Kebede'}), 'Abebe Kebede')
        self.assertEqual(services.full_name({'email': 'a@b.test'}), 'a@b.test')


class UserViewTests(DashboardTestMixin, SimpleTestCase):
    """Test user CRUD pages"""

    @patch.object(services.users, 'list')
    def test_list(self, mock_list):
        self.sign_in(permissions=['users.read'])
        mock_list.return_value = Page([
            {'id': 'u2', 'firstName': 'Abebe', 'lastName': 'Kebede', 'email': 'abebe@pharmacy.test', 'isActive': True},
        ], total=1)
        response = self.client.get('/users/', {'role': 'ADMIN'})
        self.assertContains(response, 'Abebe Kebede')
        self.assertEqual(mock_list.call_args.kwargs['role'], 'ADMIN')

    @patch.object(services.users, 'create', return_value={'id': 'u2'})
    def test_create(self, mock_create):
        self.sign_in(permissions=['users.create'])
        response = self.client.post('/users/new/', user_data())
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/users/')
        self.assertEqual(mock_create.call_args.args[1]['email'], 'abebe@pharmacy.test')
        self.assertIn('User created successfully', self.messages_of(response))

    @patch.object(services.users, 'create')
    def test_mismatched_passwords_make_no_call(self, mock_create):
        self.sign_in(permissions=['users.create'])
        response = self.client.post('/users/new/', user_data(confirm_password='other1'))
        self.assertContains(response, 'Passwords do not match')
        mock_create.assert_not_called()

    @patch.object(services.users, 'update', return_value={'id': 'u2'})
    @patch.object(services.users, 'get')
    def test_update_without_password(self, mock_get, mock_update):
        self.sign_in(permissions=['users.update'])
        mock_get.return_value = {'id': 'u2', 'email': 'abebe@pharmacy.test', 'roles': ['USER'], 'isActive': True}
        response = self.client.post('/users/u2/edit/', user_data(password='', confirm_password=''))
        self.assertEqual(response.status_code, 302)
        pk, payload = mock_update.call_args.args[1:]
        self.assertEqual(pk, 'u2')
        self.assertNotIn('password', payload)

    @patch.object(services.users, 'get')
    def test_edit_prefills_roles(self, mock_get):
        self.sign_in(permissions=['users.update'])
        mock_get.return_value = {'id': 'u2', 'email': 'abebe@pharmacy.test', 'roles': ['FINANCE'], 'isActive': False}
        response = self.client.get('/users/u2/edit/')
        initial = response.context['form'].initial
        self.assertEqual(initial['roles'], ['FINANCE'])
        self.assertIs(initial['is_active'], False)

    @patch.object(services.users, 'create')
    def test_duplicate_email(self, mock_create):
        self.sign_in_admin()
        mock_create.side_effect = api_error(
            409, 'User with this email already exists', success=False, error={'code': 'CONFLICT', 'field': 'email'},
        )
        response = self.client.post('/users/new/', user_data())
        self.assertIn('User with this email already exists', response.context['form'].errors['email'])


@patch.object(services, 'get_user_permissions', return_value=['sales.read'])
@patch.object(services, 'list_permissions', return_value=[
    {'code': 'sales.read', 'description': 'View sales'},
    {'code': 'sales.create'},
])
@patch.object(services.users, 'get', return_value={'id': 'u2', 'firstName': 'Abebe', 'email': 'abebe@pharmacy.test'})
class UserPermissionsViewTests(DashboardTestMixin, SimpleTestCase):
    """Test the per-user permission editor"""

    def test_shows_current_codes(self, *mocks):
        self.sign_in(permissions=['permissions.manage'])
        response = self.client.get('/users/u2/permissions/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['selected'], {'sales.read'})
        self.assertContains(response, 'View sales')

    @patch.object(services, 'set_user_permissions', return_value=['sales.create'])
    def test_save_replaces_codes(self, mock_set, *mocks):
        self.sign_in(permissions=['permissions.manage'])
        response = self.client.post('/users/u2/permissions/', {'codes': ['sales.create']})
        self.assertEqual(response['Location'], '/users/u2/')
        self.assertEqual(mock_set.call_args.args[1:], ('u2', ['sales.create']))
        self.assertIn('Permissions updated', self.messages_of(response))

    @patch.object(services, 'set_user_permissions')
    def test_unknown_code_rejected(self, mock_set, *mocks):
        self.sign_in(permissions=['permissions.manage'])
        response = self.client.post('/users/u2/permissions/', {'codes': ['bogus.code']})
        self.assertEqual(response.status_code, 200)
        mock_set.assert_not_called()

    def test_requires_manage_permission(self, *mocks):
        self.sign_in(permissions=['users.read', 'users.update'])
        response = self.client.get('/users/u2/permissions/')
        self.assertEqual(response['Location'], '/unauthorized/')
