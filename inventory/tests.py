"""
Test suite for Inventory module
Tests: medicine/product/import form validation, entity views over the remote API,
JSON lookups, units of measure and conversions
"""
import datetime
from decimal import Decimal
from unittest.mock import Mock, patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase
from django.utils import timezone

from inventory import services
from inventory.forms import MedicineForm, ProductForm, ProductImportForm, UnitCategoryForm, UomForm
from inventory.utils import uom as uom_utils
from website.test_utils import DashboardTestMixin, api_error
from website.utils.envelopes import Page


def medicine_data(**overrides):
    data = {
        'product_name': 'Paracetamol 500mg',
        'category_id': 'cat-1',
        'quantity': '100',
        'selling_price': '2.50',
        'cost_price': '1.20',
        'manufacturing_date': '2024-01-01',
        'expiry_date': '2026-01-01',
        'barcode_number': '6001234',
    }
    data.update(overrides)
    return data


class MedicineFormTests(SimpleTestCase):
    """Test pharmaceutical date rules"""

    choices = {'category_id': [('cat-1', 'Analgesics')]}

    def test_valid_payload_renames_fields(self):
        """Test productName and barcodeNumber are sent as name and barcode"""
        form = MedicineForm(data=medicine_data(), choices=self.choices)
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['name'], 'Paracetamol 500mg')
        self.assertEqual(payload['barcode'], '6001234')
        self.assertEqual(payload['expiryDate'], '2026-01-01')
        self.assertEqual(payload['sellingPrice'], 2.5)
        self.assertNotIn('productName', payload)

    def test_expiry_before_manufacturing(self):
        """Test expiry earlier than manufacturing date fails on expiry_date"""
        form = MedicineForm(data=medicine_data(expiry_date='2023-12-31'), choices=self.choices)
        self.assertFalse(form.is_valid())
        self.assertIn('Expiry date must be ahead of manufacturing date', form.errors['expiry_date'])

    def test_expiry_equal_to_manufacturing(self):
        """Test expiry equal to manufacturing date fails"""
        form = MedicineForm(data=medicine_data(expiry_date='2024-01-01'), choices=self.choices)
        self.assertFalse(form.is_valid())
        self.assertIn('ahead of manufacturing date', form.errors['expiry_date'][0])

    def test_manufacturing_date_in_future(self):
        """Test manufacturing date after today fails"""
        tomorrow = timezone.localdate() + datetime.timedelta(days=1)
        later = tomorrow + datetime.timedelta(days=365)
        form = MedicineForm(
            data=medicine_data(manufacturing_date=tomorrow.isoformat(), expiry_date=later.isoformat()),
            choices=self.choices,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('Manufacturing date cannot be in the future', form.errors['manufacturing_date'])

    def test_short_name_and_negative_quantity(self):
        form = MedicineForm(data=medicine_data(product_name='P', quantity='-1'), choices=self.choices)
        self.assertFalse(form.is_valid())
        self.assertIn('Product name must be at least 2 characters', form.errors['product_name'])
        self.assertIn('Quantity cannot be negative', form.errors['quantity'])

    def test_initial_from_record(self):
        """Test API record is mapped back onto form fields"""
        initial = MedicineForm.initial_from_record({
            'name': 'Amoxil', 'barcode': '77', 'expiryDate': '2026-05-01T00:00:00.000Z',
            'category': {'id': 'cat-1', 'name': 'Antibiotics'},
        })
        self.assertEqual(initial['product_name'], 'Amoxil')
        self.assertEqual(initial['barcode_number'], '77')
        self.assertEqual(initial['expiry_date'], '2026-05-01')
        self.assertEqual(initial['category_id'], 'cat-1')


class ProductFormTests(SimpleTestCase):

    def test_required_pickers(self):
        """Test category and unit category are required"""
        form = ProductForm(data={'name': 'Amoxil', 'product_code': 'AMX-1'})
        self.assertFalse(form.is_valid())
        self.assertIn('Category is required', form.errors['category_id'])
        self.assertIn('Unit category is required', form.errors['unit_category_id'])

    def test_payload_skips_blank_optionals(self):
        form = ProductForm(
            data={'name': ' Amoxil ', 'product_code': 'AMX-1', 'category_id': 'c1', 'unit_category_id': 'u1',
                  'min_level': '5'},
            choices={'category_id': [('c1', 'Antibiotics')], 'unit_category_id': [('u1', 'Count')]},
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {
            'name': 'Amoxil', 'productCode': 'AMX-1', 'categoryId': 'c1', 'unitCategoryId': 'u1', 'minLevel': 5,
        })


class ProductImportFormTests(SimpleTestCase):

    def test_rejects_non_excel(self):
        upload = SimpleUploadedFile('products.csv', b'name,code\n', content_type='text/csv')
        form = ProductImportForm(data={}, files={'file': upload})
        self.assertFalse(form.is_valid())
        self.assertIn('Please upload an Excel file (.xlsx or .xls)', form.errors['file'])

    def test_rejects_large_file(self):
        upload = SimpleUploadedFile('products.xlsx', b'x' * (5 * 1024 * 1024 + 1))
        form = ProductImportForm(data={}, files={'file': upload})
        self.assertFalse(form.is_valid())
        self.assertIn('File size must be less than 5MB', form.errors['file'])

    def test_accepts_excel(self):
        upload = SimpleUploadedFile('products.xlsx', b'PK\x03\x04')
        form = ProductImportForm(data={}, files={'file': upload})
        self.assertTrue(form.is_valid())


class ImportServiceTests(SimpleTestCase):

    def test_import_result_with_integer_success(self):
        """Test a bare import result is not mistaken for a failed envelope"""
        client = Mock()
        client.upload.return_value = {
            'success': 3, 'failed': 1, 'errors': ['Row 4: missing code'], 'products': [],
        }
        result = services.import_products(client, object())
        self.assertEqual(result['success'], 3)
        self.assertEqual(result['failed'], 1)
        self.assertEqual(result['errors'], ['Row 4: missing code'])
        self.assertEqual(client.upload.call_args.args[0], '/products/import/simple')

    def test_import_result_in_envelope(self):
        client = Mock()
        client.upload.return_value = {'success': True, 'data': {'success': 2, 'failed': 0}}
        result = services.import_products(client, object())
        self.assertEqual(result['success'], 2)
        self.assertEqual(result['errors'], [])


class CategoryViewTests(DashboardTestMixin, SimpleTestCase):
    """Test category pages over a mocked API"""

    @patch.object(services.categories, 'list')
    def test_list_renders_rows(self, mock_list):
        self.sign_in(permissions=['categories.read'])
        mock_list.return_value = Page([{'id': 'c1', 'name': 'Antibiotics'}], total=1)
        response = self.client.get('/inventory/categories/?search=anti&page=1')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Antibiotics')
        self.assertEqual(mock_list.call_args.kwargs['search'], 'anti')
        self.assertEqual(mock_list.call_args.kwargs['limit'], 10)

    @patch.object(services.categories, 'list')
    def test_list_error_replaces_table(self, mock_list):
        self.sign_in(permissions=['categories.read'])
        mock_list.side_effect = api_error(500, 'Database unavailable', method='GET')
        response = self.client.get('/inventory/categories/')
        self.assertContains(response, 'Database unavailable')
        self.assertEqual(response.context['table'].error, 'Database unavailable')

    def test_list_requires_permission(self):
        self.sign_in(permissions=[])
        response = self.client.get('/inventory/categories/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/unauthorized/')

    @patch.object(services.categories, 'create', return_value={'id': 'c9', 'name': 'Vitamins'})
    def test_create(self, mock_create):
        self.sign_in(permissions=['categories.create'])
        response = self.client.post('/inventory/categories/new/', {'name': ' Vitamins ', 'description': ''})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/inventory/categories/')
        self.assertEqual(mock_create.call_args.args[1], {'name': 'Vitamins'})
        self.assertIn('Category created successfully', self.messages_of(response))

    @patch.object(services.categories, 'create')
    def test_create_invalid_makes_no_call(self, mock_create):
        self.sign_in(permissions=['categories.create'])
        response = self.client.post('/inventory/categories/new/', {'name': ''})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Category name is required')
        mock_create.assert_not_called()

    @patch.object(services.categories, 'create')
    def test_create_conflict_shows_inline_error(self, mock_create):
        self.sign_in(permissions=['categories.create'])
        mock_create.side_effect = api_error(409, 'Category already exists')
        response = self.client.post('/inventory/categories/new/', {'name': 'Vitamins'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Category already exists')

    @patch.object(services.categories, 'update', return_value={'id': 'c1'})
    @patch.object(services.categories, 'get', return_value={'id': 'c1', 'name': 'Antibiotics'})
    def test_update_prefills_and_patches(self, mock_get, mock_update):
        self.sign_in(permissions=['categories.update'])
        response = self.client.get('/inventory/categories/c1/edit/')
        self.assertEqual(response.context['form'].initial['name'], 'Antibiotics')

        response = self.client.post('/inventory/categories/c1/edit/', {'name': 'Anti-infectives'})
        self.assertEqual(response.status_code, 302)
        mock_update.assert_called_once()
        self.assertEqual(mock_update.call_args.args[1:], ('c1', {'name': 'Anti-infectives'}))

    @patch.object(services.categories, 'delete')
    def test_delete_foreign_key_error(self, mock_delete):
        self.sign_in_admin()
        mock_delete.side_effect = api_error(
            409, 'delete on table "category" violates foreign key constraint "fk" on table "purchase"'
        )
        response = self.client.post('/inventory/categories/c1/delete/')
        self.assertEqual(response.status_code, 302)
        self.assertIn(
            'Cannot delete this record because it has associated purchases. '
            'Please delete the related purchases first.',
            self.messages_of(response),
        )

    @patch.object(services.categories, 'delete')
    def test_delete_ajax(self, mock_delete):
        self.sign_in_admin()
        response = self.client.post('/inventory/categories/c1/delete/', HTTP_X_REQUESTED_WITH='XMLHttpRequest')
        self.assertEqual(response.json(), {'success': True, 'message': 'Category deleted successfully'})


class BatchViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('inventory.views.services.list_batches')
    def test_unpaginated_list_is_sliced_locally(self, mock_batches):
        self.sign_in(permissions=['batches.read'])
        mock_batches.return_value = [{'id': str(i), 'batchNumber': f"B{i:03d}"} for i in range(15)]
        response = self.client.get('/inventory/batches/?page=2&expiredOnly=true')
        table = response.context['table']
        self.assertEqual(table.page_count, 2)
        self.assertEqual(len(table.page_rows), 5)
        self.assertTrue(mock_batches.call_args.kwargs['expired_only'])


class LookupApiTests(DashboardTestMixin, SimpleTestCase):

    @patch.object(services.products, 'list')
    def test_product_lookup(self, mock_list):
        self.sign_in(permissions=['products.read'])
        mock_list.return_value = Page([{
            'id': 'p1', 'name': 'Amoxil', 'productCode': 'AMX', 'quantity': 12, 'sellingPrice': '4.50',
            'category': {'id': 'c1', 'name': 'Antibiotics'},
        }])
        response = self.client.get('/inventory/api/products/lookup/?search=amo')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data'][0]['category'], 'Antibiotics')
        self.assertEqual(body['data'][0]['selling_price'], 4.5)
        self.assertIsNone(body['data'][0]['generic_name'])

    @patch('inventory.api.views.services.available_batches')
    def test_batches_error_passes_status(self, mock_batches):
        self.sign_in(permissions=['batches.read'])
        mock_batches.side_effect = api_error(404, 'Product not found', method='GET')
        response = self.client.get('/inventory/api/products/p9/batches/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'success': False, 'message': 'Product not found'})

    def test_lookup_forbidden_without_permission(self):
        self.sign_in(permissions=[])
        response = self.client.get('/inventory/api/products/lookup/')
        self.assertEqual(response.status_code, 403)


MILLIGRAM = {'id': 'mg', 'name': 'Milligram', 'abbreviation': 'mg', 'conversionRate': '0.001', 'baseUnit': False}
GRAM = {'id': 'g', 'name': 'Gram', 'abbreviation': 'g', 'conversionRate': '1', 'baseUnit': True, 'unitCategoryId': 'w'}
BOX = {'id': 'box', 'name': 'Box', 'conversionRate': '10'}


class UomConversionTests(SimpleTestCase):
    """Test base-unit conversions and the availability check"""

    def test_base_unit_detection(self):
        self.assertTrue(uom_utils.is_base_unit(None))
        self.assertTrue(uom_utils.is_base_unit(GRAM))
        self.assertFalse(uom_utils.is_base_unit(MILLIGRAM))
        self.assertTrue(uom_utils.is_base_unit({'conversionRate': '1'}))
        self.assertFalse(uom_utils.is_base_unit(BOX))

    def test_convert_both_ways(self):
        self.assertEqual(uom_utils.convert_to_base(2000, MILLIGRAM), Decimal('2'))
        self.assertEqual(uom_utils.convert_from_base(2, MILLIGRAM), Decimal('2000'))
        self.assertEqual(uom_utils.convert_to_base(3, BOX), Decimal('30'))
        self.assertEqual(uom_utils.convert_to_base(7, None), Decimal('7'))

    def test_format_quantity(self):
        self.assertEqual(uom_utils.format_quantity_with_uom(2.5, GRAM), '2.50 g')
        self.assertEqual(uom_utils.format_quantity_with_uom(3, BOX, precision=0), '3 Box')
        self.assertEqual(uom_utils.format_quantity_with_uom('4'), '4.00')

    def test_availability_in_other_unit(self):
        check = uom_utils.validate_quantity_availability(2, BOX, 25)
        self.assertTrue(check.valid)
        self.assertIsNone(check.message)
        self.assertEqual(check.requested_in_base, Decimal('20'))

        check = uom_utils.validate_quantity_availability(3, BOX, 25)
        self.assertFalse(check.valid)
        self.assertEqual(
            check.message,
            'Insufficient quantity. Available: 25 (base UOM), Requested: 3 (Box)',
        )

    def test_availability_rounds_to_whole_base_units(self):
        self.assertTrue(uom_utils.validate_quantity_availability(1400, MILLIGRAM, 1).valid)
        self.assertFalse(uom_utils.validate_quantity_availability(1500, MILLIGRAM, 1).valid)


class UomFormTests(SimpleTestCase):

    choices = {'unit_category_id': [('w', 'Weight')]}

    def test_required_fields(self):
        form = UomForm(data={}, choices=self.choices)
        self.assertFalse(form.is_valid())
        self.assertIn('Name is required', form.errors['name'])
        self.assertIn('Unit category is required', form.errors['unit_category_id'])
        self.assertIn('Conversion rate is required', form.errors['conversion_rate'])

    def test_rate_must_be_positive(self):
        form = UomForm(data={'name': 'Gram', 'unit_category_id': 'w', 'conversion_rate': '0'}, choices=self.choices)
        self.assertFalse(form.is_valid())
        self.assertIn('Conversion rate must be greater than 0', form.errors['conversion_rate'])

    def test_payload_sends_rate_as_string(self):
        form = UomForm(
            data={'name': 'Milligram', 'abbreviation': 'mg', 'unit_category_id': 'w', 'conversion_rate': '0.001000'},
            choices=self.choices,
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {
            'name': 'Milligram', 'abbreviation': 'mg', 'unitCategoryId': 'w',
            'conversionRate': '0.001', 'baseUnit': False,
        })

    def test_replaced_base_unit(self):
        data = {'name': 'Kilogram', 'unit_category_id': 'w', 'conversion_rate': '1000', 'base_unit': 'on'}
        form = UomForm(data=data, choices=self.choices, base_units={'w': GRAM})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.replaced_base_unit, GRAM)
        self.assertEqual(form.to_payload()['conversionRate'], '1000')

        form = UomForm(data=data, choices=self.choices, base_units={'w': GRAM}, current_id='g')
        self.assertTrue(form.is_valid(), form.errors)
        self.assertIsNone(form.replaced_base_unit)

    def test_unit_category_name_required(self):
        form = UnitCategoryForm(data={'description': 'Mass'})
        self.assertFalse(form.is_valid())
        self.assertIn('Name is required', form.errors['name'])


class UomViewTests(DashboardTestMixin, SimpleTestCase):
    """Test unit-of-measure and unit-category pages"""

    @patch('inventory.views.services.all_unit_categories', return_value=[{'id': 'w', 'name': 'Weight'}])
    @patch('inventory.views.services.list_uoms')
    def test_list_filters_by_category(self, mock_list, mock_categories):
        self.sign_in(permissions=['uoms.read'])
        mock_list.return_value = Page([GRAM, MILLIGRAM], total=2)
        response = self.client.get('/inventory/uoms/', {'unitCategoryId': 'w', 'search': 'gram'})
        self.assertContains(response, 'Milligram')
        self.assertEqual(mock_list.call_args.kwargs['unit_category_id'], 'w')
        self.assertEqual(mock_list.call_args.kwargs['q'], 'gram')
        self.assertEqual(response.context['unit_category_choices'], [('w', 'Weight')])
        self.assertFalse(response.context['can_create'])

    @patch('inventory.views.services.all_uoms', return_value=[GRAM])
    @patch('inventory.views.services.all_unit_categories', return_value=[{'id': 'w', 'name': 'Weight'}])
    @patch.object(services.uoms, 'create', return_value={'id': 'kg'})
    def test_create_warns_about_replaced_base_unit(self, mock_create, *mocks):
        self.sign_in(permissions=['uoms.create'])
        response = self.client.post('/inventory/uoms/new/', {
            'name': 'Kilogram', 'abbreviation': 'kg', 'unit_category_id': 'w',
            'conversion_rate': '1000', 'base_unit': 'on',
        })
        self.assertEqual(response['Location'], '/inventory/uoms/')
        payload = mock_create.call_args.args[1]
        self.assertEqual(payload['conversionRate'], '1000')
        self.assertIs(payload['baseUnit'], True)
        messages = self.messages_of(response)
        self.assertIn('Unit of measure created successfully', messages)
        self.assertIn('"Gram" is no longer the base unit for this category.', messages)

    @patch('inventory.views.services.all_uoms', return_value=[GRAM])
    @patch('inventory.views.services.all_unit_categories', return_value=[{'id': 'w', 'name': 'Weight'}])
    @patch.object(services.uoms, 'get', return_value=MILLIGRAM)
    def test_edit_prefills_rate(self, mock_get, *mocks):
        self.sign_in(permissions=['uoms.update'])
        response = self.client.get('/inventory/uoms/mg/edit/')
        initial = response.context['form'].initial
        self.assertEqual(initial['conversion_rate'], '0.001')
        self.assertIs(initial['base_unit'], False)

    @patch.object(services.uoms, 'create')
    def test_create_requires_permission(self, mock_create):
        self.sign_in(permissions=['uoms.read'])
        response = self.client.post('/inventory/uoms/new/', {'name': 'Gram'})
        self.assertEqual(response['Location'], '/unauthorized/')
        mock_create.assert_not_called()

    @patch('inventory.views.services.list_unit_categories')
    def test_unit_category_search_uses_q(self, mock_list):
        self.sign_in(permissions=['unitCategories.read', 'unitCategories.create'])
        mock_list.return_value = Page([{'id': 'w', 'name': 'Weight'}], total=1)
        response = self.client.get('/inventory/unit-categories/', {'search': 'wei'})
        self.assertContains(response, 'Weight')
        self.assertEqual(mock_list.call_args.kwargs['q'], 'wei')
        self.assertTrue(response.context['can_create'])

    @patch.object(services.unit_categories, 'create', return_value={'id': 'v'})
    def test_unit_category_create(self, mock_create):
        self.sign_in(permissions=['unitCategories.create'])
        response = self.client.post('/inventory/unit-categories/new/', {'name': 'Volume'})
        self.assertEqual(response['Location'], '/inventory/unit-categories/')
        self.assertEqual(mock_create.call_args.args[1], {'name': 'Volume'})
        self.assertIn('Unit category created successfully', self.messages_of(response))

    @patch.object(services.unit_categories, 'delete')
    def test_unit_category_delete(self, mock_delete):
        self.sign_in_admin()
        response = self.client.post('/inventory/unit-categories/w/delete/')
        self.assertEqual(response['Location'], '/inventory/unit-categories/')
        mock_delete.assert_called_once()
        self.assertIn('Unit category deleted successfully', self.messages_of(response))


class UomAwareLookupTests(DashboardTestMixin, SimpleTestCase):

    @patch('inventory.api.views.services.available_batches')
    @patch.object(services.uoms, 'get', return_value=BOX)
    def test_quantity_converted_before_lookup(self, mock_uom, mock_batches):
        self.sign_in(permissions=['batches.read'])
        mock_batches.return_value = [
            {'id': 'b1', 'batchNumber': 'B1', 'quantity': 40},
            {'id': 'b2', 'batchNumber': 'B2', 'quantity': 25},
        ]
        response = self.client.get('/inventory/api/products/p1/batches/', {'quantity': '3', 'uom': 'box'})
        self.assertEqual(mock_batches.call_args.kwargs['quantity'], 30)
        rows = response.json()['data']
        self.assertIsNone(rows[0]['shortfall'])
        self.assertEqual(rows[1]['shortfall'], 'Insufficient quantity. Available: 25 (base UOM), Requested: 3 (Box)')

    @patch('inventory.api.views.services.available_batches', return_value=[{'id': 'b1', 'quantity': 5}])
    def test_without_quantity_has_no_shortfall(self, mock_batches):
        self.sign_in(permissions=['batches.read'])
        response = self.client.get('/inventory/api/products/p1/batches/')
        self.assertIsNone(mock_batches.call_args.kwargs['quantity'])
        self.assertIsNone(response.json()['data'][0]['shortfall'])


class ProductStockDisplayTests(DashboardTestMixin, SimpleTestCase):

    @patch.object(services.products, 'get')
    def test_stock_shown_in_default_unit(self, mock_get):
        self.sign_in(permissions=['products.read'])
        mock_get.return_value = {'id': 'p1', 'name': 'Amoxil', 'quantity': 30, 'defaultUom': BOX}
        response = self.client.get('/inventory/products/p1/')
        self.assertIn(('Quantity in stock', '3.00 Box'), response.context['detail_fields'])
