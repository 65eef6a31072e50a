"""
Test suite for Purchases module
Tests: supplier licence rules, purchase line items, purchase and supplier views
"""
from unittest.mock import patch

from django.test import SimpleTestCase

from purchases import services
from purchases.forms import PurchaseItemFormSet, SupplierForm
from website.test_utils import DashboardTestMixin, api_error, formset_data
from website.utils.envelopes import Page

ITEM_CHOICES = {'product_id': [('p1', 'Amoxil 500mg')], 'uom_id': [('u1', 'BOX')]}


def item(**overrides):
    row = {
        'product_id': 'p1',
        'batch_number': 'B-001',
        'expiry_date': '2026-01-31',
        'quantity': '3',
        'unit_cost': '2.50',
    }
    row.update(overrides)
    return row


class SupplierFormTests(SimpleTestCase):
    """Test licensed / walk-in supplier validation"""

    def test_walk_in_drops_license_fields(self):
        form = SupplierForm(data={
            'name': 'Acme Pharma',
            'supplier_type': 'WALK_IN',
            'license_issue_date': '2024-01-01',
            'tin_number': '0012345',
        })
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {'name': 'Acme Pharma', 'supplierType': 'WALK_IN'})

    def test_type_defaults_to_walk_in(self):
        form = SupplierForm(data={'name': 'Acme Pharma'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload()['supplierType'], 'WALK_IN')

    def test_licensed_requires_both_dates(self):
        form = SupplierForm(data={'name': 'Acme Pharma', 'supplier_type': 'LICENSED'})
        self.assertFalse(form.is_valid())
        self.assertIn('License issue date is required for licensed suppliers', form.errors['license_issue_date'])
        self.assertIn('License expiry date is required for licensed suppliers', form.errors['license_expiry_date'])

    def test_licensed_expiry_must_follow_issue(self):
        form = SupplierForm(data={
            'name': 'Acme Pharma',
            'supplier_type': 'LICENSED',
            'license_issue_date': '2024-06-01',
            'license_expiry_date': '2024-06-01',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('License expiry date must be after the issue date', form.errors['license_expiry_date'])

    def test_licensed_payload_keeps_license(self):
        form = SupplierForm(data={
            'name': 'Acme Pharma',
            'email': 'orders@acme.test',
            'supplier_type': 'LICENSED',
            'license_issue_date': '2024-01-01',
            'license_expiry_date': '2025-01-01',
            'tin_number': '0012345',
        })
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['licenseIssueDate'], '2024-01-01')
        self.assertEqual(payload['licenseExpiryDate'], '2025-01-01')
        self.assertEqual(payload['tinNumber'], '0012345')

    def test_invalid_email(self):
        form = SupplierForm(data={'name': 'Acme', 'email': 'not-an-email'})
        self.assertFalse(form.is_valid())
        self.assertIn('Invalid email format', form.errors['email'])


class PurchaseItemFormSetTests(SimpleTestCase):
    """Test purchase line items"""

    def build(self, rows):
        return PurchaseItemFormSet(data=formset_data(rows), prefix='items', form_kwargs={'choices': ITEM_CHOICES})

    def test_total_cost_is_quantity_times_unit_cost(self):
        formset = self.build([item()])
        self.assertTrue(formset.is_valid(), formset.errors)
        self.assertEqual(formset.to_payload(), [{
            'productId': 'p1',
            'batchNumber': 'B-001',
            'expiryDate': '2026-01-31',
            'quantity': 3,
            'unitCost': 2.5,
            'totalCost': 7.5,
        }])

    def test_empty_rows_require_one_item(self):
        formset = self.build([{}])
        self.assertFalse(formset.is_valid())
        self.assertIn('At least one item is required', formset.non_form_errors())

    def test_deleted_rows_are_not_sent(self):
        formset = self.build([item(), item(batch_number='B-002', DELETE='on')])
        self.assertTrue(formset.is_valid(), formset.errors)
        self.assertEqual([row['batchNumber'] for row in formset.to_payload()], ['B-001'])

    def test_item_rules(self):
        formset = self.build([item(quantity='0', unit_cost='-1', batch_number='')])
        self.assertFalse(formset.is_valid())
        errors = formset.forms[0].errors
        self.assertIn('Quantity must be at least 1', errors['quantity'])
        self.assertIn('Unit cost must be at least 0', errors['unit_cost'])
        self.assertIn('Batch number is required', errors['batch_number'])


class PurchaseTotalTests(SimpleTestCase):

    def test_total_prefers_api_value(self):
        self.assertEqual(services.purchase_total({'totalAmount': '10.50', 'items': []}), 10.5)

    def test_total_summed_from_items(self):
        purchase = {'items': [{'totalCost': 4}, {'quantity': 2, 'unitCost': '1.25'}]}
        self.assertEqual(services.purchase_total(purchase), 6.5)


@patch('purchases.views.inventory.all_uoms', return_value=[{'id': 'u1', 'name': 'Box', 'abbreviation': 'BOX'}])
@patch('purchases.views.inventory.all_products', return_value=[{'id': 'p1', 'name': 'Amoxil 500mg'}])
@patch('purchases.views.services.all_suppliers', return_value=[{'id': 's1', 'name': 'Acme Pharma'}])
class PurchaseFormViewTests(DashboardTestMixin, SimpleTestCase):
    """Test the purchase form with its line items"""

    def header(self, **overrides):
        data = {'supplier_id': 's1', 'invoice_no': 'INV-100', 'date': '2024-05-01', 'status': 'PENDING'}
        data.update(overrides)
        return data

    @patch.object(services.purchases, 'create', return_value={'id': 'pu1'})
    def test_create_sends_header_and_items(self, mock_create, *lookups):
        self.sign_in(permissions=['purchases.create'])
        response = self.client.post('/purchases/new/', formset_data([item()], **self.header()))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/purchases/')
        payload = mock_create.call_args.args[1]
        self.assertEqual(payload['invoiceNo'], 'INV-100')
        self.assertEqual(payload['supplierId'], 's1')
        self.assertEqual(payload['items'][0]['totalCost'], 7.5)
        self.assertIn('Purchase created successfully', self.messages_of(response))

    @patch.object(services.purchases, 'create')
    def test_create_without_items_makes_no_call(self, mock_create, *lookups):
        self.sign_in(permissions=['purchases.create'])
        response = self.client.post('/purchases/new/', formset_data([{}], **self.header()))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'At least one item is required')
        mock_create.assert_not_called()

    @patch.object(services.purchases, 'create')
    def test_invoice_number_required(self, mock_create, *lookups):
        self.sign_in(permissions=['purchases.create'])
        response = self.client.post('/purchases/new/', formset_data([item()], **self.header(invoice_no='')))
        self.assertContains(response, 'Invoice number is required')
        mock_create.assert_not_called()

    @patch.object(services.purchases, 'get')
    def test_edit_prefills_items(self, mock_get, *lookups):
        self.sign_in(permissions=['purchases.update'])
        mock_get.return_value = {
            'id': 'pu1', 'invoiceNo': 'INV-100', 'date': '2024-05-01T00:00:00.000Z',
            'supplier': {'id': 's1', 'name': 'Acme Pharma'}, 'status': 'PENDING',
            'items': [{'product': {'id': 'p1'}, 'batchNumber': 'B-001', 'expiryDate': '2026-01-31', 'quantity': 3}],
        }
        response = self.client.get('/purchases/pu1/edit/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['form'].initial['supplier_id'], 's1')
        self.assertEqual(response.context['form'].initial['date'], '2024-05-01')
        first = response.context['formset'].forms[0]
        self.assertEqual(first.initial['product_id'], 'p1')
        self.assertEqual(first.initial['batch_number'], 'B-001')

    def test_create_requires_permission(self, *lookups):
        self.sign_in(permissions=['purchases.read'])
        response = self.client.get('/purchases/new/')
        self.assertEqual(response['Location'], '/unauthorized/')


class SupplierViewTests(DashboardTestMixin, SimpleTestCase):

    @patch.object(services.suppliers, 'list')
    def test_list(self, mock_list):
        self.sign_in(permissions=['suppliers.read'])
        mock_list.return_value = Page([{'id': 's1', 'name': 'Acme Pharma', 'supplierType': 'LICENSED'}], total=1)
        response = self.client.get('/purchases/suppliers/')
        self.assertContains(response, 'Acme Pharma')

    @patch.object(services.suppliers, 'create')
    def test_duplicate_email_conflict(self, mock_create):
        self.sign_in_admin()
        mock_create.side_effect = api_error(
            409, 'Supplier with this email already exists', success=False, error={'code': 'CONFLICT', 'field': 'email'},
        )
        response = self.client.post('/purchases/suppliers/new/', {'name': 'Acme', 'email': 'a@acme.test'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('Supplier with this email already exists', response.context['form'].errors['email'])

    @patch.object(services.purchases, 'get')
    def test_purchase_detail_shows_total(self, mock_get):
        self.sign_in(permissions=['purchases.read'])
        mock_get.return_value = {
            'id': 'pu1', 'invoiceNo': 'INV-100',
            'items': [{'product': {'id': 'p1', 'name': 'Amoxil'}, 'quantity': 2, 'unitCost': 5, 'totalCost': 10}],
        }
        response = self.client.get('/purchases/pu1/')
        self.assertContains(response, 'Amoxil')
        self.assertContains(response, 'Total: 10.00')
