"""
Test suite for Sales module
Tests: customer licence rules, sale/quotation line items, voucher and requisition
documents, quotation actions, payment methods
"""
from decimal import Decimal
from unittest.mock import patch

from django.test import SimpleTestCase

from sales import services
from sales.forms import CustomerForm, PaymentMethodForm, QuotationForm, SaleItemFormSet
from sales.utils.vouchers import amount_in_words, build_requisition, build_sale_voucher, split_amount
from website.test_utils import DashboardTestMixin, api_error, formset_data
from website.utils.envelopes import Page

COMPANY = {'NAME': 'Test Pharmacy', 'ADDRESS': 'Bole Road', 'PHONE': '0111', 'EMAIL': '', 'CURRENCY': 'ETB'}


def sale_item(**overrides):
    row = {'product_id': 'p1', 'batch_id': 'b1', 'quantity': '2', 'unit_price': '10.00', 'discount': '1.50'}
    row.update(overrides)
    return row


class CustomerFormTests(SimpleTestCase):
    """Test customer discriminated validation"""

    def test_walk_in_payload(self):
        """Test the minimal walk-in customer sends only name and type"""
        form = CustomerForm(data={'name': 'Acme', 'customer_type': 'WALK_IN'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {'name': 'Acme', 'customerType': 'WALK_IN'})

    def test_walk_in_ignores_license_fields(self):
        form = CustomerForm(data={
            'name': 'Acme', 'customer_type': 'WALK_IN',
            'license_issue_date': '2024-01-01', 'license_expiry_date': '2023-01-01',
        })
        self.assertTrue(form.is_valid(), form.errors)
        self.assertNotIn('licenseIssueDate', form.to_payload())

    def test_licensed_missing_dates(self):
        form = CustomerForm(data={'name': 'Acme', 'customer_type': 'LICENSED'})
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['license_issue_date'], ['License issue date is required for licensed customers'])
        self.assertEqual(form.errors['license_expiry_date'], ['License expiry date is required for licensed customers'])

    def test_licensed_expiry_before_issue(self):
        form = CustomerForm(data={
            'name': 'Acme', 'customer_type': 'LICENSED',
            'license_issue_date': '2024-06-01', 'license_expiry_date': '2024-05-01',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('License expiry date must be after the issue date', form.errors['license_expiry_date'])

    def test_name_and_email_messages(self):
        form = CustomerForm(data={'name': '', 'email': 'bad'})
        self.assertFalse(form.is_valid())
        self.assertIn('Name is required', form.errors['name'])
        self.assertIn('Invalid email', form.errors['email'])

    def test_strings_are_trimmed(self):
        form = CustomerForm(data={'name': '  Acme  ', 'phone': ' 0911 ', 'address': '   '})
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['name'], 'Acme')
        self.assertEqual(payload['phone'], '0911')
        self.assertNotIn('address', payload)


class LineItemTests(SimpleTestCase):
    """Test sale line totals"""

    choices = {'product_id': [('p1', 'Amoxil')]}

    def test_total_price_subtracts_discount(self):
        formset = SaleItemFormSet(data=formset_data([sale_item()]), prefix='items', form_kwargs={'choices': self.choices})
        self.assertTrue(formset.is_valid(), formset.errors)
        item = formset.to_payload()[0]
        self.assertEqual(item['totalPrice'], 18.5)
        self.assertEqual(item['batchId'], 'b1')

    def test_batch_required(self):
        formset = SaleItemFormSet(
            data=formset_data([sale_item(batch_id='')]), prefix='items', form_kwargs={'choices': self.choices},
        )
        self.assertFalse(formset.is_valid())
        self.assertIn('Batch is required', formset.forms[0].errors['batch_id'])

    def test_negative_discount(self):
        formset = SaleItemFormSet(
            data=formset_data([sale_item(discount='-1')]), prefix='items', form_kwargs={'choices': self.choices},
        )
        self.assertFalse(formset.is_valid())
        self.assertIn('Discount cannot be negative', formset.forms[0].errors['discount'])

    def test_document_total(self):
        record = {'items': [{'totalPrice': '18.50'}, {'quantity': 1, 'unitPrice': 5, 'discount': 0}]}
        self.assertEqual(services.document_total(record), 23.5)


class QuotationFormTests(SimpleTestCase):

    choices = {'customer_id': [('c1', 'Acme')]}

    def test_valid_until_before_date(self):
        form = QuotationForm(
            data={'customer_id': 'c1', 'date': '2024-05-10', 'valid_until': '2024-05-01'}, choices=self.choices,
        )
        self.assertFalse(form.is_valid())
        self.assertIn('Valid until date cannot be before the quotation date', form.errors['valid_until'])

    def test_valid_until_same_day(self):
        form = QuotationForm(
            data={'customer_id': 'c1', 'date': '2024-05-10', 'valid_until': '2024-05-10'}, choices=self.choices,
        )
        self.assertTrue(form.is_valid(), form.errors)


class PaymentMethodFormTests(SimpleTestCase):

    def test_inactive_is_sent(self):
        form = PaymentMethodForm(data={'name': 'Telebirr', 'sort_order': '2'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {'name': 'Telebirr', 'sortOrder': 2, 'isActive': False})

    def test_limits(self):
        form = PaymentMethodForm(data={'name': 'x' * 101, 'sort_order': '-1'})
        self.assertFalse(form.is_valid())
        self.assertIn('Max 100 characters', form.errors['name'])
        self.assertIn('Sort order cannot be negative', form.errors['sort_order'])


class VoucherTests(SimpleTestCase):
    """Test printable document builders"""

    def test_amount_in_words(self):
        self.assertEqual(amount_in_words(0), 'Zero Only')
        self.assertEqual(amount_in_words('105.75'), 'One Hundred Five Only')
        self.assertEqual(amount_in_words(2_345_021), 'Two Million Three Hundred Forty Five Thousand Twenty One Only')

    def test_split_amount(self):
        self.assertEqual(split_amount('12.345'), ('12', '35'))
        self.assertEqual(split_amount(None), ('0', '00'))

    def test_credit_voucher(self):
        sale = {
            'id': 'abcdef123456', 'date': '2024-05-01T10:00:00Z', 'totalAmount': '100', 'paidAmount': '40',
            'customer': {'name': 'Acme', 'phone': '0911'},
            'items': [{
                'product': {'name': 'Amoxil', 'strength': '500mg', 'productCode': 'AMX'},
                'quantity': 2, 'unitPrice': '50', 'discount': '0', 'totalPrice': '100',
            }],
        }
        voucher = build_sale_voucher(sale, COMPANY)
        self.assertEqual(voucher['title'], 'Credit Sales Voucher')
        self.assertEqual(voucher['voucher_no'], 'CS-ABCDEF12')
        self.assertEqual(voucher['date'], '2024-05-01')
        self.assertEqual(voucher['balance'], Decimal('60'))
        self.assertEqual(voucher['items'][0]['description'], 'Amoxil 500mg')
        self.assertEqual(voucher['items'][0]['item_id'], 'AMX')

    def test_cash_voucher_when_paid_missing(self):
        voucher = build_sale_voucher({'id': 's1', 'totalAmount': 10, 'items': []}, COMPANY)
        self.assertEqual(voucher['title'], 'Cash Sales Voucher')
        self.assertEqual(voucher['balance'], Decimal('0'))

    def test_requisition_padding(self):
        quotation = {
            'id': 'q1234567890', 'date': '2024-05-01', 'totalAmount': '30.5',
            'customer': {'name': 'Acme', 'tinNumber': '0099'},
            'items': [{'product': {'name': 'Amoxil'}, 'quantity': 1, 'unitPrice': '30.5', 'totalPrice': '30.5'}],
        }
        requisition = build_requisition(quotation, COMPANY)
        self.assertEqual(len(requisition['items']), 12)
        self.assertEqual(requisition['items'][0]['unit_price'], ('30', '50'))
        self.assertTrue(requisition['items'][11]['blank'])
        self.assertEqual(requisition['client_tin'], '0099')
        self.assertEqual(requisition['client_address'], '-')
        self.assertEqual(requisition['reference'], 'q1234567')


@patch('sales.views.inventory.all_products', return_value=[{'id': 'p1', 'name': 'Amoxil'}])
@patch('sales.views.services.all_customers', return_value=[{'id': 'c1', 'name': 'Acme'}])
class SaleViewTests(DashboardTestMixin, SimpleTestCase):
    """Test sale pages over a mocked API"""

    @patch.object(services.sales, 'create', return_value={'id': 's1'})
    def test_create_sale(self, mock_create, *lookups):
        self.sign_in(permissions=['sales.create'])
        data = formset_data([sale_item()], customer_id='c1', date='2024-05-01', status='COMPLETED')
        response = self.client.post('/sales/new/', data)
        self.assertEqual(response.status_code, 302)
        payload = mock_create.call_args.args[1]
        self.assertEqual(payload['customerId'], 'c1')
        self.assertEqual(payload['status'], 'COMPLETED')
        self.assertEqual(payload['items'], [{
            'productId': 'p1', 'batchId': 'b1', 'quantity': 2, 'unitPrice': 10.0, 'discount': 1.5, 'totalPrice': 18.5,
        }])

    @patch.object(services.sales, 'create')
    def test_customer_required(self, mock_create, *lookups):
        self.sign_in(permissions=['sales.create'])
        response = self.client.post('/sales/new/', formset_data([sale_item()], date='2024-05-01'))
        self.assertContains(response, 'Customer is required')
        mock_create.assert_not_called()

    @patch.object(services.sales, 'create')
    def test_insufficient_stock_message(self, mock_create, *lookups):
        self.sign_in(permissions=['sales.create'])
        mock_create.side_effect = api_error(400, 'Insufficient stock for batch B-001')
        data = formset_data([sale_item()], customer_id='c1', date='2024-05-01')
        response = self.client.post('/sales/new/', data)
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Insufficient stock for batch B-001')

    @patch('sales.views.services.get_sale_draft')
    def test_new_sale_from_quotation_draft(self, mock_draft, *lookups):
        self.sign_in(permissions=['sales.create'])
        mock_draft.return_value = {
            'customerId': 'c1', 'date': '2024-05-01',
            'items': [{'productId': 'p1', 'batchId': 'b1', 'quantity': 3, 'unitPrice': 10}],
        }
        response = self.client.get('/sales/new/?quotation=q1')
        self.assertEqual(response.status_code, 200)
        mock_draft.assert_called_once()
        self.assertEqual(response.context['form'].initial['customer_id'], 'c1')
        self.assertEqual(response.context['formset'].forms[0].initial['quantity'], 3)

    @patch.object(services.sales, 'get')
    def test_voucher(self, mock_get, *lookups):
        self.sign_in(permissions=['sales.read'])
        mock_get.return_value = {
            'id': 's1', 'date': '2024-05-01', 'totalAmount': '20',
            'items': [{'product': {'name': 'Amoxil'}, 'quantity': 2, 'unitPrice': 10, 'totalPrice': 20}],
        }
        response = self.client.get('/sales/s1/voucher/')
        self.assertContains(response, 'Cash Sales Voucher')
        self.assertContains(response, 'Twenty Only')

    @patch.object(services.sales, 'get')
    def test_voucher_load_error(self, mock_get, *lookups):
        self.sign_in(permissions=['sales.read'])
        mock_get.side_effect = api_error(404, 'Sale not found', method='GET')
        response = self.client.get('/sales/s9/voucher/')
        self.assertContains(response, 'Sale not found')


class QuotationViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('sales.views.services.list_quotations')
    def test_list_is_paged_locally(self, mock_list):
        self.sign_in(permissions=['quotations.read'])
        mock_list.return_value = [{'id': f"q{i}", 'status': 'DRAFT'} for i in range(12)]
        response = self.client.get('/sales/quotations/?status=DRAFT')
        table = response.context['table']
        self.assertEqual(table.page_count, 2)
        self.assertEqual(mock_list.call_args.kwargs['status'], 'DRAFT')

    @patch('sales.views.services.accept_quotation')
    def test_accept(self, mock_accept):
        self.sign_in(permissions=['quotations.accept'])
        response = self.client.post('/sales/quotations/q1/accept/')
        self.assertEqual(response['Location'], '/sales/quotations/q1/')
        mock_accept.assert_called_once()
        self.assertIn('Quotation accepted successfully', self.messages_of(response))

    def test_accept_requires_permission(self):
        self.sign_in(permissions=['quotations.read'])
        response = self.client.post('/sales/quotations/q1/accept/')
        self.assertEqual(response['Location'], '/unauthorized/')

    @patch.object(services.quotations, 'get')
    def test_requisition(self, mock_get):
        self.sign_in(permissions=['quotations.read'])
        mock_get.return_value = {
            'id': 'q1', 'date': '2024-05-01', 'totalAmount': 12,
            'customer': {'name': 'Acme Clinic'}, 'items': [],
        }
        response = self.client.get('/sales/quotations/q1/requisition/')
        self.assertContains(response, 'REQUISITION FORM')
        self.assertContains(response, 'Acme Clinic')
        self.assertEqual(len(response.context['requisition']['items']), 12)


class PaymentMethodViewTests(DashboardTestMixin, SimpleTestCase):

    @patch('sales.views.services.list_payment_methods')
    def test_list(self, mock_list):
        self.sign_in(permissions=['paymentMethods.read'])
        mock_list.return_value = [{'id': 'm1', 'name': 'Cash', 'isActive': True}]
        response = self.client.get('/sales/payment-methods/')
        self.assertContains(response, 'Cash')

    @patch.object(services.payment_methods, 'delete')
    def test_delete_forbidden_message(self, mock_delete):
        self.sign_in_admin()
        mock_delete.side_effect = api_error(403, '', method='DELETE')
        response = self.client.post('/sales/payment-methods/m1/delete/')
        self.assertEqual(response.status_code, 302)
        self.assertTrue(self.messages_of(response))


class CustomerViewTests(DashboardTestMixin, SimpleTestCase):

    @patch.object(services.customers, 'list')
    def test_list_passes_filters(self, mock_list):
        self.sign_in(permissions=['customers.read'])
        mock_list.return_value = Page([{'id': 'c1', 'name': 'Acme', 'status': 'ACTIVE'}], total=1)
        response = self.client.get('/sales/customers/?status=ACTIVE')
        self.assertContains(response, 'Acme')
        self.assertEqual(mock_list.call_args.kwargs['status'], 'ACTIVE')

    def test_new_customer_defaults(self):
        self.sign_in(permissions=['customers.create'])
        response = self.client.get('/sales/customers/new/')
        self.assertEqual(response.context['form'].initial['customer_type'], 'WALK_IN')
        self.assertEqual(response.context['form'].initial['status'], 'ACTIVE')
