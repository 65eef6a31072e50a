"""
Test suite for Credits module
Tests: credit and payment validation, balance, summary, pay flow, payments list
"""
from decimal import Decimal
from unittest.mock import Mock, patch

from django.test import SimpleTestCase
from django.utils import timezone

from credits import services
from credits.forms import PARTY_REQUIRED_MESSAGE, CreditForm, CreditUpdateForm, PaymentForm
from website.test_utils import DashboardTestMixin, api_error
from website.utils.envelopes import Page

PARTIES = {
    'supplier_id': [('s1', 'Acme Pharma')],
    'customer_id': [('c1', 'City Clinic')],
    'purchase_id': [('pu1', 'INV-100')],
    'sale_id': [('sa1', 'SAL-1')],
}

CREDIT = {
    'id': 'cr1',
    'type': 'PAYABLE',
    'supplier': {'id': 's1', 'name': 'Acme Pharma'},
    'totalAmount': 250,
    'paidAmount': 150,
    'balanceAmount': 100,
    'status': 'PARTIAL',
    'payments': [{'id': 'pm1', 'amount': 150, 'paymentMethod': 'CASH', 'paymentDate': '2024-05-02'}],
}


class PaymentFormTests(SimpleTestCase):
    """Test payment amount rules against the outstanding balance"""

    def test_amount_over_balance(self):
        form = PaymentForm(data={'amount': '150'}, balance=Decimal('100'))
        self.assertFalse(form.is_valid())
        self.assertIn('Payment amount cannot exceed balance (100.00)', form.errors['amount'])

    def test_amount_equal_to_balance(self):
        form = PaymentForm(data={'amount': '100'}, balance=Decimal('100'))
        self.assertTrue(form.is_valid(), form.errors)

    def test_amount_must_be_positive(self):
        form = PaymentForm(data={'amount': '0'}, balance=Decimal('100'))
        self.assertFalse(form.is_valid())
        self.assertIn('Amount must be greater than 0', form.errors['amount'])

    def test_defaults_to_cash_today(self):
        form = PaymentForm(data={'amount': '25.50'})
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['amount'], 25.5)
        self.assertEqual(payload['paymentMethod'], 'CASH')
        self.assertEqual(payload['paymentDate'], timezone.localdate().isoformat())


class CreditFormTests(SimpleTestCase):
    """Test payable / receivable validation"""

    def build(self, **data):
        return CreditForm(data=data, choices=PARTIES)

    def test_payable_requires_supplier(self):
        form = self.build(type='PAYABLE', total_amount='100')
        self.assertFalse(form.is_valid())
        self.assertIn(PARTY_REQUIRED_MESSAGE, form.errors['supplier_id'])

    def test_receivable_requires_customer(self):
        form = self.build(type='RECEIVABLE', total_amount='100', supplier_id='s1')
        self.assertFalse(form.is_valid())
        self.assertIn(PARTY_REQUIRED_MESSAGE, form.errors['customer_id'])

    def test_paid_cannot_exceed_total(self):
        form = self.build(type='PAYABLE', supplier_id='s1', total_amount='100', paid_amount='120')
        self.assertFalse(form.is_valid())
        self.assertIn('Paid amount cannot exceed total amount', form.errors['paid_amount'])

    def test_total_must_be_positive(self):
        form = self.build(type='PAYABLE', supplier_id='s1', total_amount='0')
        self.assertFalse(form.is_valid())
        self.assertIn('Total amount must be greater than 0', form.errors['total_amount'])

    def test_payload_keeps_only_own_side(self):
        form = self.build(
            type='RECEIVABLE', total_amount='100', customer_id='c1', sale_id='sa1',
            supplier_id='s1', purchase_id='pu1',
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {
            'type': 'RECEIVABLE', 'totalAmount': 100.0, 'customerId': 'c1', 'saleId': 'sa1',
        })

    def test_update_form_is_partial(self):
        form = CreditUpdateForm(data={'status': 'OVERDUE'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {'status': 'OVERDUE'})


class CreditServiceTests(SimpleTestCase):

    def test_balance_prefers_api_value(self):
        self.assertEqual(services.balance_of({'balanceAmount': '40.25', 'totalAmount': 100}), Decimal('40.25'))

    def test_balance_derived_from_total_and_paid(self):
        self.assertEqual(services.balance_of({'totalAmount': 100, 'paidAmount': '30'}), Decimal('70'))
        self.assertEqual(services.balance_of({'totalAmount': 10, 'paidAmount': 30}), Decimal('0'))

    def test_summary_filters_by_type(self):
        client = Mock()
        client.get.return_value = {'success': True, 'data': {'totalCredits': 2, 'totalAmount': 500}}
        summary = services.get_summary(client, 'PAYABLE')
        client.get.assert_called_once_with('/credits/summary', params={'type': 'PAYABLE'})
        self.assertEqual(summary, {'totalCredits': 2, 'totalAmount': 500, 'totalPaid': 0, 'totalBalance': 0})


class CreditViewTests(DashboardTestMixin, SimpleTestCase):
    """Test credit list, detail and the pay flow"""

    @patch('credits.views.services.get_summary')
    @patch.object(services.credits, 'list')
    def test_list_shows_summary(self, mock_list, mock_summary):
        self.sign_in(permissions=['credits.read'])
        mock_list.return_value = Page([CREDIT], total=1)
        mock_summary.return_value = {'totalCredits': 1, 'totalAmount': 250, 'totalPaid': 150, 'totalBalance': 100}
        response = self.client.get('/credits/', {'type': 'PAYABLE'})
        self.assertContains(response, 'Acme Pharma')
        self.assertContains(response, '100.00')
        self.assertEqual(mock_summary.call_args.args[1], 'PAYABLE')
        self.assertEqual(mock_list.call_args.kwargs['type'], 'PAYABLE')

    @patch('credits.views.services.get_summary')
    @patch.object(services.credits, 'list')
    def test_summary_failure_keeps_list(self, mock_list, mock_summary):
        self.sign_in(permissions=['credits.read'])
        mock_list.return_value = Page([CREDIT], total=1)
        mock_summary.side_effect = api_error(500, 'Server error', method='GET')
        response = self.client.get('/credits/')
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.context['summary'])
        self.assertContains(response, 'Acme Pharma')

    @patch.object(services.credits, 'get', return_value=CREDIT)
    def test_detail_offers_payment(self, mock_get):
        self.sign_in(permissions=['credits.read', 'credits.pay'])
        response = self.client.get('/credits/cr1/')
        self.assertTrue(response.context['can_pay'])
        self.assertContains(response, '/credits/cr1/pay/')

    @patch.object(services.credits, 'get', return_value=dict(CREDIT, balanceAmount=0, status='PAID'))
    def test_paid_credit_cannot_be_paid(self, mock_get):
        self.sign_in_admin()
        response = self.client.get('/credits/cr1/')
        self.assertFalse(response.context['can_pay'])

    @patch('credits.views.services.record_payment')
    @patch.object(services.credits, 'get', return_value=CREDIT)
    def test_pay_records_and_redirects(self, mock_get, mock_pay):
        self.sign_in(permissions=['credits.pay'])
        response = self.client.post('/credits/cr1/pay/', {'amount': '60', 'payment_method': 'BANK_TRANSFER'})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], '/credits/cr1/')
        pk, payload = mock_pay.call_args.args[1:]
        self.assertEqual(pk, 'cr1')
        self.assertEqual(payload['amount'], 60.0)
        self.assertEqual(payload['paymentMethod'], 'BANK_TRANSFER')
        self.assertIn('Payment recorded successfully', self.messages_of(response))

    @patch('credits.views.services.record_payment')
    @patch.object(services.credits, 'get', return_value=CREDIT)
    def test_overpayment_makes_no_call(self, mock_get, mock_pay):
        self.sign_in(permissions=['credits.pay'])
        response = self.client.post('/credits/cr1/pay/', {'amount': '150'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Payment amount cannot exceed balance (100.00)')
        mock_pay.assert_not_called()

    @patch.object(services.credits, 'get', return_value=CREDIT)
    def test_pay_form_prefills_balance(self, mock_get):
        self.sign_in(permissions=['credits.pay'])
        response = self.client.get('/credits/cr1/pay/')
        self.assertEqual(response.context['form'].initial['amount'], Decimal('100'))

    @patch.object(services.credits, 'get')
    def test_pay_unknown_credit_redirects(self, mock_get):
        self.sign_in(permissions=['credits.pay'])
        mock_get.side_effect = api_error(404, 'Credit not found', method='GET')
        response = self.client.get('/credits/missing/pay/')
        self.assertEqual(response['Location'], '/credits/')

    def test_pay_requires_permission(self):
        self.sign_in(permissions=['credits.read'])
        response = self.client.get('/credits/cr1/pay/')
        self.assertEqual(response['Location'], '/unauthorized/')


class PaymentListTests(DashboardTestMixin, SimpleTestCase):

    @patch.object(services.payments, 'list')
    def test_date_filters_are_forwarded(self, mock_list):
        self.sign_in(permissions=['payments.read'])
        mock_list.return_value = Page([
            {'id': 'pm1', 'amount': 60, 'paymentMethod': 'CASH', 'paymentDate': '2024-05-02', 'credit': {'type': 'PAYABLE'}},
        ], total=1)
        response = self.client.get('/credits/payments/', {'startDate': '2024-05-01', 'endDate': '2024-05-31'})
        self.assertContains(response, '60.00')
        kwargs = mock_list.call_args.kwargs
        self.assertEqual(kwargs['startDate'], '2024-05-01')
        self.assertEqual(kwargs['endDate'], '2024-05-31')
        self.assertFalse(response.context['can_delete'])
