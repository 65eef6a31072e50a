"""
Test suite for Reports module
Tests: report filter validation, report pages per kind and permission,
commission ledger and pay flow
"""
from unittest.mock import Mock, patch

from django.test import SimpleTestCase
from django.utils import timezone

from reports import services
from reports.forms import CommissionPayForm, ReportFilterForm
from website.test_utils import DashboardTestMixin, api_error

SALES_REPORT = {
    'summary': {
        'totalSales': 4, 'totalRevenue': 1250.5, 'totalPaid': 1000, 'totalCredit': 250.5,
        'averageSaleAmount': 312.63, 'period': {'startDate': '2024-05-01T00:00:00.000Z', 'endDate': '2024-05-31'},
    },
    'salesByDay': [{'date': '2024-05-02', 'count': 4, 'revenue': 1250.5}],
    'topProducts': [{'productId': 'p1', 'productName': 'Amoxil 500mg', 'quantity': 30, 'revenue': 900}],
    'topCustomers': [],
    'sales': [],
}

COMMISSION = {
    'id': 'cm1', 'status': 'PENDING', 'saleAmount': 1000, 'commissionRate': 5, 'commissionAmount': 50,
    'salesperson': {'id': 'u2', 'firstName': 'Abebe', 'lastName': 'Kebede'},
}


class ReportFilterFormTests(SimpleTestCase):
    """Test period handling and picker trimming"""

    def test_defaults_to_month(self):
        form = ReportFilterForm(data={}, filters=('customer_id',))
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_params(), {'period': 'month'})

    def test_custom_period_needs_both_dates(self):
        form = ReportFilterForm(data={'period': 'custom', 'start_date': '2024-05-01'})
        self.assertFalse(form.is_valid())
        self.assertIn('End date is required for a custom range', form.errors['end_date'])

    def test_custom_period_order(self):
        form = ReportFilterForm(data={'period': 'custom', 'start_date': '2024-05-10', 'end_date': '2024-05-01'})
        self.assertFalse(form.is_valid())
        self.assertIn('End date cannot be before start date', form.errors['end_date'])

    def test_dates_only_sent_for_custom_period(self):
        form = ReportFilterForm(data={'period': 'week', 'start_date': '2024-05-01', 'end_date': '2024-05-31'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_params(), {'period': 'week'})

        form = ReportFilterForm(data={'period': 'custom', 'start_date': '2024-05-01', 'end_date': '2024-05-31'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_params(), {'period': 'custom', 'startDate': '2024-05-01', 'endDate': '2024-05-31'})

    def test_only_named_pickers_are_kept(self):
        form = ReportFilterForm(
            data={'customer_id': 'c1'}, filters=('customer_id',), choices={'customer_id': [('c1', 'City Clinic')]},
        )
        self.assertNotIn('supplier_id', form.fields)
        self.assertEqual(form.fields['customer_id'].choices[0], ('', 'All customers'))
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_params(), {'period': 'month', 'customerId': 'c1'})

    def test_undated_report_has_no_period(self):
        form = ReportFilterForm(data={}, dated=False)
        self.assertNotIn('period', form.fields)
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_params(), {})


class ReportServiceTests(SimpleTestCase):

    def test_report_unwrapped(self):
        client = Mock()
        client.get.return_value = {'success': True, 'data': SALES_REPORT}
        report = services.get_report(client, 'sales', {'period': 'month'})
        client.get.assert_called_once_with('/reports/sales', params={'period': 'month'})
        self.assertEqual(report['summary']['totalSales'], 4)

    def test_failed_envelope_gives_empty_report(self):
        client = Mock()
        client.get.return_value = {'success': False, 'message': 'nope'}
        self.assertEqual(services.get_report(client, 'inventory'), {})

    def test_pay_commission_patches(self):
        client = Mock()
        client.patch.return_value = {'success': True, 'data': dict(COMMISSION, status='PAID')}
        services.pay_commission(client, 'cm1', {'paidDate': '2024-05-31'})
        client.patch.assert_called_once_with('/commissions/cm1/pay', json={'paidDate': '2024-05-31'})


@patch('reports.views.inventory.all_products', return_value=[{'id': 'p1', 'name': 'Amoxil 500mg'}])
@patch('reports.views.inventory.all_categories', return_value=[{'id': 'c1', 'name': 'Antibiotics'}])
@patch('reports.views.accounts.users.list')
@patch('reports.views.all_customers', return_value=[{'id': 'cu1', 'name': 'City Clinic'}])
class ReportViewTests(DashboardTestMixin, SimpleTestCase):
    """Test report pages"""

    @patch('reports.views.services.get_report', return_value=SALES_REPORT)
    def test_sales_report(self, mock_report, *mocks):
        self.sign_in(permissions=['reports.sales'])
        response = self.client.get('/reports/sales/', {'customer_id': 'cu1'})
        self.assertEqual(response.status_code, 200)
        kind, params = mock_report.call_args.args[1:]
        self.assertEqual(kind, 'sales')
        self.assertEqual(params, {'period': 'month', 'customerId': 'cu1'})
        cards = {card['label']: card['value'] for card in response.context['cards']}
        self.assertEqual(cards['Revenue'], 1250.5)
        self.assertContains(response, 'Amoxil 500mg')
        self.assertContains(response, '1,250.50')
        self.assertEqual([tab['kind'] for tab in response.context['tabs']], ['sales'])

    @patch('reports.views.services.get_report')
    def test_invalid_custom_range_makes_no_call(self, mock_report, *mocks):
        self.sign_in(permissions=['reports.sales'])
        response = self.client.get('/reports/sales/', {'period': 'custom'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('Start date is required for a custom range', response.context['form'].errors['start_date'])
        mock_report.assert_not_called()

    @patch('reports.views.services.get_report')
    def test_report_error_shown(self, mock_report, *mocks):
        self.sign_in(permissions=['reports.financial'])
        mock_report.side_effect = api_error(500, '', method='GET')
        response = self.client.get('/reports/financial/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context['error'])
        self.assertIsNone(response.context['report'])

    @patch('reports.views.services.get_report', return_value={'summary': {'totalProducts': 12}})
    def test_inventory_report_takes_no_period(self, mock_report, *mocks):
        self.sign_in(permissions=['reports.inventory'])
        response = self.client.get('/reports/inventory/')
        self.assertEqual(mock_report.call_args.args[2], {})
        self.assertEqual(response.context['cards'][0], {'label': 'Products', 'value': 12, 'format': 'number'})

    def test_permission_per_report(self, *mocks):
        self.sign_in(permissions=['reports.sales'])
        response = self.client.get('/reports/purchases/')
        self.assertEqual(response['Location'], '/unauthorized/')

    def test_unknown_report(self, *mocks):
        self.sign_in_admin()
        response = self.client.get('/reports/weather/')
        self.assertEqual(response.status_code, 404)

    def test_index_opens_first_allowed_report(self, *mocks):
        self.sign_in(permissions=['reports.financial', 'reports.products'])
        response = self.client.get('/reports/')
        self.assertEqual(response['Location'], '/reports/financial/')

    def test_index_without_report_permissions(self, *mocks):
        self.sign_in(permissions=['sales.read'])
        response = self.client.get('/reports/')
        self.assertEqual(response['Location'], '/unauthorized/')


class CommissionViewTests(DashboardTestMixin, SimpleTestCase):
    """Test the commission ledger and pay flow"""

    @patch('reports.views.services.list_commissions', return_value=[COMMISSION])
    def test_list_forwards_filters(self, mock_list):
        self.sign_in(permissions=['commissions.read', 'commissions.pay'])
        response = self.client.get('/reports/commissions/ledger/', {'status': 'PENDING', 'startDate': '2024-05-01'})
        self.assertContains(response, 'Abebe Kebede')
        self.assertContains(response, '/reports/commissions/cm1/pay/')
        kwargs = mock_list.call_args.kwargs
        self.assertEqual(kwargs['status'], 'PENDING')
        self.assertEqual(kwargs['start_date'], '2024-05-01')

    @patch('reports.views.services.list_commissions', return_value=[COMMISSION])
    def test_list_hides_pay_without_permission(self, mock_list):
        self.sign_in(permissions=['commissions.read'])
        response = self.client.get('/reports/commissions/ledger/')
        self.assertNotContains(response, '/reports/commissions/cm1/pay/')

    @patch('reports.views.services.pay_commission')
    @patch.object(services.commissions, 'get', return_value=COMMISSION)
    def test_pay_defaults_to_today(self, mock_get, mock_pay):
        self.sign_in(permissions=['commissions.pay'])
        response = self.client.post('/reports/commissions/cm1/pay/', {'notes': 'May payout'})
        self.assertEqual(response['Location'], '/reports/commissions/ledger/')
        pk, payload = mock_pay.call_args.args[1:]
        self.assertEqual(pk, 'cm1')
        self.assertEqual(payload, {'paidDate': timezone.localdate().isoformat(), 'notes': 'May payout'})
        self.assertIn('Commission marked as paid', self.messages_of(response))

    @patch('reports.views.services.pay_commission')
    @patch.object(services.commissions, 'get', return_value=dict(COMMISSION, status='PAID'))
    def test_paid_commission_cannot_be_paid_again(self, mock_get, mock_pay):
        self.sign_in(permissions=['commissions.pay'])
        response = self.client.post('/reports/commissions/cm1/pay/', {})
        self.assertEqual(response['Location'], '/reports/commissions/ledger/')
        self.assertIn('Only pending commissions can be paid', self.messages_of(response))
        mock_pay.assert_not_called()

    def test_pay_form_payload(self):
        form = CommissionPayForm(data={'paid_date': '2024-05-31'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(), {'paidDate': '2024-05-31'})
