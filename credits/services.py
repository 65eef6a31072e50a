# credits/services.py
import logging
from decimal import Decimal, InvalidOperation

from website.services.resources import RemoteResource
from website.utils.envelopes import unwrap_data, unwrap_record

logger = logging.getLogger(__name__)

credits = RemoteResource('/credits', label='Credit', default_sort=('createdAt', 'DESC'))
payments = RemoteResource('/payments', label='Payment', default_sort=('createdAt', 'DESC'))

SUMMARY_FIELDS = ('totalCredits', 'totalAmount', 'totalPaid', 'totalBalance')


def get_summary(client, credit_type=None):
    """Totals across credits, optionally of one type (PAYABLE / RECEIVABLE)."""
    params = {'type': credit_type} if credit_type else None
    summary = unwrap_record(client.get(f"{credits.path}/summary", params=params)) or {}
    return {field: summary.get(field) or 0 for field in SUMMARY_FIELDS}


def record_payment(client, pk, payload):
    response = client.post(credits.detail_path(pk, 'pay'), json=payload)
    logger.info(f"Recorded payment of {payload.get('amount')} against credit {pk}")
    return unwrap_data(response)


def _amount(value):
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None


def balance_of(credit):
    """Outstanding balance; derived from total and paid when the API leaves it out."""
    balance = _amount(credit.get('balanceAmount'))
    if balance is not None:
        return balance
    total = _amount(credit.get('totalAmount')) or Decimal('0')
    paid = _amount(credit.get('paidAmount')) or Decimal('0')
    return max(Decimal('0'), total - paid)
