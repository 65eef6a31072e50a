"""
Printable documents built from API records.

The sale voucher and the quotation requisition form are plain dicts that
the print templates lay out; nothing here talks to the API.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

REQUISITION_ROWS = 12

ONES = [
    '', 'One', 'Two', 'Three', 'Four', 'Five', 'Six', 'Seven', 'Eight', 'Nine',
    'Ten', 'Eleven', 'Twelve', 'Thirteen', 'Fourteen', 'Fifteen',
    'Sixteen', 'Seventeen', 'Eighteen', 'Nineteen',
]
TENS = ['', '', 'Twenty', 'Thirty', 'Forty', 'Fifty', 'Sixty', 'Seventy', 'Eighty', 'Ninety']


def to_decimal(value):
    try:
        return Decimal(str(value if value not in (None, '') else 0))
    except (InvalidOperation, ValueError):
        return Decimal('0')


def _words(n):
    if n == 0:
        return 'Zero'
    if n < 0:
        return f"Minus {_words(-n)}"
    parts = []
    for size, name in ((1_000_000, 'Million'), (1_000, 'Thousand'), (100, 'Hundred')):
        if n >= size:
            parts.append(f"{_words(n // size)} {name}")
            n %= size
    if n:
        if n < 20:
            parts.append(ONES[n])
        else:
            parts.append(TENS[n // 10] + (f" {ONES[n % 10]}" if n % 10 else ''))
    return ' '.join(parts)


def amount_in_words(amount):
    """Integer part of ``amount`` in English words, e.g. ``One Hundred Five Only``."""
    return f"{_words(int(to_decimal(amount)))} Only"


def split_amount(value):
    """(birr, cents) strings of an amount rounded to two places."""
    rounded = to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    birr, cents = f"{rounded:.2f}".split('.')
    return birr, cents


def _date(value):
    return value[:10] if isinstance(value, str) else value


# ====================================
# SALE VOUCHER
# ====================================

def build_sale_voucher(sale, company):
    items = sale.get('items') or []
    sub_total = sum((to_decimal(item.get('totalPrice')) for item in items), Decimal('0'))
    discount_total = sum((to_decimal(item.get('discount')) for item in items), Decimal('0'))
    grand_total = to_decimal(sale.get('totalAmount')) if sale.get('totalAmount') is not None else sub_total
    paid = to_decimal(sale['paidAmount']) if sale.get('paidAmount') is not None else grand_total
    customer = sale.get('customer') or {}

    lines = []
    for index, item in enumerate(items, start=1):
        product = item.get('product') or {}
        description = ' '.join(
            str(part) for part in (product.get('name'), product.get('strength'), product.get('dosageForm')) if part
        )
        lines.append({
            'sn': index,
            'item_id': product.get('productCode') or product.get('id') or '',
            'description': description or item.get('productName') or '',
            'quantity': item.get('quantity'),
            'unit': (product.get('defaultUom') or {}).get('name', ''),
            'unit_price': to_decimal(item.get('unitPrice')),
            'total': to_decimal(item.get('totalPrice')),
        })

    return {
        'company': company,
        'title': 'Cash Sales Voucher' if paid >= grand_total else 'Credit Sales Voucher',
        'voucher_no': f"CS-{str(sale.get('id', ''))[:8].upper()}",
        'date': _date(sale.get('date')),
        'customer': {
            'name': customer.get('name', ''),
            'phone': customer.get('phone', ''),
            'address': customer.get('address', ''),
        },
        'items': lines,
        'sub_total': sub_total,
        'discount_total': discount_total,
        'grand_total': grand_total,
        'paid_amount': paid,
        'balance': max(Decimal('0'), grand_total - paid),
        'amount_in_words': amount_in_words(grand_total),
    }


# ====================================
# REQUISITION FORM
# ====================================

def build_requisition(quotation, company, rows=REQUISITION_ROWS):
    """Quotation laid out as a requisition form, padded with blank rows up to ``rows``."""
    customer = quotation.get('customer') or {}
    lines = []
    for index, item in enumerate(quotation.get('items') or [], start=1):
        product = item.get('product') or {}
        lines.append({
            'sn': index,
            'description': product.get('name') or item.get('productName') or '',
            'batch_number': item.get('batchNumber') or '',
            'expiry_date': _date(item.get('expiryDate')) or '',
            'quantity': item.get('quantity'),
            'unit_price': split_amount(item.get('unitPrice')),
            'total_price': split_amount(item.get('totalPrice')),
        })
    for index in range(len(lines) + 1, rows + 1):
        lines.append({'sn': index, 'blank': True})

    return {
        'company': company,
        'reference': str(quotation.get('id', ''))[:8],
        'date': _date(quotation.get('date')),
        'client_name': customer.get('name') or quotation.get('customerName') or '-',
        'client_address': customer.get('address') or '-',
        'client_tin': customer.get('tinNumber') or '-',
        'items': lines,
        'total': split_amount(quotation.get('totalAmount')),
    }
