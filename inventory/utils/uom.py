"""
Unit-of-measure conversions.

Stock is held in the base unit of a unit category; every other unit of the
category carries a ``conversionRate`` to that base (1 mg = 0.001 g). The
helpers accept full UOM records or the partial references nested in
products (``defaultUom``), and ``None`` meaning "already in base units".
"""

from collections import namedtuple
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

Availability = namedtuple('Availability', ['valid', 'message', 'requested_in_base'])


def _decimal(value, default=Decimal('0')):
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def _plain(value):
    value = _decimal(value)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal('1')))
    return format(value.normalize(), 'f')


def conversion_rate(uom):
    if not uom or uom.get('conversionRate') in (None, ''):
        return Decimal('1')
    return _decimal(uom['conversionRate'], Decimal('1'))


def is_base_unit(uom):
    if not uom:
        return True
    if uom.get('baseUnit') is True:
        return True
    if uom.get('baseUnit') is False:
        return False
    return conversion_rate(uom) == 1


def convert_to_base(quantity, uom):
    quantity = _decimal(quantity)
    if is_base_unit(uom):
        return quantity
    return quantity * conversion_rate(uom)


def convert_from_base(quantity_in_base, uom):
    quantity_in_base = _decimal(quantity_in_base)
    if is_base_unit(uom):
        return quantity_in_base
    rate = conversion_rate(uom)
    if not rate:
        return quantity_in_base
    return quantity_in_base / rate


def uom_label(uom):
    if not uom:
        return ''
    return uom.get('abbreviation') or uom.get('name') or ''


def format_quantity_with_uom(quantity, uom=None, precision=2):
    """``2.50 g``; the bare number when the unit has no label."""
    step = Decimal(1).scaleb(-precision)
    text = str(_decimal(quantity).quantize(step, rounding=ROUND_HALF_UP))
    label = uom_label(uom)
    return f"{text} {label}" if label else text


def validate_quantity_availability(requested, uom, available_in_base):
    """
    Check a requested quantity, given in ``uom``, against stock held in base units.

    The converted request is rounded to whole base units before comparing.
    """
    requested_in_base = convert_to_base(requested, uom)
    available = _decimal(available_in_base)
    needed = requested_in_base.quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    if available >= needed:
        return Availability(True, None, requested_in_base)

    suffix = f" ({uom_label(uom)})" if uom else ''
    message = (
        f"Insufficient quantity. Available: {_plain(available)} (base UOM), "
        f"Requested: {_plain(requested)}{suffix}"
    )
    return Availability(False, message, requested_in_base)
