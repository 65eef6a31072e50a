from decimal import Decimal, InvalidOperation

from django import template
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils.html import format_html

from website.permissions import request_can

register = template.Library()


@register.filter
def can(request, codes):
    """``{% if request|can:'customers.create' %}``; comma-separate several codes for "any of"."""
    required = [code.strip() for code in str(codes).split(',') if code.strip()]
    return request_can(request, required)


@register.filter
def get_item(mapping, key):
    if isinstance(mapping, dict):
        return mapping.get(key)
    return None


@register.filter
def money(value, places=2):
    try:
        amount = Decimal(str(value if value not in (None, '') else 0))
    except (InvalidOperation, ValueError):
        return value
    return f"{amount:,.{int(places)}f}"


@register.filter
def display(value):
    """Readable text for an API value: references show their name, booleans Yes/No."""
    if value is None or value == '':
        return '-'
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, dict):
        if value.get('name'):
            return value['name']
        full_name = ' '.join(filter(None, [value.get('firstName'), value.get('lastName')]))
        return full_name or value.get('email') or value.get('id') or '-'
    if isinstance(value, (list, tuple)):
        return ', '.join(str(display(item)) for item in value) or '-'
    return value


@register.filter
def iso_date(value):
    if isinstance(value, str) and len(value) >= 10:
        return value[:10]
    return display(value)


@register.simple_tag(takes_context=True)
def render_cell(context, column, value, row):
    if column.template:
        return render_to_string(column.template, {
            'value': value,
            'row': row,
            'column': column,
            'request': context.get('request'),
        })
    return display(value)


@register.simple_tag
def entity_url(name, pk):
    if not name or pk in (None, ''):
        return ''
    return reverse(name, kwargs={'pk': pk})


@register.simple_tag
def status_badge(status):
    css = {
        'ACTIVE': 'success', 'COMPLETED': 'success', 'PAID': 'success', 'ACCEPTED': 'success',
        'PENDING': 'warning', 'PARTIAL': 'warning', 'DRAFT': 'secondary', 'SENT': 'info',
        'PARTIALLY_RECEIVED': 'info', 'INACTIVE': 'secondary', 'CANCELLED': 'danger',
        'REJECTED': 'danger', 'EXPIRED': 'danger', 'OVERDUE': 'danger',
    }.get(str(status).upper(), 'secondary')
    label = str(status or '-').replace('_', ' ').title()
    return format_html('<span class="badge bg-{}">{}</span>', css, label)


@register.filter
def toggle_column_url(table, key):
    return table.toggle_column_url(key)


@register.filter
def select_url(table, row_id):
    return table.select_url(row_id)
