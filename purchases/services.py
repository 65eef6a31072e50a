# purchases/services.py
from inventory.services import LOOKUP_LIMIT
from website.services.resources import RemoteResource

suppliers = RemoteResource('/suppliers', label='Supplier')
purchases = RemoteResource('/purchases', label='Purchase', default_sort=('date', 'DESC'))


def all_suppliers(client):
    # /suppliers has no /all endpoint; one large page stands in for it
    return suppliers.list(client, page=1, limit=LOOKUP_LIMIT).items


def purchase_total(purchase):
    """Invoice total, summed from the items when the API leaves it out."""
    if purchase.get('totalAmount') is not None:
        return float(purchase['totalAmount'])
    total = 0.0
    for item in purchase.get('items') or []:
        if item.get('totalCost') is not None:
            total += float(item['totalCost'])
        else:
            total += float(item.get('quantity') or 0) * float(item.get('unitCost') or 0)
    return round(total, 2)
