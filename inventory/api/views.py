"""
JSON lookups for the line-item pickers of the sale, quotation and purchase
forms.
"""

import logging
from decimal import ROUND_HALF_UP

from rest_framework.response import Response
from rest_framework.views import APIView

from inventory import services
from inventory.serializers import BatchLookupSerializer, ProductLookupSerializer
from inventory.utils.uom import convert_to_base
from website.mixins import reraise_unauthorized
from website.permissions import BATCHES, PRODUCTS
from website.services.api_client import ApiError
from website.utils.api_errors import extract_error_message

logger = logging.getLogger(__name__)

LOOKUP_PAGE_SIZE = 20


def api_error_response(error):
    reraise_unauthorized(error)
    logger.warning(f"Lookup failed ({error.status}): {error.message}")
    return Response(
        {'success': False, 'message': extract_error_message(error)},
        status=error.status or 502,
    )


class ProductLookupAPIView(APIView):
    permission_required = PRODUCTS['read']

    def get(self, request):
        search = request.query_params.get('search', '').strip() or None
        try:
            page = services.products.list(request.api, page=1, limit=LOOKUP_PAGE_SIZE, search=search)
        except ApiError as e:
            return api_error_response(e)
        return Response({
            'success': True,
            'data': ProductLookupSerializer(page.items, many=True).data,
            'total': page.total,
        })


class AvailableBatchesAPIView(APIView):
    """
    Batches of a product able to cover a requested quantity.

    ``quantity`` may be given in any unit of the product's category
    (``uom`` id); it is converted to base units before the API is asked.
    """

    permission_required = BATCHES['read']

    def get(self, request, pk):
        quantity = request.query_params.get('quantity')
        uom_id = request.query_params.get('uom') or None
        if quantity is not None and not quantity.isdigit():
            return Response({'success': False, 'message': 'Quantity must be a whole number'}, status=400)
        try:
            uom = services.uoms.get(request.api, uom_id) if uom_id else None
            in_base = None
            if quantity is not None:
                in_base = int(convert_to_base(quantity, uom).to_integral_value(rounding=ROUND_HALF_UP))
            records = services.available_batches(request.api, pk, quantity=in_base)
        except ApiError as e:
            return api_error_response(e)
        context = {'requested': quantity, 'uom': uom}
        return Response({'success': True, 'data': BatchLookupSerializer(records, many=True, context=context).data})
