from rest_framework import serializers

from inventory.utils.uom import validate_quantity_availability


def reference_name(value):
    if isinstance(value, dict):
        return value.get('name')
    return value


class ProductLookupSerializer(serializers.Serializer):
    """Product option for the sale/purchase line pickers"""

    id = serializers.CharField()
    name = serializers.CharField()
    product_code = serializers.CharField(source='productCode', allow_null=True, required=False)
    generic_name = serializers.CharField(source='genericName', allow_null=True, required=False)
    quantity = serializers.IntegerField(allow_null=True, required=False)
    selling_price = serializers.FloatField(source='sellingPrice', allow_null=True, required=False)
    purchase_price = serializers.FloatField(source='purchasePrice', allow_null=True, required=False)
    category = serializers.SerializerMethodField()
    default_uom = serializers.SerializerMethodField()

    def get_category(self, obj):
        return reference_name(obj.get('category'))

    def get_default_uom(self, obj):
        uom = obj.get('defaultUom')
        if isinstance(uom, dict):
            return {'id': uom.get('id'), 'name': uom.get('name'), 'abbreviation': uom.get('abbreviation')}
        return None


class BatchLookupSerializer(serializers.Serializer):
    """Batch option for a sale line, with the stock it still holds"""

    id = serializers.CharField()
    batch_number = serializers.CharField(source='batchNumber', allow_null=True, required=False)
    expiry_date = serializers.SerializerMethodField()
    quantity = serializers.IntegerField(allow_null=True, required=False)
    selling_price = serializers.FloatField(source='sellingPrice', allow_null=True, required=False)
    label = serializers.SerializerMethodField()
    shortfall = serializers.SerializerMethodField()

    def get_expiry_date(self, obj):
        value = obj.get('expiryDate')
        return value[:10] if isinstance(value, str) else value

    def get_label(self, obj):
        expiry = self.get_expiry_date(obj)
        parts = [obj.get('batchNumber') or obj.get('id')]
        if expiry:
            parts.append(f"exp. {expiry}")
        if obj.get('quantity') is not None:
            parts.append(f"{obj['quantity']} in stock")
        return ' · '.join(str(part) for part in parts)

    def get_shortfall(self, obj):
        """Why this batch cannot cover the requested quantity, or None."""
        requested = self.context.get('requested')
        if requested is None:
            return None
        check = validate_quantity_availability(requested, self.context.get('uom'), obj.get('quantity') or 0)
        return check.message
