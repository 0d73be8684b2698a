from rest_framework import serializers

from .models import (
    StockMovement,
    Order, OrderItem, CostOperation, IncomeOperation
)
from utils.constants import MAX_QUANTITY


# ============================================================
# STOCK LEDGER
# ============================================================

class ReceiveStockSerializer(serializers.Serializer):
    """Input for an inbound receipt. Quantity rules are enforced by the ledger."""
    product_id = serializers.IntegerField()
    to_location_id = serializers.IntegerField()
    quantity = serializers.IntegerField(max_value=MAX_QUANTITY)
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class TransferStockSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    from_location_id = serializers.IntegerField()
    to_location_id = serializers.IntegerField()
    quantity = serializers.IntegerField(max_value=MAX_QUANTITY)
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class WriteOffSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    quantity = serializers.IntegerField(max_value=MAX_QUANTITY)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


# ============================================================
# MOVEMENT LOG
# ============================================================

class StockMovementSerializer(serializers.ModelSerializer):
    """Read-only view of one movement with product and location labels."""
    sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    from_location_code = serializers.CharField(source='from_location.code', read_only=True, allow_null=True)
    to_location_code = serializers.CharField(source='to_location.code', read_only=True, allow_null=True)
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)
    movement_type_color = serializers.CharField(source='get_movement_type_color', read_only=True)
    movement_type_icon = serializers.CharField(source='get_movement_type_icon', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'product', 'sku', 'product_name',
            'from_location', 'from_location_code', 'to_location', 'to_location_code',
            'quantity', 'movement_type', 'movement_type_display',
            'movement_type_color', 'movement_type_icon',
            'batch_number', 'reason', 'created_by', 'created_at'
        ]
        read_only_fields = fields


class MovementHistoryQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False)


class MovementStatsQuerySerializer(serializers.Serializer):
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)


# ============================================================
# ORDERS
# ============================================================

class OrderItemInputSerializer(serializers.Serializer):
    """One order line. weight and volume are per unit."""
    sku = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(required=False, default=1, min_value=1, max_value=MAX_QUANTITY)
    weight = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, default=0, min_value=0)
    volume = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, default=0, min_value=0)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)


class OrderEstimateSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True, allow_empty=False)


class OrderCreateSerializer(serializers.Serializer):
    """
    Input for creating an order from a cost estimate.

    income_amount is optional; when omitted the invoice is the estimated
    cost times the client's tariff rate.
    """
    client_id = serializers.IntegerField()
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    income_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    shipping_address = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'sku', 'name', 'quantity', 'weight', 'volume', 'unit_cost', 'unit_price']
        read_only_fields = fields


class CostOperationSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)
    service_name = serializers.CharField(source='vendor_service.name', read_only=True)
    service_type = serializers.CharField(source='vendor_service.type', read_only=True)

    class Meta:
        model = CostOperation
        fields = [
            'id', 'vendor', 'vendor_name', 'vendor_service', 'service_name', 'service_type',
            'quantity', 'unit_price', 'calculated_amount', 'actual_amount',
            'description', 'operation_date'
        ]
        read_only_fields = fields


class IncomeOperationSerializer(serializers.ModelSerializer):
    outstanding_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = IncomeOperation
        fields = [
            'id', 'client', 'invoice_amount', 'paid_amount', 'outstanding_amount',
            'payment_method', 'payment_date', 'description', 'created_at'
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Order with items, operations and its (read-only) profit snapshot."""
    client_name = serializers.CharField(source='client.name', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    cost_operations = CostOperationSerializer(many=True, read_only=True)
    income_operations = IncomeOperationSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'client', 'client_name', 'status',
            'shipping_address', 'notes', 'created_by', 'order_date',
            'estimated_cost', 'actual_cost', 'total_income', 'profit', 'margin_percent',
            'items', 'cost_operations', 'income_operations',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class CostOperationCreateSerializer(serializers.Serializer):
    vendor_service_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    actual_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')


class CostOperationUpdateSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, required=False)
    actual_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    description = serializers.CharField(required=False, allow_blank=True)

    def validate(self, data):
        """At least one field must change"""
        if not data:
            raise serializers.ValidationError("Provide quantity, actual_amount or description")
        return data


class IncomeOperationCreateSerializer(serializers.Serializer):
    invoice_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    payment_method = serializers.ChoiceField(
        choices=IncomeOperation.PaymentMethod.choices,
        required=False,
        allow_null=True
    )
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentSerializer(serializers.Serializer):
    """Payment against an income operation. Amount rules are enforced by the ledger."""
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.ChoiceField(
        choices=IncomeOperation.PaymentMethod.choices,
        required=False,
        allow_null=True
    )
    payment_date = serializers.DateTimeField(required=False, allow_null=True)


class IncomeOperationUpdateSerializer(serializers.Serializer):
    invoice_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    payment_method = serializers.ChoiceField(
        choices=IncomeOperation.PaymentMethod.choices,
        required=False
    )
    payment_date = serializers.DateTimeField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)

    def validate(self, data):
        """At least one field must change"""
        if not data:
            raise serializers.ValidationError(
                "Provide invoice_amount, paid_amount, payment_method, payment_date or description"
            )
        return data
