from rest_framework import generics, status
from rest_framework.decorators import api_view
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from .filters import StockMovementFilter
from .models import Order
from .serializers import (
    ReceiveStockSerializer, TransferStockSerializer, WriteOffSerializer,
    StockMovementSerializer, MovementHistoryQuerySerializer, MovementStatsQuerySerializer,
    OrderEstimateSerializer, OrderCreateSerializer, OrderSerializer,
    CostOperationCreateSerializer, CostOperationUpdateSerializer,
    IncomeOperationCreateSerializer, IncomeOperationUpdateSerializer, PaymentSerializer
)
from .services import CostRuleEngine, MovementLogService, OrderLedgerService, StockLedgerService
from .services.movement_log import LOCATION_HISTORY_LIMIT, PRODUCT_HISTORY_LIMIT
from .conf import ledger_setting
from utils.exceptions import NotFound


def actor(request):
    """Username of the authenticated user, recorded on movements and orders."""
    return request.user.get_username()


# ============================================================
# STOCK LEDGER
# ============================================================

class ReceiveStockView(APIView):
    """
    Register inbound stock at a storage location.

    POST /api/v1/stock/receive/
    {
        "product_id": 1,
        "to_location_id": 3,
        "quantity": 10,
        "batch_number": "LOT-2024-01",
        "reason": "Supplier delivery"
    }
    """

    def post(self, request, *args, **kwargs):
        serializer = ReceiveStockSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = StockLedgerService.receive(
            product_id=data['product_id'],
            to_location_id=data['to_location_id'],
            quantity=data['quantity'],
            batch_number=data.get('batch_number'),
            reason=data.get('reason', ''),
            performed_by=actor(request)
        )
        return Response(result, status=status.HTTP_201_CREATED)


class TransferStockView(APIView):
    """
    Move stock between two storage locations.

    POST /api/v1/stock/transfer/
    {
        "product_id": 1,
        "from_location_id": 3,
        "to_location_id": 4,
        "quantity": 7
    }
    """

    def post(self, request, *args, **kwargs):
        serializer = TransferStockSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = StockLedgerService.transfer(
            product_id=data['product_id'],
            from_location_id=data['from_location_id'],
            to_location_id=data['to_location_id'],
            quantity=data['quantity'],
            batch_number=data.get('batch_number'),
            reason=data.get('reason', ''),
            performed_by=actor(request)
        )
        return Response(result)


class WriteOffStockView(APIView):
    """
    Write off lost or damaged stock.

    POST /api/v1/stock/write-off/
    {
        "product_id": 1,
        "location_id": 3,
        "quantity": 2,
        "reason": "Damaged in handling"
    }
    """

    def post(self, request, *args, **kwargs):
        serializer = WriteOffSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = StockLedgerService.write_off(
            product_id=data['product_id'],
            location_id=data['location_id'],
            quantity=data['quantity'],
            reason=data.get('reason', ''),
            batch_number=data.get('batch_number'),
            performed_by=actor(request)
        )
        return Response(result)


@api_view(['GET'])
def location_contents(request, location_id):
    """
    Get the stock stored at a location.

    Returns:
    - location_id, location_code, warehouse, status
    - total_quantity
    - items: product, batch, quantity and available_qty per stock record
    """
    return Response(StockLedgerService.location_contents(location_id))


@api_view(['GET'])
def product_stock(request, product_id):
    """Per-location stock of a product with totals."""
    return Response(StockLedgerService.product_stock(product_id))


# ============================================================
# MOVEMENT LOG
# ============================================================

class MovementPagination(LimitOffsetPagination):
    @property
    def default_limit(self):
        return ledger_setting('MOVEMENT_LOG_DEFAULT_LIMIT')

    @property
    def max_limit(self):
        return ledger_setting('MOVEMENT_LOG_MAX_LIMIT')


class StockMovementListView(generics.ListAPIView):
    """
    List stock movements (audit trail), newest first.

    Filters:
    - product: Product ID
    - movement_type: INBOUND, TRANSFER or WRITE_OFF
    - warehouse: Warehouse ID of the source or destination
    - date_from, date_to: Date range (ISO 8601)

    Pagination: ?limit=&offset=
    """
    queryset = MovementLogService.base_queryset()
    serializer_class = StockMovementSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = StockMovementFilter
    pagination_class = MovementPagination


def _history_limit(request, default):
    query = MovementHistoryQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    return query.validated_data.get('limit', default)


@api_view(['GET'])
def product_movements(request, product_id):
    """Movement history of one product (?limit=, default 50)."""
    movements = MovementLogService.for_product(
        product_id, limit=_history_limit(request, PRODUCT_HISTORY_LIMIT)
    )
    return Response(StockMovementSerializer(movements, many=True).data)


@api_view(['GET'])
def location_movements(request, location_id):
    """Movements into or out of one location (?limit=, default 50)."""
    movements = MovementLogService.for_location(
        location_id, limit=_history_limit(request, LOCATION_HISTORY_LIMIT)
    )
    return Response(StockMovementSerializer(movements, many=True).data)


@api_view(['GET'])
def movement_stats(request):
    """
    Movement counts and quantity sums per type.

    Query params: date_from, date_to (ISO 8601)
    """
    query = MovementStatsQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    return Response(MovementLogService.stats(
        date_from=query.validated_data.get('date_from'),
        date_to=query.validated_data.get('date_to')
    ))


# ============================================================
# ORDERS
# ============================================================

@api_view(['POST'])
def order_estimate(request):
    """
    Preview the cost lines an order would get, without creating it.

    POST /api/v1/orders/estimate/
    {
        "items": [{"name": "Mug", "quantity": 20, "weight": "0.150"}]
    }
    """
    serializer = OrderEstimateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    estimate = CostRuleEngine.estimate(serializer.validated_data['items'])
    estimate['lines'] = [line.to_dict() for line in estimate['lines']]
    return Response(estimate)


class OrderListCreateView(generics.ListAPIView):
    """
    GET:  list orders, newest first
    POST: create an order from a cost estimate

    POST /api/v1/orders/
    {
        "client_id": 1,
        "items": [{"sku": "MUG-1", "name": "Mug", "quantity": 20, "weight": "0.150"}],
        "income_amount": "900.00",
        "shipping_address": "...",
        "notes": "..."
    }
    """
    queryset = Order.objects.all().select_related('client').prefetch_related(
        'items', 'cost_operations__vendor', 'cost_operations__vendor_service', 'income_operations'
    )
    serializer_class = OrderSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['client', 'status']

    def post(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = OrderLedgerService.create_from_estimate(
            client_id=data['client_id'],
            items=[dict(item) for item in data['items']],
            income_amount=data.get('income_amount'),
            shipping_address=data.get('shipping_address', ''),
            notes=data.get('notes', ''),
            created_by=actor(request)
        )
        return Response(result, status=status.HTTP_201_CREATED)


@api_view(['GET'])
def order_detail(request, order_id):
    """Order with items, operations and P&L breakdown."""
    order = OrderListCreateView.queryset.filter(pk=order_id).first()
    if order is None:
        raise NotFound(f'Order {order_id} not found')

    data = OrderSerializer(order).data
    data['pnl'] = OrderLedgerService.pnl(order.pk)
    return Response(data)


@api_view(['POST'])
def order_recalculate(request, order_id):
    """Resync the order's snapshot with its cost and income operations."""
    return Response(OrderLedgerService.recalculate(order_id))


@api_view(['POST'])
def order_add_cost_operation(request, order_id):
    serializer = CostOperationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = OrderLedgerService.add_cost_operation(
        order_id=order_id,
        vendor_service_id=data['vendor_service_id'],
        quantity=data['quantity'],
        actual_amount=data.get('actual_amount'),
        description=data.get('description', '')
    )
    return Response(result, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
def cost_operation_detail(request, cost_operation_id):
    """
    PATCH:  correct quantity, actual amount or description of a cost operation
    DELETE: remove the cost operation from its order
    """
    if request.method == 'DELETE':
        return Response(OrderLedgerService.delete_cost_operation(cost_operation_id))

    serializer = CostOperationUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = OrderLedgerService.adjust_cost_operation(
        cost_operation_id,
        quantity=data.get('quantity'),
        actual_amount=data.get('actual_amount'),
        description=data.get('description')
    )
    return Response(result)


@api_view(['POST'])
def order_add_income_operation(request, order_id):
    serializer = IncomeOperationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = OrderLedgerService.add_income_operation(
        order_id=order_id,
        invoice_amount=data['invoice_amount'],
        paid_amount=data.get('paid_amount', 0),
        payment_method=data.get('payment_method'),
        payment_date=data.get('payment_date'),
        description=data.get('description', '')
    )
    return Response(result, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
def income_operation_detail(request, income_operation_id):
    """
    PATCH:  correct invoice amount, paid amount, method, date or description
    DELETE: remove the income operation from its order
    """
    if request.method == 'DELETE':
        return Response(OrderLedgerService.delete_income_operation(income_operation_id))

    serializer = IncomeOperationUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = OrderLedgerService.update_income_operation(
        income_operation_id,
        invoice_amount=data.get('invoice_amount'),
        paid_amount=data.get('paid_amount'),
        payment_method=data.get('payment_method'),
        payment_date=data.get('payment_date'),
        description=data.get('description')
    )
    return Response(result)


@api_view(['POST'])
def income_operation_payment(request, income_operation_id):
    """
    Record a payment against an invoice.

    POST /api/v1/income-operations/<id>/payment/
    {
        "amount": "845.00",
        "payment_method": "BANK_TRANSFER"
    }
    """
    serializer = PaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = OrderLedgerService.record_payment(
        income_operation_id,
        amount=data['amount'],
        payment_method=data.get('payment_method'),
        payment_date=data.get('payment_date')
    )
    return Response(result)
