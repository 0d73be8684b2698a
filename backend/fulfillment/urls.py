from django.urls import path
from .views import (
    # Stock ledger views
    ReceiveStockView, TransferStockView, WriteOffStockView,
    location_contents, product_stock,
    # Movement log views
    StockMovementListView, product_movements, location_movements, movement_stats,
    # Order ledger views
    order_estimate, OrderListCreateView, order_detail, order_recalculate,
    order_add_cost_operation, cost_operation_detail,
    order_add_income_operation, income_operation_detail, income_operation_payment
)

urlpatterns = [
    # Stock Ledger
    path('stock/receive/', ReceiveStockView.as_view(), name='stock-receive'),
    path('stock/transfer/', TransferStockView.as_view(), name='stock-transfer'),
    path('stock/write-off/', WriteOffStockView.as_view(), name='stock-write-off'),
    path('stock/locations/<int:location_id>/contents/', location_contents, name='stock-location-contents'),
    path('stock/products/<int:product_id>/', product_stock, name='stock-product'),

    # Movement Log
    path('movements/', StockMovementListView.as_view(), name='movement-list'),
    path('movements/product/<int:product_id>/', product_movements, name='movement-product'),
    path('movements/location/<int:location_id>/', location_movements, name='movement-location'),
    path('movements/stats/', movement_stats, name='movement-stats'),

    # Orders
    path('orders/estimate/', order_estimate, name='order-estimate'),
    path('orders/', OrderListCreateView.as_view(), name='order-list'),
    path('orders/<int:order_id>/', order_detail, name='order-detail'),
    path('orders/<int:order_id>/recalculate/', order_recalculate, name='order-recalculate'),
    path('orders/<int:order_id>/cost-operations/', order_add_cost_operation, name='order-cost-operations'),
    path('orders/<int:order_id>/income-operations/', order_add_income_operation, name='order-income-operations'),
    path('cost-operations/<int:cost_operation_id>/', cost_operation_detail, name='cost-operation-detail'),
    path('income-operations/<int:income_operation_id>/', income_operation_detail, name='income-operation-detail'),
    path('income-operations/<int:income_operation_id>/payment/', income_operation_payment, name='income-operation-payment'),
]
