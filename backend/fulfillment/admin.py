from django.contrib import admin, messages
from django.urls import reverse
from django.utils.html import format_html

from .models import (
    Warehouse, StorageLocation, Product, StockRecord, StockMovement,
    Vendor, VendorService, Client, Order, OrderItem, CostOperation, IncomeOperation,
    Account, FinTransaction
)
from .services import OrderLedgerService
from .services.order_ledger import line_amount


# ============================================================
# WAREHOUSE & STOCK
# ============================================================

@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'location_count', 'is_active']
    list_filter = ['is_active']
    search_fields = ['code', 'name', 'address']
    readonly_fields = ['created_at', 'updated_at']

    def location_count(self, obj):
        """Display count of locations with link"""
        count = obj.locations.count()
        url = reverse('admin:fulfillment_storagelocation_changelist') + f'?warehouse__id__exact={obj.id}'
        return format_html('<a href="{}">{} locations</a>', url, count)
    location_count.short_description = 'Locations'


@admin.register(StorageLocation)
class StorageLocationAdmin(admin.ModelAdmin):
    """Status is derived by the stock ledger and shown read-only."""
    list_display = ['code', 'warehouse', 'zone', 'status_badge', 'max_weight', 'max_volume']
    list_filter = ['warehouse', 'status', 'zone']
    search_fields = ['code', 'name', 'warehouse__code']
    readonly_fields = ['status', 'created_at', 'updated_at']

    fieldsets = (
        ('Location', {
            'fields': ('warehouse', 'code', 'name', 'zone')
        }),
        ('Capacity', {
            'fields': ('max_weight', 'max_volume')
        }),
        ('Status', {
            'fields': ('status',),
            'description': 'Derived from stored stock; updated by stock movements only'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj):
        """Display status with color badge"""
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
            obj.get_status_color(),
            obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'unit_weight', 'unit_cost', 'unit_price', 'is_active']
    list_filter = ['is_active']
    search_fields = ['sku', 'name']
    readonly_fields = ['created_at', 'updated_at']


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    """Ledger rows are written by the services only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockRecord)
class StockRecordAdmin(ReadOnlyLedgerAdmin):
    list_display = ['product', 'storage_location', 'batch_number', 'quantity', 'available_qty', 'last_movement_at']
    list_filter = ['storage_location__warehouse']
    search_fields = ['product__sku', 'product__name', 'storage_location__code', 'batch_number']


@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyLedgerAdmin):
    list_display = [
        'id', 'movement_type_badge', 'product', 'quantity',
        'from_location', 'to_location', 'created_by', 'created_at'
    ]
    list_filter = ['movement_type', 'created_at']
    search_fields = ['product__sku', 'product__name', 'reason', 'created_by', 'batch_number']
    date_hierarchy = 'created_at'

    def movement_type_badge(self, obj):
        """Display movement type with icon and color"""
        return format_html(
            '<span style="color: {};">{} {}</span>',
            obj.get_movement_type_color(),
            obj.get_movement_type_icon(),
            obj.get_movement_type_display()
        )
    movement_type_badge.short_description = 'Type'
    movement_type_badge.admin_order_field = 'movement_type'


# ============================================================
# VENDORS & CLIENTS
# ============================================================

class VendorServiceInline(admin.TabularInline):
    model = VendorService
    extra = 0
    fields = ['name', 'type', 'unit', 'price', 'is_active']


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    inlines = [VendorServiceInline]


@admin.register(VendorService)
class VendorServiceAdmin(admin.ModelAdmin):
    list_display = ['name', 'vendor', 'type', 'unit', 'price', 'is_active']
    list_filter = ['type', 'unit', 'is_active', 'vendor']
    search_fields = ['name', 'vendor__name']


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'company_name', 'tariff_rate', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'company_name']


# ============================================================
# ORDERS
# ============================================================

class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


class CostOperationInline(admin.TabularInline):
    model = CostOperation
    extra = 0
    readonly_fields = ['calculated_amount']
    fields = ['vendor_service', 'vendor', 'quantity', 'unit_price', 'calculated_amount', 'actual_amount', 'description']


class IncomeOperationInline(admin.TabularInline):
    model = IncomeOperation
    extra = 0
    fields = ['client', 'invoice_amount', 'paid_amount', 'payment_method', 'payment_date', 'description']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Profit snapshot fields are derived and resynced whenever the order is saved."""
    list_display = [
        'order_number', 'client', 'status', 'estimated_cost',
        'actual_cost', 'total_income', 'profit_display', 'margin_percent', 'order_date'
    ]
    list_filter = ['status', 'order_date']
    search_fields = ['order_number', 'client__name', 'notes']
    readonly_fields = [
        'order_number', 'estimated_cost', 'actual_cost', 'total_income',
        'profit', 'margin_percent', 'created_by', 'created_at', 'updated_at'
    ]
    inlines = [OrderItemInline, CostOperationInline, IncomeOperationInline]
    actions = ['recalculate_selected_orders']

    fieldsets = (
        ('Order', {
            'fields': ('order_number', 'client', 'status', 'shipping_address', 'notes', 'created_by')
        }),
        ('Profit Snapshot', {
            'fields': ('estimated_cost', 'actual_cost', 'total_income', 'profit', 'margin_percent'),
            'description': 'Derived from cost and income operations'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def profit_display(self, obj):
        """Display profit, red when negative"""
        color = 'red' if obj.profit < 0 else 'green'
        return format_html('<span style="color: {};">{}</span>', color, obj.profit)
    profit_display.short_description = 'Profit'
    profit_display.admin_order_field = 'profit'

    def save_formset(self, request, form, formset, change):
        """Reprice edited cost lines before they are written"""
        if formset.model is not CostOperation:
            return super().save_formset(request, form, formset, change)

        for inline_form in formset.forms:
            if inline_form in formset.deleted_forms or not inline_form.has_changed():
                continue
            operation = inline_form.instance
            repriced = operation.pk is None or {'quantity', 'unit_price'} & set(inline_form.changed_data)
            if repriced:
                operation.calculated_amount = line_amount(operation.quantity, operation.unit_price)
                if 'actual_amount' not in inline_form.changed_data or operation.actual_amount is None:
                    operation.actual_amount = operation.calculated_amount
            operation.vendor_id = operation.vendor_service.vendor_id

        for operation in formset.save(commit=False):
            operation.save()
        for operation in formset.deleted_objects:
            operation.delete()
        formset.save_m2m()

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        OrderLedgerService.recalculate(form.instance.pk)

    def recalculate_selected_orders(self, request, queryset):
        """Admin action to resync order snapshots"""
        count = 0
        for order in queryset:
            OrderLedgerService.recalculate(order.pk)
            count += 1
        self.message_user(request, f'{count} order(s) recalculated', messages.SUCCESS)
    recalculate_selected_orders.short_description = 'Recalculate profit snapshot'


# ============================================================
# GENERAL LEDGER
# ============================================================

@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'account_type', 'balance', 'is_active']
    list_filter = ['account_type', 'is_active']
    search_fields = ['code', 'name']
    readonly_fields = ['balance', 'created_at', 'updated_at']


@admin.register(FinTransaction)
class FinTransactionAdmin(ReadOnlyLedgerAdmin):
    list_display = ['id', 'debit_account', 'credit_account', 'amount', 'description', 'transaction_date']
    list_filter = ['debit_account', 'credit_account']
    search_fields = ['description']
    date_hierarchy = 'transaction_date'
